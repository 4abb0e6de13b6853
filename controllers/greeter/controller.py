"""
Greeter - example Controller plugin

Answers "hello", introduces the bot in channels it joins and handles the
feedback buttons attached to its greeting.
"""

import logging

from relay.models import Bot, Channel, Message

logger = logging.getLogger(__name__)

FEEDBACK_CALLBACK_ID = "greeter_feedback"

INTRO_TEXT = (
    "Hi everyone! I'm a bot.\n"
    "Say `hello` to check that I'm listening."
)


class GreeterController:
    """Replies to greetings."""

    greetings = {"hello", "hi", "hey"}

    def can_handle(self, message: Message) -> bool:
        return message.text.strip().lower() in self.greetings

    def handle(self, bot: Bot, message: Message) -> None:
        logger.info(f"Greeting user {message.user.id} in {message.channel.id}")
        bot.reply(
            message,
            f"Hello <@{message.user.id}>!",
            attachments=[{
                "text": "Was this helpful?",
                "callback_id": FEEDBACK_CALLBACK_ID,
                "actions": [
                    {"name": "feedback", "text": "Yes", "type": "button", "value": "yes"},
                    {"name": "feedback", "text": "No", "type": "button", "value": "no"},
                ],
            }],
        )

    def handle_intro(self, bot: Bot, channel: Channel) -> None:
        bot.say(channel.id, INTRO_TEXT)


def on_feedback(bot: Bot, action) -> None:
    """Thank the user for clicking a feedback button."""
    value = action.actions[0].value if action.actions else ""
    logger.info(f"Feedback '{value}' from {action.user.id}")
    bot.say(action.channel.id, "Thanks for the feedback!")


def get_controller() -> GreeterController:
    """Factory function for plugin loader."""
    return GreeterController()


def get_action_handlers() -> dict:
    return {FEEDBACK_CALLBACK_ID: on_feedback}
