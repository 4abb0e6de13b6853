"""
Slack bot instance.

One SlackBot per workspace. Each wraps its own slack_bolt App and Socket Mode
connection, routes messages through the client's controllers and runs
actions and jobs on a small worker pool.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Optional

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from ..models import Channel, Job, Message
from .callback import AttachmentActionCallback

if TYPE_CHECKING:
    from .client import SlackClient

logger = logging.getLogger(__name__)


class SlackBot:
    """A bot connected to one Slack workspace."""

    def __init__(
        self,
        client: "SlackClient",
        bot_id: str,
        app: App,
        app_token: Optional[str] = None,
        max_workers: int = 5,
    ):
        """
        Args:
            client: Client whose controllers and action handlers are used
            bot_id: Workspace (team) id; also the key callbacks are routed by
            app: slack_bolt App authorized for the workspace
            app_token: Socket Mode app-level token; without it start() only
                serves actions and jobs
            max_workers: Size of the pool running actions and jobs
        """
        self.id = bot_id
        self.app = app
        self._client = client
        self._app_token = app_token
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"bot-{bot_id}",
        )
        self._handler: Optional[SocketModeHandler] = None
        self._lock = threading.Lock()
        self._stopped = False

        self.app.event("message")(self.on_message)
        self.app.event("member_joined_channel")(self.on_member_joined_channel)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the Socket Mode connection, if an app token was given."""
        if not self._app_token:
            logger.info(f"Bot {self.id} has no app token, not connecting")
            return

        with self._lock:
            if self._stopped or self._handler is not None:
                return
            self._handler = SocketModeHandler(self.app, self._app_token)

        self._handler.connect()
        logger.info(f"Bot {self.id} connected")

    def stop(self) -> None:
        """Close the connection and stop accepting work. Only the first call acts."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            handler = self._handler

        if handler is not None:
            handler.close()
        self._executor.shutdown(wait=False)
        logger.info(f"Bot {self.id} stopped")

    @property
    def stopped(self) -> bool:
        with self._lock:
            return self._stopped

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def on_message(self, event, say=None):
        """Route a message event to the first controller that accepts it."""
        # Ignore bot messages (including ourselves)
        if event.get("bot_id") or event.get("subtype") == "bot_message":
            return

        if not event.get("text"):
            return

        message = Message.from_event(event)
        controller, ok = self._client.controller_for(message)
        if not ok:
            logger.debug(f"No controller for message in {message.channel.id}")
            return

        try:
            controller.handle(self, message)
        except Exception:
            logger.exception(
                f"Error in controller {type(controller).__name__} "
                f"for message in {message.channel.id}"
            )

    def on_member_joined_channel(self, event, context=None):
        """Run the intro handler when the bot itself joins a channel."""
        bot_user_id = getattr(context, "bot_user_id", None) if context else None
        if bot_user_id is None or event.get("user") != bot_user_id:
            return

        channel = Channel(id=event.get("channel", ""))
        try:
            self._client.handle_intro(self, channel)
        except Exception:
            logger.exception(f"Error in intro handler for {channel.id}")

    def handle_action(self, channel_id: str, action: AttachmentActionCallback) -> None:
        """Run the action handler registered for the callback id."""
        handler, ok = self._client.action_handler(action.callback_id)
        if not ok:
            logger.debug(f"No action handler for '{action.callback_id}'")
            return

        logger.info(
            f"Bot {self.id} handling action '{action.callback_id}' in {channel_id}"
        )
        self._submit(handler, action)

    def handle_job(self, job: Job) -> None:
        self._submit(job)

    def _submit(self, fn: Callable, *args) -> None:
        with self._lock:
            if self._stopped:
                logger.debug(f"Bot {self.id} is stopped, dropping work")
                return
            self._executor.submit(self._run_safely, fn, *args)

    def _run_safely(self, fn: Callable, *args) -> None:
        try:
            fn(self, *args)
        except Exception:
            logger.exception(f"Error in {getattr(fn, '__name__', fn)} on bot {self.id}")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def say(self, channel_id: str, text: str, **kwargs) -> dict:
        """Post a message to a channel."""
        response = self.app.client.chat_postMessage(
            channel=channel_id,
            text=text,
            **kwargs
        )
        return response.data

    def reply(self, message: Message, text: str, **kwargs) -> dict:
        """Post in the message's channel, inside its thread if it has one."""
        if message.thread_ts and "thread_ts" not in kwargs:
            kwargs["thread_ts"] = message.thread_ts
        return self.say(message.channel.id, text, **kwargs)
