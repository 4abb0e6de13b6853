"""
Routing tables for the dispatch runtime.

Handles:
- First-match routing of messages to controllers
- Exact lookup of interactive action handlers by callback id
- The optional intro handler used when a bot joins a channel
"""

import logging
import threading
from typing import Optional

from .models import ActionHandler, Bot, Channel, Controller, IntroController, Message

logger = logging.getLogger(__name__)


class Dispatcher:
    """Owns the controller list, the action handler map and the intro slot."""

    def __init__(self):
        self._lock = threading.Lock()
        self._controllers: list[Controller] = []
        self._action_handlers: dict[str, ActionHandler] = {}
        self._intro_handler: Optional[IntroController] = None

    # ------------------------------------------------------------------
    # Controllers
    # ------------------------------------------------------------------

    def add_controller(self, controller: Controller) -> None:
        """Append a controller. Registration order is match order."""
        with self._lock:
            self._controllers.append(controller)
        logger.debug(f"Added controller {type(controller).__name__}")

    def controller_for(self, message: Message) -> tuple[Optional[Controller], bool]:
        """
        Find the controller for a message.

        Args:
            message: Inbound message

        Returns:
            (controller, True) for the first controller whose can_handle()
            accepts the message, (None, False) if none does
        """
        with self._lock:
            controllers = list(self._controllers)

        for controller in controllers:
            if controller.can_handle(message):
                return controller, True
        return None, False

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def add_action_handler(self, callback_id: str, handler: ActionHandler) -> None:
        """Register a handler for a callback id, replacing any previous one."""
        with self._lock:
            if callback_id in self._action_handlers:
                logger.warning(f"Replacing action handler for '{callback_id}'")
            self._action_handlers[callback_id] = handler

    def action_handler(self, callback_id: str) -> tuple[Optional[ActionHandler], bool]:
        """Exact lookup of the handler registered for a callback id."""
        with self._lock:
            handler = self._action_handlers.get(callback_id)
        return handler, handler is not None

    # ------------------------------------------------------------------
    # Intro handler
    # ------------------------------------------------------------------

    @property
    def intro_handler(self) -> Optional[IntroController]:
        with self._lock:
            return self._intro_handler

    def set_intro_handler(self, controller: IntroController) -> None:
        with self._lock:
            self._intro_handler = controller

    def handle_intro(self, bot: Bot, channel: Channel) -> None:
        """
        Run the intro handler for a channel the bot has joined.

        Does nothing if no intro handler is set. Errors raised by the
        handler propagate to the caller.
        """
        handler = self.intro_handler
        if handler is None:
            return
        if not isinstance(handler, IntroController):
            logger.warning(
                f"Intro handler {type(handler).__name__} has no handle_intro()"
            )
            return
        handler.handle_intro(bot, channel)
