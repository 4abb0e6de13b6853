"""
Slack client: the process-level orchestrator.

Handles:
- Controller, action handler and intro handler registration
- Supervising the running bots and the webhook listener
- Routing interactive callbacks to the bot of their workspace
- Coordinated shutdown
"""

import logging
import threading
from datetime import timedelta
from typing import Optional

from slack_bolt import App

from ..dispatcher import Dispatcher
from ..models import (
    ActionHandler,
    Bot,
    Channel,
    Controller,
    IntroController,
    Job,
    Message,
    RunnableBot,
    ScheduledJob,
)
from .bot import SlackBot
from .callback import AttachmentActionCallback
from .config import ClientOptions
from .webhook import WebhookListener

logger = logging.getLogger(__name__)

THREAD_JOIN_TIMEOUT = 5.0


class ClientError(RuntimeError):
    """Invalid use of the client lifecycle."""
    pass


class SlackClient:
    """Owns the routing tables, the bots and the webhook listener."""

    def __init__(self, token: str, options: Optional[ClientOptions] = None):
        self.token = token
        self.options = options if options is not None else ClientOptions()
        self.dispatcher = Dispatcher()
        self.bots: dict[str, Bot] = {}
        self.scheduled_jobs: list[ScheduledJob] = []

        self._lock = threading.Lock()
        self._done = threading.Event()
        self._running = False
        self._stopping = False
        self._webhook: Optional[WebhookListener] = None
        self._webhook_created = threading.Event()
        self._threads: list[threading.Thread] = []
        self._run_error: Optional[BaseException] = None

        # Per-client verbosity; the shared "relay" logger level is left alone
        self._verbose = logging.INFO if self.options.debug else logging.DEBUG

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_controller(self, controller: Controller) -> None:
        self.dispatcher.add_controller(controller)

    def controller_for(self, message: Message) -> tuple[Optional[Controller], bool]:
        return self.dispatcher.controller_for(message)

    def add_action_handler(self, callback_id: str, handler: ActionHandler) -> None:
        self.dispatcher.add_action_handler(callback_id, handler)

    def action_handler(self, callback_id: str) -> tuple[Optional[ActionHandler], bool]:
        return self.dispatcher.action_handler(callback_id)

    @property
    def intro_handler(self) -> Optional[IntroController]:
        return self.dispatcher.intro_handler

    def set_intro_handler(self, controller: IntroController) -> None:
        self.dispatcher.set_intro_handler(controller)

    def handle_intro(self, bot: Bot, channel: Channel) -> None:
        self.dispatcher.handle_intro(bot, channel)

    def register_bot(self, name: str, bot: Bot) -> None:
        """Register a bot under a name; an existing bot with that name is replaced."""
        with self._lock:
            if name in self.bots:
                logger.warning(f"Replacing bot '{name}'")
            self.bots[name] = bot

    def bot(self, name: str) -> Optional[Bot]:
        with self._lock:
            return self.bots.get(name)

    def add_bot(
        self,
        team_id: str,
        bot_token: Optional[str] = None,
        app_token: Optional[str] = None,
    ) -> SlackBot:
        """
        Create a Slack bot for a workspace and register it under its team id.

        Args:
            team_id: Workspace id carried by that workspace's callbacks
            bot_token: Bot token; defaults to the client token
            app_token: Socket Mode token used to receive events
        """
        app = App(token=bot_token or self.token)
        bot = SlackBot(self, team_id, app, app_token=app_token)
        self.register_bot(team_id, bot)
        return bot

    def add_scheduled_job(self, interval: timedelta | float, job: Job) -> None:
        """Forward a job to every bot once per interval while running."""
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        if interval.total_seconds() <= 0:
            raise ValueError("Scheduled job interval must be positive")
        self.scheduled_jobs.append(ScheduledJob(interval=interval, job=job))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Start the bots and the webhook listener, then block until stop().

        Raises:
            ClientError: If the client is already running
            WebhookError: If the webhook listener could not be started
        """
        with self._lock:
            if self._running:
                raise ClientError("Client is already running")
            self._running = True
            if self._stopping:
                logger.info("Client was stopped before it ran")
                return
            bots = dict(self.bots)

        logger.info(f"Starting client with {len(bots)} bots")

        if self.options.enable_webhook:
            self._start_thread(self._run_webhook, "webhook")

        for job in self.scheduled_jobs:
            self._start_thread(self._run_scheduled_job, "scheduler", job)

        for name, bot in bots.items():
            if not isinstance(bot, RunnableBot):
                continue
            with self._lock:
                if self._stopping:
                    break
            try:
                bot.start()
            except Exception:
                logger.exception(f"Failed to start bot '{name}'")

        self._done.wait()

        for thread in self._threads:
            thread.join(timeout=THREAD_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not exit")

        logger.info("Client stopped")
        if self._run_error is not None:
            raise self._run_error

    def stop(self) -> Optional[Exception]:
        """
        Stop the webhook listener and every bot, and release run().

        Returns:
            The first exception raised while stopping, or None
        """
        with self._lock:
            if self._stopping:
                return None
            self._stopping = True
            webhook = self._webhook
            bots = dict(self.bots)

        logger.info("Stopping client...")
        first_error: Optional[Exception] = None

        if webhook is not None:
            try:
                webhook.shutdown()
            except Exception as e:
                logger.exception("Failed to shut down webhook listener")
                first_error = e

        for name, bot in bots.items():
            try:
                bot.stop()
            except Exception as e:
                logger.exception(f"Failed to stop bot '{name}'")
                if first_error is None:
                    first_error = e

        self._done.set()
        return first_error

    @property
    def webhook(self) -> Optional[WebhookListener]:
        with self._lock:
            return self._webhook

    def wait_webhook_listening(self, timeout: float | None = None) -> bool:
        """Wait until the webhook listener accepts connections."""
        if not self._webhook_created.wait(timeout):
            return False
        return self._webhook.wait_listening(timeout)

    def _start_thread(self, target, name: str, *args) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _run_webhook(self) -> None:
        """Serve the webhook until shutdown; stop the client if it cannot start."""
        listener = WebhookListener(
            self.options.webhook_addr,
            self._dispatch_action,
            debug=self.options.debug,
        )
        with self._lock:
            stopping = self._stopping
            self._webhook = listener
        self._webhook_created.set()

        if stopping:
            listener.shutdown()

        try:
            listener.serve()
        except Exception as e:
            logger.error(f"Webhook listener failed: {e}")
            self._run_error = e
            self.stop()

    def _run_scheduled_job(self, scheduled: ScheduledJob) -> None:
        while not self._done.wait(scheduled.seconds):
            with self._lock:
                bots = list(self.bots.values())
            for bot in bots:
                try:
                    bot.handle_job(scheduled.job)
                except Exception:
                    logger.exception("Failed to hand scheduled job to bot")

    def _dispatch_action(self, callback: AttachmentActionCallback) -> None:
        """Forward a callback to the bot registered for its workspace."""
        bot = self.bot(callback.team.id)
        if bot is None:
            logger.log(
                self._verbose,
                f"No bot for team '{callback.team.id}', "
                f"dropping callback '{callback.callback_id}'"
            )
            return
        bot.handle_action(callback.channel.id, callback)
