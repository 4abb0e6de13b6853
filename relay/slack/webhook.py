"""FastAPI-based listener for Slack interactive message callbacks."""

from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Callable
from enum import Enum
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from .callback import AttachmentActionCallback, CallbackDecodeError, decode_callback
from .config import parse_addr

logger = logging.getLogger(__name__)

CallbackDispatcher = Callable[[AttachmentActionCallback], None]


class WebhookError(RuntimeError):
    """The webhook listener could not be started."""
    pass


class ListenerState(Enum):
    STOPPED = "stopped"
    LISTENING = "listening"
    DRAINING = "draining"


class WebhookListener:
    """Accept interactive callbacks over HTTP and hand them to a dispatcher.

    serve() blocks the calling thread until shutdown() is called from another
    thread. Once serve() has returned the listening socket is closed, so new
    connections are refused rather than answered with an error status.
    """

    def __init__(
        self,
        addr: str,
        dispatch: CallbackDispatcher,
        debug: bool = False,
    ) -> None:
        """Initialize the listener.

        Args:
            addr: host:port to bind; port 0 picks a free port
            dispatch: Called with every decoded callback, from a worker thread
            debug: Log every callback at INFO instead of DEBUG
        """
        self._host, self._port = parse_addr(addr)
        self._dispatch = dispatch
        self._verbose = logging.INFO if debug else logging.DEBUG
        self._app = FastAPI()
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._listening = threading.Event()
        self._stopped = threading.Event()
        self._server: uvicorn.Server | None = None
        self._state = ListenerState.STOPPED
        self._address: Optional[tuple[str, int]] = None

        self._create_routes()

    # ------------------------------------------------------------------
    # FastAPI setup
    # ------------------------------------------------------------------
    def _create_routes(self) -> None:
        @self._app.get("/healthz")
        async def health() -> dict[str, str]:  # pragma: no cover - trivial
            return {"status": "ok"}

        @self._app.post("/{path:path}")
        async def receive_callback(request: Request, path: str) -> dict[str, str]:
            if self._shutdown.is_set():
                raise HTTPException(status_code=503, detail="Shutting down")

            body = await request.body()
            try:
                callback = decode_callback(body, request.headers.get("content-type", ""))
            except CallbackDecodeError as exc:
                logger.warning("Rejected webhook payload on /%s: %s", path, exc)
                raise HTTPException(status_code=400, detail=str(exc)) from exc

            logger.log(
                self._verbose,
                "Callback %s from team %s in channel %s",
                callback.callback_id,
                callback.team.id,
                callback.channel.id,
            )

            # The payload was valid: acknowledge even if the bot fails on it
            try:
                await run_in_threadpool(self._dispatch, callback)
            except Exception:
                logger.exception("Callback dispatch failure for %s", callback.callback_id)

            return {"status": "ok"}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def app(self) -> FastAPI:
        return self._app

    @property
    def state(self) -> ListenerState:
        with self._lock:
            return self._state

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """The bound (host, port), once listening."""
        return self._address

    def wait_listening(self, timeout: float | None = None) -> bool:
        return self._listening.wait(timeout)

    def wait_stopped(self, timeout: float | None = None) -> bool:
        return self._stopped.wait(timeout)

    def serve(self) -> None:
        """Bind and serve until shutdown() is called.

        Raises:
            WebhookError: If the address cannot be bound or serve() was
                already called
        """
        with self._lock:
            if self._server is not None:
                raise WebhookError("Webhook listener can only be served once")
            if self._shutdown.is_set():
                logger.debug("Webhook listener shut down before it started")
                self._stopped.set()
                return
            try:
                sock = self._bind()
            except WebhookError:
                self._stopped.set()
                raise

            # No log_config or log_level: uvicorn's loggers follow the
            # application's own logging setup.
            self._server = uvicorn.Server(
                uvicorn.Config(
                    self._app,
                    log_config=None,
                    lifespan="off",
                )
            )
            self._state = ListenerState.LISTENING

        self._listening.set()
        logger.info(
            "Webhook listener on http://%s:%s", self._address[0], self._address[1]
        )

        try:
            self._server.run(sockets=[sock])
        finally:
            sock.close()
            with self._lock:
                self._state = ListenerState.STOPPED
            self._listening.clear()
            self._stopped.set()
            logger.info("Webhook listener stopped")

    def shutdown(self) -> None:
        """Stop accepting connections and let serve() return.

        Safe to call more than once, and before serve().
        """
        with self._lock:
            if self._shutdown.is_set():
                return
            self._shutdown.set()
            if self._server is not None and self._state is ListenerState.LISTENING:
                self._server.should_exit = True
                self._state = ListenerState.DRAINING
        logger.debug("Webhook shutdown requested")

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        try:
            sock = socket.create_server((self._host, self._port), family=family)
        except OSError as e:
            raise WebhookError(
                f"Failed to bind webhook listener to {self._host}:{self._port}: {e}"
            ) from e
        self._address = sock.getsockname()[:2]
        return sock
