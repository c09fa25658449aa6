"""Server lifecycle: bind, serve on a background thread, drain on SIGINT/SIGTERM.

States move strictly forward::

    INITIALIZING -> SERVING -> SHUTTING_DOWN -> STOPPED

The listening socket is bound on the calling thread so a busy port fails fast,
then uvicorn serves it from a daemon thread. The calling (main) thread waits for
a termination signal and drives the drain, bounded by ``shutdown_timeout``.
"""

from __future__ import annotations

import signal
import socket
import threading
from enum import Enum
from typing import Any, Callable

import structlog
import uvicorn

from hello_service.config import Settings

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# How long to wait for the serving thread once a forced exit was requested.
_FORCE_EXIT_GRACE = 1.0


class ServerState(str, Enum):
    INITIALIZING = "initializing"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class FatalServerError(RuntimeError):
    """Lifecycle failure the process cannot recover from."""


class BindError(FatalServerError):
    pass


class ServeError(FatalServerError):
    pass


class ShutdownTimeoutError(FatalServerError):
    pass


class ServerController:
    def __init__(self, app: Callable[..., Any], settings: Settings) -> None:
        self.settings = settings
        self.state = ServerState.INITIALIZING
        self.config = uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            timeout_keep_alive=settings.idle_timeout,
            # Request logging happens in our middleware; logging is set up by the caller.
            access_log=False,
            log_config=None,
        )
        self._server = uvicorn.Server(self.config)
        self._socket: socket.socket | None = None
        self._bound_port: int | None = None
        self._thread: threading.Thread | None = None
        self._shutdown_event = threading.Event()
        self._serve_failed = False
        self._serve_error: Exception | None = None
        self._previous_handlers: dict[int, Any] = {}

    @property
    def bound_port(self) -> int | None:
        return self._bound_port

    @property
    def address(self) -> str:
        port = self.bound_port if self.bound_port is not None else self.settings.port
        return f"{self.settings.host}:{port}"

    def _bind_socket(self) -> socket.socket:
        host, port = self.settings.host, self.settings.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
            sock.listen(self.config.backlog)
        except OSError as exc:
            sock.close()
            raise BindError(f"cannot listen on {host}:{port}: {exc}") from exc
        return sock

    def _serve(self) -> None:
        try:
            self._server.run(sockets=[self._socket])
        except Exception as exc:
            structlog.get_logger("server").error("server_crashed", error=str(exc), exc_info=True)
            self._serve_error = exc
        finally:
            # Serving ended without anyone asking for it: wake the waiter.
            if not self._shutdown_event.is_set():
                self._serve_failed = True
                self._shutdown_event.set()

    def start(self) -> None:
        """Bind the listener and start serving in the background. Does not block."""
        if self.state is not ServerState.INITIALIZING:
            raise RuntimeError(f"cannot start server in state {self.state.value}")

        self._socket = self._bind_socket()
        self._bound_port = self._socket.getsockname()[1]
        structlog.get_logger("server").info("server_starting", address=self.address)

        self._thread = threading.Thread(target=self._serve, name="http-server", daemon=True)
        self._thread.start()
        self.state = ServerState.SERVING

    def request_shutdown(self, signum: int | None = None) -> None:
        if signum is not None:
            structlog.get_logger("server").info("shutdown_signal_received", signal=signal.Signals(signum).name)
        self._shutdown_event.set()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        if self.state is ServerState.SHUTTING_DOWN:
            # Already draining; a repeated signal must not cut in-flight requests short.
            structlog.get_logger("server").info("shutdown_already_in_progress", signal=signal.Signals(signum).name)
            return
        self.request_shutdown(signum)

    def _install_signal_handlers(self) -> None:
        if self._previous_handlers or threading.current_thread() is not threading.main_thread():
            return
        for sig in HANDLED_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def wait_for_shutdown(self) -> None:
        """Block until SIGINT/SIGTERM arrives or the serving thread dies.

        The signal handlers stay installed until ``shutdown()`` finishes, so
        further signals during the drain are logged and ignored.
        """
        self._install_signal_handlers()
        while not self._shutdown_event.wait(timeout=0.5):
            pass

        if self._serve_failed:
            self.state = ServerState.STOPPED
            self._restore_signal_handlers()
            raise ServeError(f"server on {self.address} stopped unexpectedly") from self._serve_error

    def shutdown(self) -> None:
        """Stop accepting connections and drain in-flight requests.

        Raises ShutdownTimeoutError if requests are still running once
        ``shutdown_timeout`` has elapsed; remaining connections are dropped.
        """
        if self.state is not ServerState.SERVING:
            raise RuntimeError(f"cannot shut down server in state {self.state.value}")

        self.state = ServerState.SHUTTING_DOWN
        self._shutdown_event.set()
        logger = structlog.get_logger("server")
        logger.info("server_shutting_down", timeout_s=self.settings.shutdown_timeout)

        self._server.should_exit = True
        try:
            self._thread.join(timeout=self.settings.shutdown_timeout)

            if self._thread.is_alive():
                self._server.force_exit = True
                self._thread.join(timeout=_FORCE_EXIT_GRACE)
                self.state = ServerState.STOPPED
                raise ShutdownTimeoutError(
                    f"in-flight requests did not finish within {self.settings.shutdown_timeout}s"
                )
        finally:
            self._restore_signal_handlers()

        self.state = ServerState.STOPPED
        logger.info("server_exiting")

    def run(self) -> None:
        # Handlers go in first so a signal during startup still drains cleanly.
        self._install_signal_handlers()
        try:
            self.start()
            self.wait_for_shutdown()
            self.shutdown()
        finally:
            self._restore_signal_handlers()
