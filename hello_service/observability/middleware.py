from __future__ import annotations

import asyncio
import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.responses import PlainTextResponse


def _request_uri(scope: dict[str, Any]) -> str:
    raw_path = scope.get("raw_path")
    # Some ASGI clients leave the query string on raw_path.
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string") or b""
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


class RequestLoggingMiddleware:
    """Logs every request on the way in and on the way out."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method")
        uri = _request_uri(scope)

        structlog.contextvars.bind_contextvars(
            request_id=str(uuid.uuid4()),
            method=method,
            uri=uri,
        )
        logger = structlog.get_logger("access")
        logger.info("request_started", method=method, uri=uri)

        start = perf_counter()
        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (perf_counter() - start) * 1000.0
            logger.info(
                "request_completed",
                uri=uri,
                status_code=status_code,
                duration_ms=round(elapsed_ms, 3),
            )
            structlog.contextvars.clear_contextvars()


class RecoveryMiddleware:
    """Turns an unhandled fault in the inner app into a 500 response."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal response_started
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            structlog.get_logger("recovery").error(
                "request_panic",
                error=str(exc) or exc.__class__.__name__,
                response_started=response_started,
                exc_info=True,
            )
            # A status line has gone out already; the client sees a truncated body.
            if response_started:
                return
            response = PlainTextResponse("Internal Server Error", status_code=500)
            await response(scope, receive, send)


class DeadlineMiddleware:
    """Bounds how long a request may spend reading its body and writing its response.

    Both deadlines are measured from the moment the request reaches the app.
    A missed deadline raises ``TimeoutError`` out of ``receive``/``send``.
    """

    def __init__(self, app: Callable[..., Any], read_timeout: float, write_timeout: float) -> None:
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        start = loop.time()
        read_deadline = start + self.read_timeout
        write_deadline = start + self.write_timeout

        async def bounded(call: Callable[[], Any], deadline: float, what: str) -> Any:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TimeoutError(f"{what} deadline exceeded")
            try:
                return await asyncio.wait_for(call(), timeout=remaining)
            except asyncio.TimeoutError:
                raise TimeoutError(f"{what} deadline exceeded") from None

        async def receive_wrapper() -> dict[str, Any]:
            return await bounded(receive, read_deadline, "read")

        async def send_wrapper(message: dict[str, Any]) -> None:
            await bounded(lambda: send(message), write_deadline, "write")

        await self.app(scope, receive_wrapper, send_wrapper)
