from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware import Middleware

from hello_service.api.hello import router as hello_router
from hello_service.config import Settings, get_settings
from hello_service.observability.middleware import (
    DeadlineMiddleware,
    RecoveryMiddleware,
    RequestLoggingMiddleware,
)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application with its middleware chain.

    Middleware order, outermost first: request logging, fault recovery,
    read/write deadlines, then the router.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Hello Service",
        version="0.1.0",
        redirect_slashes=False,
        # Only the two greeting routes are served.
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        middleware=[
            Middleware(RequestLoggingMiddleware),
            Middleware(RecoveryMiddleware),
            Middleware(
                DeadlineMiddleware,
                read_timeout=settings.read_timeout,
                write_timeout=settings.write_timeout,
            ),
        ],
    )
    app.include_router(hello_router)
    return app


app = create_app()
