from __future__ import annotations

import argparse
import sys

import structlog

from hello_service.config import get_settings
from hello_service.main import create_app
from hello_service.observability.logging import configure_logging
from hello_service.server import FatalServerError, ServerController


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Hello Service HTTP server")
    parser.add_argument("--host", default=None, help="Bind address (overrides HOST)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (overrides PORT)")
    args = parser.parse_args(argv)

    settings = get_settings()
    overrides = {key: value for key, value in (("host", args.host), ("port", args.port)) if value is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level)

    controller = ServerController(create_app(settings), settings)
    try:
        controller.run()
    except FatalServerError as exc:
        structlog.get_logger("server").critical("server_fatal", error=str(exc), error_type=type(exc).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
