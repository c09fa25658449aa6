import json
import logging

import pytest
import structlog

from hello_service.observability import logging as obs_logging


@pytest.fixture
def isolated_logging(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    saved_root = (root.handlers[:], root.level)
    saved_uvicorn = {
        name: (logging.getLogger(name).handlers[:], logging.getLogger(name).propagate, logging.getLogger(name).level)
        for name in ("uvicorn", "uvicorn.error")
    }
    monkeypatch.setattr(obs_logging, "_CONFIGURED", False)

    yield

    root.handlers, root.level = saved_root
    for name, (handlers, propagate, level) in saved_uvicorn.items():
        logger = logging.getLogger(name)
        logger.handlers, logger.propagate, logger.level = handlers, propagate, level
    structlog.reset_defaults()


def test_configure_logging_renders_json_to_stdout(isolated_logging, capsys) -> None:
    obs_logging.configure_logging("info")

    structlog.get_logger("test").info("request_started", method="GET", uri="/")
    structlog.get_logger("test").debug("hidden")

    lines = [line for line in capsys.readouterr().out.splitlines() if line]
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "request_started"
    assert record["level"] == "info"
    assert record["method"] == "GET"
    assert record["uri"] == "/"
    assert "timestamp" in record


def test_stdlib_records_share_the_json_handler(isolated_logging, capsys) -> None:
    obs_logging.configure_logging(logging.INFO)

    logging.getLogger("uvicorn.error").info("Started server process")

    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert record["event"] == "Started server process"
    assert record["level"] == "info"


def test_configure_logging_is_idempotent(isolated_logging) -> None:
    obs_logging.configure_logging()
    handlers = logging.getLogger().handlers[:]

    obs_logging.configure_logging(logging.DEBUG)

    assert logging.getLogger().handlers == handlers
    assert logging.getLogger().level == logging.INFO


def test_unknown_level_is_rejected(isolated_logging) -> None:
    with pytest.raises(ValueError):
        obs_logging.configure_logging("chatty")
