import pytest
from pydantic import ValidationError

from hello_service.config import Settings, get_settings


def test_defaults() -> None:
    settings = get_settings()
    assert settings.port == 8080
    assert settings.host == "0.0.0.0"
    assert settings.read_timeout == 15.0
    assert settings.write_timeout == 15.0
    assert settings.idle_timeout == 60.0
    assert settings.shutdown_timeout == 30.0
    assert settings.log_level == "INFO"
    assert settings.bind_address == "0.0.0.0:8080"


def test_port_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "9999")
    assert get_settings().port == 9999


def test_empty_port_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "")
    assert get_settings().port == 8080


def test_invalid_port_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "not-a-port")
    with pytest.raises(ValidationError):
        Settings()

    monkeypatch.setenv("PORT", "70000")
    with pytest.raises(ValidationError):
        Settings()


def test_timeouts_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHUTDOWN_TIMEOUT", "0")
    with pytest.raises(ValidationError):
        Settings()


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()
