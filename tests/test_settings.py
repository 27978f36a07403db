import logging
import os

import pytest

from logconfig import LOGGER_NAME, init_logging
from settings import Settings


@pytest.fixture
def restore_service_logger():
    service_logger = logging.getLogger(LOGGER_NAME)
    handlers = list(service_logger.handlers)
    level = service_logger.level
    propagate = service_logger.propagate
    yield
    for handler in service_logger.handlers:
        handler.close()
    service_logger.handlers = handlers
    service_logger.setLevel(level)
    service_logger.propagate = propagate


def test_defaults(monkeypatch):
    for name in ("API_PORT", "REGISTRY", "CONTENT_LENGTH", "INVOCATION_TIMEOUT", "LOG_WRITE_MODE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.api_port == 8080
    assert settings.registry == ""
    assert settings.content_length == 200
    assert settings.invocation_timeout == 300
    assert settings.log_write_mode == "console"
    assert settings.log_level == "DEBUG"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("API_PORT", "9000")
    monkeypatch.setenv("REGISTRY", "registry.example.com")
    monkeypatch.setenv("CONTENT_LENGTH", "64")

    settings = Settings()

    assert settings.api_port == 9000
    assert settings.registry == "registry.example.com"
    assert settings.content_length == 64


def test_invalid_integer_names_the_variable(monkeypatch):
    monkeypatch.setenv("CONTENT_LENGTH", "lots")

    with pytest.raises(ValueError, match="CONTENT_LENGTH"):
        Settings()


def test_init_logging_file_mode(monkeypatch, tmp_path, restore_service_logger):
    monkeypatch.setenv("LOG_WRITE_MODE", "file")
    monkeypatch.setenv("LOG_PATH", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "WARN")

    logger = init_logging(Settings())
    logger.warning("written")
    logger.info("filtered")
    for handler in logger.handlers:
        handler.flush()

    files = os.listdir(tmp_path / "logs")
    assert len(files) == 1
    assert files[0].startswith("container-exec-")
    content = (tmp_path / "logs" / files[0]).read_text(encoding="utf-8")
    assert "written" in content
    assert "filtered" not in content


def test_init_logging_unknown_level_defaults_to_debug(monkeypatch, restore_service_logger):
    monkeypatch.setenv("LOG_WRITE_MODE", "console")
    monkeypatch.setenv("LOG_LEVEL", "CHATTY")

    logger = init_logging(Settings())

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
