import logging
import os

import pytest
import yaml

from asyncscope.config import logging_config
from asyncscope.config.environment import DEFAULT_POLL_BUDGET, Environment
from asyncscope.config.settings import get_system_file_path, load_settings, save_settings
from asyncscope.concurrency.scope import Scope


def test_default_poll_budget():
    assert Environment.get_poll_budget() == DEFAULT_POLL_BUDGET


def test_poll_budget_from_environment(monkeypatch):
    monkeypatch.setenv("ASYNCSCOPE_POLL_BUDGET", "8")
    assert Environment.get_poll_budget() == 8


def test_poll_budget_from_dotenv(tmp_path):
    (tmp_path / ".env").write_text("ASYNCSCOPE_POLL_BUDGET=5\n")
    Environment.reset()
    try:
        assert Environment.get_poll_budget() == 5
    finally:
        os.environ.pop("ASYNCSCOPE_POLL_BUDGET", None)


def test_poll_budget_from_settings_file():
    save_settings({"ASYNCSCOPE_POLL_BUDGET": 12})
    Environment.reset()

    assert get_system_file_path("settings.yaml").exists()
    assert Environment.get_poll_budget() == 12
    assert Scope()._poll_budget == 12


@pytest.mark.parametrize("raw", ["zero", "0", "-3"])
def test_invalid_poll_budget(monkeypatch, raw):
    monkeypatch.setenv("ASYNCSCOPE_POLL_BUDGET", raw)
    with pytest.raises(ValueError, match="ASYNCSCOPE_POLL_BUDGET"):
        Environment.get_poll_budget()


def test_settings_file_must_be_mapping():
    path = get_system_file_path("settings.yaml")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(["not", "a", "mapping"]))

    with pytest.raises(ValueError, match="mapping"):
        load_settings()


def test_missing_settings_file_is_empty():
    assert load_settings() == {}


def test_log_level_priority(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.setenv("ASYNCSCOPE_LOG_LEVEL", "warning")
    assert Environment.get_log_level() == "WARNING"

    monkeypatch.setenv("DEBUG", "1")
    assert Environment.get_log_level() == "DEBUG"

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert Environment.get_log_level() == "ERROR"


def test_debug_flag_falsy_values(monkeypatch):
    monkeypatch.setenv("DEBUG", "false")
    assert not Environment.is_debug()


def test_get_logger_applies_level():
    logger = logging_config.get_logger("asyncscope.tests")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "asyncscope.tests"


def test_configure_logging_explicit_level():
    level = logging_config.configure_logging("debug")
    assert level == "DEBUG"
    assert logging.getLogger().level == logging.DEBUG
    logging_config.configure_logging("INFO")


def test_configure_logging_formats_existing_stream_handlers():
    root = logging.getLogger()
    handler = logging.StreamHandler()
    root.addHandler(handler)
    try:
        assert logging_config.configure_logging("warning") == "WARNING"
        assert isinstance(handler.formatter, logging_config._LevelColorFormatter)
        assert handler.level == logging.WARNING
    finally:
        root.removeHandler(handler)
        logging_config.configure_logging("INFO")
