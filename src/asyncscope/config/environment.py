"""
Environment Configuration Management Module

Central access to asyncscope's configuration through the Environment class.
Values are resolved from, in order of precedence:

- The settings file (settings.yaml)
- Environment variables (including those loaded from .env files)
- Default values

Only a handful of knobs exist: the log level and the poll budget that bounds
how many task results a single scope poll may deliver before yielding back to
the event loop.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from asyncscope.config.settings import get_value, load_settings

DEFAULT_POLL_BUDGET = 32

DEFAULT_ENV = {
    "ENV": "development",
    "LOG_LEVEL": None,
    "DEBUG": None,
    "ASYNCSCOPE_POLL_BUDGET": DEFAULT_POLL_BUDGET,
}


def load_dotenv_files(root: Optional[Path] = None) -> None:
    """Load environment variables from .env files based on current environment."""
    from dotenv import load_dotenv

    root = root if root is not None else Path.cwd()
    env_name = os.environ.get("ENV", "development")

    # Later files never override values already present in os.environ
    env_files = [
        root / ".env",
        root / f".env.{env_name}",
        root / f".env.{env_name}.local",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    Manages configuration values and provides defaults and type conversions.

    Settings are loaded lazily on first access; `reset()` drops the cached
    settings so the next access re-reads them (used by tests).
    """

    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def load_settings(cls) -> None:
        load_dotenv_files()
        cls.settings = load_settings()

    @classmethod
    def get_settings(cls) -> Dict[str, Any]:
        if cls.settings is None:
            cls.load_settings()
        assert cls.settings is not None
        return cls.settings

    @classmethod
    def reset(cls) -> None:
        cls.settings = None

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        return get_value(key, cls.get_settings(), DEFAULT_ENV, default)

    @classmethod
    def is_debug(cls) -> bool:
        """
        Is debug flag on?
        """
        value = os.getenv("DEBUG")
        return bool(value) and value.lower() not in ("0", "false", "no", "off")

    @classmethod
    def get_log_level(cls) -> str:
        """Return desired log level string.

        Priority:
        1) Explicit LOG_LEVEL from env
        2) If DEBUG env is truthy, return "DEBUG"
        3) ASYNCSCOPE_LOG_LEVEL env (default "INFO")
        """
        level = os.getenv("LOG_LEVEL")
        if level:
            return str(level).upper()
        if cls.is_debug():
            return "DEBUG"
        return os.getenv("ASYNCSCOPE_LOG_LEVEL", "INFO").upper()

    @classmethod
    def get_poll_budget(cls) -> int:
        """
        Maximum number of task results one scope poll delivers before it
        yields back to the event loop.
        """
        raw = cls.get("ASYNCSCOPE_POLL_BUDGET", DEFAULT_POLL_BUDGET)
        try:
            budget = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"ASYNCSCOPE_POLL_BUDGET must be an integer, got {raw!r}") from None
        if budget < 1:
            raise ValueError(f"ASYNCSCOPE_POLL_BUDGET must be >= 1, got {budget}")
        return budget
