"""Configuration helpers for Holdfast.

Every setting can be overridden with an environment variable; CLI options
override the environment for a single command.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = Path(os.getenv("HOLDFAST_DB", str(Path.home() / ".holdfast" / "history.db")))
"""Default history database location (~/.holdfast/history.db)."""


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


@dataclass
class Settings:
    """Runtime settings resolved from the environment.

    Attributes:
        db_path: History database path (``HOLDFAST_DB``).
        grace_window: Seconds a monitored probe keeps listening for late
            detection signals (``HOLDFAST_GRACE_WINDOW``).
        monitor_host: Interface the signal receiver binds to
            (``HOLDFAST_MONITOR_HOST``).
        monitor_port: Port the signal receiver listens on
            (``HOLDFAST_MONITOR_PORT``).
        log_level: Logging level name (``HOLDFAST_LOG_LEVEL``).
    """

    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("HOLDFAST_DB", str(DEFAULT_DB_PATH)))
    )
    grace_window: float = field(default_factory=lambda: _float_env("HOLDFAST_GRACE_WINDOW", 0.5))
    monitor_host: str = field(
        default_factory=lambda: os.getenv("HOLDFAST_MONITOR_HOST", "127.0.0.1")
    )
    monitor_port: int = field(default_factory=lambda: _int_env("HOLDFAST_MONITOR_PORT", 8765))
    log_level: str = field(
        default_factory=lambda: os.getenv("HOLDFAST_LOG_LEVEL", "WARNING").upper()
    )


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings()
