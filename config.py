"""
config.py
---------
Centralised configuration management for the Schema Workbench.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    Using a dataclass with class-level defaults means the engine works
    "out of the box" without any .env file, while still allowing
    environment-based overrides when embedded in a larger service.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


@dataclass(frozen=True)
class SessionConfig:
    """Conversion session settings."""
    dialect: str = field(
        default_factory=lambda: os.getenv("WORKBENCH_DIALECT", "google_standard_sql")
    )
    driver: str = field(
        default_factory=lambda: os.getenv("WORKBENCH_DRIVER", "mysql").lower()
    )
    snapshot_file: Path = field(
        default_factory=lambda: Path(os.getenv("WORKBENCH_SNAPSHOT_FILE", "session.json"))
    )
    # Name given to the generated key column of tables without a primary key.
    synthetic_pk_name: str = field(
        default_factory=lambda: os.getenv("WORKBENCH_SYNTHETIC_PK", "synth_id")
    )


@dataclass(frozen=True)
class LoggingConfig:
    """Log output settings."""
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    app_name: str = "Schema Workbench"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.session.driver)    # "mysql"
        print(cfg.logging.log_level) # "INFO"
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.logging.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
