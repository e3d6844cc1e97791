"""
logger.py
---------
Logging setup for the Schema Workbench.

Design Decisions:
    * Everything logs under the "workbench" logger; modules get a child via
      ``get_logger(__name__)``.
    * Handlers are attached lazily by ``configure_logging`` so an embedding
      service can call it first with its own level and file.
    * Edits are logged through ``edit_logger`` which tags each line with the
      operation name, e.g. ``[rename_column] ...``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping

from config import CONFIG, get_log_level

_ROOT_LOGGER_NAME = "workbench"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False


def configure_logging(level: int | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the "workbench" logger.

    Only the first call has an effect.  Without arguments the level and log
    file come from ``CONFIG.logging``.
    """
    global _configured
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if _configured:
        return root
    _configured = True

    level = get_log_level() if level is None else level
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(console)

    log_file = log_file or CONFIG.logging.log_file
    if log_file:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATE_FORMAT))
            root.addHandler(file_handler)
        except OSError as exc:
            root.warning("Could not create log file '%s': %s", log_path, exc)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Return a child logger of "workbench", configuring handlers on first use.

    Example::

        log = get_logger(__name__)
        log.info("Imported %d table(s)", len(specs))
    """
    configure_logging()
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


class EditLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the edit operation in brackets."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['operation']}] {msg}", kwargs


def edit_logger(name: str, operation: str) -> EditLogAdapter:
    return EditLogAdapter(get_logger(name), {"operation": operation})
