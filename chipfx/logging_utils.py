"""Logging setup shared by the library and the CLI.

Everything logs under the ``chipfx`` logger tree. ``configure_logging`` runs
once on package import and attaches a short stderr handler plus a detailed
file handler; ``CHIPFX_LOG_DIR`` moves the file and ``CHIPFX_DEBUG`` turns on
debug output on the console.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

_LOGGER = logging.getLogger("chipfx.logging")

ROOT_LOGGER = "chipfx"
LOG_DIR_ENV = "CHIPFX_LOG_DIR"
DEBUG_ENV = "CHIPFX_DEBUG"
LOG_FILE = "chipfx.log"

_STDERR_FORMAT = "%(badge)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_BADGES = {
    logging.DEBUG: "🐛",
    logging.INFO: "🔊",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}

_configured = False


class LogSettings(BaseModel):
    log_dir: Path
    debug: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_env(cls) -> "LogSettings":
        configured = os.environ.get(LOG_DIR_ENV)
        log_dir = (
            Path(configured).expanduser()
            if configured
            else Path.home() / ".cache" / "chipfx" / "logs"
        )
        return cls(log_dir=log_dir, debug=bool(os.environ.get(DEBUG_ENV)))

    @property
    def log_path(self) -> Path:
        return self.log_dir / LOG_FILE


class _BadgeFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.badge = _BADGES.get(record.levelno, "")
        return super().format(record)


def get_log_dir() -> Path:
    return LogSettings.from_env().log_dir


def get_log_path() -> Path:
    return LogSettings.from_env().log_path


def debug_enabled() -> bool:
    return LogSettings.from_env().debug


def _stderr_handler(settings: LogSettings) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    handler.setFormatter(_BadgeFormatter(_STDERR_FORMAT))
    return handler


def _file_handler(settings: LogSettings) -> logging.Handler:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(settings.log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FORMAT))
    return handler


def configure_logging(*, force: bool = False) -> None:
    """Attach the chipfx handlers once; ``force`` replaces existing ones."""
    global _configured
    if _configured and not force:
        return

    settings = LogSettings.from_env()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)

    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    # An application that already set up root logging keeps control of stderr.
    if force or not logging.getLogger().handlers:
        logger.addHandler(_stderr_handler(settings))

    try:
        logger.addHandler(_file_handler(settings))
    except OSError as exc:
        _LOGGER.warning("File logging disabled (%s): %s", settings.log_path, exc)

    logger.propagate = True
    _configured = True


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` and its traceback to the log file; return the file path."""
    path = LogSettings.from_env().log_path
    stamp = datetime.now().isoformat(timespec="seconds")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{stamp}] {context} failed: {type(exc).__name__}: {exc}\n")
            handle.writelines(traceback.format_exception(type(exc), exc, exc.__traceback__))
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Could not write %s: %s", path, log_exc)
        return None
    return path
