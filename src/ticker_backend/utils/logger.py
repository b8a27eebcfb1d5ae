"""
Centralized Logging System for ticker-backend
This module provides a unified loguru configuration that can be imported
and used across all modules in the project.
"""

import logging
import atexit
import os
import sys
from pathlib import Path
from typing import Optional, Dict
from datetime import datetime

from loguru import logger as _loguru_logger

# One run identifier per process so each utility gets at most one log file per run.
RUN_ID = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{os.getpid()}"

# Base logs directory at the project root
LOGS_BASE_DIR = Path(__file__).resolve().parents[3] / "logs"

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {extra[utility]} | {message} | {function}:{line}"

_sinks_initialized = False
_console_sink_id: Optional[int] = None
_file_sink_ids: Dict[str, int] = {}


class InterceptHandler(logging.Handler):
    """Intercepts stdlib logging (requests, urllib3, uvicorn) and routes it to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _loguru_logger.level(record.levelname).name
        except (ValueError, AttributeError):
            level = record.levelno

        # Find caller from where logging was called
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _loguru_logger.bind(utility=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _file_logging_enabled() -> bool:
    return os.getenv("LOG_TO_FILE", "0").strip().lower() in {"1", "true", "yes"}


def _ensure_utility_dir(utility: str) -> Path:
    path = LOGS_BASE_DIR / utility
    path.mkdir(parents=True, exist_ok=True)
    return path


def _initialize_sinks_once() -> None:
    """Install the console sink and the stdlib intercept once per process."""
    global _sinks_initialized, _console_sink_id
    if _sinks_initialized:
        return

    _loguru_logger.remove()
    _loguru_logger.configure(extra={"utility": "general"})
    _console_sink_id = _loguru_logger.add(
        sys.stdout, level=os.getenv("LOG_LEVEL", "INFO"), enqueue=True, format=LOG_FORMAT
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    _sinks_initialized = True


def _ensure_file_sink_for_utility(utility: str) -> None:
    """Add a rotating file sink for the utility if not already added in this run."""
    if utility in _file_sink_ids:
        return
    util_dir = _ensure_utility_dir(utility)
    log_file = util_dir / f"{utility}_{RUN_ID}.log"

    _file_sink_ids[utility] = _loguru_logger.add(
        str(log_file),
        level="INFO",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
        enqueue=True,
        format=LOG_FORMAT,
        filter=lambda record, _u=utility: record["extra"].get("utility") == _u,
    )


def get_logger(name: str, utility: Optional[str] = None, to_file: Optional[bool] = None):
    """Return a Loguru logger bound with `name` and `utility`.

    The utility is auto-detected from the module name when not given. File
    sinks are only added when `to_file` is true or LOG_TO_FILE is set.
    """
    if utility is None:
        lower_name = name.lower()
        if "database" in lower_name:
            utility = "database"
        elif "api" in lower_name:
            utility = "api"
        elif "data_collector" in lower_name:
            utility = "data_collector"
        else:
            utility = "general"

    _initialize_sinks_once()

    if to_file is None:
        to_file = _file_logging_enabled()
    if to_file:
        _ensure_file_sink_for_utility(utility)

    return _loguru_logger.bind(name=name, utility=utility)


def set_console_level(level: str) -> None:
    """Reinstall the console sink at `level` (e.g. DEBUG for --verbose runs)."""
    global _console_sink_id
    _initialize_sinks_once()
    if _console_sink_id is not None:
        _loguru_logger.remove(_console_sink_id)
    _console_sink_id = _loguru_logger.add(sys.stdout, level=level, enqueue=True, format=LOG_FORMAT)


def shutdown_logging() -> None:
    """Remove all Loguru sinks to flush queued messages. Safe to call multiple times."""
    global _sinks_initialized, _console_sink_id
    for sid in list(_file_sink_ids.values()):
        try:
            _loguru_logger.remove(sid)
        except ValueError as e:
            sys.stderr.write(f"Error removing file sink id={sid}: {e}\n")
    _file_sink_ids.clear()

    try:
        if _console_sink_id is not None:
            _loguru_logger.remove(_console_sink_id)
    except ValueError as e:
        sys.stderr.write(f"Error removing console sink id={_console_sink_id}: {e}\n")
    finally:
        _console_sink_id = None

    _sinks_initialized = False


atexit.register(shutdown_logging)
