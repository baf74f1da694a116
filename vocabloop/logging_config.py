"""Logging setup for the vocabloop library and CLI.

Log files live under ``$VOCABLOOP_DATA_DIR/logs`` (default
``~/.vocabloop/logs``):
- ``local-YYYY-MM-DD.log``: everything logged under the ``vocabloop`` logger
- ``sync-events-YYYY-MM-DD.log``: one line per push / pull / merge
"""

import logging
import os
from datetime import date
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
EVENT_FORMAT = "%(asctime)s | %(message)s"

_EVENT_LOGGER_NAME = "vocabloop.events"


def get_data_dir() -> Path:
    """Directory holding vocabloop's local state."""
    env = os.environ.get("VOCABLOOP_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".vocabloop"


def get_log_dir() -> Path:
    log_dir = get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_vocabloop_logging(level: str = "INFO", console: Optional[bool] = None) -> logging.Logger:
    """Configure the ``vocabloop`` logger with a dated file handler.

    A console handler is added when ``console`` is true, or by default when
    the level is DEBUG. Repeated calls do not stack handlers.
    """
    logger = logging.getLogger("vocabloop")
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logger.setLevel(numeric_level)

    if any(getattr(h, "_vocabloop_handler", False) for h in logger.handlers):
        return logger

    log_file = get_log_dir() / f"local-{date.today().isoformat()}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler._vocabloop_handler = True
    logger.addHandler(file_handler)

    if console is None:
        console = numeric_level <= logging.DEBUG
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        stream_handler._vocabloop_handler = True
        logger.addHandler(stream_handler)

    return logger


def _event_logger() -> logging.Logger:
    logger = logging.getLogger(_EVENT_LOGGER_NAME)
    log_file = get_log_dir() / f"sync-events-{date.today().isoformat()}.log"
    current = None
    for handler in list(logger.handlers):
        if not getattr(handler, "_vocabloop_handler", False):
            continue
        if handler.baseFilename == os.path.abspath(log_file):
            current = handler
        else:
            # Rolled over to a new day or data dir
            logger.removeHandler(handler)
            handler.close()
    if current is None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(EVENT_FORMAT))
        handler._vocabloop_handler = True
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def log_sync_event(event_type: str, details: str, principal: str = "default") -> None:
    """Append one line to the sync event log."""
    _event_logger().info(f"{event_type} | user={principal} | {details}")


def log_merge(principal: str, decks: int, words: int, history: int) -> None:
    log_sync_event("merge", f"decks={decks} words={words} history={history}", principal)


def log_transfer(principal: str, direction: str, ok: bool, error: Optional[str] = None) -> None:
    details = f"direction={direction} ok={ok}"
    if error:
        details += f" error={error}"
    log_sync_event("transfer", details, principal)
