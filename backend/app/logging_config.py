"""Logging configuration for the sync backend."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send ``vocabloop`` logs to stdout (the platform collects them)."""
    root = logging.getLogger("vocabloop")
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    root.setLevel(numeric_level)
    if not any(getattr(h, "_backend_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._backend_handler = True
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


_sync_logger = get_logger("vocabloop.sync.audit")
_auth_logger = get_logger("vocabloop.auth.audit")


def log_sync_operation(
    principal: str,
    action: str,
    success: bool,
    error: str | None = None,
    updated_at: int | None = None,
) -> None:
    """One audit line per sync request."""
    status = "OK" if success else "FAILED"
    message = f"SYNC {action.upper()} | {principal} | {status}"
    if updated_at is not None:
        message += f" | updated_at={updated_at}"
    if error:
        message += f" | {error}"
    if success:
        _sync_logger.info(message)
    else:
        _sync_logger.warning(message)


def log_auth_event(event: str, username: str, success: bool, detail: str | None = None) -> None:
    """One audit line per register/login attempt."""
    status = "OK" if success else "FAILED"
    message = f"AUTH {event} | {username or '-'} | {status}"
    if detail:
        message += f" | {detail}"
    if success:
        _auth_logger.info(message)
    else:
        _auth_logger.warning(message)
