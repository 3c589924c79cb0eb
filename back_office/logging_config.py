"""
Structured Logging Configuration Module

Provides JSON-formatted structured logging for all back office operations.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


# Attributes log_action sets on a record, emitted as top-level keys
CONTEXT_FIELDS = ("action", "acc_no", "request_id", "path", "extra")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            log_entry[field] = getattr(record, field, None)

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class TextFormatter(logging.Formatter):
    """Plain text lines with the account and request appended, e.g. [acc_no=1001]"""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        line = super().format(record)
        tags = [
            f"{field}={getattr(record, field)}"
            for field in ("acc_no", "request_id")
            if getattr(record, field, None) is not None
        ]
        return f"{line} [{' '.join(tags)}]" if tags else line


def setup_logging(level: str = "INFO", fmt: str = "json",
                  logger_name: str = "back_office") -> logging.Logger:
    """
    Setup logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" for structured output, anything else for plain text
        logger_name: Name of the root application logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "back_office") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, acc_no: Optional[int] = None,
               request_id: Optional[int] = None, path: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a back office action with the account and request it concerns.

    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        action: Operation name, e.g. "deposit" or "decide_request"
        acc_no: Account the action touched
        request_id: Staff request the action belongs to
        path: HTTP path, for request logs
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno, __name__, 0, message, (), None
    )

    context = {"action": action, "acc_no": acc_no, "request_id": request_id, "path": path}
    for field, value in context.items():
        if value is not None:
            setattr(record, field, value)
    if extra:
        record.extra = extra

    logger.handle(record)
