"""
Logging configuration for PortalGuard.

Rate limit keys embed email addresses, so every handler installed here
redacts records before they are written.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from portalguard.config.settings import Settings, get_settings
from portalguard.monitoring.redaction import LogRedactor

LOGGER_NAME = "portalguard"

# Extra fields set by the guard and rate limiter
CONTEXT_FIELDS = (
    "rate_limit_key",
    "retry_after",
    "failed_checks",
    "error_type",
    "max_attempts",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying the guard's context fields."""

    def __init__(self, redactor: Optional[LogRedactor] = None):
        super().__init__()
        self.redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.redactor:
            log_data = self.redactor.redact_dict(log_data)

        return json.dumps(log_data, default=str)


class RedactingHandler(logging.Handler):
    """Redacts each record's message before handing it to a wrapped handler."""

    def __init__(self, handler: logging.Handler, redactor: Optional[LogRedactor] = None):
        super().__init__(handler.level)
        self.handler = handler
        self.redactor = redactor or LogRedactor()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Copy so other handlers still see the original record
            redacted = logging.makeLogRecord(record.__dict__)
            self.handler.handle(self.redactor.redact_log_record(redacted))
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.handler.flush()

    def close(self) -> None:
        self.handler.close()
        super().close()


def _build_handler(
    handler: logging.Handler,
    log_format: str,
    redactor: Optional[LogRedactor]
) -> logging.Handler:
    if log_format == "json":
        # JSONFormatter redacts the whole payload itself
        handler.setFormatter(JSONFormatter(redactor))
        return handler

    if not isinstance(handler, RichHandler):
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    if redactor is None:
        return handler
    return RedactingHandler(handler, redactor)


def setup_logging(
    settings: Optional[Settings] = None,
    redact_logs: bool = True
) -> logging.Logger:
    """
    Configure the ``portalguard`` logger from settings.

    Existing handlers on that logger are replaced. The application's root
    logger is left alone; records do not propagate to it.

    Args:
        settings: Logging options (defaults to get_settings())
        redact_logs: Whether to redact credentials and emails

    Returns:
        The configured ``portalguard`` logger
    """
    settings = settings or get_settings()
    redactor = LogRedactor() if redact_logs else None

    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    if settings.log_format == "json":
        console: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        console = RichHandler(console=Console(stderr=True), rich_tracebacks=True)
    logger.addHandler(_build_handler(console, settings.log_format, redactor))

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        logger.addHandler(_build_handler(file_handler, settings.log_format, redactor))

    logger.setLevel(getattr(logging, settings.log_level))
    logger.propagate = False

    logger.info(
        f"PortalGuard logging initialized ({settings.log_level}, {settings.log_format})"
    )
    return logger
