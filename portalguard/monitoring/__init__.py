"""
Monitoring module exports.
"""

from portalguard.monitoring.logger import (
    LOGGER_NAME,
    setup_logging,
    JSONFormatter,
    RedactingHandler,
)

from portalguard.monitoring.redaction import (
    LogRedactor,
    SensitiveDataPattern,
    RedactionMethod,
    mask_sensitive_data,
)

__all__ = [
    # Logger
    "LOGGER_NAME",
    "setup_logging",
    "JSONFormatter",
    "RedactingHandler",

    # Redaction
    "LogRedactor",
    "SensitiveDataPattern",
    "RedactionMethod",
    "mask_sensitive_data",
]
