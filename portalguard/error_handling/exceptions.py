"""
Exception hierarchy for PortalGuard.

Rate-limit refusals and input-validation failures are reported as booleans,
never as exceptions. These classes cover programmer errors only, such as a
rate-limit policy with a non-positive window.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class PortalGuardError(Exception):
    """Base exception for all PortalGuard errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class ConfigurationError(PortalGuardError):
    """Raised when a caller violates a configuration contract."""

    def __init__(
        self,
        message: str,
        parameter: str,
        value: Any = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.parameter = parameter
        self.value = value
        self.details.update({
            "parameter": parameter,
            "value": repr(value)
        })
