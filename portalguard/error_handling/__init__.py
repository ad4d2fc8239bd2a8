"""
Error types for PortalGuard.
"""

from .exceptions import (
    PortalGuardError,
    ConfigurationError,
)

__all__ = [
    "PortalGuardError",
    "ConfigurationError",
]
