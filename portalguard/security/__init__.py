"""
Security components for PortalGuard.

This module provides rate limiting, credential validation and error
sanitization for authentication boundaries.
"""

from .rate_limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimitPolicy,
)

from .validators import (
    is_valid_email,
    is_valid_password,
    password_failures,
    sanitize_input,
    normalize_email,
)

from .error_sanitizer import (
    ErrorSanitizer,
    ErrorPattern,
    ErrorCategory,
    DEFAULT_ERROR_PATTERNS,
    GENERIC_ERROR_MESSAGE,
    get_error_sanitizer,
    sanitize_error,
)

from .guard import (
    AuthGuard,
    GuardOutcome,
    GuardResult,
    login_key,
)

from .maintenance import PeriodicCleanup

__all__ = [
    # Rate limiting
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitPolicy",
    "PeriodicCleanup",

    # Validation
    "is_valid_email",
    "is_valid_password",
    "password_failures",
    "sanitize_input",
    "normalize_email",

    # Error sanitization
    "ErrorSanitizer",
    "ErrorPattern",
    "ErrorCategory",
    "DEFAULT_ERROR_PATTERNS",
    "GENERIC_ERROR_MESSAGE",
    "get_error_sanitizer",
    "sanitize_error",

    # Guarded flows
    "AuthGuard",
    "GuardOutcome",
    "GuardResult",
    "login_key",
]
