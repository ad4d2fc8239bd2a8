"""
User-safe error messages.

Maps failures raised by the authentication provider, the data store or the
network transport onto a fixed vocabulary of messages that are safe to show
to end users. Raw text only passes through in verbose diagnostics mode.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from portalguard.config.settings import get_settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."
VERBOSE_FALLBACK_MESSAGE = "An error occurred"


class ErrorCategory(Enum):
    """Families of upstream failures."""
    AUTHENTICATION = auto()
    STORAGE = auto()
    NETWORK = auto()


@dataclass(frozen=True)
class ErrorPattern:
    """Case-insensitive substring mapped to a safe message."""

    pattern: str
    message: str
    category: ErrorCategory

    def matches(self, text: str) -> bool:
        """Check whether text contains the pattern, ignoring case."""
        return self.pattern.lower() in text.lower()


# Evaluated in order; the first match wins.
DEFAULT_ERROR_PATTERNS = (
    # Authentication
    ErrorPattern("Invalid login credentials", "Invalid email or password.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("Email not confirmed", "Please check your email and confirm your account.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("Too many requests", "Too many attempts. Please try again later.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("rate limit", "Too many attempts. Please try again later.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("User not found", "Invalid email or password.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("User already registered", "An account with this email already exists.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("Invalid email", "Please enter a valid email address.", ErrorCategory.AUTHENTICATION),
    ErrorPattern("Weak password", "Password does not meet security requirements.", ErrorCategory.AUTHENTICATION),

    # Storage
    ErrorPattern("duplicate key value", "This record already exists.", ErrorCategory.STORAGE),
    ErrorPattern("foreign key constraint", "Cannot complete this action due to related data.", ErrorCategory.STORAGE),
    ErrorPattern("check constraint", "The provided data is invalid.", ErrorCategory.STORAGE),
    ErrorPattern("not null violation", "Required information is missing.", ErrorCategory.STORAGE),

    # Network
    ErrorPattern("NetworkError", "Network connection error. Please check your internet connection.", ErrorCategory.NETWORK),
    ErrorPattern("Failed to fetch", "Unable to connect to the server. Please try again.", ErrorCategory.NETWORK),
    ErrorPattern("connection refused", "Unable to connect to the server. Please try again.", ErrorCategory.NETWORK),
    ErrorPattern("timeout", "Request timed out. Please try again.", ErrorCategory.NETWORK),
    ErrorPattern("timed out", "Request timed out. Please try again.", ErrorCategory.NETWORK),
)


def extract_error_message(error: Any) -> str:
    """
    Pull the message text out of an arbitrary error value.

    Accepts exceptions, objects with a ``message`` attribute, mappings with a
    ``"message"`` key and plain strings. Anything else yields "".
    """
    if error is None:
        return ""
    if isinstance(error, str):
        return error

    if isinstance(error, Mapping):
        message = error.get("message")
    else:
        message = getattr(error, "message", None)
        if message is None and isinstance(error, BaseException):
            message = str(error)

    if message is None:
        return ""
    return message if isinstance(message, str) else str(message)


class ErrorSanitizer:
    """Classifies errors against an ordered pattern table."""

    def __init__(
        self,
        verbose: Optional[bool] = None,
        patterns: Optional[Iterable[ErrorPattern]] = None
    ):
        """
        Initialize sanitizer.

        Args:
            verbose: Pass raw messages through (defaults to settings.verbose_errors)
            patterns: Classification table (defaults to DEFAULT_ERROR_PATTERNS)
        """
        self.verbose = get_settings().verbose_errors if verbose is None else verbose
        self.patterns: List[ErrorPattern] = list(
            DEFAULT_ERROR_PATTERNS if patterns is None else patterns
        )

    def add_pattern(self, pattern: ErrorPattern, index: Optional[int] = None) -> None:
        """Add a pattern at index, or after the existing ones."""
        if index is None:
            self.patterns.append(pattern)
        else:
            self.patterns.insert(index, pattern)

    def classify(self, error: Any) -> Optional[ErrorPattern]:
        """Return the first pattern matching the error message, if any."""
        text = extract_error_message(error)
        if not text:
            return None

        for pattern in self.patterns:
            if pattern.matches(text):
                return pattern
        return None

    def sanitize(self, error: Any) -> str:
        """
        Convert an error into a message safe to show to users.

        Never raises: unreadable errors fall back to GENERIC_ERROR_MESSAGE.

        Args:
            error: Exception, mapping or object carrying a message

        Returns:
            Safe message, or the raw message in verbose mode
        """
        try:
            if self.verbose:
                return extract_error_message(error) or VERBOSE_FALLBACK_MESSAGE

            pattern = self.classify(error)
        except Exception:
            logger.warning("Could not read error message", exc_info=True)
            return GENERIC_ERROR_MESSAGE

        if pattern is None:
            return GENERIC_ERROR_MESSAGE
        return pattern.message


@lru_cache()
def get_error_sanitizer() -> ErrorSanitizer:
    """
    Get the shared sanitizer configured from settings.

    Invalid settings leave verbose mode off rather than failing the error
    path; they still fail wherever settings are loaded directly.
    """
    try:
        return ErrorSanitizer()
    except ValidationError as e:
        logger.error(f"Invalid settings, error details stay hidden: {e}")
        return ErrorSanitizer(verbose=False)


def sanitize_error(error: Any) -> str:
    """Sanitize an error using the shared sanitizer."""
    return get_error_sanitizer().sanitize(error)
