"""
Redaction of credentials and identities in log output.

Rate limit keys embed email addresses and upstream errors may echo tokens,
so log records pass through LogRedactor before they are written.
"""

import hashlib
import logging
import re
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    HASH = auto()          # Replace with hash
    PARTIAL = auto()       # Show partial (first/last few chars)
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.MASK
    placeholder: str = "[REDACTED]"
    partial_chars: int = 4  # For PARTIAL method
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        """Find all matches in text."""
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


DEFAULT_PATTERNS = [
    SensitiveDataPattern(
        name="password_field",
        pattern=re.compile(r'(password|passwd|pwd)\s*[:=]\s*["\']?[^"\'\s,}]+["\']?', re.IGNORECASE),
        redaction_method=RedactionMethod.PLACEHOLDER,
        placeholder="[PASSWORD]",
    ),
    SensitiveDataPattern(
        name="api_key_prefix",
        pattern=re.compile(r'(api[_-]?key|apikey|access[_-]?token|refresh[_-]?token)\s*[:=]\s*["\']?[^"\'\s,}]+["\']?', re.IGNORECASE),
        redaction_method=RedactionMethod.PLACEHOLDER,
        placeholder="[TOKEN]",
    ),
    SensitiveDataPattern(
        name="bearer_token",
        pattern=re.compile(r'Bearer\s+[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE),
    ),
    SensitiveDataPattern(
        name="jwt_token",
        pattern=re.compile(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'),
        redaction_method=RedactionMethod.HASH,
    ),
    SensitiveDataPattern(
        name="email",
        pattern=re.compile(r'[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}'),
        redaction_method=RedactionMethod.PARTIAL,
        partial_chars=3,
    ),
]


class LogRedactor:
    """Redacts sensitive substrings from strings, dicts and log records."""

    def __init__(self, patterns: Optional[List[SensitiveDataPattern]] = None):
        self.patterns: List[SensitiveDataPattern] = list(
            DEFAULT_PATTERNS if patterns is None else patterns
        )

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Add a custom pattern."""
        self.patterns.append(pattern)

    def redact_string(self, text: str) -> str:
        """
        Redact every enabled pattern in text.

        Patterns are applied in order, so earlier patterns (field
        assignments) take precedence over later ones (bare emails).
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            # Process from the end so earlier spans stay valid
            for match in reversed(pattern.matches(result)):
                result = self._apply_redaction(result, match, pattern)
        return result

    def _apply_redaction(
        self,
        text: str,
        match: re.Match,
        pattern: SensitiveDataPattern
    ) -> str:
        """Apply redaction based on method."""
        start, end = match.span()
        matched_text = match.group()

        if pattern.redaction_method == RedactionMethod.MASK:
            replacement = "*" * len(matched_text)

        elif pattern.redaction_method == RedactionMethod.HASH:
            hash_val = hashlib.sha256(matched_text.encode()).hexdigest()[:8]
            replacement = f"[HASH:{hash_val}]"

        elif pattern.redaction_method == RedactionMethod.PARTIAL:
            replacement = mask_sensitive_data(
                matched_text, pattern.partial_chars, pattern.partial_chars
            )

        else:  # PLACEHOLDER
            replacement = pattern.placeholder

        return text[:start] + replacement + text[end:]

    def redact_dict(self, data: Dict[str, Any], max_depth: int = 10) -> Dict[str, Any]:
        """
        Redact string values of a dictionary recursively.

        Args:
            data: Dictionary to redact
            max_depth: Maximum recursion depth

        Returns:
            Redacted copy of data
        """
        if max_depth <= 0:
            logger.warning("Max recursion depth reached in redact_dict")
            return data

        result = deepcopy(data)

        def _redact_value(value: Any) -> Any:
            if isinstance(value, str):
                return self.redact_string(value)
            if isinstance(value, dict):
                return self.redact_dict(value, max_depth - 1)
            if isinstance(value, (list, tuple)):
                return [_redact_value(item) for item in value]
            return value

        for key, value in result.items():
            result[key] = _redact_value(value)

        return result

    def redact_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """
        Redact a log record's message in place.

        Arguments are merged into the message first, so a pattern that
        spans a format placeholder cannot leave arguments unconsumed.
        """
        record.msg = self.redact_string(record.getMessage())
        record.args = ()
        return record


def mask_sensitive_data(
    text: str,
    start_chars: int = 4,
    end_chars: int = 4
) -> str:
    """
    Mask sensitive data showing only start/end characters.

    Args:
        text: Text to mask
        start_chars: Number of characters to show at start
        end_chars: Number of characters to show at end

    Returns:
        Masked text
    """
    if len(text) <= start_chars + end_chars:
        return "*" * len(text)

    return (
        text[:start_chars] +
        "*" * (len(text) - start_chars - end_chars) +
        text[-end_chars:]
    )
