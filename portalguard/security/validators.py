"""
Input validators for credentials.

Pure predicates with no shared state; safe to call from any thread. They
only report pass/fail (and which password rules failed); producing the
user-facing wording is left to the caller.
"""

import re
from typing import Any, List

MAX_EMAIL_LENGTH = 254
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_INPUT_LENGTH = 1000

PASSWORD_SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)

_PASSWORD_RULES = (
    ("lowercase", re.compile(r"[a-z]")),
    ("uppercase", re.compile(r"[A-Z]")),
    ("digit", re.compile(r"[0-9]")),
    ("special", re.compile("[" + re.escape(PASSWORD_SPECIAL_CHARACTERS) + "]")),
)


def is_valid_email(email: Any) -> bool:
    """
    Check that email is structurally plausible.

    This is an approximation of address syntax, not a deliverability check.
    """
    if not isinstance(email, str) or not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    return EMAIL_PATTERN.fullmatch(email) is not None


def password_failures(password: Any) -> List[str]:
    """
    List the password rules that password does not satisfy.

    Args:
        password: Candidate password

    Returns:
        Rule identifiers among "length", "lowercase", "uppercase", "digit"
        and "special"; empty when the password is acceptable
    """
    if not isinstance(password, str) or not password:
        return ["length"] + [name for name, _ in _PASSWORD_RULES]

    failures = []
    if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
        failures.append("length")

    for name, pattern in _PASSWORD_RULES:
        if not pattern.search(password):
            failures.append(name)

    return failures


def is_valid_password(password: Any) -> bool:
    """Check length bounds and that all four character classes are present."""
    return not password_failures(password)


def sanitize_input(value: Any) -> str:
    """
    Trim whitespace, strip angle brackets and bound the length.

    This blocks only the simplest markup injection; output must still be
    encoded where it is rendered.
    """
    if not value or not isinstance(value, str):
        return ""
    return value.strip().replace("<", "").replace(">", "")[:MAX_INPUT_LENGTH]


def normalize_email(email: Any) -> str:
    """Trim and lowercase an email address."""
    if not isinstance(email, str):
        return ""
    return email.strip().lower()
