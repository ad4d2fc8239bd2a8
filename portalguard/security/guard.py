"""
Guarded execution of authentication flows.

Every sensitive operation follows the same sequence: rate-limit check,
input checks, the protected operation, then either a reset of the
rate-limit entry (success) or a sanitized error message (failure).
"""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from portalguard.config.settings import get_settings

from .error_sanitizer import ErrorSanitizer
from .rate_limiter import RateLimitConfig, RateLimitPolicy, RateLimiter
from .validators import is_valid_email, is_valid_password, normalize_email

logger = logging.getLogger(__name__)

Operation = Callable[[], Union[Any, Awaitable[Any]]]


class GuardOutcome(Enum):
    """Result of a guarded operation."""
    SUCCEEDED = auto()
    RATE_LIMITED = auto()
    INVALID_INPUT = auto()
    FAILED = auto()


@dataclass
class GuardResult:
    """Outcome of a guarded operation as seen by the UI layer."""

    outcome: GuardOutcome
    value: Any = None
    message: Optional[str] = None  # Safe message, only set for FAILED
    failed_checks: List[str] = field(default_factory=list)
    retry_after: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == GuardOutcome.SUCCEEDED


class AuthGuard:
    """Runs protected operations behind rate limiting and input checks."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        error_sanitizer: Optional[ErrorSanitizer] = None,
        config: Optional[RateLimitConfig] = None
    ):
        """
        Initialize guard.

        Args:
            rate_limiter: Limiter shared with the rest of the application
            error_sanitizer: Sanitizer for failure messages (defaults to settings)
            config: Flow policies (defaults to settings.rate_limit_config())
        """
        self.rate_limiter = RateLimiter() if rate_limiter is None else rate_limiter
        self.error_sanitizer = ErrorSanitizer() if error_sanitizer is None else error_sanitizer
        self.config = get_settings().rate_limit_config() if config is None else config

    def execute(
        self,
        key: str,
        policy: RateLimitPolicy,
        operation: Callable[[], Any],
        checks: Optional[Dict[str, bool]] = None
    ) -> GuardResult:
        """
        Run a synchronous operation behind the guard.

        Operations returning an awaitable belong in execute_async; they are
        rejected here without being run.

        Args:
            key: Rate limit key for this operation/actor
            policy: Attempts allowed for key within the policy window
            operation: Callable performing the protected work
            checks: Input check names mapped to whether they passed

        Returns:
            GuardResult describing the outcome

        Raises:
            TypeError: If operation returns an awaitable
        """
        refusal = self._admit(key, policy, checks)
        if refusal is not None:
            return refusal

        try:
            value = operation()
        except Exception as exc:
            return self._failure(key, exc)

        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            raise TypeError("execute() cannot run async operations, use execute_async()")

        return self._success(key, value)

    async def execute_async(
        self,
        key: str,
        policy: RateLimitPolicy,
        operation: Operation,
        checks: Optional[Dict[str, bool]] = None
    ) -> GuardResult:
        """Run an operation that may return an awaitable behind the guard."""
        refusal = self._admit(key, policy, checks)
        if refusal is not None:
            return refusal

        try:
            value = operation()
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            return self._failure(key, exc)

        return self._success(key, value)

    async def login(self, email: str, password: str, operation: Operation) -> GuardResult:
        """Guard a sign-in attempt, throttled per email address."""
        return await self.execute_async(
            login_key(email),
            self.config.login,
            operation,
            checks={
                "email": is_valid_email(email),
                "password": bool(password),
            }
        )

    async def register(self, email: str, password: str, operation: Operation) -> GuardResult:
        """Guard an account registration."""
        return await self.execute_async(
            "register",
            self.config.register,
            operation,
            checks={
                "email": is_valid_email(email),
                "password": is_valid_password(password),
            }
        )

    async def request_password_reset(self, email: str, operation: Operation) -> GuardResult:
        """Guard a password reset request, throttled per email address."""
        return await self.execute_async(
            f"password-reset_{normalize_email(email)}",
            self.config.password_reset,
            operation,
            checks={"email": is_valid_email(email)}
        )

    async def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        confirmation: str,
        operation: Operation
    ) -> GuardResult:
        """Guard a password change for a signed-in user."""
        return await self.execute_async(
            f"password-change_{user_id}",
            self.config.password_change,
            operation,
            checks={
                "current_password": bool(current_password),
                "new_password": is_valid_password(new_password),
                "password_confirmation": new_password == confirmation,
                "password_reuse": new_password != current_password,
            }
        )

    def _admit(
        self,
        key: str,
        policy: RateLimitPolicy,
        checks: Optional[Dict[str, bool]]
    ) -> Optional[GuardResult]:
        """Apply the rate limit, then the input checks."""
        if not self.rate_limiter.can_attempt(key, policy.max_attempts, policy.window_seconds):
            retry_after = self.rate_limiter.time_until_next_allowed(
                key, policy.max_attempts, policy.window_seconds
            )
            logger.warning(
                f"Rate limit exceeded for {key}",
                extra={"rate_limit_key": key, "retry_after": retry_after}
            )
            return GuardResult(GuardOutcome.RATE_LIMITED, retry_after=retry_after)

        failed = [name for name, passed in (checks or {}).items() if not passed]
        if failed:
            logger.info(
                "Input checks failed",
                extra={"rate_limit_key": key, "failed_checks": failed}
            )
            return GuardResult(GuardOutcome.INVALID_INPUT, failed_checks=failed)

        return None

    def _success(self, key: str, value: Any) -> GuardResult:
        self.rate_limiter.reset(key)
        return GuardResult(GuardOutcome.SUCCEEDED, value=value)

    def _failure(self, key: str, error: Exception) -> GuardResult:
        logger.warning(
            "Protected operation failed",
            extra={"rate_limit_key": key, "error_type": type(error).__name__}
        )
        return GuardResult(
            GuardOutcome.FAILED,
            message=self.error_sanitizer.sanitize(error)
        )


def login_key(email: str) -> str:
    """Build the rate limit key for sign-in attempts by email."""
    return f"login_{normalize_email(email)}"
