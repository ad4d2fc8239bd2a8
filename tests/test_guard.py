"""
Unit tests for guarded authentication flows.
"""

import asyncio
import os
from unittest.mock import AsyncMock, Mock, patch

import pytest

from portalguard.config.settings import Settings
from portalguard.security import guard as guard_module
from portalguard.security.error_sanitizer import ErrorSanitizer, GENERIC_ERROR_MESSAGE
from portalguard.security.guard import AuthGuard, GuardOutcome, GuardResult, login_key
from portalguard.security.rate_limiter import RateLimitConfig, RateLimitPolicy, RateLimiter


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guard(clock) -> AuthGuard:
    return AuthGuard(
        rate_limiter=RateLimiter(clock=clock),
        error_sanitizer=ErrorSanitizer(verbose=False),
        config=RateLimitConfig(
            login=RateLimitPolicy(max_attempts=2, window_seconds=900),
            register=RateLimitPolicy(max_attempts=2, window_seconds=600),
        )
    )


class TestExecute:
    """Test the synchronous guard sequence."""

    def test_success_resets_key(self, guard):
        """A successful operation clears earlier failures for the key."""
        policy = RateLimitPolicy(max_attempts=2, window_seconds=60)

        failing = Mock(side_effect=Exception("Invalid login credentials"))
        guard.execute("k", policy, failing)
        assert "k" in guard.rate_limiter

        result = guard.execute("k", policy, lambda: "session")

        assert result.succeeded is True
        assert result.value == "session"
        assert "k" not in guard.rate_limiter

    def test_failure_is_sanitized(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)

        result = guard.execute(
            "k", policy, Mock(side_effect=RuntimeError('relation "public.secrets" does not exist'))
        )

        assert result.outcome == GuardOutcome.FAILED
        assert result.message == GENERIC_ERROR_MESSAGE
        assert result.value is None

    def test_rate_limited_skips_operation(self, guard, clock):
        policy = RateLimitPolicy(max_attempts=1, window_seconds=60)
        failing = Mock(side_effect=Exception("boom"))
        guard.execute("k", policy, failing)

        clock.now = 20
        operation = Mock()
        result = guard.execute("k", policy, operation)

        operation.assert_not_called()
        assert result.outcome == GuardOutcome.RATE_LIMITED
        assert result.retry_after == pytest.approx(40)
        assert result.message is None

    def test_failed_checks_skip_operation(self, guard):
        """Input checks run after the rate limit and still count the attempt."""
        policy = RateLimitPolicy(max_attempts=1, window_seconds=60)
        operation = Mock()

        result = guard.execute("k", policy, operation, checks={"email": False, "password": True})

        operation.assert_not_called()
        assert result.outcome == GuardOutcome.INVALID_INPUT
        assert result.failed_checks == ["email"]
        assert guard.execute("k", policy, operation).outcome == GuardOutcome.RATE_LIMITED

    def test_base_exceptions_propagate(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)

        class Abort(BaseException):
            pass

        with pytest.raises(Abort):
            guard.execute("k", policy, Mock(side_effect=Abort()))

    def test_rejects_async_operation(self, guard):
        """Coroutines are not run by the synchronous path and do not reset the key."""
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)
        guard.execute("k", policy, Mock(side_effect=Exception("boom")))

        async def operation():
            return "session"

        with pytest.raises(TypeError, match="execute_async"):
            guard.execute("k", policy, operation)

        assert guard.rate_limiter.remaining_attempts("k", 5, 60) == 3


class TestExecuteAsync:
    """Test the asynchronous guard sequence."""

    @pytest.mark.asyncio
    async def test_awaits_coroutine_operation(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)
        operation = AsyncMock(return_value={"user": "u1"})

        result = await guard.execute_async("k", policy, operation)

        operation.assert_awaited_once()
        assert result.value == {"user": "u1"}

    @pytest.mark.asyncio
    async def test_accepts_sync_operation(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)
        result = await guard.execute_async("k", policy, lambda: 7)
        assert result.value == 7

    @pytest.mark.asyncio
    async def test_async_failure_is_sanitized(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)
        operation = AsyncMock(side_effect=ConnectionError("NetworkError when attempting to fetch resource."))

        result = await guard.execute_async("k", policy, operation)

        assert result.message == "Network connection error. Please check your internet connection."

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, guard):
        policy = RateLimitPolicy(max_attempts=5, window_seconds=60)

        with pytest.raises(asyncio.CancelledError):
            await guard.execute_async("k", policy, AsyncMock(side_effect=asyncio.CancelledError()))


class TestFlows:
    """Test the portal's authentication flows."""

    @pytest.mark.asyncio
    async def test_login_throttled_per_email(self, guard):
        """Login attempts are keyed by the normalized email."""
        failing = AsyncMock(side_effect=Exception("Invalid login credentials"))

        first = await guard.login("User@Example.com", "wrong", failing)
        second = await guard.login("USER@example.com", "wrong", failing)
        third = await guard.login("user@example.com", "Right1!pw", AsyncMock())

        assert first.message == "Invalid email or password."
        assert second.outcome == GuardOutcome.FAILED
        assert third.outcome == GuardOutcome.RATE_LIMITED
        assert login_key("USER@example.com") in guard.rate_limiter

        other = await guard.login("other@example.com", "pw", AsyncMock(return_value="ok"))
        assert other.succeeded is True

    @pytest.mark.asyncio
    async def test_login_rejects_invalid_email(self, guard):
        operation = AsyncMock()

        result = await guard.login("not-an-email", "secret", operation)

        operation.assert_not_awaited()
        assert result.failed_checks == ["email"]

    @pytest.mark.asyncio
    async def test_register_requires_strong_password(self, guard):
        operation = AsyncMock()

        result = await guard.register("new@example.com", "abcdefgh", operation)

        operation.assert_not_awaited()
        assert result.outcome == GuardOutcome.INVALID_INPUT
        assert result.failed_checks == ["password"]

    @pytest.mark.asyncio
    async def test_register_success_resets_shared_key(self, guard):
        await guard.register("a@example.com", "weak", AsyncMock())
        assert "register" in guard.rate_limiter

        result = await guard.register("a@example.com", "Abcdef1!", AsyncMock(return_value="created"))

        assert result.succeeded is True
        assert "register" not in guard.rate_limiter

    @pytest.mark.asyncio
    async def test_register_existing_account(self, guard):
        operation = AsyncMock(side_effect=Exception("User already registered"))

        result = await guard.register("a@example.com", "Abcdef1!", operation)

        assert result.message == "An account with this email already exists."

    @pytest.mark.asyncio
    async def test_request_password_reset(self, guard):
        operation = AsyncMock(return_value=None)

        result = await guard.request_password_reset("A@Example.com", operation)

        assert result.succeeded is True
        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_change_password_checks(self, guard):
        operation = AsyncMock()

        result = await guard.change_password("u1", "Abcdef1!", "Abcdef1!", "Abcdef1?", operation)

        operation.assert_not_awaited()
        assert result.failed_checks == ["password_confirmation", "password_reuse"]

    @pytest.mark.asyncio
    async def test_change_password_success(self, guard):
        operation = AsyncMock(return_value=True)

        result = await guard.change_password("u1", "Oldpass1!", "Newpass1!", "Newpass1!", operation)

        assert result.succeeded is True
        assert "password-change_u1" not in guard.rate_limiter


class TestGuardResult:
    """Test result helpers."""

    def test_succeeded_property(self):
        assert GuardResult(GuardOutcome.SUCCEEDED).succeeded is True
        assert GuardResult(GuardOutcome.FAILED).succeeded is False

    def test_default_guard_components(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        with patch.object(guard_module, "get_settings", return_value=settings):
            guard = AuthGuard(error_sanitizer=ErrorSanitizer(verbose=False))

        assert isinstance(guard.rate_limiter, RateLimiter)
        assert guard.config.login.max_attempts == 5


class TestGuardWiring:
    """Test that the guard uses the collaborators it is given."""

    def test_keeps_shared_empty_limiter(self, clock):
        """An empty limiter is still the one the guard records into."""
        shared = RateLimiter(clock=clock)
        guard = AuthGuard(
            rate_limiter=shared,
            error_sanitizer=ErrorSanitizer(verbose=False),
            config=RateLimitConfig(),
        )

        assert guard.rate_limiter is shared

        guard.execute("k", RateLimitPolicy(max_attempts=1, window_seconds=60), Mock(side_effect=Exception("boom")))
        assert "k" in shared

        shared.reset("k")
        result = guard.execute("k", RateLimitPolicy(max_attempts=1, window_seconds=60), lambda: "ok")
        assert result.succeeded is True

    @pytest.mark.asyncio
    async def test_config_defaults_follow_settings(self):
        """PORTALGUARD_*_MAX_ATTEMPTS settings drive the flow policies."""
        with patch.dict(os.environ, {"PORTALGUARD_LOGIN_MAX_ATTEMPTS": "2"}, clear=True):
            settings = Settings()

        with patch.object(guard_module, "get_settings", return_value=settings):
            guard = AuthGuard(error_sanitizer=ErrorSanitizer(verbose=False))

        assert guard.config.login.max_attempts == 2

        failing = AsyncMock(side_effect=Exception("Invalid login credentials"))
        await guard.login("a@example.com", "pw", failing)
        await guard.login("a@example.com", "pw", failing)
        third = await guard.login("a@example.com", "pw", failing)
        assert third.outcome == GuardOutcome.RATE_LIMITED
