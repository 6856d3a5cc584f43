"""Unit tests for board/core/resilience.py - retry policies with backoff."""
import pytest
from unittest.mock import AsyncMock, patch

from board.core.errors import (
    AuthorizationError,
    ConfigurationError,
    ErrorKind,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
    is_retryable,
)
from board.core.resilience import (
    RetryPolicy,
    get_retry_policy,
    get_retry_stats,
    with_retry,
)


@pytest.fixture
def policy():
    """Policy with 3 attempts and 1s base delay."""
    return RetryPolicy("test", max_attempts=3, base_delay=1.0)


def transient(message="unavailable"):
    return StoreError(message, kind=ErrorKind.TRANSIENT)


class TestErrorClassification:
    """Test which failures are retried."""

    @pytest.mark.parametrize("kind", [ErrorKind.TRANSIENT, ErrorKind.QUOTA, ErrorKind.CONFLICT, ErrorKind.UNKNOWN])
    def test_retryable_store_kinds(self, kind):
        assert is_retryable(StoreError("x", kind=kind))

    @pytest.mark.parametrize("kind", [
        ErrorKind.MISSING_INDEX,
        ErrorKind.NOT_FOUND,
        ErrorKind.ALREADY_EXISTS,
        ErrorKind.PERMISSION_DENIED,
        ErrorKind.INVALID_ARGUMENT,
    ])
    def test_non_retryable_store_kinds(self, kind):
        assert not is_retryable(StoreError("x", kind=kind))

    @pytest.mark.parametrize("error", [
        ValidationError("bad"),
        AuthorizationError("no"),
        NotFoundError("gone"),
        ConfigurationError("index", index_url="https://console.firebase.google.com/x"),
        StoreUnavailableError("down", attempts=3),
    ])
    def test_domain_errors_never_retried(self, error):
        assert not is_retryable(error)

    def test_unclassified_exception_is_transient(self):
        assert is_retryable(RuntimeError("socket closed"))


class TestRetryPolicyBackoff:
    """Test delay computation."""

    def test_delay_doubles_per_attempt(self, policy):
        assert policy.delay_for(1) == 1.0
        assert policy.delay_for(2) == 2.0
        assert policy.delay_for(3) == 4.0

    def test_jitter_bounded_by_fraction(self):
        policy = RetryPolicy("jittered", max_attempts=5, base_delay=2.0, jitter=0.25)
        for attempt in range(1, 5):
            base = 2.0 * (2 ** (attempt - 1))
            delay = policy.delay_for(attempt)
            assert base <= delay <= base * 1.25

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy("broken", max_attempts=0)


class TestRetryPolicyRun:
    """Test retry loop behavior."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, policy, no_sleep):
        func = AsyncMock(return_value="ok")

        assert await policy.run(func) == "ok"
        assert func.call_count == 1
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, policy, no_sleep):
        func = AsyncMock(side_effect=[transient(), transient(), "ok"])

        assert await policy.run(func) == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exactly_max_attempts_then_unavailable(self, policy, no_sleep):
        """Persistent transient failure: exactly 3 calls, then StoreUnavailableError."""
        error = transient("deadline exceeded")
        func = AsyncMock(side_effect=error)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await policy.run(func, failure_message="Could not load posts.")

        assert func.call_count == 3
        assert no_sleep.call_count == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.message == "Could not load posts."
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_exhaustion_without_message_reraises_last_error(self, policy):
        error = transient()
        func = AsyncMock(side_effect=error)

        with pytest.raises(StoreError) as exc_info:
            await policy.run(func)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_missing_index_attempted_once(self, policy, no_sleep):
        func = AsyncMock(side_effect=ConfigurationError("index required", index_url="https://console.firebase.google.com/i"))

        with pytest.raises(ConfigurationError) as exc_info:
            await policy.run(func, failure_message="unused")

        assert func.call_count == 1
        assert exc_info.value.index_url == "https://console.firebase.google.com/i"
        no_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_error_attempted_once(self, policy):
        func = AsyncMock(side_effect=ValidationError("Title is required."))

        with pytest.raises(ValidationError):
            await policy.run(func)

        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_quota_exhaustion_logged_distinctly(self, policy):
        func = AsyncMock(side_effect=StoreError("quota", kind=ErrorKind.QUOTA))

        with patch.object(policy, "logger") as logger:
            with pytest.raises(StoreUnavailableError):
                await policy.run(func, failure_message="busy")

        events = [c.args[0] for c in logger.warning.call_args_list]
        assert events == ["retry_quota_exhausted"]

    @pytest.mark.asyncio
    async def test_stats_track_retries_and_exhaustion(self, policy):
        await policy.run(AsyncMock(side_effect=[transient(), "ok"]))
        with pytest.raises(StoreUnavailableError):
            await policy.run(AsyncMock(side_effect=transient()), failure_message="down")

        stats = policy.get_stats()
        assert stats["calls"] == 2
        assert stats["retries"] == 3
        assert stats["exhausted"] == 1
        assert stats["last_failure"] is not None

        policy.reset()
        assert policy.get_stats()["calls"] == 0

    @pytest.mark.asyncio
    async def test_degraded_clears_after_success(self, policy):
        with pytest.raises(StoreUnavailableError):
            await policy.run(AsyncMock(side_effect=transient()), failure_message="down")
        assert policy.get_stats()["degraded"] is True

        await policy.run(AsyncMock(return_value="ok"))

        stats = policy.get_stats()
        assert stats["degraded"] is False
        assert stats["exhausted"] == 1


class TestNamedPolicies:
    """Test settings-driven read/admin policies."""

    def test_read_policy_defaults(self):
        policy = get_retry_policy("read")
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0
        assert policy.jitter == 0.0

    def test_admin_policy_defaults(self):
        policy = get_retry_policy("admin")
        assert policy.max_attempts == 5
        assert policy.base_delay == 2.0
        assert policy.jitter == 0.25

    def test_policy_is_cached(self):
        assert get_retry_policy("read") is get_retry_policy("read")
        assert set(get_retry_stats()) == {"read"}

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            get_retry_policy("bulk")

    def test_settings_override(self, monkeypatch):
        from board.config import get_settings
        from board.core.resilience import reset_retry_policies

        monkeypatch.setenv("READ_RETRY_ATTEMPTS", "4")
        get_settings.cache_clear()
        reset_retry_policies()

        assert get_retry_policy("read").max_attempts == 4


class TestWithRetryDecorator:
    """Test with_retry decorator."""

    @pytest.mark.asyncio
    async def test_decorator_retries(self):
        calls = []

        @with_retry(max_attempts=3, delay=0.5)
        async def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise transient()
            return "done"

        assert await flaky() == "done"
        assert len(calls) == 2
        assert flaky.retry_policy.name == "flaky"

    @pytest.mark.asyncio
    async def test_decorator_failure_message(self):
        @with_retry(max_attempts=2, failure_message="Service unavailable")
        async def always_down():
            raise transient()

        with pytest.raises(StoreUnavailableError, match="Service unavailable"):
            await always_down()
