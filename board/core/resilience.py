"""Retry with exponential backoff for document store calls.

Transient failures are retried; configuration and domain failures are not.
"""
import asyncio
import functools
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from board.core.errors import (
    ErrorKind,
    StoreError,
    StoreUnavailableError,
    is_retryable,
)
from board.utils.logging import get_logger

logger = get_logger()

T = TypeVar("T")

# Indirection so tests can replace the sleep without touching asyncio
_sleep = asyncio.sleep


@dataclass
class RetryPolicy:
    """Exponential backoff policy.

    Attempt n (1-based) that fails waits base_delay * 2**(n-1) before attempt
    n+1, plus up to `jitter` (fraction of the base wait) of random extra delay.

    Usage:
        policy = RetryPolicy("read", max_attempts=3, base_delay=1.0)
        posts = await policy.run(fetch_posts)
    """
    name: str
    max_attempts: int = 3
    base_delay: float = 1.0
    jitter: float = 0.0

    # Internal counters
    _calls: int = field(default=0, init=False)
    _retries: int = field(default=0, init=False)
    _exhausted: int = field(default=0, init=False)
    _last_failure: Optional[datetime] = field(default=None, init=False)
    _degraded: bool = field(default=False, init=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.logger = logger.bind(policy=self.name)
        self._lock = threading.Lock()

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt`."""
        base_wait = self.base_delay * (2 ** (attempt - 1))
        if self.jitter > 0:
            return base_wait + random.uniform(0, base_wait * self.jitter)
        return base_wait

    async def run(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        failure_message: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ) -> T:
        """Execute coroutine function with retries.

        Args:
            func: Async function to call
            failure_message: If set, exhaustion raises StoreUnavailableError
                with this message (chained to the final error) instead of
                re-raising the final error itself
            operation: Operation name for logging (defaults to func name)

        Returns:
            Function result

        Raises:
            BoardError: Non-retryable failures on first occurrence
            StoreUnavailableError: Retry budget exhausted (with failure_message)
            Exception: Final error when exhausted without failure_message
        """
        op_name = operation or getattr(func, "__name__", "operation")
        with self._lock:
            self._calls += 1

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not is_retryable(e):
                    raise

                with self._lock:
                    self._last_failure = datetime.now(timezone.utc)

                quota = isinstance(e, StoreError) and e.kind == ErrorKind.QUOTA
                if attempt >= self.max_attempts:
                    with self._lock:
                        self._exhausted += 1
                        self._degraded = True
                    self.logger.warning(
                        "retry_quota_exhausted" if quota else "retry_exhausted",
                        operation=op_name,
                        attempts=attempt,
                        error=str(e)[:100],
                        error_type=type(e).__name__,
                    )
                    if failure_message:
                        raise StoreUnavailableError(failure_message, attempts=attempt) from e
                    raise

                wait = self.delay_for(attempt)
                with self._lock:
                    self._retries += 1
                self.logger.info(
                    "retry_attempt",
                    operation=op_name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay=round(wait, 3),
                    quota=quota,
                    error=str(e)[:100],
                )
                await _sleep(wait)
                continue

            if self._degraded:
                with self._lock:
                    self._degraded = False
                self.logger.info("retry_policy_recovered", operation=op_name)
            return result

        # Unreachable: the loop either returns or raises
        raise StoreUnavailableError(failure_message or "Retry budget exhausted", self.max_attempts)

    def reset(self):
        """Reset counters."""
        with self._lock:
            self._calls = 0
            self._retries = 0
            self._exhausted = 0
            self._last_failure = None
            self._degraded = False

    def get_stats(self) -> Dict[str, Any]:
        """Get retry statistics."""
        return {
            "name": self.name,
            "max_attempts": self.max_attempts,
            "base_delay": self.base_delay,
            "jitter": self.jitter,
            "calls": self._calls,
            "retries": self._retries,
            "exhausted": self._exhausted,
            "last_failure": self._last_failure.isoformat() if self._last_failure else None,
            "degraded": self._degraded,
        }


_policies: Dict[str, RetryPolicy] = {}
_policies_lock = threading.Lock()


def get_retry_policy(name: str) -> RetryPolicy:
    """Get a named policy ("read" or "admin") configured from settings."""
    with _policies_lock:
        policy = _policies.get(name)
        if policy is not None:
            return policy

        from board.config import get_settings
        settings = get_settings()
        if name == "read":
            policy = RetryPolicy(
                "read",
                max_attempts=settings.read_retry_attempts,
                base_delay=settings.read_retry_base_delay,
            )
        elif name == "admin":
            policy = RetryPolicy(
                "admin",
                max_attempts=settings.admin_retry_attempts,
                base_delay=settings.admin_retry_base_delay,
                jitter=settings.admin_retry_jitter,
            )
        else:
            raise ValueError(f"Unknown retry policy: {name}")
        _policies[name] = policy
        return policy


def get_retry_stats() -> Dict[str, Dict]:
    """Get stats for all configured policies."""
    with _policies_lock:
        return {name: policy.get_stats() for name, policy in _policies.items()}


def reset_retry_policies():
    """Drop configured policies (for tests and settings reload)."""
    with _policies_lock:
        _policies.clear()


def with_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    jitter: float = 0.0,
    failure_message: Optional[str] = None,
):
    """Decorator for retry with exponential backoff.

    Usage:
        @with_retry(max_attempts=3, delay=1.0)
        async def fetch_data():
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        policy = RetryPolicy(func.__name__, max_attempts=max_attempts, base_delay=delay, jitter=jitter)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await policy.run(func, *args, failure_message=failure_message, **kwargs)

        wrapper.retry_policy = policy
        return wrapper
    return decorator
