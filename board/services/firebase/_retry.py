"""Retry decorator for Firestore-backed service operations.

Eliminates repeated retry/backoff boilerplate across service functions.
"""
from functools import wraps
from typing import Callable, Optional, TypeVar

from board.core.errors import AuthorizationError, NotFoundError, ValidationError
from board.core.resilience import get_retry_policy
from board.utils.logging import get_logger

logger = get_logger()
T = TypeVar("T")


def with_store_retry(
    policy: str = "read",
    failure_message: Optional[str] = None,
    operation: Optional[str] = None,
):
    """Decorator applying a named RetryPolicy to a service coroutine.

    Args:
        policy: Named policy ("read" or "admin")
        failure_message: Message for StoreUnavailableError once retries are
            exhausted (None re-raises the final error)
        operation: Operation name for logging (auto-detected from func name)

    Usage:
        @with_store_retry(failure_message="Could not load posts. Try again later.")
        async def list_posts():
            store = get_store()
            ...

        @with_store_retry(policy="admin")
        async def add_category(session, name):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            op_name = operation or func.__name__
            try:
                return await get_retry_policy(policy).run(
                    func, *args,
                    failure_message=failure_message,
                    operation=op_name,
                    **kwargs
                )
            except (ValidationError, AuthorizationError, NotFoundError) as e:
                logger.info(f"{op_name}_rejected", reason=e.message[:100], error_type=type(e).__name__)
                raise
            except Exception as e:
                logger.error(
                    f"firebase_{op_name}_error",
                    error=str(e)[:100],
                    error_type=type(e).__name__
                )
                raise

        return wrapper
    return decorator
