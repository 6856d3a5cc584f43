"""Core framework modules."""
from board.core.errors import (
    BoardError,
    ValidationError,
    CategoryInUseError,
    AuthorizationError,
    NotFoundError,
    ConfigurationError,
    StoreError,
    StoreUnavailableError,
    ErrorKind,
)
from board.core.resilience import (
    RetryPolicy,
    get_retry_policy,
    get_retry_stats,
    with_retry,
)
from board.core.identity import BoardUser, require_author, require_registered

__all__ = [
    "BoardError",
    "ValidationError",
    "CategoryInUseError",
    "AuthorizationError",
    "NotFoundError",
    "ConfigurationError",
    "StoreError",
    "StoreUnavailableError",
    "ErrorKind",
    "RetryPolicy",
    "get_retry_policy",
    "get_retry_stats",
    "with_retry",
    "BoardUser",
    "require_author",
    "require_registered",
]
