"""Error taxonomy for board operations.

Errors are grouped by origin, not by the SDK exception that caused them:
- Infrastructure failures (StoreError) carry an ErrorKind decided once at the
  store adapter boundary and may be retried.
- Domain failures (validation, authorization, not found, configuration) are
  surfaced immediately and never retried.
"""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Structured classification of document store failures."""
    TRANSIENT = "transient"            # network blip, unavailable, deadline
    QUOTA = "quota"                    # resource exhausted / rate limited
    CONFLICT = "conflict"              # transaction contention
    MISSING_INDEX = "missing_index"    # composite index not deployed
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.TRANSIENT,
    ErrorKind.QUOTA,
    ErrorKind.CONFLICT,
    ErrorKind.UNKNOWN,
})


class BoardError(Exception):
    """Base class for all board errors."""
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BoardError):
    """Invalid input: empty field, duplicate name, malformed backup, bad reorder."""


class CategoryInUseError(ValidationError):
    """Deleting a category would orphan posts with no destination category."""

    def __init__(self, category_id: str, post_count: int):
        self.category_id = category_id
        self.post_count = post_count
        super().__init__(
            f"Category '{category_id}' still has {post_count} post(s) and no other "
            "category exists to receive them. At least one category is required."
        )


class AuthorizationError(BoardError):
    """Caller is not the resource author, not an admin, or session expired."""


class NotFoundError(BoardError):
    """Referenced document does not exist."""


class ConfigurationError(BoardError):
    """Deployment problem: missing credentials or missing composite index."""

    def __init__(self, message: str, index_url: Optional[str] = None):
        self.index_url = index_url
        super().__init__(message)


class StoreError(BoardError):
    """Classified document store failure."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class StoreUnavailableError(BoardError):
    """Retry budget exhausted on a transient failure."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


def is_retryable(error: BaseException) -> bool:
    """Whether a failure should be retried by a RetryPolicy.

    Non-board exceptions are treated as transient: the store adapter only lets
    them through when it could not classify them.
    """
    if isinstance(error, BoardError):
        return bool(error.retryable)
    return isinstance(error, Exception)
