"""Map board errors to HTTP responses."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from board.core.errors import (
    AuthorizationError,
    BoardError,
    CategoryInUseError,
    ConfigurationError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
)
from board.utils.logging import get_logger

logger = get_logger("api")


def status_for(error: BoardError) -> int:
    """HTTP status code for a board error."""
    if isinstance(error, CategoryInUseError):
        return 409
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, StoreUnavailableError):
        return 503
    if isinstance(error, StoreError):
        return 503 if error.retryable else 500
    return 500


async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
    status = status_for(exc)
    body = {"error": exc.message, "type": type(exc).__name__}
    if isinstance(exc, ConfigurationError) and exc.index_url:
        body["indexUrl"] = exc.index_url
    if isinstance(exc, StoreUnavailableError):
        body["retryable"] = True

    if status >= 500:
        logger.error("request_failed", path=request.url.path, status=status, error=exc.message[:200])
    return JSONResponse(status_code=status, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BoardError, board_error_handler)
