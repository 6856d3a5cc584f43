"""FastAPI application factory.

Creates FastAPI app with middleware, error mapping and routes.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

import board
from board.config import get_settings
from board.utils.logging import setup_logging

from .errors import register_error_handlers
from .routes import admin, bookmarks, categories, comments, health, posts


def create_app() -> FastAPI:
    """Create FastAPI application with middleware.

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    setup_logging(settings.log_level)
    web_app = FastAPI(
        title="Bulletin Board API",
        description="Posts, comments, bookmarks and admin tools over Firestore",
        version=board.__version__,
    )

    # CORS middleware
    web_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting (default limit applied to every route)
    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    web_app.state.limiter = limiter
    web_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    web_app.add_middleware(SlowAPIMiddleware)

    register_error_handlers(web_app)

    for module in (health, posts, comments, bookmarks, categories, admin):
        web_app.include_router(module.router)

    return web_app


# Singleton for imports (uvicorn api.app:web_app)
web_app = create_app()
