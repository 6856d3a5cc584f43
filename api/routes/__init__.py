"""API routes module.

Exports all route routers for inclusion in main FastAPI app.
"""
from . import health
from . import posts
from . import comments
from . import bookmarks
from . import categories
from . import admin


__all__ = [
    "health",
    "posts",
    "comments",
    "bookmarks",
    "categories",
    "admin",
]
