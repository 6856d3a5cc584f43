"""Firebase client initialization and shared utilities.

Thread-safe singleton pattern using lru_cache for Firebase and the store facade.
"""
import json
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials, firestore

from board.config import get_settings
from board.core.errors import ConfigurationError
from board.utils.logging import get_logger

logger = get_logger()


@lru_cache(maxsize=1)
def _init_firebase_once():
    """Initialize Firebase once (thread-safe via lru_cache).

    Returns:
        Firestore client instance

    Raises:
        ConfigurationError: If FIREBASE_CREDENTIALS not set or not valid JSON
    """
    settings = get_settings()
    if not settings.firebase_credentials:
        raise ConfigurationError("FIREBASE_CREDENTIALS not set")

    try:
        cred_dict = json.loads(settings.firebase_credentials)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"FIREBASE_CREDENTIALS is not valid JSON: {e}") from e

    cred = credentials.Certificate(cred_dict)
    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    firebase_admin.initialize_app(cred, options or None)
    db = firestore.client()
    logger.info("firebase_initialized", project=settings.firebase_project_id or cred_dict.get("project_id"))
    return db


def get_db():
    """Get Firestore client (singleton).

    Returns:
        Firestore client instance (cached after first call)
    """
    return _init_firebase_once()


@lru_cache(maxsize=1)
def _init_store_once():
    """Wrap the Firestore client in the DocumentStore facade once."""
    from .store import DocumentStore
    return DocumentStore(get_db())


def get_store():
    """Get DocumentStore facade (singleton).

    Returns:
        DocumentStore bound to the Firestore client
    """
    return _init_store_once()


# Collection name constants
class Collections:
    """Firestore collection names."""
    POSTS = "posts"
    COMMENTS = "comments"
    BOOKMARKS = "bookmarks"
    SETTINGS = "settings"
    USERS = "users"


# Singleton settings document in Collections.SETTINGS
GLOBAL_SETTINGS_ID = "global-settings"

# Firestore limit on writes per batch or transaction
MAX_BATCH_SIZE = 500
