"""Pytest configuration and shared fixtures."""
import pytest
from unittest.mock import AsyncMock, patch
from datetime import datetime, timezone

from tests.mocks import MockDocumentStore


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Set required environment variables and reset cached settings/policies."""
    monkeypatch.setenv("ADMIN_ID", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "s3cret")
    monkeypatch.setenv("ADMIN_SESSION_SECRET", "test-session-secret")
    monkeypatch.setenv("FIREBASE_CREDENTIALS", "")

    from board.config import get_settings
    from board.core.resilience import reset_retry_policies

    get_settings.cache_clear()
    reset_retry_policies()
    yield
    get_settings.cache_clear()
    reset_retry_policies()


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip real backoff waits; the mock records requested delays."""
    with patch("board.core.resilience._sleep", new=AsyncMock()) as sleep:
        yield sleep


@pytest.fixture
def store():
    """In-memory DocumentStore behind get_store()."""
    fake = MockDocumentStore()
    with patch("board.services.firebase._client._init_store_once", return_value=fake):
        yield fake


@pytest.fixture
def frozen_time():
    """Provide frozen datetime for consistent testing."""
    return datetime(2025, 12, 28, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings_doc(store, frozen_time):
    """Settings document with general and tech categories."""
    store.seed("settings", "global-settings", {
        "categories": [
            {"id": "general", "name": "General", "icon": "📝"},
            {"id": "tech", "name": "Tech"},
        ],
        "allowAnonymousPosting": True,
        "allowComments": True,
        "createdAt": frozen_time,
        "updatedAt": frozen_time,
    })
    return store


@pytest.fixture
def user():
    from board.core.identity import BoardUser
    return BoardUser(uid="user-1", display_name="Alice", email="alice@example.com",
                     photo_url="https://example.com/a.png")


@pytest.fixture
def other_user():
    from board.core.identity import BoardUser
    return BoardUser(uid="user-2", display_name="Bob")


@pytest.fixture
def guest():
    from board.core.identity import BoardUser
    return BoardUser(uid="anon-1", display_name="Guest", is_anonymous=True)


@pytest.fixture
def admin_session():
    """Live admin session from the test credentials."""
    from board.services.admin.auth import admin_login
    return admin_login("admin", "s3cret")


@pytest.fixture
def make_post(store):
    """Factory seeding post documents."""
    def _make(post_id, category="general", author_id="user-1", created_at=None, **extra):
        created_at = created_at or datetime(2025, 12, 1, tzinfo=timezone.utc)
        data = {
            "title": f"Post {post_id}",
            "content": f"Content of {post_id}",
            "category": category,
            "author": {"name": "Alice"},
            "authorId": author_id,
            "tags": [],
            "createdAt": created_at,
            "updatedAt": created_at,
            "commentCount": 0,
            "viewCount": 0,
        }
        data.update(extra)
        store.seed("posts", post_id, data)
        return data
    return _make
