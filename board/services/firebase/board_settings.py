"""Board-wide settings stored in the singleton settings document.

All categories live as one array inside settings/global-settings, so every
category mutation rewrites the entire array (see services.admin.categories).
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from board.core.errors import AuthorizationError, NotFoundError, ValidationError
from board.core.identity import BoardUser, require_registered
from board.utils.logging import get_logger
from ._client import get_store, Collections, GLOBAL_SETTINGS_ID
from ._retry import with_store_retry
from .store import utc_now

logger = get_logger()


@dataclass
class Category:
    """Post category (id is a slug of the name)."""
    id: str
    name: str
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name}
        if self.icon is not None:
            data["icon"] = self.icon
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(id=data["id"], name=data.get("name", data["id"]), icon=data.get("icon"))


@dataclass
class BoardSettings:
    """Singleton board configuration."""
    categories: List[Category] = field(default_factory=list)
    allow_anonymous_posting: bool = True
    allow_comments: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


DEFAULT_CATEGORIES = [Category(id="general", name="General", icon="📝")]


def slugify(name: str) -> str:
    """Derive a category id: lowercase, non-alphanumerics collapsed to one hyphen."""
    slug = re.sub(r"[^a-z0-9]", "-", name.lower().strip())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def default_settings_document(categories: Optional[List[Category]] = None) -> Dict[str, Any]:
    """Initial contents of the settings document."""
    now = utc_now()
    return {
        "categories": [c.to_dict() for c in (DEFAULT_CATEGORIES if categories is None else categories)],
        "allowAnonymousPosting": True,
        "allowComments": True,
        "createdAt": now,
        "updatedAt": now,
    }


def parse_categories(data: Optional[Dict[str, Any]]) -> List[Category]:
    """Categories array of a settings document (empty if missing)."""
    if not data:
        return []
    return [Category.from_dict(c) for c in data.get("categories") or []]


def _dict_to_settings(data: Dict[str, Any]) -> BoardSettings:
    return BoardSettings(
        categories=parse_categories(data),
        allow_anonymous_posting=data.get("allowAnonymousPosting", True),
        allow_comments=data.get("allowComments", True),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
    )


@with_store_retry(failure_message="Could not load board settings. Please try again later.")
async def fetch_board_settings() -> BoardSettings:
    """Get board settings, bootstrapping the document on first use.

    Returns:
        BoardSettings (default "general" category if newly created)
    """
    store = get_store()

    def read_or_bootstrap(txn):
        data = txn.get(Collections.SETTINGS, GLOBAL_SETTINGS_ID)
        if data is None:
            data = default_settings_document()
            txn.set(Collections.SETTINGS, GLOBAL_SETTINGS_ID, data)
            logger.warning("settings_bootstrapped", categories=len(data["categories"]))
        return data

    return _dict_to_settings(store.run_transaction(read_or_bootstrap))


async def fetch_categories() -> List[Category]:
    """Get all categories in display order."""
    settings = await fetch_board_settings()
    return settings.categories


async def get_category(category_id: str) -> Optional[Category]:
    """Get category by id, None if it does not exist."""
    for category in await fetch_categories():
        if category.id == category_id:
            return category
    return None


async def ensure_can_post(user: BoardUser) -> None:
    """Guests may post only while anonymous posting is allowed.

    Raises:
        AuthorizationError: If user is a guest and anonymous posting is off
    """
    if not user.is_anonymous:
        return
    settings = await fetch_board_settings()
    if not settings.allow_anonymous_posting:
        raise AuthorizationError("Anonymous posting is disabled. Sign in to write a post.")


async def ensure_can_comment(user: BoardUser) -> None:
    """Registered users may comment while comments are enabled.

    Raises:
        AuthorizationError: If user is a guest or comments are disabled
    """
    require_registered(user, "comment")
    settings = await fetch_board_settings()
    if not settings.allow_comments:
        raise AuthorizationError("Comments are disabled on this board.")


@with_store_retry(policy="admin", failure_message="Could not update board settings. Please try again later.")
async def update_board_options(
    session,
    allow_anonymous_posting: Optional[bool] = None,
    allow_comments: Optional[bool] = None,
) -> BoardSettings:
    """Toggle board-wide flags (admin only).

    Args:
        session: AdminSession
        allow_anonymous_posting: New value (None leaves unchanged)
        allow_comments: New value (None leaves unchanged)

    Returns:
        Updated BoardSettings

    Raises:
        AuthorizationError: If session invalid or expired
        NotFoundError: If settings document missing
        ValidationError: If nothing to update
    """
    from board.services.admin.auth import require_admin
    require_admin(session)

    updates = {}
    if allow_anonymous_posting is not None:
        updates["allowAnonymousPosting"] = bool(allow_anonymous_posting)
    if allow_comments is not None:
        updates["allowComments"] = bool(allow_comments)
    if not updates:
        raise ValidationError("No settings to update.")
    updates["updatedAt"] = utc_now()

    store = get_store()

    def apply(txn):
        data = txn.get(Collections.SETTINGS, GLOBAL_SETTINGS_ID)
        if data is None:
            raise NotFoundError("Board settings not found.")
        txn.update(Collections.SETTINGS, GLOBAL_SETTINGS_ID, updates)
        return {**data, **updates}

    result = _dict_to_settings(store.run_transaction(apply))
    logger.info("board_options_updated", by=session.id, fields=sorted(updates))
    return result
