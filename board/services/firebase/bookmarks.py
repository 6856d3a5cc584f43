"""Bookmark operations.

A bookmark is stored under the deterministic id "{userId}:{postId}" (each part
percent-encoded), so two concurrent adds for the same pair write the same
document and distinct pairs never share an id.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from board.core.errors import NotFoundError, ValidationError
from board.core.identity import BoardUser, require_registered
from board.utils.logging import get_logger
from ._client import get_store, Collections
from ._retry import with_store_retry
from .posts import Post, get_post
from .store import Where, utc_now

logger = get_logger()


@dataclass
class Bookmark:
    """User bookmark of a post."""
    id: str
    user_id: str
    post_id: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "postId": self.post_id,
            "createdAt": self.created_at,
        }


def _dict_to_bookmark(data: Dict[str, Any]) -> Bookmark:
    return Bookmark(
        id=data["id"],
        user_id=data.get("userId", ""),
        post_id=data.get("postId", ""),
        created_at=data.get("createdAt"),
    )


def bookmark_id(user_id: str, post_id: str) -> str:
    """Document id of the (user, post) bookmark."""
    return f"{quote(user_id, safe='')}:{quote(post_id, safe='')}"


def _pair_filter(user_id: str, post_id: str) -> List[Where]:
    return [Where("userId", "==", user_id), Where("postId", "==", post_id)]


@with_store_retry(failure_message="Could not check the bookmark. Please try again later.")
async def is_bookmarked(user_id: str, post_id: str) -> bool:
    """Check whether user bookmarked post."""
    docs = get_store().query(Collections.BOOKMARKS, where=_pair_filter(user_id, post_id), limit=1)
    return bool(docs)


@with_store_retry(failure_message="Could not add the bookmark. Please try again later.")
async def add_bookmark(user: BoardUser, post_id: str) -> Bookmark:
    """Bookmark a post.

    Existence check and insert run in one transaction.

    Raises:
        AuthorizationError: If user is a guest
        NotFoundError: If post missing
        ValidationError: If already bookmarked
    """
    require_registered(user, "bookmark posts")
    doc_id = bookmark_id(user.uid, post_id)

    def apply(txn):
        if txn.get(Collections.POSTS, post_id) is None:
            raise NotFoundError("Post not found.")
        # Legacy bookmarks may use generated ids
        if txn.get(Collections.BOOKMARKS, doc_id) is not None or \
                txn.query(Collections.BOOKMARKS, where=_pair_filter(user.uid, post_id), limit=1):
            raise ValidationError("This post is already bookmarked.")

        data = {"userId": user.uid, "postId": post_id, "createdAt": utc_now()}
        txn.set(Collections.BOOKMARKS, doc_id, data)
        return {**data, "id": doc_id}

    bookmark = _dict_to_bookmark(get_store().run_transaction(apply))
    logger.info("bookmark_added", user_id=user.uid, post_id=post_id)
    return bookmark


@with_store_retry(failure_message="Could not remove the bookmark. Please try again later.")
async def remove_bookmark(user_id: str, post_id: str) -> int:
    """Remove the bookmark of (user, post), including any duplicates.

    Returns:
        Number of bookmark documents deleted

    Raises:
        NotFoundError: If the post is not bookmarked
    """
    def apply(txn):
        docs = txn.query(Collections.BOOKMARKS, where=_pair_filter(user_id, post_id))
        if not docs:
            raise NotFoundError("Bookmark not found.")
        for doc in docs:
            txn.delete(Collections.BOOKMARKS, doc["id"])
        return len(docs)

    removed = get_store().run_transaction(apply)
    if removed > 1:
        logger.warning("bookmark_duplicates_removed", user_id=user_id, post_id=post_id, count=removed)
    logger.info("bookmark_removed", user_id=user_id, post_id=post_id)
    return removed


@with_store_retry(failure_message="Could not load bookmarks. Please try again later.")
async def list_bookmarks(user_id: str) -> List[Bookmark]:
    """List bookmark records of a user, newest first.

    Raises:
        ConfigurationError: If the composite index (userId, createdAt) is missing
    """
    docs = get_store().query(
        Collections.BOOKMARKS,
        where=[Where("userId", "==", user_id)],
        order_by="createdAt",
        descending=True,
    )
    return [_dict_to_bookmark(d) for d in docs]


async def _resolve_post(bookmark: Bookmark) -> Optional[Post]:
    try:
        post = await get_post(bookmark.post_id)
    except Exception as e:
        logger.warning(
            "bookmark_post_unavailable",
            bookmark_id=bookmark.id,
            post_id=bookmark.post_id,
            error=str(e)[:100],
        )
        return None
    if post is None:
        logger.warning("bookmark_post_unavailable", bookmark_id=bookmark.id, post_id=bookmark.post_id, error="deleted")
    return post


async def list_bookmarked_posts(user_id: str) -> List[Post]:
    """Posts bookmarked by user, in bookmark order.

    Posts that are missing or fail to load are logged and skipped, so one bad
    item never blocks the list.
    """
    bookmarks = await list_bookmarks(user_id)
    posts = await asyncio.gather(*(_resolve_post(b) for b in bookmarks))
    return [p for p in posts if p is not None]
