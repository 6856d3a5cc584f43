"""Post CRUD operations.

Posts are stored with camelCase fields (title, content, category, author,
authorId, tags, createdAt, updatedAt, commentCount, viewCount). Every author
mutation checks authorId inside the transaction that performs the write.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from google.cloud.firestore_v1 import Increment

from board.core.errors import NotFoundError, ValidationError
from board.core.identity import BoardUser, require_author
from board.utils.logging import get_logger
from ._client import get_store, Collections, MAX_BATCH_SIZE
from ._retry import with_store_retry
from .board_settings import ensure_can_post, get_category
from .store import Where, utc_now

logger = get_logger()

# Fields an author may change through update_post
EDITABLE_FIELDS = frozenset({"title", "content", "category", "tags"})

# Server-controlled fields silently dropped from update payloads
IMMUTABLE_FIELDS = frozenset({
    "id", "createdAt", "date", "updatedAt",
    "commentCount", "comments", "viewCount", "isNew",
})

NEW_POST_WINDOW = timedelta(hours=24)


@dataclass
class Post:
    """Bulletin board post."""
    id: str
    title: str
    content: str
    category: str
    author: Dict[str, Any] = field(default_factory=dict)
    author_id: str = ""
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    comment_count: int = 0
    view_count: int = 0
    edit_history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        """Created within the last 24 hours."""
        if not self.created_at:
            return False
        return utc_now() - self.created_at < NEW_POST_WINDOW

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "author": self.author,
            "authorId": self.author_id,
            "tags": self.tags,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "commentCount": self.comment_count,
            "viewCount": self.view_count,
            "isNew": self.is_new,
        }
        if self.edit_history:
            data["editHistory"] = self.edit_history
        return data


def dict_to_post(data: Dict[str, Any]) -> Post:
    """Convert store dict (with "id") to Post."""
    return Post(
        id=data["id"],
        title=data.get("title", ""),
        content=data.get("content", ""),
        category=data.get("category", ""),
        author=data.get("author") or {},
        author_id=data.get("authorId", ""),
        tags=list(data.get("tags") or []),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        comment_count=data.get("commentCount", 0),
        view_count=data.get("viewCount", 0),
        edit_history=list(data.get("editHistory") or []),
    )


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Strip, drop empties and de-duplicate preserving order."""
    seen = []
    for tag in tags or []:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def require_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required.")
    return str(value).strip()


async def require_category(category_id: str) -> None:
    """Raise ValidationError unless the category exists."""
    if await get_category(category_id) is None:
        raise ValidationError(f"Category '{category_id}' does not exist.")


@with_store_retry(failure_message="Could not load posts. Please try again later.")
async def list_posts(limit: Optional[int] = None) -> List[Post]:
    """List posts, newest first."""
    store = get_store()
    docs = store.query(Collections.POSTS, order_by="createdAt", descending=True, limit=limit)
    return [dict_to_post(d) for d in docs]


@with_store_retry(failure_message="Could not load posts. Please try again later.")
async def _query_posts(where: List[Where], order_by: str = "createdAt") -> List[Post]:
    store = get_store()
    docs = store.query(Collections.POSTS, where=where, order_by=order_by, descending=True)
    return [dict_to_post(d) for d in docs]


async def list_posts_by_category(category_id: Optional[str]) -> List[Post]:
    """List posts in a category, newest first ("all" or empty lists everything).

    Raises:
        ConfigurationError: If the composite index (category, createdAt) is missing
    """
    if not category_id or category_id == "all":
        return await list_posts()
    return await _query_posts([Where("category", "==", category_id)])


async def list_posts_by_tag(tag: str) -> List[Post]:
    """List posts carrying a tag, newest first."""
    tag = require_text(tag, "Tag")
    return await _query_posts([Where("tags", "array-contains", tag)])


async def list_posts_by_date_range(
    start: datetime,
    end: datetime,
    date_field: str = "createdAt",
) -> List[Post]:
    """List posts whose createdAt/updatedAt falls in [start, end], newest first."""
    if date_field not in ("createdAt", "updatedAt"):
        raise ValidationError("Date field must be createdAt or updatedAt.")
    if start > end:
        raise ValidationError("Start date must not be after end date.")
    return await _query_posts(
        [Where(date_field, ">=", start), Where(date_field, "<=", end)],
        order_by=date_field,
    )


@with_store_retry(failure_message="Could not load the post. Please try again later.")
async def get_post(post_id: str) -> Optional[Post]:
    """Get post by ID, None if it does not exist."""
    data = get_store().get(Collections.POSTS, post_id)
    return dict_to_post(data) if data else None


@with_store_retry(failure_message="Could not save the post. Please try again later.")
async def _write_post(post_id: str, data: Dict[str, Any]) -> None:
    # set with a pre-generated id keeps a retried write idempotent
    get_store().set(Collections.POSTS, post_id, data)


async def create_post(
    user: BoardUser,
    title: str,
    content: str,
    category: str,
    tags: Optional[List[str]] = None,
) -> Post:
    """Create a post authored by user.

    Raises:
        ValidationError: If title, content or category missing or unknown
        AuthorizationError: If user is a guest and anonymous posting is off
    """
    title = require_text(title, "Title")
    content = require_text(content, "Content")
    category = require_text(category, "Category")

    await ensure_can_post(user)
    await require_category(category)

    now = utc_now()
    data = {
        "title": title,
        "content": content,
        "category": category,
        "author": user.author(),
        "authorId": user.uid,
        "tags": normalize_tags(tags),
        "createdAt": now,
        "updatedAt": now,
        "commentCount": 0,
        "viewCount": 0,
    }
    post_id = get_store().new_id(Collections.POSTS)
    await _write_post(post_id, data)

    logger.info("post_created", post_id=post_id, category=category, author_id=user.uid)
    return dict_to_post({**data, "id": post_id})


def clean_post_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Drop server-controlled fields and validate the rest."""
    cleaned = {k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}
    unknown = set(cleaned) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if not cleaned:
        raise ValidationError("No fields to update.")

    if "title" in cleaned:
        cleaned["title"] = require_text(cleaned["title"], "Title")
    if "content" in cleaned:
        cleaned["content"] = require_text(cleaned["content"], "Content")
    if "category" in cleaned:
        cleaned["category"] = require_text(cleaned["category"], "Category")
    if "tags" in cleaned:
        cleaned["tags"] = normalize_tags(cleaned["tags"])
    return cleaned


@with_store_retry(failure_message="Could not update the post. Please try again later.")
async def _update_as_author(post_id: str, changes: Dict[str, Any], caller_uid: str, action: str) -> Post:
    """Apply changes in a transaction that also checks authorship."""
    def apply(txn):
        data = txn.get(Collections.POSTS, post_id)
        if data is None:
            raise NotFoundError("Post not found.")
        require_author(data.get("authorId"), caller_uid, action)
        if action == "move" and data.get("category") == changes["category"]:
            raise ValidationError("The post is already in this category.")
        stamped = {**changes, "updatedAt": utc_now()}
        txn.update(Collections.POSTS, post_id, stamped)
        return {**data, **stamped}

    return dict_to_post(get_store().run_transaction(apply))


async def update_post(post_id: str, updates: Dict[str, Any], caller_uid: str) -> Post:
    """Update title/content/category/tags of a post (author only).

    Server-controlled fields (id, timestamps, counters, isNew) are stripped;
    updatedAt is always stamped.

    Raises:
        NotFoundError: If post missing
        AuthorizationError: If caller is not the author
        ValidationError: If updates empty, invalid or name other fields
    """
    cleaned = clean_post_updates(updates)
    if "category" in cleaned:
        await require_category(cleaned["category"])

    post = await _update_as_author(post_id, cleaned, caller_uid, "edit")
    logger.info("post_updated", post_id=post_id, fields=sorted(cleaned))
    return post


class _CascadeTooLarge(Exception):
    """Dependents of a post do not fit in one transaction commit."""


def delete_post_in_transaction(txn, post_id: str) -> Dict[str, int]:
    """Delete a post with its comments and bookmarks inside txn.

    The caller must have read the post already; this only queries dependents
    before issuing the deletes. Raises _CascadeTooLarge when the deletes
    would exceed MAX_BATCH_SIZE writes; use delete_post_cascading to handle it.
    """
    comments = txn.query(Collections.COMMENTS, where=[Where("postId", "==", post_id)])
    bookmarks = txn.query(Collections.BOOKMARKS, where=[Where("postId", "==", post_id)])
    if len(comments) + len(bookmarks) + 1 > MAX_BATCH_SIZE:
        raise _CascadeTooLarge()
    for doc in comments:
        txn.delete(Collections.COMMENTS, doc["id"])
    for doc in bookmarks:
        txn.delete(Collections.BOOKMARKS, doc["id"])
    txn.delete(Collections.POSTS, post_id)
    return {"comments": len(comments), "bookmarks": len(bookmarks)}


def _delete_dependents(post_id: str) -> Dict[str, int]:
    """Batch-delete comments and bookmarks of a post outside a transaction."""
    store = get_store()
    removed = {}
    for collection, key in ((Collections.COMMENTS, "comments"), (Collections.BOOKMARKS, "bookmarks")):
        docs = store.query(collection, where=[Where("postId", "==", post_id)])
        removed[key] = store.delete_many(collection, [doc["id"] for doc in docs])
    return removed


def delete_post_cascading(post_id: str, apply: Callable[[Any], Optional[Dict[str, int]]]) -> Optional[Dict[str, int]]:
    """Run a delete transaction, draining oversized dependents first.

    apply must check the post (existence, authorship) before calling
    delete_post_in_transaction, so dependents are only drained for a caller
    allowed to delete the post.

    Returns:
        Removed comment and bookmark counts, or None when apply returns None
    """
    drained = {"comments": 0, "bookmarks": 0}
    while True:
        try:
            removed = get_store().run_transaction(apply)
        except _CascadeTooLarge:
            batch = _delete_dependents(post_id)
            if not any(batch.values()):
                raise ValidationError("The post has too many comments and bookmarks to delete. Please try again.")
            logger.info("post_dependents_batch_deleted", post_id=post_id, **batch)
            drained = {key: drained[key] + batch[key] for key in drained}
            continue
        if removed is None:
            return None
        return {key: removed[key] + drained[key] for key in drained}


@with_store_retry(failure_message="Could not delete the post. Please try again later.")
async def delete_post(post_id: str, caller_uid: str) -> Dict[str, int]:
    """Delete a post with its comments and bookmarks (author only).

    Dependents that do not fit in one commit are batch-deleted first.

    Returns:
        Dict with deleted comment and bookmark counts

    Raises:
        NotFoundError: If post missing
        AuthorizationError: If caller is not the author
    """
    def apply(txn):
        data = txn.get(Collections.POSTS, post_id)
        if data is None:
            raise NotFoundError("Post not found.")
        require_author(data.get("authorId"), caller_uid, "delete")
        return delete_post_in_transaction(txn, post_id)

    removed = delete_post_cascading(post_id, apply)
    logger.info("post_deleted", post_id=post_id, by=caller_uid, **removed)
    return removed


async def move_post(post_id: str, new_category_id: str, caller_uid: str) -> Post:
    """Move a post to another existing category (author only).

    Raises:
        ValidationError: If category unknown or equal to the current one
        NotFoundError: If post missing
        AuthorizationError: If caller is not the author
    """
    new_category_id = require_text(new_category_id, "Category")
    await require_category(new_category_id)

    post = await _update_as_author(post_id, {"category": new_category_id}, caller_uid, "move")
    logger.info("post_moved", post_id=post_id, category=new_category_id)
    return post


@with_store_retry()
async def increment_view_count(post_id: str) -> None:
    """Atomically add one view.

    Raises:
        NotFoundError: If post missing
    """
    get_store().update(Collections.POSTS, post_id, {"viewCount": Increment(1)})
