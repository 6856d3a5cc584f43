"""Administrator post moderation.

Admins can edit or delete any post. Every admin edit is appended to the
post's editHistory as {editedAt, editedBy, reason}.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from board.core.errors import BoardError, NotFoundError, ValidationError
from board.services.firebase._client import get_store, Collections
from board.services.firebase._retry import with_store_retry
from board.services.firebase.comments import Comment, list_comments
from board.services.firebase.posts import (
    Post,
    clean_post_updates,
    delete_post_cascading,
    delete_post_in_transaction,
    dict_to_post,
    normalize_tags,
    require_category,
    require_text,
)
from board.services.firebase.store import Where, utc_now
from board.utils.logging import get_logger
from .auth import AdminSession, require_admin

logger = get_logger()

DEFAULT_PAGE_SIZE = 20
ADMIN_AUTHOR_NAME = "Administrator"
DEFAULT_EDIT_REASON = "Edited by administrator"
SORTABLE_FIELDS = ("createdAt", "updatedAt", "title", "viewCount", "commentCount")


@dataclass
class AdminPostPage:
    """One page of the admin post list."""
    posts: List[Post]
    last_id: Optional[str]
    has_more: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "posts": [p.to_dict() for p in self.posts],
            "pagination": {"lastId": self.last_id, "hasMore": self.has_more},
        }


@dataclass
class AdminPostDetail:
    """Post with its comments and edit history."""
    post: Post
    comments: List[Comment] = field(default_factory=list)

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.post.to_dict(),
            "commentCount": self.comment_count,
            "editHistory": self.post.edit_history,
            "comments": [c.to_dict() for c in self.comments],
        }


def _matches(post: Post, term: str) -> bool:
    term = term.lower()
    return (
        term in post.title.lower()
        or term in post.content.lower()
        or term in str(post.author.get("name", "")).lower()
    )


@with_store_retry(failure_message="Could not load posts. Please try again later.")
async def list_posts_admin(
    session: AdminSession,
    page_size: int = DEFAULT_PAGE_SIZE,
    start_after: Optional[str] = None,
    sort_field: str = "createdAt",
    sort_order: str = "desc",
    category: Optional[str] = None,
    tag: Optional[str] = None,
    author_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
) -> AdminPostPage:
    """List posts page by page with filters.

    Search is applied to the fetched page (case-insensitive over title,
    content and author name); has_more reflects the unfiltered page.

    Args:
        start_after: ID of the last post of the previous page

    Raises:
        ValidationError: If sort or date arguments are invalid
        NotFoundError: If the start_after post has been deleted
        ConfigurationError: If the filter combination needs a missing index
    """
    require_admin(session)
    if sort_field not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by '{sort_field}'.")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("Sort order must be asc or desc.")
    if page_size < 1:
        raise ValidationError("Page size must be positive.")

    where = []
    if category:
        where.append(Where("category", "==", category))
    if tag:
        where.append(Where("tags", "array-contains", tag))
    if author_id:
        where.append(Where("authorId", "==", author_id))
    if start_date and end_date:
        if sort_field != "createdAt":
            raise ValidationError("Date range filtering requires sorting by createdAt.")
        where.extend([Where("createdAt", ">=", start_date), Where("createdAt", "<=", end_date)])

    docs = get_store().query(
        Collections.POSTS,
        where=where,
        order_by=sort_field,
        descending=sort_order == "desc",
        limit=page_size,
        start_after=start_after,
    )
    posts = [dict_to_post(d) for d in docs]
    if search and search.strip():
        posts = [p for p in posts if _matches(p, search.strip())]

    return AdminPostPage(
        posts=posts,
        last_id=docs[-1]["id"] if docs else None,
        has_more=len(docs) == page_size,
    )


@with_store_retry(failure_message="Could not load the post. Please try again later.")
async def _get_post_doc(post_id: str) -> Dict[str, Any]:
    data = get_store().get(Collections.POSTS, post_id)
    if data is None:
        raise NotFoundError(f"Post '{post_id}' not found.")
    return data


async def get_post_detail_admin(session: AdminSession, post_id: str) -> AdminPostDetail:
    """Post with its comments; commentCount is recounted from the comments."""
    require_admin(session)
    post = dict_to_post(await _get_post_doc(post_id))
    comments = await list_comments(post_id)
    if post.comment_count != len(comments):
        logger.warning("comment_count_drift", post_id=post_id, stored=post.comment_count, actual=len(comments))
    return AdminPostDetail(post=post, comments=comments)


@with_store_retry(failure_message="Could not update the post. Please try again later.")
async def _apply_admin_edit(post_id: str, changes: Dict[str, Any], entry: Dict[str, Any]) -> Post:
    def apply(txn):
        data = txn.get(Collections.POSTS, post_id)
        if data is None:
            raise NotFoundError(f"Post '{post_id}' not found.")
        stamped = {
            **changes,
            "updatedAt": entry["editedAt"],
            "editHistory": list(data.get("editHistory") or []) + [entry],
        }
        txn.update(Collections.POSTS, post_id, stamped)
        return {**data, **stamped}

    return dict_to_post(get_store().run_transaction(apply))


async def update_post_admin(
    session: AdminSession,
    post_id: str,
    updates: Dict[str, Any],
    reason: Optional[str] = None,
) -> Post:
    """Edit any post and record the edit in editHistory.

    Raises:
        NotFoundError: If post missing
        ValidationError: If updates invalid
    """
    require_admin(session)
    changes = clean_post_updates(updates)
    if "category" in changes:
        await require_category(changes["category"])

    entry = {
        "editedAt": utc_now(),
        "editedBy": session.id,
        "reason": (reason or "").strip() or DEFAULT_EDIT_REASON,
    }
    post = await _apply_admin_edit(post_id, changes, entry)
    logger.info("post_admin_updated", post_id=post_id, by=session.id, fields=sorted(changes))
    return post


@with_store_retry(failure_message="Could not delete the post. Please try again later.")
async def _delete_post_cascade(post_id: str) -> Optional[Dict[str, int]]:
    def apply(txn):
        if txn.get(Collections.POSTS, post_id) is None:
            return None
        return delete_post_in_transaction(txn, post_id)

    return delete_post_cascading(post_id, apply)


async def delete_post_admin(session: AdminSession, post_id: str) -> Dict[str, int]:
    """Delete any post with its comments and bookmarks.

    Raises:
        NotFoundError: If post missing
    """
    require_admin(session)
    removed = await _delete_post_cascade(post_id)
    if removed is None:
        raise NotFoundError(f"Post '{post_id}' not found.")
    logger.info("post_admin_deleted", post_id=post_id, by=session.id, **removed)
    return removed


async def bulk_delete_posts_admin(session: AdminSession, post_ids: List[str]) -> Dict[str, Any]:
    """Delete several posts, each in its own cascading transaction.

    A post that cannot be deleted is reported under failed and the rest
    are still attempted.

    Returns:
        Dict with deletedCount, the IDs that did not exist and the IDs that failed
    """
    require_admin(session)
    deleted = 0
    missing = []
    failed = []
    for post_id in dict.fromkeys(post_ids):
        try:
            removed = await _delete_post_cascade(post_id)
        except BoardError as e:
            logger.warning("post_bulk_delete_failed", post_id=post_id, error=e.message[:100])
            failed.append(post_id)
            continue
        if removed is None:
            missing.append(post_id)
        else:
            deleted += 1

    logger.info("posts_bulk_deleted", deleted=deleted, missing=len(missing), failed=len(failed), by=session.id)
    return {"deletedCount": deleted, "missing": missing, "failed": failed}


@with_store_retry(failure_message="Could not load post statistics. Please try again later.")
async def fetch_post_stats_admin(session: AdminSession) -> Dict[str, Any]:
    """Post counts overall and per category, tag, author and month (YYYY-MM)."""
    require_admin(session)
    docs = get_store().query(Collections.POSTS)

    categories, tags, authors, months = Counter(), Counter(), Counter(), Counter()
    for doc in docs:
        categories[doc.get("category") or "uncategorized"] += 1
        authors[doc.get("authorId") or "anonymous"] += 1
        for tag in doc.get("tags") or []:
            tags[tag] += 1
        created_at = doc.get("createdAt")
        if isinstance(created_at, datetime):
            months[created_at.strftime("%Y-%m")] += 1

    return {
        "totalPosts": len(docs),
        "categoryCounts": dict(categories),
        "tagCounts": dict(tags),
        "authorCounts": dict(authors),
        "monthlyCounts": dict(sorted(months.items())),
    }


@with_store_retry(failure_message="Could not save the post. Please try again later.")
async def _write_admin_post(post_id: str, data: Dict[str, Any]) -> None:
    get_store().set(Collections.POSTS, post_id, data)


async def create_post_admin(
    session: AdminSession,
    title: str,
    content: str,
    category: str = "general",
    tags: Optional[List[str]] = None,
) -> Post:
    """Create a post authored by the administrator.

    Raises:
        ValidationError: If title or content empty, or category unknown
    """
    require_admin(session)
    title = require_text(title, "Title")
    content = require_text(content, "Content")
    await require_category(category)

    now = utc_now()
    data = {
        "title": title,
        "content": content,
        "category": category,
        "tags": normalize_tags(tags),
        "author": {"name": ADMIN_AUTHOR_NAME},
        "authorId": session.id,
        "createdAt": now,
        "updatedAt": now,
        "commentCount": 0,
        "viewCount": 0,
    }
    post_id = get_store().new_id(Collections.POSTS)
    await _write_admin_post(post_id, data)

    logger.info("post_admin_created", post_id=post_id, by=session.id)
    return dict_to_post({**data, "id": post_id})
