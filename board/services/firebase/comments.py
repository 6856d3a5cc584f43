"""Comment CRUD with transactional commentCount maintenance.

Creating or deleting a comment adjusts the parent post's commentCount in the
same transaction, so the counter always equals the number of comments that
reference the post.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from board.core.errors import NotFoundError, ValidationError
from board.core.identity import BoardUser, require_author
from board.utils.logging import get_logger
from ._client import get_store, Collections
from ._retry import with_store_retry
from .board_settings import ensure_can_comment
from .store import Where, utc_now

logger = get_logger()


@dataclass
class Comment:
    """Comment on a post."""
    id: str
    post_id: str
    content: str
    author: Dict[str, Any] = field(default_factory=dict)
    author_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "postId": self.post_id,
            "content": self.content,
            "author": self.author,
            "authorId": self.author_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def _dict_to_comment(data: Dict[str, Any]) -> Comment:
    return Comment(
        id=data["id"],
        post_id=data.get("postId", ""),
        content=data.get("content", ""),
        author=data.get("author") or {},
        author_id=data.get("authorId", ""),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
    )


def _require_content(content: Optional[str]) -> str:
    if content is None or not content.strip():
        raise ValidationError("Comment cannot be empty.")
    return content.strip()


@with_store_retry(failure_message="Could not load comments. Please try again later.")
async def list_comments(post_id: str) -> List[Comment]:
    """List comments of a post, oldest first.

    Raises:
        ConfigurationError: If the composite index (postId, createdAt) is missing
    """
    docs = get_store().query(
        Collections.COMMENTS,
        where=[Where("postId", "==", post_id)],
        order_by="createdAt",
    )
    return [_dict_to_comment(d) for d in docs]


@with_store_retry(failure_message="Could not add the comment. Please try again later.")
async def _insert_comment(comment_id: str, post_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    def apply(txn):
        post = txn.get(Collections.POSTS, post_id)
        if post is None:
            raise NotFoundError("Post not found.")
        existing = txn.get(Collections.COMMENTS, comment_id)
        if existing is not None:
            # Earlier attempt committed before its response was lost
            return existing

        txn.set(Collections.COMMENTS, comment_id, data)
        txn.update(Collections.POSTS, post_id, {
            "commentCount": max(0, post.get("commentCount", 0)) + 1,
            "updatedAt": data["createdAt"],
        })
        return {**data, "id": comment_id}

    return get_store().run_transaction(apply)


async def create_comment(user: BoardUser, post_id: str, content: str) -> Comment:
    """Add a comment and increment the post's commentCount atomically.

    Raises:
        ValidationError: If content empty
        AuthorizationError: If user is a guest or comments are disabled
        NotFoundError: If post missing
    """
    content = _require_content(content)
    await ensure_can_comment(user)

    now = utc_now()
    data = {
        "postId": post_id,
        "content": content,
        "author": user.author(),
        "authorId": user.uid,
        "createdAt": now,
        "updatedAt": now,
    }
    comment_id = get_store().new_id(Collections.COMMENTS)
    comment = _dict_to_comment(await _insert_comment(comment_id, post_id, data))

    logger.info("comment_created", comment_id=comment.id, post_id=post_id, author_id=user.uid)
    return comment


@with_store_retry(failure_message="Could not update the comment. Please try again later.")
async def update_comment(comment_id: str, content: str, caller_uid: str) -> Comment:
    """Edit comment content (author only).

    Raises:
        ValidationError: If content empty
        NotFoundError: If comment missing
        AuthorizationError: If caller is not the author
    """
    content = _require_content(content)

    def apply(txn):
        data = txn.get(Collections.COMMENTS, comment_id)
        if data is None:
            raise NotFoundError("Comment not found.")
        require_author(data.get("authorId"), caller_uid, "edit", resource="comment")
        changes = {"content": content, "updatedAt": utc_now()}
        txn.update(Collections.COMMENTS, comment_id, changes)
        return {**data, **changes}

    comment = _dict_to_comment(get_store().run_transaction(apply))
    logger.info("comment_updated", comment_id=comment_id)
    return comment


@with_store_retry(failure_message="Could not delete the comment. Please try again later.")
async def delete_comment(comment_id: str, post_id: str, caller_uid: str) -> None:
    """Delete a comment and decrement the post's commentCount atomically (author only).

    The counter never drops below zero. A comment whose post is already gone
    is still deleted.

    Raises:
        NotFoundError: If comment missing
        ValidationError: If comment belongs to another post
        AuthorizationError: If caller is not the author
    """
    def apply(txn):
        comment = txn.get(Collections.COMMENTS, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found.")
        if comment.get("postId") != post_id:
            raise ValidationError("Comment does not belong to this post.")
        require_author(comment.get("authorId"), caller_uid, "delete", resource="comment")
        post = txn.get(Collections.POSTS, post_id)

        txn.delete(Collections.COMMENTS, comment_id)
        if post is not None:
            txn.update(Collections.POSTS, post_id, {
                "commentCount": max(0, post.get("commentCount", 0) - 1),
                "updatedAt": utc_now(),
            })

    get_store().run_transaction(apply)
    logger.info("comment_deleted", comment_id=comment_id, post_id=post_id, by=caller_uid)
