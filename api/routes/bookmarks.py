"""Bookmark endpoints for the signed-in user."""
from fastapi import APIRouter, Depends

from api.dependencies import get_current_user
from board.core.identity import BoardUser
from board.services.firebase import bookmarks as bookmark_service

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("")
async def list_bookmarks_endpoint(user: BoardUser = Depends(get_current_user)):
    """Bookmarked posts; posts that fail to load are left out."""
    posts = await bookmark_service.list_bookmarked_posts(user.uid)
    return {"posts": [p.to_dict() for p in posts], "count": len(posts)}


@router.get("/{post_id}")
async def is_bookmarked_endpoint(post_id: str, user: BoardUser = Depends(get_current_user)):
    return {"postId": post_id, "bookmarked": await bookmark_service.is_bookmarked(user.uid, post_id)}


@router.put("/{post_id}", status_code=201)
async def add_bookmark_endpoint(post_id: str, user: BoardUser = Depends(get_current_user)):
    bookmark = await bookmark_service.add_bookmark(user, post_id)
    return bookmark.to_dict()


@router.delete("/{post_id}")
async def remove_bookmark_endpoint(post_id: str, user: BoardUser = Depends(get_current_user)):
    await bookmark_service.remove_bookmark(user.uid, post_id)
    return {"postId": post_id, "bookmarked": False}
