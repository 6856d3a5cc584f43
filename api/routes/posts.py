"""Post endpoints."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from api.dependencies import get_current_user
from board.core.identity import BoardUser
from board.services.firebase import posts as post_service

router = APIRouter(prefix="/posts", tags=["posts"])


class PostCreate(BaseModel):
    title: str
    content: str
    category: str
    tags: List[str] = []


class PostUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class PostMove(BaseModel):
    category: str


@router.get("")
async def list_posts_endpoint(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    date_field: str = "createdAt",
):
    """List posts, newest first.

    Filters (first match wins): tag, date range (start and end), category.
    """
    if tag:
        posts = await post_service.list_posts_by_tag(tag)
    elif start and end:
        posts = await post_service.list_posts_by_date_range(start, end, date_field)
    else:
        posts = await post_service.list_posts_by_category(category)
    return {"posts": [p.to_dict() for p in posts], "count": len(posts)}


@router.get("/{post_id}")
async def get_post_endpoint(post_id: str):
    post = await post_service.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post.to_dict()


@router.post("", status_code=201)
async def create_post_endpoint(body: PostCreate, user: BoardUser = Depends(get_current_user)):
    post = await post_service.create_post(user, body.title, body.content, body.category, body.tags)
    return post.to_dict()


@router.patch("/{post_id}")
async def update_post_endpoint(post_id: str, body: PostUpdate, user: BoardUser = Depends(get_current_user)):
    post = await post_service.update_post(post_id, body.model_dump(exclude_unset=True), user.uid)
    return post.to_dict()


@router.delete("/{post_id}")
async def delete_post_endpoint(post_id: str, user: BoardUser = Depends(get_current_user)):
    removed = await post_service.delete_post(post_id, user.uid)
    return {"deleted": post_id, "removedComments": removed["comments"], "removedBookmarks": removed["bookmarks"]}


@router.post("/{post_id}/move")
async def move_post_endpoint(post_id: str, body: PostMove, user: BoardUser = Depends(get_current_user)):
    post = await post_service.move_post(post_id, body.category, user.uid)
    return post.to_dict()


@router.post("/{post_id}/view", status_code=204)
async def view_post_endpoint(post_id: str):
    await post_service.increment_view_count(post_id)
