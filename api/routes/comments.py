"""Comment endpoints."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_current_user
from board.core.identity import BoardUser
from board.services.firebase import comments as comment_service

router = APIRouter(tags=["comments"])


class CommentBody(BaseModel):
    content: str


@router.get("/posts/{post_id}/comments")
async def list_comments_endpoint(post_id: str):
    comments = await comment_service.list_comments(post_id)
    return {"comments": [c.to_dict() for c in comments], "count": len(comments)}


@router.post("/posts/{post_id}/comments", status_code=201)
async def create_comment_endpoint(post_id: str, body: CommentBody, user: BoardUser = Depends(get_current_user)):
    comment = await comment_service.create_comment(user, post_id, body.content)
    return comment.to_dict()


@router.patch("/comments/{comment_id}")
async def update_comment_endpoint(comment_id: str, body: CommentBody, user: BoardUser = Depends(get_current_user)):
    comment = await comment_service.update_comment(comment_id, body.content, user.uid)
    return comment.to_dict()


@router.delete("/posts/{post_id}/comments/{comment_id}")
async def delete_comment_endpoint(post_id: str, comment_id: str, user: BoardUser = Depends(get_current_user)):
    await comment_service.delete_comment(comment_id, post_id, user.uid)
    return {"deleted": comment_id}
