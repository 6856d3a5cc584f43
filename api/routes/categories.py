"""Public category and board settings endpoints."""
from fastapi import APIRouter

from board.services.firebase import fetch_board_settings

router = APIRouter(tags=["categories"])


@router.get("/categories")
async def list_categories_endpoint():
    settings = await fetch_board_settings()
    return {"categories": [c.to_dict() for c in settings.categories]}


@router.get("/settings")
async def board_settings_endpoint():
    settings = await fetch_board_settings()
    return {
        "categories": [c.to_dict() for c in settings.categories],
        "allowAnonymousPosting": settings.allow_anonymous_posting,
        "allowComments": settings.allow_comments,
    }
