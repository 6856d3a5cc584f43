"""Admin API endpoints.

Protected endpoints for categories, moderation, backup and board settings.
Requires X-Admin-Token header (obtained from POST /admin/login).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_admin_session
from board.services import admin as admin_service
from board.services.admin import AdminSession
from board.services.admin.posts import DEFAULT_PAGE_SIZE
from board.services.firebase import update_board_options

router = APIRouter(prefix="/admin", tags=["admin"])


class LoginBody(BaseModel):
    id: str
    password: str


class CategoryCreate(BaseModel):
    name: str
    icon: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: str
    icon: Optional[str] = None


class CategoryOrder(BaseModel):
    ids: List[str]


class AdminPostCreate(BaseModel):
    title: str
    content: str
    category: str = "general"
    tags: List[str] = []


class AdminPostUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    reason: Optional[str] = None


class BulkDelete(BaseModel):
    ids: List[str]


class RestoreBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    backup: Dict[str, Any]
    collections: Optional[List[str]] = None
    overwrite: bool = False
    delete_before_restore: bool = Field(False, alias="deleteBeforeRestore")


class BoardOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow_anonymous_posting: Optional[bool] = Field(None, alias="allowAnonymousPosting")
    allow_comments: Optional[bool] = Field(None, alias="allowComments")


def _session_response(session: AdminSession) -> dict:
    return {"token": admin_service.encode_session_token(session), "session": session.to_dict()}


# ==================== Session ====================

@router.post("/login")
async def login_endpoint(body: LoginBody):
    """Exchange admin credentials for a signed session token."""
    session = admin_service.admin_login(body.id, body.password)
    return _session_response(session)


@router.post("/refresh")
async def refresh_endpoint(session: AdminSession = Depends(get_admin_session)):
    """Issue a token with a renewed lifetime."""
    return _session_response(admin_service.refresh_session(session))


# ==================== Categories ====================

@router.get("/categories")
async def list_categories_endpoint(session: AdminSession = Depends(get_admin_session)):
    categories = await admin_service.fetch_categories_admin(session)
    return {"categories": [c.to_dict() for c in categories]}


@router.post("/categories", status_code=201)
async def add_category_endpoint(body: CategoryCreate, session: AdminSession = Depends(get_admin_session)):
    category = await admin_service.add_category(session, body.name, icon=body.icon)
    return category.to_dict()


@router.put("/categories/order")
async def reorder_categories_endpoint(body: CategoryOrder, session: AdminSession = Depends(get_admin_session)):
    categories = await admin_service.reorder_categories(session, body.ids)
    return {"categories": [c.to_dict() for c in categories]}


@router.patch("/categories/{category_id}")
async def update_category_endpoint(
    category_id: str,
    body: CategoryUpdate,
    session: AdminSession = Depends(get_admin_session),
):
    category = await admin_service.update_category(session, category_id, body.name, icon=body.icon)
    return category.to_dict()


@router.delete("/categories/{category_id}")
async def delete_category_endpoint(category_id: str, session: AdminSession = Depends(get_admin_session)):
    result = await admin_service.delete_category(session, category_id)
    return result.to_dict()


# ==================== Posts ====================

@router.get("/posts")
async def list_posts_endpoint(
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    start_after: Optional[str] = None,
    sort_field: str = "createdAt",
    sort_order: str = "desc",
    category: Optional[str] = None,
    tag: Optional[str] = None,
    author_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    session: AdminSession = Depends(get_admin_session),
):
    """Paged post list with filters and search."""
    page = await admin_service.list_posts_admin(
        session,
        page_size=page_size,
        start_after=start_after,
        sort_field=sort_field,
        sort_order=sort_order,
        category=category,
        tag=tag,
        author_id=author_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return page.to_dict()


@router.get("/posts/stats")
async def post_stats_endpoint(session: AdminSession = Depends(get_admin_session)):
    return await admin_service.fetch_post_stats_admin(session)


@router.post("/posts", status_code=201)
async def create_post_endpoint(body: AdminPostCreate, session: AdminSession = Depends(get_admin_session)):
    post = await admin_service.create_post_admin(session, body.title, body.content, body.category, body.tags)
    return post.to_dict()


@router.post("/posts/bulk-delete")
async def bulk_delete_endpoint(body: BulkDelete, session: AdminSession = Depends(get_admin_session)):
    return await admin_service.bulk_delete_posts_admin(session, body.ids)


@router.get("/posts/{post_id}")
async def post_detail_endpoint(post_id: str, session: AdminSession = Depends(get_admin_session)):
    detail = await admin_service.get_post_detail_admin(session, post_id)
    return detail.to_dict()


@router.patch("/posts/{post_id}")
async def update_post_endpoint(
    post_id: str,
    body: AdminPostUpdate,
    session: AdminSession = Depends(get_admin_session),
):
    updates = body.model_dump(exclude_unset=True)
    reason = updates.pop("reason", None)
    post = await admin_service.update_post_admin(session, post_id, updates, reason=reason)
    return post.to_dict()


@router.delete("/posts/{post_id}")
async def delete_post_endpoint(post_id: str, session: AdminSession = Depends(get_admin_session)):
    removed = await admin_service.delete_post_admin(session, post_id)
    return {"deleted": post_id, "removedComments": removed["comments"], "removedBookmarks": removed["bookmarks"]}


# ==================== Backup ====================

@router.get("/backup")
async def backup_endpoint(
    collections: Optional[str] = None,
    include_users: bool = False,
    session: AdminSession = Depends(get_admin_session),
):
    """Backup as JSON; collections is a comma-separated list."""
    names = [c.strip() for c in collections.split(",") if c.strip()] if collections else None
    return await admin_service.backup_data(session, collections=names, include_users=include_users)


@router.post("/restore")
async def restore_endpoint(body: RestoreBody, session: AdminSession = Depends(get_admin_session)):
    result = await admin_service.restore_data(
        session,
        body.backup,
        collections=body.collections,
        overwrite=body.overwrite,
        delete_before_restore=body.delete_before_restore,
    )
    return result.to_dict()


# ==================== Settings ====================

@router.patch("/settings")
async def board_options_endpoint(body: BoardOptions, session: AdminSession = Depends(get_admin_session)):
    settings = await update_board_options(
        session,
        allow_anonymous_posting=body.allow_anonymous_posting,
        allow_comments=body.allow_comments,
    )
    return {
        "allowAnonymousPosting": settings.allow_anonymous_posting,
        "allowComments": settings.allow_comments,
    }
