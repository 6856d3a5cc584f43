"""Administrator services: session, categories, moderation, backup."""

from .auth import (
    AdminSession,
    admin_login,
    refresh_session,
    require_admin,
    encode_session_token,
    decode_session_token,
)
from .categories import (
    CategoryDeleteResult,
    fetch_categories_admin,
    add_category,
    update_category,
    delete_category,
    reorder_categories,
)
from .posts import (
    AdminPostPage,
    AdminPostDetail,
    list_posts_admin,
    get_post_detail_admin,
    update_post_admin,
    delete_post_admin,
    bulk_delete_posts_admin,
    fetch_post_stats_admin,
    create_post_admin,
)
from .backup import (
    RestoreResult,
    backup_data,
    backup_json,
    restore_data,
    clear_collection,
)

__all__ = [
    # Auth
    "AdminSession",
    "admin_login",
    "refresh_session",
    "require_admin",
    "encode_session_token",
    "decode_session_token",

    # Categories
    "CategoryDeleteResult",
    "fetch_categories_admin",
    "add_category",
    "update_category",
    "delete_category",
    "reorder_categories",

    # Posts
    "AdminPostPage",
    "AdminPostDetail",
    "list_posts_admin",
    "get_post_detail_admin",
    "update_post_admin",
    "delete_post_admin",
    "bulk_delete_posts_admin",
    "fetch_post_stats_admin",
    "create_post_admin",

    # Backup
    "RestoreResult",
    "backup_data",
    "backup_json",
    "restore_data",
    "clear_collection",
]
