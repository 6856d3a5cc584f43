"""Firebase Firestore services for the bulletin board.

Schema:
- posts/{id}: title, content, category, author, authorId, tags, counters
- comments/{id}: postId, content, author, authorId
- bookmarks/{userId}_{postId}: userId, postId
- settings/global-settings: categories array + board flags

This package re-exports the repository functions from domain modules.
"""

# Client utilities
from ._client import get_db, get_store, Collections, GLOBAL_SETTINGS_ID
from .store import DocumentStore, StoreTransaction, Where, utc_now

# Settings
from .board_settings import (
    BoardSettings,
    Category,
    DEFAULT_CATEGORIES,
    slugify,
    fetch_board_settings,
    fetch_categories,
    get_category,
    update_board_options,
    ensure_can_post,
    ensure_can_comment,
)

# Posts
from .posts import (
    Post,
    list_posts,
    list_posts_by_category,
    list_posts_by_tag,
    list_posts_by_date_range,
    get_post,
    create_post,
    update_post,
    delete_post,
    move_post,
    increment_view_count,
)

# Comments
from .comments import (
    Comment,
    list_comments,
    create_comment,
    update_comment,
    delete_comment,
)

# Bookmarks
from .bookmarks import (
    Bookmark,
    bookmark_id,
    is_bookmarked,
    add_bookmark,
    remove_bookmark,
    list_bookmarks,
    list_bookmarked_posts,
)

# Seed
from .seed import init_settings, add_sample_posts, init_firestore

__all__ = [
    "get_db",
    "get_store",
    "Collections",
    "GLOBAL_SETTINGS_ID",
    "DocumentStore",
    "StoreTransaction",
    "Where",
    "utc_now",
    "BoardSettings",
    "Category",
    "DEFAULT_CATEGORIES",
    "slugify",
    "fetch_board_settings",
    "fetch_categories",
    "get_category",
    "update_board_options",
    "ensure_can_post",
    "ensure_can_comment",
    "Post",
    "list_posts",
    "list_posts_by_category",
    "list_posts_by_tag",
    "list_posts_by_date_range",
    "get_post",
    "create_post",
    "update_post",
    "delete_post",
    "move_post",
    "increment_view_count",
    "Comment",
    "list_comments",
    "create_comment",
    "update_comment",
    "delete_comment",
    "Bookmark",
    "bookmark_id",
    "is_bookmarked",
    "add_bookmark",
    "remove_bookmark",
    "list_bookmarks",
    "list_bookmarked_posts",
    "init_settings",
    "add_sample_posts",
    "init_firestore",
]
