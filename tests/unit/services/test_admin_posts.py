"""Tests for administrator post moderation."""
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from board.core.errors import AuthorizationError, ErrorKind, NotFoundError, StoreError, ValidationError
from board.services.admin.posts import (
    ADMIN_AUTHOR_NAME,
    DEFAULT_EDIT_REASON,
    bulk_delete_posts_admin,
    create_post_admin,
    delete_post_admin,
    fetch_post_stats_admin,
    get_post_detail_admin,
    list_posts_admin,
    update_post_admin,
)


def day(n, month=12):
    return datetime(2025, month, n, tzinfo=timezone.utc)


@pytest.fixture
def five_posts(make_post):
    for n in range(1, 6):
        make_post(f"p{n}", created_at=day(n))


class TestListPostsAdmin:
    """Test paged admin listing."""

    @pytest.mark.asyncio
    async def test_cursor_pagination(self, store, admin_session, five_posts):
        first = await list_posts_admin(admin_session, page_size=2)
        second = await list_posts_admin(admin_session, page_size=2, start_after=first.last_id)
        third = await list_posts_admin(admin_session, page_size=2, start_after=second.last_id)

        assert [p.id for p in first.posts] == ["p5", "p4"]
        assert first.has_more
        assert [p.id for p in second.posts] == ["p3", "p2"]
        assert [p.id for p in third.posts] == ["p1"]
        assert not third.has_more

    @pytest.mark.asyncio
    async def test_deleted_cursor_is_not_found(self, store, admin_session, five_posts):
        first = await list_posts_admin(admin_session, page_size=2)
        store.delete("posts", first.last_id)

        with pytest.raises(NotFoundError):
            await list_posts_admin(admin_session, page_size=2, start_after=first.last_id)

    @pytest.mark.asyncio
    async def test_ascending_sort(self, store, admin_session, five_posts):
        page = await list_posts_admin(admin_session, page_size=3, sort_order="asc")

        assert [p.id for p in page.posts] == ["p1", "p2", "p3"]

    @pytest.mark.asyncio
    async def test_filters(self, store, admin_session, make_post):
        make_post("a", category="tech", tags=["react"], author_id="u1")
        make_post("b", category="tech", tags=["css"], author_id="u2")
        make_post("c", category="general", tags=["react"], author_id="u1")

        by_category = await list_posts_admin(admin_session, category="tech")
        by_tag = await list_posts_admin(admin_session, tag="react", author_id="u1")

        assert sorted(p.id for p in by_category.posts) == ["a", "b"]
        assert sorted(p.id for p in by_tag.posts) == ["a", "c"]

    @pytest.mark.asyncio
    async def test_date_range(self, store, admin_session, five_posts):
        page = await list_posts_admin(admin_session, start_date=day(2), end_date=day(4))

        assert [p.id for p in page.posts] == ["p4", "p3", "p2"]

    @pytest.mark.asyncio
    async def test_date_range_requires_created_at_sort(self, store, admin_session):
        with pytest.raises(ValidationError):
            await list_posts_admin(admin_session, sort_field="title", start_date=day(1), end_date=day(2))

    @pytest.mark.asyncio
    async def test_search_case_insensitive(self, store, admin_session, make_post):
        make_post("a", title="React Hooks")
        make_post("b", content="all about REACT")
        make_post("c", author={"name": "Reactor"})
        make_post("d", title="Other")

        page = await list_posts_admin(admin_session, search="react")

        assert sorted(p.id for p in page.posts) == ["a", "b", "c"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"sort_field": "authorId"},
        {"sort_order": "random"},
        {"page_size": 0},
    ])
    async def test_invalid_arguments(self, store, admin_session, kwargs):
        with pytest.raises(ValidationError):
            await list_posts_admin(admin_session, **kwargs)

    @pytest.mark.asyncio
    async def test_requires_admin(self, store):
        with pytest.raises(AuthorizationError):
            await list_posts_admin(None)


class TestPostDetailAdmin:
    """Test admin post detail."""

    @pytest.mark.asyncio
    async def test_count_from_comments(self, store, admin_session, make_post):
        make_post("p1", commentCount=5)
        store.seed("comments", "c1", {"postId": "p1", "content": "x", "createdAt": day(2)})
        store.seed("comments", "c2", {"postId": "p1", "content": "y", "createdAt": day(3)})

        with patch("board.services.admin.posts.logger") as logger:
            detail = await get_post_detail_admin(admin_session, "p1")

        assert detail.comment_count == 2
        assert detail.to_dict()["commentCount"] == 2
        assert [c["id"] for c in detail.to_dict()["comments"]] == ["c1", "c2"]
        logger.warning.assert_called_once()
        assert logger.warning.call_args.args[0] == "comment_count_drift"

    @pytest.mark.asyncio
    async def test_missing(self, store, admin_session):
        with pytest.raises(NotFoundError):
            await get_post_detail_admin(admin_session, "ghost")


class TestUpdatePostAdmin:
    """Test admin edits with edit history."""

    @pytest.mark.asyncio
    async def test_edit_history_appended(self, settings_doc, admin_session, make_post):
        make_post("p1", author_id="someone-else")

        await update_post_admin(admin_session, "p1", {"title": "Moderated"}, reason="Spam link")
        post = await update_post_admin(admin_session, "p1", {"category": "tech"})

        history = settings_doc.doc("posts", "p1")["editHistory"]
        assert [h["reason"] for h in history] == ["Spam link", DEFAULT_EDIT_REASON]
        assert all(h["editedBy"] == "admin" for h in history)
        assert post.title == "Moderated"
        assert post.category == "tech"
        assert len(post.edit_history) == 2

    @pytest.mark.asyncio
    async def test_unknown_category(self, settings_doc, admin_session, make_post):
        make_post("p1")

        with pytest.raises(ValidationError):
            await update_post_admin(admin_session, "p1", {"category": "sports"})

    @pytest.mark.asyncio
    async def test_missing(self, settings_doc, admin_session):
        with pytest.raises(NotFoundError):
            await update_post_admin(admin_session, "ghost", {"title": "x"})


class TestDeletePostAdmin:
    """Test admin deletes."""

    @pytest.mark.asyncio
    async def test_delete_any_post_cascades(self, store, admin_session, make_post):
        make_post("p1", author_id="someone-else")
        store.seed("comments", "c1", {"postId": "p1"})
        store.seed("bookmarks", "u_p1", {"userId": "u", "postId": "p1"})

        removed = await delete_post_admin(admin_session, "p1")

        assert removed == {"comments": 1, "bookmarks": 1}
        assert store.docs("posts") == {}

    @pytest.mark.asyncio
    async def test_missing(self, store, admin_session):
        with pytest.raises(NotFoundError):
            await delete_post_admin(admin_session, "ghost")

    @pytest.mark.asyncio
    async def test_bulk_delete(self, store, admin_session, make_post):
        make_post("p1")
        make_post("p2")
        make_post("p3")

        result = await bulk_delete_posts_admin(admin_session, ["p1", "ghost", "p2", "p1"])

        assert result == {"deletedCount": 2, "missing": ["ghost"], "failed": []}
        assert list(store.docs("posts")) == ["p3"]

    @pytest.mark.asyncio
    async def test_bulk_delete_post_with_many_comments(self, store, admin_session, make_post):
        make_post("p1")
        make_post("p2")
        for n in range(520):
            store.seed("comments", f"c{n:04d}", {"postId": "p1"})

        result = await bulk_delete_posts_admin(admin_session, ["p1", "p2"])

        assert result == {"deletedCount": 2, "missing": [], "failed": []}
        assert store.docs("comments") == {}

    @pytest.mark.asyncio
    async def test_bulk_delete_reports_failures(self, store, admin_session, make_post):
        make_post("p1")
        make_post("p2")
        store.fail_next(StoreError("rules", kind=ErrorKind.PERMISSION_DENIED), operation="transaction")

        result = await bulk_delete_posts_admin(admin_session, ["p1", "p2"])

        assert result == {"deletedCount": 1, "missing": [], "failed": ["p1"]}
        assert list(store.docs("posts")) == ["p1"]


class TestPostStatsAdmin:
    """Test aggregate statistics."""

    @pytest.mark.asyncio
    async def test_counts(self, store, admin_session, make_post):
        make_post("a", category="tech", tags=["react", "css"], author_id="u1", created_at=day(1, 11))
        make_post("b", category="tech", tags=["css"], author_id="u2", created_at=day(2))
        make_post("c", category="general", tags=[], author_id="u1", created_at=day(3))

        stats = await fetch_post_stats_admin(admin_session)

        assert stats["totalPosts"] == 3
        assert stats["categoryCounts"] == {"tech": 2, "general": 1}
        assert stats["tagCounts"] == {"react": 1, "css": 2}
        assert stats["authorCounts"] == {"u1": 2, "u2": 1}
        assert stats["monthlyCounts"] == {"2025-11": 1, "2025-12": 2}


class TestCreatePostAdmin:
    """Test admin-authored posts."""

    @pytest.mark.asyncio
    async def test_create(self, settings_doc, admin_session):
        post = await create_post_admin(admin_session, "Notice", "Maintenance tonight", tags=["notice"])

        stored = settings_doc.doc("posts", post.id)
        assert stored["author"] == {"name": ADMIN_AUTHOR_NAME}
        assert stored["category"] == "general"
        assert stored["commentCount"] == 0

    @pytest.mark.asyncio
    async def test_unknown_category(self, settings_doc, admin_session):
        with pytest.raises(ValidationError):
            await create_post_admin(admin_session, "Notice", "Body", category="sports")
