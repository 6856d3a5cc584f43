"""Tests for post CRUD in board/services/firebase/posts.py."""
import pytest
from datetime import datetime, timedelta, timezone

from board.core.errors import (
    AuthorizationError,
    ConfigurationError,
    ErrorKind,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
)
from board.services.firebase.posts import (
    Post,
    create_post,
    delete_post,
    get_post,
    increment_view_count,
    list_posts,
    list_posts_by_category,
    list_posts_by_date_range,
    list_posts_by_tag,
    move_post,
    normalize_tags,
    update_post,
)


def day(n):
    return datetime(2025, 12, n, tzinfo=timezone.utc)


class TestCreatePost:
    """Test post creation."""

    @pytest.mark.asyncio
    async def test_create_sets_counters_and_author(self, settings_doc, user):
        post = await create_post(user, "  Hello ", "World", "tech", tags=[" python", "python", ""])

        stored = settings_doc.doc("posts", post.id)
        assert stored["title"] == "Hello"
        assert stored["authorId"] == "user-1"
        assert stored["author"] == {"name": "Alice", "photoURL": "https://example.com/a.png"}
        assert stored["tags"] == ["python"]
        assert stored["commentCount"] == 0
        assert stored["viewCount"] == 0
        assert stored["createdAt"] == stored["updatedAt"]
        assert post.is_new

    @pytest.mark.asyncio
    async def test_guest_posts_when_allowed(self, settings_doc, guest):
        post = await create_post(guest, "Hi", "From a guest", "general")

        assert settings_doc.doc("posts", post.id)["author"] == {"name": "Guest"}

    @pytest.mark.asyncio
    async def test_guest_rejected_when_anonymous_posting_off(self, settings_doc, guest):
        settings_doc.update("settings", "global-settings", {"allowAnonymousPosting": False})

        with pytest.raises(AuthorizationError):
            await create_post(guest, "Hi", "Blocked", "general")

        assert settings_doc.docs("posts") == {}

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, settings_doc, user):
        with pytest.raises(ValidationError, match="does not exist"):
            await create_post(user, "Hi", "Body", "sports")

        assert settings_doc.docs("posts") == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,content", [("", "body"), ("   ", "body"), ("title", None)])
    async def test_empty_fields_rejected(self, settings_doc, user, title, content):
        with pytest.raises(ValidationError):
            await create_post(user, title, content, "general")

    @pytest.mark.asyncio
    async def test_create_bootstraps_missing_settings(self, store, user):
        post = await create_post(user, "First", "Post", "general")

        assert store.doc("settings", "global-settings")["categories"][0]["id"] == "general"
        assert store.doc("posts", post.id) is not None

    @pytest.mark.asyncio
    async def test_transient_write_retried_once_stored(self, settings_doc, user):
        settings_doc.fail_next(StoreError("unavailable", kind=ErrorKind.TRANSIENT), operation="set")

        post = await create_post(user, "Retry", "Body", "general")

        assert list(settings_doc.docs("posts")) == [post.id]


class TestReadPosts:
    """Test post queries."""

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store, make_post):
        make_post("a", created_at=day(1))
        make_post("b", created_at=day(3))
        make_post("c", created_at=day(2))

        posts = await list_posts()

        assert [p.id for p in posts] == ["b", "c", "a"]

    @pytest.mark.asyncio
    async def test_list_limit(self, store, make_post):
        for n in range(1, 6):
            make_post(f"p{n}", created_at=day(n))

        assert [p.id for p in await list_posts(limit=2)] == ["p5", "p4"]

    @pytest.mark.asyncio
    async def test_by_category(self, store, make_post):
        make_post("a", category="tech")
        make_post("b", category="general")

        assert [p.id for p in await list_posts_by_category("tech")] == ["a"]
        assert len(await list_posts_by_category("all")) == 2
        assert len(await list_posts_by_category(None)) == 2

    @pytest.mark.asyncio
    async def test_by_tag(self, store, make_post):
        make_post("a", tags=["react", "css"])
        make_post("b", tags=["css"])
        make_post("c", tags=[])

        assert sorted(p.id for p in await list_posts_by_tag("css")) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_by_date_range_inclusive(self, store, make_post):
        make_post("a", created_at=day(1))
        make_post("b", created_at=day(5))
        make_post("c", created_at=day(10))

        posts = await list_posts_by_date_range(day(5), day(10))

        assert [p.id for p in posts] == ["c", "b"]

    @pytest.mark.asyncio
    async def test_date_range_reversed_rejected(self, store):
        with pytest.raises(ValidationError):
            await list_posts_by_date_range(day(10), day(1))

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await get_post("nope") is None

    @pytest.mark.asyncio
    async def test_missing_index_surfaces_immediately(self, store):
        store.fail_next(
            ConfigurationError("index required", index_url="https://console.firebase.google.com/idx"),
            operation="query",
            times=5,
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await list_posts_by_category("tech")

        assert exc_info.value.index_url == "https://console.firebase.google.com/idx"
        assert store.calls.count("query") == 1

    @pytest.mark.asyncio
    async def test_persistent_outage_after_three_attempts(self, store):
        store.fail_next(StoreError("deadline", kind=ErrorKind.TRANSIENT), operation="query", times=10)

        with pytest.raises(StoreUnavailableError):
            await list_posts()

        assert store.calls.count("query") == 3


class TestUpdatePost:
    """Test author edits."""

    @pytest.mark.asyncio
    async def test_author_updates_fields(self, settings_doc, make_post):
        make_post("p1")

        post = await update_post("p1", {"title": "New title", "tags": ["a", "a"]}, "user-1")

        stored = settings_doc.doc("posts", "p1")
        assert post.title == "New title"
        assert stored["title"] == "New title"
        assert stored["tags"] == ["a"]
        assert stored["updatedAt"] > stored["createdAt"]

    @pytest.mark.asyncio
    async def test_immutable_fields_stripped(self, settings_doc, make_post):
        original = make_post("p1")

        await update_post("p1", {"id": "other", "createdAt": day(20), "date": "x", "content": "Edited"}, "user-1")

        stored = settings_doc.doc("posts", "p1")
        assert stored["createdAt"] == original["createdAt"]
        assert stored["content"] == "Edited"
        assert "date" not in stored

    @pytest.mark.asyncio
    async def test_only_immutable_fields_rejected(self, settings_doc, make_post):
        make_post("p1")

        with pytest.raises(ValidationError, match="No fields"):
            await update_post("p1", {"createdAt": day(20)}, "user-1")

    @pytest.mark.asyncio
    async def test_full_post_payload_accepted(self, settings_doc, make_post):
        make_post("p1", commentCount=3, viewCount=7)
        stale = day(2)

        await update_post("p1", {
            "id": "x", "title": "New", "createdAt": stale, "updatedAt": stale,
            "commentCount": 99, "comments": 99, "viewCount": 0, "isNew": True,
        }, "user-1")

        stored = settings_doc.doc("posts", "p1")
        assert stored["title"] == "New"
        assert stored["updatedAt"] > stale
        assert stored["commentCount"] == 3
        assert stored["viewCount"] == 7
        assert "isNew" not in stored and "comments" not in stored

    @pytest.mark.asyncio
    async def test_author_fields_not_editable(self, settings_doc, make_post):
        make_post("p1")

        with pytest.raises(ValidationError, match="authorId"):
            await update_post("p1", {"title": "t", "authorId": "user-2"}, "user-1")

    @pytest.mark.asyncio
    async def test_non_author_rejected(self, settings_doc, make_post):
        make_post("p1")

        with pytest.raises(AuthorizationError):
            await update_post("p1", {"title": "Hijack"}, "user-2")

        assert settings_doc.doc("posts", "p1")["title"] == "Post p1"

    @pytest.mark.asyncio
    async def test_missing_post(self, settings_doc):
        with pytest.raises(NotFoundError):
            await update_post("ghost", {"title": "x"}, "user-1")


class TestDeletePost:
    """Test cascading author delete."""

    @pytest.mark.asyncio
    async def test_delete_cascades(self, store, make_post):
        make_post("p1", commentCount=2)
        make_post("p2")
        store.seed("comments", "c1", {"postId": "p1", "authorId": "user-2"})
        store.seed("comments", "c2", {"postId": "p1", "authorId": "user-1"})
        store.seed("comments", "c3", {"postId": "p2", "authorId": "user-1"})
        store.seed("bookmarks", "user-2_p1", {"userId": "user-2", "postId": "p1"})

        removed = await delete_post("p1", "user-1")

        assert removed == {"comments": 2, "bookmarks": 1}
        assert store.doc("posts", "p1") is None
        assert list(store.docs("comments")) == ["c3"]
        assert store.docs("bookmarks") == {}
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_non_author_deletes_nothing(self, store, make_post):
        make_post("p1")
        store.seed("comments", "c1", {"postId": "p1"})

        with pytest.raises(AuthorizationError):
            await delete_post("p1", "user-2")

        assert store.doc("posts", "p1") is not None
        assert store.doc("comments", "c1") is not None

    @pytest.mark.asyncio
    @pytest.mark.asyncio
    async def test_oversized_cascade_batches_dependents(self, store, make_post):
        make_post("p1", commentCount=600)
        for n in range(600):
            store.seed("comments", f"c{n:04d}", {"postId": "p1"})
        store.seed("bookmarks", "user-2_p1", {"userId": "user-2", "postId": "p1"})

        removed = await delete_post("p1", "user-1")

        assert removed == {"comments": 600, "bookmarks": 1}
        assert store.doc("posts", "p1") is None
        assert store.docs("comments") == {}
        assert store.docs("bookmarks") == {}
        assert store.batch_sizes == [500, 100, 1]

    @pytest.mark.asyncio
    async def test_oversized_cascade_checks_author_first(self, store, make_post):
        make_post("p1")
        for n in range(600):
            store.seed("comments", f"c{n:04d}", {"postId": "p1"})

        with pytest.raises(AuthorizationError):
            await delete_post("p1", "user-2")

        assert len(store.docs("comments")) == 600
        assert store.batch_sizes == []

    @pytest.mark.asyncio
    async def test_missing_post(self, store):
        with pytest.raises(NotFoundError):
            await delete_post("ghost", "user-1")


class TestMovePost:
    """Test category moves."""

    @pytest.mark.asyncio
    async def test_move(self, settings_doc, make_post):
        make_post("p1", category="general")

        post = await move_post("p1", "tech", "user-1")

        assert post.category == "tech"
        assert settings_doc.doc("posts", "p1")["category"] == "tech"

    @pytest.mark.asyncio
    async def test_same_category_rejected(self, settings_doc, make_post):
        make_post("p1", category="tech")

        with pytest.raises(ValidationError, match="already"):
            await move_post("p1", "tech", "user-1")

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, settings_doc, make_post):
        make_post("p1")

        with pytest.raises(ValidationError):
            await move_post("p1", "sports", "user-1")

        assert settings_doc.doc("posts", "p1")["category"] == "general"

    @pytest.mark.asyncio
    async def test_non_author_rejected(self, settings_doc, make_post):
        make_post("p1")

        with pytest.raises(AuthorizationError):
            await move_post("p1", "tech", "user-2")


class TestViewCount:
    """Test atomic view counter."""

    @pytest.mark.asyncio
    async def test_increment(self, store, make_post):
        make_post("p1", viewCount=4)

        await increment_view_count("p1")
        await increment_view_count("p1")

        assert store.doc("posts", "p1")["viewCount"] == 6

    @pytest.mark.asyncio
    async def test_missing_post(self, store):
        with pytest.raises(NotFoundError):
            await increment_view_count("ghost")


class TestPostModel:
    """Test Post helpers."""

    def test_is_new_window(self):
        now = datetime.now(timezone.utc)
        assert Post(id="a", title="t", content="c", category="g", created_at=now - timedelta(hours=23)).is_new
        assert not Post(id="b", title="t", content="c", category="g", created_at=now - timedelta(hours=25)).is_new
        assert not Post(id="c", title="t", content="c", category="g").is_new

    def test_to_dict_camel_case(self):
        data = Post(id="a", title="t", content="c", category="g", author_id="u", comment_count=2).to_dict()

        assert data["authorId"] == "u"
        assert data["commentCount"] == 2
        assert "editHistory" not in data

    def test_normalize_tags(self):
        assert normalize_tags([" a", "b", "a ", ""]) == ["a", "b"]
        assert normalize_tags(None) == []
