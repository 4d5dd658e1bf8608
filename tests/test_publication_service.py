"""
Tests for the post lifecycle: listing, reading, create/update with derived fields,
cascading delete and toggles.
"""
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError, OperationFailure

from fly_thoughts.exceptions import ConflictError, ForbiddenError, NotFoundError, StorageError
from fly_thoughts.models.blog_models import CreatePostRequest, UpdatePostRequest
from fly_thoughts.services.publication_service import MY_POSTS_ORDER, PublicationService
from fly_thoughts.services.query_builder import SORTS, SUMMARY_PROJECTION
from fly_thoughts.services.relationship_toggle import ToggleResult
from tests.conftest import make_cursor


def slug_conflict():
    return DuplicateKeyError("E11000 duplicate key error", 11000, {"keyPattern": {"slug": 1}})


def stored_post(**overrides):
    post = {
        "post_id": "post_1",
        "title": "Hello World",
        "slug": "hello-world",
        "content": "<p>Hello</p>",
        "excerpt": "Hello...",
        "category": "tech",
        "tags": ["python"],
        "author_id": "user_author",
        "likes": [],
        "likes_count": 0,
        "comments": [],
        "views": 5,
        "read_time": 1,
        "status": "draft",
        "featured": False,
        "published_at": None,
    }
    post.update(overrides)
    return post


@pytest.fixture
def service():
    return PublicationService()


# --- Listing ---

@pytest.mark.asyncio
async def test_list_posts_returns_page_and_metadata(service, mock_db):
    posts = mock_db["posts"]
    posts.count_documents.return_value = 23
    cursor = make_cursor([{"post_id": "post_21", "author_id": "user_a"}])
    posts.find.return_value = cursor

    result = await service.list_posts(page=3, limit=10)

    posts.find.assert_called_once_with({"status": "published"}, SUMMARY_PROJECTION)
    posts.count_documents.assert_awaited_once_with({"status": "published"})
    cursor.sort.assert_called_once_with(SORTS["latest"])
    cursor.skip.assert_called_once_with(20)
    cursor.limit.assert_called_once_with(10)
    assert result["pagination"]["pages"] == 3
    assert result["posts"][0]["author"] is None


@pytest.mark.asyncio
async def test_list_posts_applies_filters_and_sort(service, mock_db):
    await service.list_posts(category="Tech", tags="python,web", search="async", sort="popular")

    query = mock_db["posts"].find.call_args.args[0]
    assert query["status"] == "published"
    assert query["category"] == "tech"
    assert query["tags"] == {"$in": ["python", "web"]}
    assert len(query["$or"]) == 3
    mock_db["posts"].find.return_value.sort.assert_called_once_with(SORTS["popular"])


@pytest.mark.asyncio
async def test_list_posts_attaches_author_summaries(service, mock_db):
    mock_db["posts"].find.return_value = make_cursor([{"post_id": "p1", "author_id": "user_a"}])
    mock_db["accounts"].find.return_value = make_cursor(
        [{"account_id": "user_a", "username": "ada", "avatar": "", "bio": ""}]
    )

    result = await service.list_posts()

    assert result["posts"][0]["author"]["username"] == "ada"


@pytest.mark.asyncio
async def test_list_posts_store_failure(service, mock_db):
    mock_db["posts"].count_documents.side_effect = AutoReconnect("down")
    with pytest.raises(StorageError):
        await service.list_posts()


@pytest.mark.asyncio
async def test_featured_posts(service, mock_db):
    await service.get_featured_posts()

    mock_db["posts"].find.assert_called_once_with({"status": "published", "featured": True}, SUMMARY_PROJECTION)
    mock_db["posts"].find.return_value.limit.assert_called_once_with(6)


@pytest.mark.asyncio
async def test_get_post_by_slug_counts_view(service, mock_db):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post(status="published")

    post = await service.get_post_by_slug("hello-world")

    posts.find_one.assert_awaited_once_with({"slug": "hello-world", "status": "published"}, {"_id": 0})
    posts.update_one.assert_awaited_once_with({"post_id": "post_1"}, {"$inc": {"views": 1}})
    assert post["views"] == 6


@pytest.mark.asyncio
async def test_get_post_by_slug_hides_drafts(service, mock_db):
    with pytest.raises(NotFoundError):
        await service.get_post_by_slug("a-draft")
    mock_db["posts"].update_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_view_increment_does_not_fail_read(service, mock_db):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post(status="published")
    posts.update_one.side_effect = AutoReconnect("blip")

    post = await service.get_post_by_slug("hello-world")

    assert post["views"] == 5


@pytest.mark.asyncio
async def test_categories_are_sorted(service, mock_db):
    mock_db["posts"].distinct.return_value = ["travel", "art", "tech"]
    assert await service.get_categories() == ["art", "tech", "travel"]
    mock_db["posts"].distinct.assert_awaited_once_with("category", {"status": "published"})


@pytest.mark.asyncio
async def test_tags_pipeline(service, mock_db):
    mock_db["posts"].aggregate.return_value = make_cursor([{"name": "python", "count": 4}])

    tags = await service.get_tags()

    assert tags == [{"name": "python", "count": 4}]
    pipeline = mock_db["posts"].aggregate.call_args.args[0]
    assert pipeline[0] == {"$match": {"status": "published"}}
    assert {"$limit": 20} in pipeline


@pytest.mark.asyncio
async def test_posts_by_user(service, mock_db):
    mock_db["accounts"].find_one.return_value = {"account_id": "user_a"}

    await service.get_posts_by_user("ada")

    assert mock_db["posts"].find.call_args.args[0] == {"status": "published", "author_id": "user_a"}


@pytest.mark.asyncio
async def test_posts_by_unknown_user(service, mock_db):
    with pytest.raises(NotFoundError):
        await service.get_posts_by_user("nobody")


@pytest.mark.asyncio
async def test_my_posts_include_drafts_sorted_by_update(service, mock_db, author):
    await service.get_my_posts(author, status="draft")

    assert mock_db["posts"].find.call_args.args[0] == {"author_id": "user_author", "status": "draft"}
    mock_db["posts"].find.return_value.sort.assert_called_once_with(MY_POSTS_ORDER)


# --- Create ---

@pytest.mark.asyncio
async def test_create_published_post_derives_fields(service, mock_db, author):
    request = CreatePostRequest(
        title="Hello World",
        content="<p>" + " ".join(["word"] * 450) + "</p>",
        category="Tech",
        tags=["Python"],
        status="published",
    )

    post = await service.create_post(author, request)

    assert post["slug"] == "hello-world"
    assert post["read_time"] == 3
    assert post["excerpt"].endswith("...")
    assert "<p>" not in post["excerpt"]
    assert post["published_at"] is not None
    assert post["author_id"] == "user_author"
    assert post["category"] == "tech"
    assert post["tags"] == ["python"]
    assert post["likes_count"] == 0
    assert "_id" not in post
    mock_db["posts"].insert_one.assert_awaited_once()


@pytest.mark.asyncio
async def test_stored_post_has_full_document_shape(service, mock_db, author):
    request = CreatePostRequest(title="Fish & Chips", content="c", category="R&D", status="published")

    await service.create_post(author, request)

    stored = mock_db["posts"].insert_one.call_args.args[0]
    assert type(stored["status"]) is str
    assert stored["status"] == "published"
    assert stored["slug"] == "fish-chips"
    assert stored["category"] == "r&d"
    assert stored["likes"] == []
    assert stored["comments"] == []
    assert stored["views"] == 0
    assert stored["seo_title"] is None


@pytest.mark.asyncio
async def test_create_draft_has_no_publish_date(service, mock_db, author):
    request = CreatePostRequest(title="Draft", content="body", category="misc")
    post = await service.create_post(author, request)
    assert post["status"] == "draft"
    assert post["published_at"] is None


@pytest.mark.asyncio
async def test_create_keeps_explicit_excerpt(service, mock_db, author):
    request = CreatePostRequest(title="T", content="body", category="misc", excerpt="Custom teaser")
    post = await service.create_post(author, request)
    assert post["excerpt"] == "Custom teaser"


@pytest.mark.asyncio
async def test_create_disambiguates_taken_slug(service, mock_db, author):
    mock_db["posts"].distinct.return_value = ["hello-world", "hello-world-2"]

    post = await service.create_post(author, CreatePostRequest(title="Hello World", content="c", category="x"))

    assert post["slug"] == "hello-world-3"


@pytest.mark.asyncio
async def test_create_retries_lost_slug_race(service, mock_db, author):
    posts = mock_db["posts"]
    posts.distinct.side_effect = [[], ["hello-world"]]
    posts.insert_one.side_effect = [slug_conflict(), None]

    post = await service.create_post(author, CreatePostRequest(title="Hello World", content="c", category="x"))

    assert post["slug"] == "hello-world-2"
    assert posts.insert_one.await_count == 2


@pytest.mark.asyncio
async def test_create_conflict_after_retry_budget(service, mock_db, author):
    mock_db["posts"].insert_one.side_effect = slug_conflict()

    with pytest.raises(ConflictError) as exc:
        await service.create_post(author, CreatePostRequest(title="Hello", content="c", category="x"))

    assert exc.value.field == "slug"
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_only_admin_can_create_featured(service, mock_db, author, admin):
    request = CreatePostRequest(title="Star", content="c", category="x", featured=True)
    with pytest.raises(ForbiddenError):
        await service.create_post(author, request)

    post = await service.create_post(admin, request)
    assert post["featured"] is True


# --- Update ---

@pytest.mark.asyncio
async def test_update_missing_post(service, mock_db, author):
    with pytest.raises(NotFoundError):
        await service.update_post("post_missing", author, UpdatePostRequest(content="x"))


@pytest.mark.asyncio
async def test_update_requires_author_or_admin(service, mock_db, stranger, admin):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    with pytest.raises(ForbiddenError):
        await service.update_post("post_1", stranger, UpdatePostRequest(content="x"))

    posts.find_one_and_update.return_value = stored_post(content="x")
    await service.update_post("post_1", admin, UpdatePostRequest(content="x"))
    posts.find_one_and_update.assert_awaited_once()


@pytest.mark.asyncio
async def test_content_only_update_keeps_derived_fields(service, mock_db, author):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    posts.find_one_and_update.return_value = stored_post(content="new body")

    await service.update_post("post_1", author, UpdatePostRequest(content="new body"))

    update = posts.find_one_and_update.call_args.args[1]["$set"]
    assert update["content"] == "new body"
    assert "slug" not in update
    assert "read_time" not in update
    assert "excerpt" not in update
    posts.distinct.assert_not_awaited()


@pytest.mark.asyncio
async def test_title_update_rederives_slug_excluding_self(service, mock_db, author):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    posts.find_one_and_update.return_value = stored_post(title="Brand New", slug="brand-new")

    await service.update_post("post_1", author, UpdatePostRequest(title="Brand New"))

    slug_filter = posts.distinct.call_args.args[1]
    assert slug_filter["post_id"] == {"$ne": "post_1"}
    update = posts.find_one_and_update.call_args.args[1]["$set"]
    assert update["slug"] == "brand-new"
    assert update["read_time"] == 1


@pytest.mark.asyncio
async def test_publishing_stamps_published_at_once(service, mock_db, author, now):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    posts.find_one_and_update.return_value = stored_post(status="published")

    await service.update_post("post_1", author, UpdatePostRequest(status="published"))
    assert posts.find_one_and_update.call_args.args[1]["$set"]["published_at"] is not None

    posts.find_one.return_value = stored_post(status="draft", published_at=now)
    await service.update_post("post_1", author, UpdatePostRequest(status="published"))
    assert "published_at" not in posts.find_one_and_update.call_args.args[1]["$set"]


@pytest.mark.asyncio
async def test_non_admin_cannot_change_featured(service, mock_db, author, admin):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    with pytest.raises(ForbiddenError):
        await service.update_post("post_1", author, UpdatePostRequest(featured=True))

    posts.find_one_and_update.return_value = stored_post(featured=True)
    await service.update_post("post_1", admin, UpdatePostRequest(featured=True))


@pytest.mark.asyncio
async def test_update_slug_conflict_after_retry_budget(service, mock_db, author):
    posts = mock_db["posts"]
    posts.find_one.return_value = stored_post()
    posts.find_one_and_update.side_effect = slug_conflict()

    with pytest.raises(ConflictError):
        await service.update_post("post_1", author, UpdatePostRequest(title="Taken"))


# --- Delete ---

@pytest.mark.asyncio
async def test_delete_post_cascades(service, mock_db, author):
    mock_db["posts"].find_one.return_value = stored_post()

    await service.delete_post("post_1", author)

    mock_db["comments"].delete_many.assert_awaited_once_with({"post_id": "post_1"}, session=None)
    mock_db["accounts"].update_many.assert_awaited_once_with(
        {"bookmarks": "post_1"}, {"$pull": {"bookmarks": "post_1"}}, session=None
    )
    mock_db["posts"].delete_one.assert_awaited_once_with({"post_id": "post_1"}, session=None)


@pytest.mark.asyncio
async def test_delete_post_forbidden(service, mock_db, stranger):
    mock_db["posts"].find_one.return_value = stored_post()
    with pytest.raises(ForbiddenError):
        await service.delete_post("post_1", stranger)
    mock_db["posts"].delete_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_post_failed_cascade(service, mock_db, admin):
    mock_db["posts"].find_one.return_value = stored_post()
    mock_db["accounts"].update_many.side_effect = OperationFailure("write failed")

    with pytest.raises(StorageError):
        await service.delete_post("post_1", admin)

@pytest.mark.asyncio
async def test_standalone_delete_removes_post_before_cleanup(service, mock_db, admin):
    mock_db["posts"].find_one.return_value = stored_post()
    mock_db["comments"].delete_many.side_effect = OperationFailure("write failed")

    with pytest.raises(StorageError):
        await service.delete_post("post_1", admin)

    mock_db["posts"].delete_one.assert_awaited_once_with({"post_id": "post_1"}, session=None)
    mock_db["accounts"].update_many.assert_not_awaited()


# --- Toggles ---

@pytest.mark.asyncio
async def test_toggle_like(service):
    with patch(
        "fly_thoughts.services.publication_service.post_likes.toggle",
        new=AsyncMock(return_value=ToggleResult(is_member=True, count=1)),
    ):
        assert await service.toggle_like("post_1", "user_a") == {"is_liked": True, "likes_count": 1}


@pytest.mark.asyncio
async def test_toggle_bookmark_on_missing_post(service, mock_db):
    mock_db["posts"].count_documents.return_value = 0
    with pytest.raises(NotFoundError):
        await service.toggle_bookmark("post_missing", "user_a")
    mock_db["accounts"].find_one_and_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_toggle_bookmark(service, mock_db):
    mock_db["posts"].count_documents.return_value = 1
    mock_db["accounts"].find_one_and_update.return_value = {"account_id": "user_a"}

    assert await service.toggle_bookmark("post_1", "user_a") == {"is_bookmarked": True}
    query = mock_db["accounts"].find_one_and_update.call_args.args[0]
    assert query == {"account_id": "user_a", "bookmarks": {"$ne": "post_1"}}
