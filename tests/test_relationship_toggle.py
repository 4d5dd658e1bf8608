"""
Tests for the guarded set-membership toggle.
"""
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import AutoReconnect

from fly_thoughts.database import db_manager
from fly_thoughts.exceptions import NotFoundError, StorageError
from fly_thoughts.services.relationship_toggle import RelationshipSet


class FakeSetCollection:
    """Applies the guarded $addToSet/$pull updates to in-memory documents."""

    def __init__(self, key_field, set_field, count_field, owners):
        self.key_field = key_field
        self.set_field = set_field
        self.count_field = count_field
        self.docs = {owner: {set_field: [], count_field: 0} for owner in owners}

    async def find_one_and_update(self, query, update, projection=None, return_document=None, session=None):
        doc = self.docs.get(query[self.key_field])
        if doc is None:
            return None
        guard = query[self.set_field]
        if isinstance(guard, dict):
            if guard["$ne"] in doc[self.set_field]:
                return None
            doc[self.set_field].append(update["$addToSet"][self.set_field])
        else:
            if guard not in doc[self.set_field]:
                return None
            doc[self.set_field].remove(update["$pull"][self.set_field])
        if "$inc" in update:
            doc[self.count_field] += update["$inc"][self.count_field]
        return {self.key_field: query[self.key_field], self.count_field: doc[self.count_field]}

    async def count_documents(self, query, limit=0, session=None):
        return 1 if query[self.key_field] in self.docs else 0


@pytest.fixture
def likes():
    return RelationshipSet("posts", "post_id", "likes", count_field="likes_count", owner_label="Post")


@pytest.fixture
def fake_posts():
    collection = FakeSetCollection("post_id", "likes", "likes_count", ["post_1"])
    with patch.object(db_manager, "get_collection", return_value=collection):
        yield collection


@pytest.mark.asyncio
async def test_toggle_adds_then_removes(likes, fake_posts):
    """Two toggles in a row restore the original state."""
    first = await likes.toggle("post_1", "user_a")
    assert first.is_member is True
    assert first.count == 1
    assert fake_posts.docs["post_1"]["likes"] == ["user_a"]

    second = await likes.toggle("post_1", "user_a")
    assert second.is_member is False
    assert second.count == 0
    assert fake_posts.docs["post_1"]["likes"] == []


@pytest.mark.asyncio
async def test_counter_tracks_set_size(likes, fake_posts):
    await likes.toggle("post_1", "user_a")
    result = await likes.toggle("post_1", "user_b")
    assert result.count == 2
    assert fake_posts.docs["post_1"]["likes_count"] == len(fake_posts.docs["post_1"]["likes"])


@pytest.mark.asyncio
async def test_toggle_missing_owner_raises_not_found(likes, fake_posts):
    with pytest.raises(NotFoundError) as exc:
        await likes.toggle("post_missing", "user_a")
    assert exc.value.details == {"post_id": "post_missing"}


@pytest.mark.asyncio
async def test_uncounted_set_reports_no_count():
    bookmarks = RelationshipSet("accounts", "account_id", "bookmarks")
    collection = AsyncMock()
    collection.find_one_and_update.return_value = {"account_id": "user_a"}
    with patch.object(db_manager, "get_collection", return_value=collection):
        result = await bookmarks.toggle("user_a", "post_1")

    assert result.is_member is True
    assert result.count is None
    query, update = collection.find_one_and_update.call_args.args
    assert query == {"account_id": "user_a", "bookmarks": {"$ne": "post_1"}}
    assert update == {"$addToSet": {"bookmarks": "post_1"}}


@pytest.mark.asyncio
async def test_toggle_retries_when_a_concurrent_toggle_wins(likes):
    collection = AsyncMock()
    collection.find_one_and_update.side_effect = [None, None, {"post_id": "post_1", "likes_count": 4}]
    collection.count_documents.return_value = 1
    with patch.object(db_manager, "get_collection", return_value=collection):
        result = await likes.toggle("post_1", "user_a")

    assert result.is_member is True
    assert result.count == 4
    assert collection.find_one_and_update.await_count == 3


@pytest.mark.asyncio
async def test_toggle_gives_up_after_max_attempts(likes):
    collection = AsyncMock()
    collection.find_one_and_update.return_value = None
    collection.count_documents.return_value = 1
    with patch.object(db_manager, "get_collection", return_value=collection):
        with pytest.raises(StorageError):
            await likes.toggle("post_1", "user_a")

    assert collection.find_one_and_update.await_count == 2 * likes.max_attempts


@pytest.mark.asyncio
async def test_store_failure_becomes_storage_error(likes):
    collection = AsyncMock()
    collection.find_one_and_update.side_effect = AutoReconnect("connection reset")
    with patch.object(db_manager, "get_collection", return_value=collection):
        with pytest.raises(StorageError):
            await likes.toggle("post_1", "user_a")
