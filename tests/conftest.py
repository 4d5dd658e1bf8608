"""
Shared fixtures: an in-memory stand-in for the Motor collections behind `db_manager`.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fly_thoughts.database import db_manager
from fly_thoughts.models.account_models import AccountRole, Actor


def make_cursor(docs=None):
    """A Motor-style cursor: chainable sort/skip/limit and an awaitable to_list."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs or []))
    return cursor


def make_collection():
    collection = MagicMock()
    for name in (
        "find_one",
        "find_one_and_update",
        "insert_one",
        "update_one",
        "update_many",
        "delete_one",
        "delete_many",
        "count_documents",
        "distinct",
        "create_index",
    ):
        setattr(collection, name, AsyncMock())
    collection.find_one.return_value = None
    collection.find_one_and_update.return_value = None
    collection.count_documents.return_value = 0
    collection.distinct.return_value = []
    collection.find = MagicMock(return_value=make_cursor())
    collection.aggregate = MagicMock(return_value=make_cursor())
    return collection


@pytest.fixture
def collections():
    return {"posts": make_collection(), "comments": make_collection(), "accounts": make_collection()}


@pytest.fixture
def mock_db(collections):
    """Patch `db_manager` to serve the mock collections on a standalone (no transaction) server."""

    @asynccontextmanager
    async def transaction():
        yield None

    with patch.object(db_manager, "get_collection", side_effect=lambda name: collections[name]), \
         patch.object(db_manager, "transaction", transaction), \
         patch.object(db_manager, "transactions_supported", False):
        yield collections


@pytest.fixture
def author():
    return Actor(account_id="user_author", role=AccountRole.USER)


@pytest.fixture
def stranger():
    return Actor(account_id="user_stranger", role=AccountRole.USER)


@pytest.fixture
def admin():
    return Actor(account_id="user_admin", role=AccountRole.ADMIN)


@pytest.fixture
def now():
    return datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
