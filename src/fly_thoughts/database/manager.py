"""
# Database Management Module

This module provides the **MongoDB infrastructure** for Fly Thoughts. The `DatabaseManager`
wraps the **Motor** async driver and owns the connection lifecycle, indexes and transaction
sessions used by the services.

## Key Features

### 1. Connection Lifecycle
- **Async Initialization**: `connect()` runs during application startup with exponential
  back-off (1s, 2s, 4s) across three attempts.
- **Graceful Shutdown**: `disconnect()` closes the client.
- **Health Monitoring**: `health_check()` pings the server and never raises.

### 2. Transactions
On connect the manager detects whether the deployment is a replica set or a mongos
(`transactions_supported`). `transaction()` yields a session with an open transaction on
such deployments and `None` on a standalone server, so callers can always write:

```python
async with db_manager.transaction() as session:
    await posts.delete_one({"post_id": post_id}, session=session)
    await comments.delete_many({"post_id": post_id}, session=session)
```

### 3. Indexes
`create_indexes()` ensures the unique constraints the services rely on:
`posts.slug`, `accounts.username`, `accounts.email` and the id field of every collection.

## Configuration

- `MONGODB_URL`, `MONGODB_DATABASE`
- `MONGODB_USERNAME`, `MONGODB_PASSWORD` (optional)
- `MONGODB_SERVER_SELECTION_TIMEOUT`, `MONGODB_CONNECTION_TIMEOUT` (ms)
- `MONGODB_MIN_POOL_SIZE`, `MONGODB_MAX_POOL_SIZE`

Attributes:
    POSTS_COLLECTION (str): Collection holding post documents.
    COMMENTS_COLLECTION (str): Collection holding comment documents.
    ACCOUNTS_COLLECTION (str): Collection holding account documents.
    db_manager (DatabaseManager): Global singleton used throughout the application.
"""

import asyncio
from contextlib import asynccontextmanager
import time
from typing import Any, AsyncIterator, Dict, Optional

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from fly_thoughts.config import settings
from fly_thoughts.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

POSTS_COLLECTION = "posts"
COMMENTS_COLLECTION = "comments"
ACCOUNTS_COLLECTION = "accounts"


class DatabaseManager:
    """
    Manages MongoDB connections, collections, indexes and transactions.

    **Lifecycle:**
    1. **Instantiation**: `client` and `database` are `None`.
    2. **Connection**: `connect()` establishes the pool and detects transaction support.
    3. **Operations**: `get_collection()` and `transaction()`.
    4. **Shutdown**: `disconnect()`.

    Attributes:
        client (Optional[AsyncIOMotorClient]): The Motor client, `None` until connected.
        database (Optional[AsyncIOMotorDatabase]): The selected database.
        transactions_supported (Optional[bool]): Whether multi-document transactions are
            available. Detected during `connect()`.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3
        self.transactions_supported: Optional[bool] = None

    def _connection_string(self) -> str:
        if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
            password = settings.MONGODB_PASSWORD.get_secret_value()
            db_logger.debug("Using authenticated connection to MongoDB")
            return (
                f"mongodb://{settings.MONGODB_USERNAME}:{password}@"
                f"{settings.MONGODB_URL.replace('mongodb://', '')}"
            )
        db_logger.debug("Using unauthenticated connection to MongoDB")
        return settings.MONGODB_URL

    async def connect(self):
        """
        Establish the MongoDB connection with exponential back-off retries.

        Raises:
            ServerSelectionTimeoutError: If MongoDB is unreachable after every attempt.
            ConnectionFailure: If the connection is refused or authentication fails.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)
                db_logger.info(
                    "MongoDB connection config - URL: %s, Database: %s, MaxPool: %d, MinPool: %d",
                    settings.MONGODB_URL,
                    settings.MONGODB_DATABASE,
                    settings.MONGODB_MAX_POOL_SIZE,
                    settings.MONGODB_MIN_POOL_SIZE,
                )

                self.client = AsyncIOMotorClient(
                    self._connection_string(),
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
                    minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                # Replica set (setName) or mongos (isdbgrid) -> transactions supported
                try:
                    hello = await self.client.admin.command({"hello": 1})
                    self.transactions_supported = bool(hello.get("setName") or hello.get("msg") == "isdbgrid")
                except PyMongoError:
                    self.transactions_supported = False

                perf_logger.info(
                    "MongoDB connection established in %.3fs (ping: %.3fs)", time.time() - start_time, ping_duration
                )
                db_logger.info(
                    "Connected to MongoDB database: %s (transactions supported: %s)",
                    settings.MONGODB_DATABASE,
                    self.transactions_supported,
                )
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                perf_logger.warning(
                    "Connection attempt %d failed after %.3fs", attempt + 1, time.time() - attempt_start
                )
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self):
        """Close the MongoDB client if one is open."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            db_logger.info("Successfully disconnected from MongoDB")
        else:
            db_logger.warning("Disconnect called but no active MongoDB connection found")

    async def health_check(self) -> bool:
        """
        Ping the server.

        Returns:
            bool: `True` when the server answered, `False` otherwise. Never raises.
        """
        start_time = time.time()
        if not self.client:
            health_logger.warning("Health check failed: No database client available")
            return False
        try:
            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True
        except PyMongoError as e:
            health_logger.error("Database health check failed: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return a Motor collection handle.

        Raises:
            ConnectionError: If `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")
        return self.database[collection_name]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
        """
        Open a transaction scope.

        Yields a session bound to a started transaction when the deployment supports it,
        otherwise `None`. An exception inside the block aborts the transaction.
        """
        if not self.transactions_supported or self.client is None:
            yield None
            return
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def create_indexes(self):
        """Ensure every index the services depend on exists."""
        db_logger.info("Starting database index creation process")
        start_time = time.time()

        posts = self.get_collection(POSTS_COLLECTION)
        await self._create_index_if_not_exists(posts, "post_id", {"unique": True})
        await self._create_index_if_not_exists(posts, "slug", {"unique": True})
        await self._create_index_if_not_exists(posts, [("author_id", ASCENDING), ("status", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("category", ASCENDING), ("status", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("tags", ASCENDING), ("status", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("status", ASCENDING), ("published_at", DESCENDING)], {})
        await self._create_index_if_not_exists(posts, "likes", {})

        comments = self.get_collection(COMMENTS_COLLECTION)
        await self._create_index_if_not_exists(comments, "comment_id", {"unique": True})
        await self._create_index_if_not_exists(
            comments, [("post_id", ASCENDING), ("parent_comment", ASCENDING), ("created_at", DESCENDING)], {}
        )
        await self._create_index_if_not_exists(comments, "author_id", {})
        await self._create_index_if_not_exists(comments, "parent_comment", {})

        accounts = self.get_collection(ACCOUNTS_COLLECTION)
        await self._create_index_if_not_exists(accounts, "account_id", {"unique": True})
        await self._create_index_if_not_exists(accounts, "username", {"unique": True})
        await self._create_index_if_not_exists(accounts, "email", {"unique": True})
        await self._create_index_if_not_exists(accounts, "bookmarks", {})

        perf_logger.info("Index creation completed in %.3fs", time.time() - start_time)

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ):
        """Create an index if it doesn't already exist"""
        try:
            await collection.create_index(field_spec, **options)
            db_logger.debug("Successfully created/ensured index: %s", field_spec)
        except PyMongoError as e:
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)


db_manager = DatabaseManager()
