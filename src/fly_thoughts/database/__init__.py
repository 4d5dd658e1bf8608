"""
# Database Package

The persistence layer, built on **Motor** (async MongoDB driver).

- **`manager`**: The `DatabaseManager` singleton handling connection lifecycle, indexes and
  transaction sessions.

```python
from fly_thoughts.database import db_manager

await db_manager.connect()
posts = db_manager.get_collection("posts")
await db_manager.disconnect()
```

Attributes:
    db_manager (DatabaseManager): The global singleton instance for database access.
"""

from fly_thoughts.database.manager import (
    ACCOUNTS_COLLECTION,
    COMMENTS_COLLECTION,
    POSTS_COLLECTION,
    DatabaseManager,
    db_manager,
)

__all__ = [
    "ACCOUNTS_COLLECTION",
    "COMMENTS_COLLECTION",
    "POSTS_COLLECTION",
    "DatabaseManager",
    "db_manager",
]
