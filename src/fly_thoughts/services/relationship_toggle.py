"""
# Relationship Toggle Engine

A single set-membership flip shared by post likes, comment likes, bookmarks and follows.

Each relationship is an array field on an owner document, optionally paired with a counter.
Membership changes only through **guarded atomic updates**:

```python
# add: matches only while the member is absent
{"post_id": owner, "likes": {"$ne": member}}  ->  {"$addToSet": {"likes": member}, "$inc": {"likes_count": 1}}
# remove: matches only while the member is present
{"post_id": owner, "likes": member}           ->  {"$pull": {"likes": member}, "$inc": {"likes_count": -1}}
```

Concurrent toggles can therefore never insert a member twice, and the counter cannot drift
from the set. Two toggles in immediate succession restore the original state.

## Usage

```python
post_likes = RelationshipSet(POSTS_COLLECTION, "post_id", "likes", count_field="likes_count", owner_label="Post")
result = await post_likes.toggle("post_abc", "user_123")
result.is_member, result.count  # (True, 1)
```
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from fly_thoughts.database import ACCOUNTS_COLLECTION, COMMENTS_COLLECTION, POSTS_COLLECTION, db_manager
from fly_thoughts.exceptions import NotFoundError, StorageError
from fly_thoughts.managers.logging_manager import get_logger

logger = get_logger(prefix="[RelationshipToggle]")


@dataclass
class ToggleResult:
    """Membership after a toggle and, for counted sets, the new cardinality."""

    is_member: bool
    count: Optional[int] = None


class RelationshipSet:
    """
    A named set of ids stored on the documents of one collection.

    Attributes:
        collection_name (str): Collection holding the owner documents.
        key_field (str): Field identifying the owner (`post_id`, `account_id`, ...).
        set_field (str): Array field holding the members.
        count_field (Optional[str]): Counter kept equal to the array length, if any.
        owner_label (str): Used in `NotFoundError` messages.
    """

    def __init__(
        self,
        collection_name: str,
        key_field: str,
        set_field: str,
        count_field: Optional[str] = None,
        owner_label: str = "Document",
        max_attempts: int = 3,
    ):
        self.collection_name = collection_name
        self.key_field = key_field
        self.set_field = set_field
        self.count_field = count_field
        self.owner_label = owner_label
        self.max_attempts = max_attempts

    def _projection(self) -> Dict[str, int]:
        projection = {"_id": 0, self.key_field: 1}
        if self.count_field:
            projection[self.count_field] = 1
        return projection

    def _result(self, is_member: bool, doc: Dict[str, Any]) -> ToggleResult:
        count = doc.get(self.count_field, 0) if self.count_field else None
        return ToggleResult(is_member=is_member, count=count)

    async def add(self, owner_id: str, member_id: str, session=None) -> Optional[Dict[str, Any]]:
        """
        Insert `member_id` if absent.

        Returns:
            Optional[Dict[str, Any]]: The owner document after the update, or `None` when
            nothing matched (member already present or owner missing).
        """
        update: Dict[str, Any] = {"$addToSet": {self.set_field: member_id}}
        if self.count_field:
            update["$inc"] = {self.count_field: 1}
        collection = db_manager.get_collection(self.collection_name)
        try:
            return await collection.find_one_and_update(
                {self.key_field: owner_id, self.set_field: {"$ne": member_id}},
                update,
                projection=self._projection(),
                return_document=ReturnDocument.AFTER,
                session=session,
            )
        except PyMongoError as e:
            logger.error(
                f"Failed to add {member_id} to {self.collection_name}.{self.set_field} of {owner_id}: {e}",
                exc_info=True,
            )
            raise StorageError(f"Failed to update {self.set_field}") from e

    async def remove(self, owner_id: str, member_id: str, session=None) -> Optional[Dict[str, Any]]:
        """Remove `member_id` if present. Returns the updated owner or `None`."""
        update: Dict[str, Any] = {"$pull": {self.set_field: member_id}}
        if self.count_field:
            update["$inc"] = {self.count_field: -1}
        collection = db_manager.get_collection(self.collection_name)
        try:
            return await collection.find_one_and_update(
                {self.key_field: owner_id, self.set_field: member_id},
                update,
                projection=self._projection(),
                return_document=ReturnDocument.AFTER,
                session=session,
            )
        except PyMongoError as e:
            logger.error(
                f"Failed to remove {member_id} from {self.collection_name}.{self.set_field} of {owner_id}: {e}",
                exc_info=True,
            )
            raise StorageError(f"Failed to update {self.set_field}") from e

    async def toggle(self, owner_id: str, member_id: str, session=None) -> ToggleResult:
        """
        Flip the membership of `member_id` in the owner's set.

        Raises:
            NotFoundError: If no owner document has `owner_id`.
            StorageError: If the store fails, or concurrent toggles keep winning the race.
        """
        for attempt in range(self.max_attempts):
            doc = await self.add(owner_id, member_id, session=session)
            if doc is not None:
                return self._result(True, doc)

            doc = await self.remove(owner_id, member_id, session=session)
            if doc is not None:
                return self._result(False, doc)

            # Neither guard matched: the owner is missing or another toggle got in between.
            if not await self.exists(owner_id, session=session):
                raise NotFoundError(f"{self.owner_label} not found", {self.key_field: owner_id})
            logger.warning(
                f"Toggle on {self.collection_name}.{self.set_field} for {owner_id} raced, "
                f"retrying ({attempt + 1}/{self.max_attempts})"
            )

        raise StorageError(f"Could not update {self.set_field} due to concurrent changes")

    async def exists(self, owner_id: str, session=None) -> bool:
        collection = db_manager.get_collection(self.collection_name)
        try:
            return await collection.count_documents({self.key_field: owner_id}, limit=1, session=session) > 0
        except PyMongoError as e:
            logger.error(f"Failed to look up {self.owner_label.lower()} {owner_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to look up {self.owner_label.lower()}") from e


post_likes = RelationshipSet(POSTS_COLLECTION, "post_id", "likes", count_field="likes_count", owner_label="Post")
comment_likes = RelationshipSet(COMMENTS_COLLECTION, "comment_id", "likes", count_field="likes_count", owner_label="Comment")
bookmarks = RelationshipSet(ACCOUNTS_COLLECTION, "account_id", "bookmarks", owner_label="Account")
following = RelationshipSet(ACCOUNTS_COLLECTION, "account_id", "following", owner_label="Account")
followers = RelationshipSet(ACCOUNTS_COLLECTION, "account_id", "followers", owner_label="Account")
