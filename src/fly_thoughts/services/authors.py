"""Author summaries embedded in post, comment and profile listings."""

from typing import Any, Dict, Iterable, List

from pymongo.errors import PyMongoError

from fly_thoughts.database import ACCOUNTS_COLLECTION, db_manager
from fly_thoughts.exceptions import StorageError
from fly_thoughts.managers.logging_manager import get_logger

logger = get_logger(prefix="[Authors]")

AUTHOR_PROJECTION = {"_id": 0, "account_id": 1, "username": 1, "avatar": 1, "bio": 1}


async def load_account_summaries(account_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Fetch public summaries for `account_ids`, keyed by account id."""
    ids = list(dict.fromkeys(i for i in account_ids if i))
    if not ids:
        return {}
    accounts = db_manager.get_collection(ACCOUNTS_COLLECTION)
    try:
        docs = await accounts.find({"account_id": {"$in": ids}}, AUTHOR_PROJECTION).to_list(length=None)
    except PyMongoError as e:
        logger.error(f"Failed to load account summaries: {e}", exc_info=True)
        raise StorageError("Failed to load account summaries") from e
    return {doc["account_id"]: doc for doc in docs}


async def list_account_summaries(account_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Summaries in the order of `account_ids`, skipping accounts that no longer exist."""
    ids = list(account_ids)
    found = await load_account_summaries(ids)
    return [found[i] for i in ids if i in found]


async def attach_authors(docs: List[Dict[str, Any]], key: str = "author_id") -> List[Dict[str, Any]]:
    """Set `author` on every document from its `key` field. Unknown authors get `None`."""
    found = await load_account_summaries(doc.get(key) for doc in docs)
    for doc in docs:
        doc["author"] = found.get(doc.get(key))
    return docs
