"""
# Account Service

Profiles, registration, admin listing and the follow relationship.

Credentials are owned by the identity collaborator: `create_account()` stores the opaque
`credential_hash` it receives and no read path ever returns it.

## Follow Edges

Following is a mirrored pair: `following` on the actor and `followers` on the target.
Both sides change inside one transaction where the deployment supports it. On a standalone
server the first side is compensated when the second fails, and `StorageError` is raised.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import uuid

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from fly_thoughts.database import ACCOUNTS_COLLECTION, POSTS_COLLECTION, db_manager
from fly_thoughts.exceptions import ConflictError, ForbiddenError, NotFoundError, StorageError, ValidationError
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import AccountRole, Actor, CreateAccountRequest, UpdateProfileRequest
from fly_thoughts.models.blog_models import PostStatus
from fly_thoughts.services.authors import attach_authors, list_account_summaries
from fly_thoughts.services.query_builder import SUMMARY_PROJECTION, build_pagination, validate_page_window
from fly_thoughts.services.relationship_toggle import followers, following

logger = get_logger(prefix="[AccountService]")

LIST_PROJECTION = {"_id": 0, "account_id": 1, "username": 1, "email": 1, "role": 1, "is_verified": 1, "created_at": 1}
LIST_ORDER = [("created_at", DESCENDING), ("account_id", DESCENDING)]


def _duplicate_field(error: DuplicateKeyError) -> str:
    key_pattern = (error.details or {}).get("keyPattern") or {}
    for field in ("username", "email"):
        if field in key_pattern or f"{field}_1" in str(error):
            return field
    return "account"


class AccountService:
    """
    Service for accounts and follow relationships.
    """

    def __init__(self):
        self.accounts_collection = ACCOUNTS_COLLECTION
        self.posts_collection = POSTS_COLLECTION

    async def _find_account(self, query: Dict[str, Any], details: Dict[str, Any]) -> Dict[str, Any]:
        accounts = db_manager.get_collection(self.accounts_collection)
        try:
            account = await accounts.find_one(query, {"_id": 0, "credential_hash": 0})
        except PyMongoError as e:
            logger.error(f"Failed to load account {details}: {e}", exc_info=True)
            raise StorageError("Failed to load account") from e
        if not account:
            raise NotFoundError("User not found", details)
        return account

    async def _build_profile(self, account: Dict[str, Any], private: bool = False) -> Dict[str, Any]:
        follower_ids = account.get("followers", [])
        following_ids = account.get("following", [])
        profile = {
            "account_id": account["account_id"],
            "username": account["username"],
            "bio": account.get("bio", ""),
            "avatar": account.get("avatar", ""),
            "role": account.get("role", AccountRole.USER.value),
            "is_verified": account.get("is_verified", False),
            "followers": await list_account_summaries(follower_ids),
            "following": await list_account_summaries(following_ids),
            "followers_count": len(follower_ids),
            "following_count": len(following_ids),
            "created_at": account.get("created_at"),
        }
        if private:
            profile["email"] = account["email"]
            profile["updated_at"] = account.get("updated_at")
            profile["bookmarks"] = await self._bookmarked_posts(account.get("bookmarks", []))
        return profile

    async def _bookmarked_posts(self, post_ids):
        if not post_ids:
            return []
        posts = db_manager.get_collection(self.posts_collection)
        try:
            docs = await posts.find(
                {"post_id": {"$in": post_ids}, "status": PostStatus.PUBLISHED.value}, SUMMARY_PROJECTION
            ).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to load bookmarked posts: {e}", exc_info=True)
            raise StorageError("Failed to load bookmarks") from e
        by_id = {doc["post_id"]: doc for doc in docs}
        ordered = [by_id[post_id] for post_id in post_ids if post_id in by_id]
        return await attach_authors(ordered)

    async def create_account(self, request: CreateAccountRequest) -> Dict[str, Any]:
        """
        Register an account for a newly verified identity.

        Raises:
            ConflictError: The username or email is already taken. `field` names which.
        """
        accounts = db_manager.get_collection(self.accounts_collection)
        email = request.email.lower()
        try:
            existing = await accounts.find_one(
                {"$or": [{"username": request.username}, {"email": email}]},
                {"_id": 0, "username": 1, "email": 1},
            )
        except PyMongoError as e:
            logger.error(f"Failed to check account uniqueness: {e}", exc_info=True)
            raise StorageError("Failed to create account") from e
        if existing:
            raise ConflictError("username" if existing.get("username") == request.username else "email")

        now = datetime.now(timezone.utc)
        account = {
            "account_id": f"user_{uuid.uuid4().hex[:16]}",
            "username": request.username,
            "email": email,
            "credential_hash": request.credential_hash,
            "bio": "",
            "avatar": "",
            "followers": [],
            "following": [],
            "bookmarks": [],
            "role": AccountRole.USER.value,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await accounts.insert_one(account)
        except DuplicateKeyError as e:
            raise ConflictError(_duplicate_field(e)) from e
        except PyMongoError as e:
            logger.error(f"Failed to create account {request.username}: {e}", exc_info=True)
            raise StorageError("Failed to create account") from e

        logger.info(f"Created account {account['account_id']} ({request.username})")
        public = {k: v for k, v in account.items() if k not in ("_id", "credential_hash")}
        return await self._build_profile(public, private=True)

    async def get_account_by_username(self, username: str) -> Dict[str, Any]:
        """Public profile for `username`. Never includes email or credentials."""
        account = await self._find_account({"username": username}, {"username": username})
        return await self._build_profile(account)

    async def get_profile(self, actor: Actor) -> Dict[str, Any]:
        account = await self._find_account({"account_id": actor.account_id}, {"account_id": actor.account_id})
        return await self._build_profile(account, private=True)

    async def update_profile(self, actor: Actor, request: UpdateProfileRequest) -> Dict[str, Any]:
        """
        Update the actor's username, bio or avatar.

        Raises:
            ConflictError: The new username belongs to another account.
        """
        changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
        accounts = db_manager.get_collection(self.accounts_collection)

        if "username" in changes:
            try:
                taken = await accounts.count_documents(
                    {"username": changes["username"], "account_id": {"$ne": actor.account_id}}, limit=1
                )
            except PyMongoError as e:
                logger.error(f"Failed to check username availability: {e}", exc_info=True)
                raise StorageError("Failed to update profile") from e
            if taken:
                raise ConflictError("username", "Username is already taken")

        if changes:
            changes["updated_at"] = datetime.now(timezone.utc)
            try:
                result = await accounts.update_one({"account_id": actor.account_id}, {"$set": changes})
            except DuplicateKeyError as e:
                raise ConflictError(_duplicate_field(e)) from e
            except PyMongoError as e:
                logger.error(f"Failed to update profile {actor.account_id}: {e}", exc_info=True)
                raise StorageError("Failed to update profile") from e
            if result.matched_count == 0:
                raise NotFoundError("User not found", {"account_id": actor.account_id})
            logger.info(f"Updated profile {actor.account_id} fields {sorted(changes)}")

        return await self.get_profile(actor)

    async def list_accounts(self, actor: Actor, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Admin-only listing of every account, newest first."""
        if not actor.is_admin:
            raise ForbiddenError("Admin access required")
        validate_page_window(page, limit)

        accounts = db_manager.get_collection(self.accounts_collection)
        try:
            total = await accounts.count_documents({})
            docs = (
                await accounts.find({}, LIST_PROJECTION)
                .sort(LIST_ORDER)
                .skip((page - 1) * limit)
                .limit(limit)
                .to_list(length=None)
            )
        except PyMongoError as e:
            logger.error(f"Failed to list accounts: {e}", exc_info=True)
            raise StorageError("Failed to list accounts") from e
        return {"accounts": docs, "pagination": build_pagination(page, limit, total)}

    async def toggle_follow(self, actor_id: str, target_id: str) -> Dict[str, Any]:
        """
        Follow or unfollow `target_id`.

        Raises:
            ValidationError: The actor tried to follow themself. Nothing is mutated.
            NotFoundError: Either account does not exist.
            StorageError: The mirrored side could not be updated.
        """
        if actor_id == target_id:
            raise ValidationError("You cannot follow yourself", {"account_id": target_id})
        if not await followers.exists(target_id):
            raise NotFoundError("User not found", {"account_id": target_id})
        if not await following.exists(actor_id):
            raise NotFoundError("User not found", {"account_id": actor_id})

        async with db_manager.transaction() as session:
            result = await following.toggle(actor_id, target_id, session=session)
            try:
                if result.is_member:
                    await followers.add(target_id, actor_id, session=session)
                else:
                    await followers.remove(target_id, actor_id, session=session)
            except StorageError:
                if session is None:
                    logger.error(f"Mirroring follow {actor_id} -> {target_id} failed, reverting following side")
                    await self._revert_following(actor_id, target_id, result.is_member)
                raise

        logger.info(f"{actor_id} {'followed' if result.is_member else 'unfollowed'} {target_id}")
        return {"is_following": result.is_member}

    async def _revert_following(self, actor_id: str, target_id: str, was_added: bool):
        if was_added:
            await following.remove(actor_id, target_id)
        else:
            await following.add(actor_id, target_id)
