"""
# Publication Service

Orchestrates the post lifecycle: listing, reading, creating, editing, deleting and the like
and bookmark toggles.

## Derived Fields

Create and update run the incoming fields through `derive_post_fields()`. When a mutation
contains `title`, the base slug is disambiguated against existing posts with the lowest free
numeric suffix (`title`, `title-2`, ...). The unique index on `slug` is the final arbiter:
a `DuplicateKeyError` from a lost race is retried up to `SLUG_MAX_ATTEMPTS` times before a
`ConflictError(field="slug")` is raised.

## Visibility

Only **published** posts appear in public listings and in `get_post_by_slug()`. Authors see
their own drafts through `get_my_posts()`.

## Cascading Delete

Deleting a post removes its comments and pulls it from every account's bookmarks inside one
transaction where supported. A failed step raises `StorageError`.

On a standalone server there is no transaction to roll back, so the post document is removed
first. If a later step fails, what remains are comments of a missing post and bookmark ids
that resolve to nothing: thread listings reject the missing post and profiles only load
bookmarks that still exist, so no reader sees a half-deleted post.
"""

from datetime import datetime, timezone
import re
from typing import Any, Dict, List, Optional
import uuid

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from fly_thoughts.config import settings
from fly_thoughts.database import ACCOUNTS_COLLECTION, COMMENTS_COLLECTION, POSTS_COLLECTION, db_manager
from fly_thoughts.exceptions import ConflictError, ForbiddenError, NotFoundError, StorageError
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import Actor
from fly_thoughts.models.blog_models import CreatePostRequest, PostDocument, PostStatus, UpdatePostRequest
from fly_thoughts.services.authors import attach_authors
from fly_thoughts.services.derived_fields import derive_post_fields, next_free_slug
from fly_thoughts.services.query_builder import (
    SORTS,
    SUMMARY_PROJECTION,
    PostQuery,
    build_pagination,
    build_post_query,
)
from fly_thoughts.services.relationship_toggle import bookmarks, post_likes

logger = get_logger(prefix="[PublicationService]")

MY_POSTS_ORDER = [("updated_at", DESCENDING), ("post_id", DESCENDING)]


def _is_slug_conflict(error: DuplicateKeyError) -> bool:
    key_pattern = (error.details or {}).get("keyPattern") or {}
    return "slug" in key_pattern or "slug_1" in str(error)


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if k != "_id"}


class PublicationService:
    """
    Service for the post lifecycle.
    """

    def __init__(self):
        self.posts_collection = POSTS_COLLECTION
        self.comments_collection = COMMENTS_COLLECTION
        self.accounts_collection = ACCOUNTS_COLLECTION

    # --- Reads ---

    async def _run_listing(self, query: PostQuery) -> Dict[str, Any]:
        posts = db_manager.get_collection(self.posts_collection)
        try:
            total = await posts.count_documents(query.filter)
            docs = (
                await posts.find(query.filter, SUMMARY_PROJECTION)
                .sort(query.sort)
                .skip(query.skip)
                .limit(query.limit)
                .to_list(length=None)
            )
        except PyMongoError as e:
            logger.error(f"Failed to list posts: {e}", exc_info=True)
            raise StorageError("Failed to list posts") from e
        await attach_authors(docs)
        return {"posts": docs, "pagination": build_pagination(query.page, query.limit, total)}

    async def list_posts(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        category: Optional[str] = None,
        tags: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        List published posts with filtering, sorting and pagination.

        Returns:
            Dict[str, Any]: `{"posts": [...], "pagination": {...}}`. Entries never include
            `content`.
        """
        query = build_post_query(page=page, limit=limit, category=category, tags=tags, search=search, sort=sort)
        return await self._run_listing(query)

    async def get_featured_posts(self) -> List[Dict[str, Any]]:
        posts = db_manager.get_collection(self.posts_collection)
        try:
            docs = (
                await posts.find({"status": PostStatus.PUBLISHED.value, "featured": True}, SUMMARY_PROJECTION)
                .sort(SORTS["latest"])
                .limit(settings.FEATURED_POSTS_LIMIT)
                .to_list(length=None)
            )
        except PyMongoError as e:
            logger.error(f"Failed to load featured posts: {e}", exc_info=True)
            raise StorageError("Failed to load featured posts") from e
        return await attach_authors(docs)

    async def get_post_by_slug(self, slug: str) -> Dict[str, Any]:
        """
        Return a published post and count the view.

        A failed view increment is logged and does not fail the read.

        Raises:
            NotFoundError: No published post has this slug.
        """
        posts = db_manager.get_collection(self.posts_collection)
        try:
            post = await posts.find_one({"slug": slug, "status": PostStatus.PUBLISHED.value}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"Failed to load post {slug}: {e}", exc_info=True)
            raise StorageError("Failed to load post") from e
        if not post:
            raise NotFoundError("Post not found", {"slug": slug})

        try:
            await posts.update_one({"post_id": post["post_id"]}, {"$inc": {"views": 1}})
            post["views"] = post.get("views", 0) + 1
        except PyMongoError as e:
            logger.warning(f"Failed to increment views for post {post['post_id']}: {e}")

        await attach_authors([post])
        return post

    async def get_categories(self) -> List[str]:
        posts = db_manager.get_collection(self.posts_collection)
        try:
            categories = await posts.distinct("category", {"status": PostStatus.PUBLISHED.value})
        except PyMongoError as e:
            logger.error(f"Failed to load categories: {e}", exc_info=True)
            raise StorageError("Failed to load categories") from e
        return sorted(categories)

    async def get_tags(self) -> List[Dict[str, Any]]:
        """Most used tags across published posts, as `[{"name", "count"}]`, descending."""
        pipeline = [
            {"$match": {"status": PostStatus.PUBLISHED.value}},
            {"$unwind": "$tags"},
            {"$group": {"_id": "$tags", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": settings.POPULAR_TAGS_LIMIT},
            {"$project": {"_id": 0, "name": "$_id", "count": 1}},
        ]
        posts = db_manager.get_collection(self.posts_collection)
        try:
            return await posts.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to aggregate tags: {e}", exc_info=True)
            raise StorageError("Failed to load tags") from e

    async def get_posts_by_user(self, username: str, page: int = 1, limit: Optional[int] = None) -> Dict[str, Any]:
        """
        Published posts of one author, newest first.

        Raises:
            NotFoundError: No account has this username.
        """
        accounts = db_manager.get_collection(self.accounts_collection)
        try:
            account = await accounts.find_one({"username": username}, {"_id": 0, "account_id": 1})
        except PyMongoError as e:
            logger.error(f"Failed to load account {username}: {e}", exc_info=True)
            raise StorageError("Failed to load account") from e
        if not account:
            raise NotFoundError("User not found", {"username": username})

        query = build_post_query(
            page=page,
            limit=limit,
            base_filter={"status": PostStatus.PUBLISHED.value, "author_id": account["account_id"]},
        )
        return await self._run_listing(query)

    async def get_my_posts(
        self, actor: Actor, page: int = 1, limit: Optional[int] = None, status: Optional[str] = None
    ) -> Dict[str, Any]:
        """The actor's own posts in any status, most recently updated first."""
        base_filter: Dict[str, Any] = {"author_id": actor.account_id}
        if status:
            base_filter["status"] = PostStatus(status).value
        query = build_post_query(page=page, limit=limit, base_filter=base_filter, order=MY_POSTS_ORDER)
        return await self._run_listing(query)

    # --- Writes ---

    async def _load_owned_post(self, post_id: str, actor: Actor, action: str) -> Dict[str, Any]:
        posts = db_manager.get_collection(self.posts_collection)
        try:
            post = await posts.find_one({"post_id": post_id}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"Failed to load post {post_id}: {e}", exc_info=True)
            raise StorageError("Failed to load post") from e
        if not post:
            raise NotFoundError("Post not found", {"post_id": post_id})
        if post["author_id"] != actor.account_id and not actor.is_admin:
            raise ForbiddenError(f"Not authorized to {action} this post", {"post_id": post_id})
        return post

    async def _resolve_slug(self, base: str, exclude_post_id: Optional[str] = None) -> str:
        posts = db_manager.get_collection(self.posts_collection)
        slug_filter: Dict[str, Any] = {"slug": {"$regex": f"^{re.escape(base)}(-[0-9]+)?$"}}
        if exclude_post_id:
            slug_filter["post_id"] = {"$ne": exclude_post_id}
        try:
            taken = await posts.distinct("slug", slug_filter)
        except PyMongoError as e:
            logger.error(f"Failed to check slug availability for {base}: {e}", exc_info=True)
            raise StorageError("Failed to check slug availability") from e
        return next_free_slug(base, taken)

    async def create_post(self, actor: Actor, request: CreatePostRequest) -> Dict[str, Any]:
        """
        Create a post authored by `actor`.

        Raises:
            ForbiddenError: A non-admin asked for `featured=True`.
            ConflictError: No free slug could be claimed within the retry budget.
        """
        if request.featured and not actor.is_admin:
            raise ForbiddenError("Only admins can feature posts")

        now = datetime.now(timezone.utc)
        fields = request.model_dump()
        fields["status"] = request.status.value
        derived = derive_post_fields(fields, now=now)

        post = PostDocument(
            post_id=f"post_{uuid.uuid4().hex[:16]}",
            title=request.title,
            slug=derived["slug"],
            content=request.content,
            excerpt=request.excerpt or derived.get("excerpt", ""),
            category=request.category,
            tags=request.tags,
            thumbnail=request.thumbnail,
            author_id=actor.account_id,
            read_time=derived["read_time"],
            status=request.status,
            featured=request.featured,
            seo_title=request.seo_title,
            seo_description=request.seo_description,
            published_at=derived.get("published_at"),
            created_at=now,
            updated_at=now,
        ).model_dump()

        posts = db_manager.get_collection(self.posts_collection)
        for attempt in range(settings.SLUG_MAX_ATTEMPTS):
            post["slug"] = await self._resolve_slug(derived["slug"])
            try:
                await posts.insert_one(post)
                break
            except DuplicateKeyError as e:
                post.pop("_id", None)
                if not _is_slug_conflict(e):
                    logger.error(f"Unexpected duplicate key creating post: {e}", exc_info=True)
                    raise StorageError("Failed to create post") from e
                logger.warning(
                    f"Slug {post['slug']} claimed concurrently, retrying ({attempt + 1}/{settings.SLUG_MAX_ATTEMPTS})"
                )
            except PyMongoError as e:
                logger.error(f"Failed to create post: {e}", exc_info=True)
                raise StorageError("Failed to create post") from e
        else:
            raise ConflictError("slug", f"Could not allocate a unique slug for '{request.title}'")

        logger.info(f"Created post {post['post_id']} ({post['slug']}) by {actor.account_id}")
        result = _strip_id(post)
        await attach_authors([result])
        return result

    async def update_post(self, post_id: str, actor: Actor, request: UpdatePostRequest) -> Dict[str, Any]:
        """
        Apply the fields present in `request` to a post.

        Raises:
            NotFoundError: The post does not exist.
            ForbiddenError: The actor is neither author nor admin, or a non-admin tried to
                change `featured`.
            ConflictError: No free slug could be claimed within the retry budget.
        """
        post = await self._load_owned_post(post_id, actor, "edit")

        changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
        if "status" in changes:
            changes["status"] = PostStatus(changes["status"]).value
        if "featured" in changes and changes["featured"] != post.get("featured", False) and not actor.is_admin:
            raise ForbiddenError("Only admins can feature posts", {"post_id": post_id})

        now = datetime.now(timezone.utc)
        derived = derive_post_fields(changes, post, now=now)
        update = {**changes, **derived, "updated_at": now}
        base_slug = derived.get("slug")

        posts = db_manager.get_collection(self.posts_collection)
        for attempt in range(settings.SLUG_MAX_ATTEMPTS):
            if base_slug:
                update["slug"] = await self._resolve_slug(base_slug, exclude_post_id=post_id)
            try:
                updated = await posts.find_one_and_update(
                    {"post_id": post_id},
                    {"$set": update},
                    projection={"_id": 0},
                    return_document=ReturnDocument.AFTER,
                )
                break
            except DuplicateKeyError as e:
                if not base_slug or not _is_slug_conflict(e):
                    logger.error(f"Unexpected duplicate key updating post {post_id}: {e}", exc_info=True)
                    raise StorageError("Failed to update post") from e
                logger.warning(
                    f"Slug {update['slug']} claimed concurrently, retrying ({attempt + 1}/{settings.SLUG_MAX_ATTEMPTS})"
                )
            except PyMongoError as e:
                logger.error(f"Failed to update post {post_id}: {e}", exc_info=True)
                raise StorageError("Failed to update post") from e
        else:
            raise ConflictError("slug", f"Could not allocate a unique slug for '{changes['title']}'")

        if not updated:
            raise NotFoundError("Post not found", {"post_id": post_id})

        logger.info(f"Updated post {post_id} fields {sorted(update)} by {actor.account_id}")
        await attach_authors([updated])
        return updated

    async def delete_post(self, post_id: str, actor: Actor) -> None:
        """
        Delete a post, its comments and every bookmark pointing at it.

        Raises:
            NotFoundError: The post does not exist.
            ForbiddenError: The actor is neither author nor admin.
            StorageError: A cascade step failed.
        """
        await self._load_owned_post(post_id, actor, "delete")

        posts = db_manager.get_collection(self.posts_collection)
        comments = db_manager.get_collection(self.comments_collection)
        accounts = db_manager.get_collection(self.accounts_collection)
        try:
            async with db_manager.transaction() as session:
                await posts.delete_one({"post_id": post_id}, session=session)
                deleted_comments = await comments.delete_many({"post_id": post_id}, session=session)
                unbookmarked = await accounts.update_many(
                    {"bookmarks": post_id}, {"$pull": {"bookmarks": post_id}}, session=session
                )
        except PyMongoError as e:
            logger.error(f"Cascade delete of post {post_id} failed: {e}", exc_info=True)
            raise StorageError("Failed to delete post", {"post_id": post_id}) from e

        logger.info(
            f"Deleted post {post_id} with {deleted_comments.deleted_count} comments, "
            f"removed from {unbookmarked.modified_count} bookmark lists"
        )

    # --- Toggles ---

    async def toggle_like(self, post_id: str, actor_id: str) -> Dict[str, Any]:
        result = await post_likes.toggle(post_id, actor_id)
        logger.info(f"Post {post_id} {'liked' if result.is_member else 'unliked'} by {actor_id}")
        return {"is_liked": result.is_member, "likes_count": result.count}

    async def toggle_bookmark(self, post_id: str, actor_id: str) -> Dict[str, Any]:
        """
        Flip a post in the actor's bookmarks.

        Raises:
            NotFoundError: The post or the actor's account does not exist.
        """
        if not await post_likes.exists(post_id):
            raise NotFoundError("Post not found", {"post_id": post_id})
        result = await bookmarks.toggle(actor_id, post_id)
        logger.info(f"Post {post_id} {'bookmarked' if result.is_member else 'unbookmarked'} by {actor_id}")
        return {"is_bookmarked": result.is_member}
