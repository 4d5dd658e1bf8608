"""
# Comment Thread Manager

Creates, edits, deletes and lists comments on posts.

## Threading Model

Threads are exactly two levels deep: a **top-level comment** (no `parent_comment`) and its
direct **replies**. A reply's parent must be a top-level comment on the same post, so
replies to replies are rejected at creation. That keeps deletion one level deep and the
listing complete.

Ordering is kept in two arrays:
- `post.comments`: every comment id on the post, in creation order.
- `parent.replies`: reply ids, in creation order.

## Cascading Delete

Deleting a comment removes, in one transaction where the deployment supports it:
1. its direct replies,
2. its id and its replies' ids from `post.comments`,
3. its id from the parent's `replies` when it is itself a reply,
4. the comment itself.

A failed step raises `StorageError`. A partial success is never reported.

On a standalone server (no transactions) a comment whose insert succeeded but whose linking
`$push` failed is removed again before `StorageError` is raised, the same compensation the
follow pair uses.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from fly_thoughts.database import COMMENTS_COLLECTION, POSTS_COLLECTION, db_manager
from fly_thoughts.exceptions import ForbiddenError, NotFoundError, StorageError, ValidationError
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import Actor
from fly_thoughts.models.blog_models import MAX_COMMENT_LENGTH, CommentDocument
from fly_thoughts.services.authors import attach_authors
from fly_thoughts.services.query_builder import build_pagination, validate_page_window
from fly_thoughts.services.relationship_toggle import comment_likes

logger = get_logger(prefix="[CommentService]")

COMMENT_PROJECTION = {"_id": 0, "likes": 0}
THREAD_ORDER = [("created_at", DESCENDING), ("comment_id", DESCENDING)]


def _public(doc: Dict[str, Any], replies: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    comment = {k: v for k, v in doc.items() if k not in ("_id", "likes")}
    comment["replies"] = replies or []
    return comment


class CommentService:
    """
    Service for comment threads.
    """

    def __init__(self):
        self.comments_collection = COMMENTS_COLLECTION
        self.posts_collection = POSTS_COLLECTION

    @staticmethod
    def _validate_content(content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content cannot be empty")
        if len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters", {"length": len(content)}
            )
        return content

    async def _get_comment(self, comment_id: str) -> Dict[str, Any]:
        comments = db_manager.get_collection(self.comments_collection)
        try:
            comment = await comments.find_one({"comment_id": comment_id}, {"_id": 0})
        except PyMongoError as e:
            logger.error(f"Failed to load comment {comment_id}: {e}", exc_info=True)
            raise StorageError("Failed to load comment") from e
        if not comment:
            raise NotFoundError("Comment not found", {"comment_id": comment_id})
        return comment

    async def _ensure_post(self, post_id: str):
        posts = db_manager.get_collection(self.posts_collection)
        try:
            post = await posts.find_one({"post_id": post_id}, {"_id": 0, "post_id": 1})
        except PyMongoError as e:
            logger.error(f"Failed to load post {post_id}: {e}", exc_info=True)
            raise StorageError("Failed to load post") from e
        if not post:
            raise NotFoundError("Post not found", {"post_id": post_id})

    async def create_comment(
        self, post_id: str, author_id: str, content: str, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a top-level comment or, with `parent_id`, a reply.

        Raises:
            ValidationError: Empty or over-long content, a parent on another post, or a
                reply to a reply.
            NotFoundError: The post or the parent comment does not exist.
        """
        content = self._validate_content(content)
        await self._ensure_post(post_id)

        if parent_id:
            parent = await self._get_comment(parent_id)
            if parent["post_id"] != post_id:
                raise ValidationError(
                    "Parent comment belongs to a different post", {"parent_comment": parent_id}
                )
            if parent.get("parent_comment"):
                raise ValidationError("Cannot reply to a reply", {"parent_comment": parent_id})

        now = datetime.now(timezone.utc)
        comment = CommentDocument(
            comment_id=f"comment_{uuid.uuid4().hex[:16]}",
            post_id=post_id,
            author_id=author_id,
            content=content,
            parent_comment=parent_id,
            created_at=now,
            updated_at=now,
        ).model_dump()

        comments = db_manager.get_collection(self.comments_collection)
        posts = db_manager.get_collection(self.posts_collection)
        try:
            async with db_manager.transaction() as session:
                await comments.insert_one(comment, session=session)
                try:
                    await posts.update_one(
                        {"post_id": post_id}, {"$push": {"comments": comment["comment_id"]}}, session=session
                    )
                    if parent_id:
                        await comments.update_one(
                            {"comment_id": parent_id}, {"$push": {"replies": comment["comment_id"]}}, session=session
                        )
                except PyMongoError:
                    if session is None:
                        await self._undo_create(comment)
                    raise
        except PyMongoError as e:
            logger.error(f"Failed to create comment on post {post_id}: {e}", exc_info=True)
            raise StorageError("Failed to create comment") from e

        logger.info(f"Created comment {comment['comment_id']} on post {post_id} by {author_id}")
        result = _public(comment)
        await attach_authors([result])
        return result

    async def _undo_create(self, comment: Dict[str, Any]):
        comments = db_manager.get_collection(self.comments_collection)
        posts = db_manager.get_collection(self.posts_collection)
        logger.error(f"Linking comment {comment['comment_id']} failed, removing it")
        await posts.update_one({"post_id": comment["post_id"]}, {"$pull": {"comments": comment["comment_id"]}})
        await comments.delete_one({"comment_id": comment["comment_id"]})

    async def update_comment(self, comment_id: str, actor_id: str, content: str) -> Dict[str, Any]:
        """
        Edit a comment. Only its author may edit it.

        Raises:
            NotFoundError: The comment does not exist.
            ForbiddenError: The actor is not the author.
            ValidationError: Empty or over-long content.
        """
        comment = await self._get_comment(comment_id)
        if comment["author_id"] != actor_id:
            raise ForbiddenError("Not authorized to edit this comment", {"comment_id": comment_id})
        content = self._validate_content(content)

        now = datetime.now(timezone.utc)
        comments = db_manager.get_collection(self.comments_collection)
        try:
            updated = await comments.find_one_and_update(
                {"comment_id": comment_id},
                {"$set": {"content": content, "is_edited": True, "edited_at": now, "updated_at": now}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to update comment {comment_id}: {e}", exc_info=True)
            raise StorageError("Failed to update comment") from e
        if not updated:
            raise NotFoundError("Comment not found", {"comment_id": comment_id})

        logger.info(f"Updated comment {comment_id}")
        result = _public(updated)
        await attach_authors([result])
        return result

    async def delete_comment(self, comment_id: str, actor: Actor) -> None:
        """
        Delete a comment together with its direct replies.

        Raises:
            NotFoundError: The comment does not exist.
            ForbiddenError: The actor is neither the author nor an admin.
            StorageError: A cascade step failed.
        """
        comment = await self._get_comment(comment_id)
        if comment["author_id"] != actor.account_id and not actor.is_admin:
            raise ForbiddenError("Not authorized to delete this comment", {"comment_id": comment_id})

        comments = db_manager.get_collection(self.comments_collection)
        posts = db_manager.get_collection(self.posts_collection)
        try:
            async with db_manager.transaction() as session:
                child_ids = await comments.distinct(
                    "comment_id", {"parent_comment": comment_id}, session=session
                )
                if child_ids:
                    await comments.delete_many({"parent_comment": comment_id}, session=session)

                await posts.update_one(
                    {"post_id": comment["post_id"]},
                    {"$pull": {"comments": {"$in": [comment_id] + child_ids}}},
                    session=session,
                )

                if comment.get("parent_comment"):
                    await comments.update_one(
                        {"comment_id": comment["parent_comment"]},
                        {"$pull": {"replies": comment_id}},
                        session=session,
                    )

                await comments.delete_one({"comment_id": comment_id}, session=session)
        except PyMongoError as e:
            logger.error(f"Cascade delete of comment {comment_id} failed: {e}", exc_info=True)
            raise StorageError("Failed to delete comment", {"comment_id": comment_id}) from e

        logger.info(f"Deleted comment {comment_id} and {len(child_ids)} replies")

    async def list_comments(self, post_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """
        List a post's top-level comments, newest first, each with its replies oldest first.

        Returns:
            Dict[str, Any]: `{"comments": [...], "pagination": {...}}`.
        """
        validate_page_window(page, limit)
        await self._ensure_post(post_id)

        comments = db_manager.get_collection(self.comments_collection)
        thread_filter = {"post_id": post_id, "parent_comment": None}
        try:
            total = await comments.count_documents(thread_filter)
            top_level = (
                await comments.find(thread_filter, COMMENT_PROJECTION)
                .sort(THREAD_ORDER)
                .skip((page - 1) * limit)
                .limit(limit)
                .to_list(length=None)
            )
            reply_ids = [reply_id for doc in top_level for reply_id in doc.get("replies", [])]
            replies = []
            if reply_ids:
                replies = await comments.find(
                    {"comment_id": {"$in": reply_ids}}, COMMENT_PROJECTION
                ).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Failed to list comments for post {post_id}: {e}", exc_info=True)
            raise StorageError("Failed to list comments") from e

        replies_by_id = {reply["comment_id"]: _public(reply) for reply in replies}
        thread = []
        for doc in top_level:
            ordered = [replies_by_id[r] for r in doc.get("replies", []) if r in replies_by_id]
            thread.append(_public(doc, ordered))

        await attach_authors(thread + list(replies_by_id.values()))
        return {"comments": thread, "pagination": build_pagination(page, limit, total)}

    async def toggle_like_comment(self, comment_id: str, actor_id: str) -> Dict[str, Any]:
        result = await comment_likes.toggle(comment_id, actor_id)
        logger.info(f"Comment {comment_id} {'liked' if result.is_member else 'unliked'} by {actor_id}")
        return {"is_liked": result.is_member, "likes_count": result.count}
