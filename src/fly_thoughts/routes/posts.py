"""
# Post Routes

REST endpoints for the post lifecycle. Business rules live in `PublicationService`;
these handlers only map wire parameters to service calls.

## API Endpoints

- `GET /api/posts` - List published posts (`page`, `limit`, `category`, `tags`, `search`, `sort`)
- `GET /api/posts/featured` - Featured posts
- `GET /api/posts/categories` - Categories in use
- `GET /api/posts/tags` - Most used tags
- `GET /api/posts/me` - The actor's own posts, drafts included
- `GET /api/posts/user/{username}` - Published posts of one author
- `GET /api/posts/{slug}` - Read a post (counts a view)
- `POST /api/posts` - Create a post
- `PUT /api/posts/{post_id}` - Update a post
- `DELETE /api/posts/{post_id}` - Delete a post and its comments
- `POST /api/posts/{post_id}/like` - Toggle a like
- `POST /api/posts/{post_id}/bookmark` - Toggle a bookmark

Domain errors propagate to the application's exception handler, which renders them as
`{"error": {"code", "message", "details"}}`.

Attributes:
    router (APIRouter): FastAPI router with `/api/posts` prefix
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fly_thoughts.config import settings
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import Actor
from fly_thoughts.models.blog_models import (
    BookmarkToggleResponse,
    CreatePostRequest,
    LikeToggleResponse,
    MessageResponse,
    PaginatedPostsResponse,
    PostResponse,
    PostStatus,
    PostSummaryResponse,
    TagCount,
    UpdatePostRequest,
)
from fly_thoughts.routes.dependencies import ERROR_RESPONSES, HANDLED_ERRORS, get_current_actor
from fly_thoughts.services.publication_service import PublicationService

logger = get_logger(prefix="[Post Routes]")

publication_service = PublicationService()

router = APIRouter(prefix="/api/posts", tags=["posts"], responses=ERROR_RESPONSES)


@router.get("", response_model=PaginatedPostsResponse)
async def list_posts(
    page: int = Query(1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    category: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma-separated tags"),
    search: Optional[str] = None,
    sort: Optional[str] = Query(None, description="latest | oldest | popular | views"),
):
    """
    List published posts.

    Unknown `sort` values fall back to `latest`. Entries never include `content`.
    """
    try:
        return await publication_service.list_posts(
            page=page, limit=limit, category=category, tags=tags, search=search, sort=sort
        )
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to list posts: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list posts")


@router.get("/featured", response_model=List[PostSummaryResponse])
async def get_featured_posts():
    try:
        return await publication_service.get_featured_posts()
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get featured posts: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get featured posts")


@router.get("/categories", response_model=List[str])
async def get_categories():
    try:
        return await publication_service.get_categories()
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get categories: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get categories")


@router.get("/tags", response_model=List[TagCount])
async def get_tags():
    try:
        return await publication_service.get_tags()
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get tags: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get tags")


@router.get("/me", response_model=PaginatedPostsResponse)
async def get_my_posts(
    page: int = Query(1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE),
    post_status: Optional[PostStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
):
    """
    List the actor's own posts in any status, most recently updated first.

    Args:
        post_status (PostStatus, optional): Restrict to one status.
    """
    try:
        return await publication_service.get_my_posts(
            actor, page=page, limit=limit, status=post_status.value if post_status else None
        )
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get posts for %s: %s", actor.account_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get posts")


@router.get("/user/{username}", response_model=PaginatedPostsResponse)
async def get_posts_by_user(username: str, page: int = Query(1), limit: int = Query(settings.DEFAULT_PAGE_SIZE)):
    try:
        return await publication_service.get_posts_by_user(username, page=page, limit=limit)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get posts by %s: %s", username, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get posts")


@router.get("/{slug}", response_model=PostResponse)
async def get_post_by_slug(slug: str):
    """
    Read a published post by slug and count the view.

    Raises:
        NotFoundError(404): If no published post has this slug.
    """
    try:
        return await publication_service.get_post_by_slug(slug)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get post %s: %s", slug, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get post")


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(request: CreatePostRequest, actor: Actor = Depends(get_current_actor)):
    """
    Create a post authored by the actor.

    `slug`, `excerpt` (when omitted), `read_time` and `published_at` are derived.
    """
    try:
        return await publication_service.create_post(actor, request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to create post: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create post")


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(post_id: str, request: UpdatePostRequest, actor: Actor = Depends(get_current_actor)):
    try:
        return await publication_service.update_post(post_id, actor, request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to update post %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update post")


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(post_id: str, actor: Actor = Depends(get_current_actor)):
    try:
        await publication_service.delete_post(post_id, actor)
        return {"message": "Post deleted successfully"}
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to delete post %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete post")


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(post_id: str, actor: Actor = Depends(get_current_actor)):
    try:
        return await publication_service.toggle_like(post_id, actor.account_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to toggle like on %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle like")


@router.post("/{post_id}/bookmark", response_model=BookmarkToggleResponse)
async def toggle_bookmark(post_id: str, actor: Actor = Depends(get_current_actor)):
    try:
        return await publication_service.toggle_bookmark(post_id, actor.account_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to toggle bookmark on %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle bookmark")
