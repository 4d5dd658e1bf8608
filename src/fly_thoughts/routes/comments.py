"""
# Comment Routes

- `GET /api/comments/post/{post_id}` - Thread listing (top-level comments with replies)
- `POST /api/comments` - Comment on a post, or reply with `parent_comment`
- `PUT /api/comments/{comment_id}` - Edit (author only)
- `DELETE /api/comments/{comment_id}` - Delete with direct replies (author or admin)
- `POST /api/comments/{comment_id}/like` - Toggle a like

Attributes:
    router (APIRouter): FastAPI router with `/api/comments` prefix
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import Actor
from fly_thoughts.models.blog_models import (
    CommentResponse,
    CreateCommentRequest,
    LikeToggleResponse,
    MessageResponse,
    PaginatedCommentsResponse,
    UpdateCommentRequest,
)
from fly_thoughts.routes.dependencies import ERROR_RESPONSES, HANDLED_ERRORS, get_current_actor
from fly_thoughts.services.comment_service import CommentService

logger = get_logger(prefix="[Comment Routes]")

comment_service = CommentService()

router = APIRouter(prefix="/api/comments", tags=["comments"], responses=ERROR_RESPONSES)


@router.get("/post/{post_id}", response_model=PaginatedCommentsResponse)
async def list_comments(post_id: str, page: int = Query(1), limit: int = Query(20)):
    """
    List a post's thread, newest top-level comments first. Replies are oldest first.
    """
    try:
        return await comment_service.list_comments(post_id, page=page, limit=limit)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to list comments for %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list comments")


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(request: CreateCommentRequest, actor: Actor = Depends(get_current_actor)):
    try:
        return await comment_service.create_comment(
            request.post_id, actor.account_id, request.content, parent_id=request.parent_comment
        )
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to create comment: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create comment")


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(comment_id: str, request: UpdateCommentRequest, actor: Actor = Depends(get_current_actor)):
    try:
        return await comment_service.update_comment(comment_id, actor.account_id, request.content)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to update comment %s: %s", comment_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update comment")


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(comment_id: str, actor: Actor = Depends(get_current_actor)):
    try:
        await comment_service.delete_comment(comment_id, actor)
        return {"message": "Comment deleted successfully"}
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to delete comment %s: %s", comment_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete comment")


@router.post("/{comment_id}/like", response_model=LikeToggleResponse)
async def toggle_like_comment(comment_id: str, actor: Actor = Depends(get_current_actor)):
    try:
        return await comment_service.toggle_like_comment(comment_id, actor.account_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to toggle like on comment %s: %s", comment_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle like")
