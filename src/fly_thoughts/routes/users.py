"""
# User Routes

- `POST /api/users` - Register an account (called by the identity collaborator)
- `GET /api/users` - List accounts (admin only)
- `GET /api/users/me` - The actor's own profile with bookmarks
- `PUT /api/users/me` - Update username, bio or avatar
- `GET /api/users/{username}` - Public profile
- `POST /api/users/{account_id}/follow` - Toggle following an account

Attributes:
    router (APIRouter): FastAPI router with `/api/users` prefix
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import (
    Actor,
    CreateAccountRequest,
    FollowToggleResponse,
    PaginatedAccountsResponse,
    ProfileResponse,
    PublicProfileResponse,
    UpdateProfileRequest,
)
from fly_thoughts.routes.dependencies import ERROR_RESPONSES, HANDLED_ERRORS, get_current_actor
from fly_thoughts.services.account_service import AccountService

logger = get_logger(prefix="[User Routes]")

account_service = AccountService()

router = APIRouter(prefix="/api/users", tags=["users"], responses=ERROR_RESPONSES)


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_account(request: CreateAccountRequest):
    """
    Register an account for an identity that has just signed up.

    Raises:
        ConflictError(409): If the username or email is taken. `details.field` names which.
    """
    try:
        return await account_service.create_account(request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to create account: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create account")


@router.get("", response_model=PaginatedAccountsResponse)
async def list_accounts(
    page: int = Query(1), limit: int = Query(20), actor: Actor = Depends(get_current_actor)
):
    try:
        return await account_service.list_accounts(actor, page=page, limit=limit)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to list accounts: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list accounts")


@router.get("/me", response_model=ProfileResponse)
async def get_profile(actor: Actor = Depends(get_current_actor)):
    try:
        return await account_service.get_profile(actor)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get profile %s: %s", actor.account_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get profile")


@router.put("/me", response_model=ProfileResponse)
async def update_profile(request: UpdateProfileRequest, actor: Actor = Depends(get_current_actor)):
    try:
        return await account_service.update_profile(actor, request)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to update profile %s: %s", actor.account_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update profile")


@router.get("/{username}", response_model=PublicProfileResponse)
async def get_account_by_username(username: str):
    try:
        return await account_service.get_account_by_username(username)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to get user %s: %s", username, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get user")


@router.post("/{account_id}/follow", response_model=FollowToggleResponse)
async def toggle_follow(account_id: str, actor: Actor = Depends(get_current_actor)):
    """
    Follow or unfollow `account_id`.

    Raises:
        ValidationError(400): If the actor targets their own account.
    """
    try:
        return await account_service.toggle_follow(actor.account_id, account_id)
    except HANDLED_ERRORS:
        raise
    except Exception as e:
        logger.error("Failed to toggle follow %s -> %s: %s", actor.account_id, account_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to toggle follow")
