"""
# Account Models

Shapes for accounts, profiles and the acting identity.

Credentials are issued and verified by an external identity collaborator. This service only
stores the opaque `credential_hash` it is handed at sign-up and never returns it. Every
mutating operation receives an explicit `Actor` describing who is acting.

```python
actor = Actor(account_id="user_0123456789abcdef", role="admin")
actor.is_admin  # True
```
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from fly_thoughts.models.blog_models import AuthorSummary, PaginationMeta, PostSummaryResponse, clean_text

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class AccountRole(str, Enum):
    """Enumeration of account roles.

    Attributes:
        USER: Regular author and reader.
        ADMIN: May edit or delete any post or comment and list accounts.
    """
    USER = "user"
    ADMIN = "admin"


class Actor(BaseModel):
    """The identity on whose behalf an operation runs."""

    account_id: str
    role: AccountRole = AccountRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN


class CreateAccountRequest(BaseModel):
    """
    Registration payload supplied by the identity collaborator.

    **Validation:**
    *   **username**: 3-30 characters of letters, digits, `_`, `.` or `-`.
    *   **email**: Must be a valid address; stored lowercased.
    """

    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    credential_hash: str = Field(..., min_length=1, description="Opaque hash from the identity provider")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()


class UpdateProfileRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = Field(None, description="Stored asset reference")

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, v):
        if v is None:
            return v
        return clean_text(v)


class PublicProfileResponse(BaseModel):
    """
    Public view of an account.

    Never includes `email` or `credential_hash`.
    """

    account_id: str
    username: str
    bio: str = ""
    avatar: str = ""
    role: AccountRole = AccountRole.USER
    is_verified: bool = False
    followers: List[AuthorSummary] = []
    following: List[AuthorSummary] = []
    followers_count: int = 0
    following_count: int = 0
    created_at: Optional[datetime] = None


class ProfileResponse(PublicProfileResponse):
    """The actor's own profile, including private fields and bookmarked posts."""

    email: str
    bookmarks: List[PostSummaryResponse] = []
    updated_at: Optional[datetime] = None


class AccountListEntry(BaseModel):
    account_id: str
    username: str
    email: str
    role: AccountRole
    is_verified: bool = False
    created_at: Optional[datetime] = None


class PaginatedAccountsResponse(BaseModel):
    accounts: List[AccountListEntry]
    pagination: PaginationMeta


class FollowToggleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_following: bool = Field(..., alias="isFollowing")
