"""
# Publishing Models

This module defines the **request, response and document** shapes for posts and comments.

## Domain Model Overview

- **Post**: The primary content unit. Carries derived fields (`slug`, `excerpt`,
  `read_time`, `published_at`) computed by the derived-field pipeline, and a `likes` set
  kept in lock-step with `likes_count`.
- **Comment**: A reader response to a post. Threads are two levels deep: a top-level
  comment and its direct replies.

## Key Features

### 1. Content Safety
- **HTML Sanitization**: Titles and comments are stripped of all markup with `bleach`;
  post content keeps a small allow-list of formatting tags.

### 2. Publishing Workflow
- **Status Lifecycle**: `draft` → `published` → `archived`.
- **Publication Stamp**: `published_at` is set once, on the first transition into
  `published`, and never cleared.

## Usage Examples

```python
post = CreatePostRequest(
    title="Hello <b>World</b>",
    content="<p>First post</p><script>alert(1)</script>",
    category="Tech",
    tags=["Python", "fastapi"],
    status="published",
)
post.title     # "Hello World"
post.category  # "tech"
post.tags      # ["python", "fastapi"]
```

Attributes:
    POST_STATUSES (List[str]): Valid lifecycle states for a post.
    ALLOWED_CONTENT_TAGS (List[str]): Markup tags kept in post content.
    SORT_OPTIONS (List[str]): Accepted `sort` values for post listings.
"""

from datetime import datetime
from enum import Enum
import html
from typing import Any, Dict, List, Optional

import bleach
from pydantic import BaseModel, ConfigDict, Field, field_validator

POST_STATUSES = ["draft", "published", "archived"]
SORT_OPTIONS = ["latest", "oldest", "popular", "views"]
ALLOWED_CONTENT_TAGS = [
    "p", "br", "strong", "em", "b", "i", "u", "code", "pre", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "a", "img", "hr", "table", "thead", "tbody", "tr", "th", "td",
]
ALLOWED_CONTENT_ATTRIBUTES = {"a": ["href", "title"], "img": ["src", "alt", "title"]}

MAX_COMMENT_LENGTH = 1000


class PostStatus(str, Enum):
    """Enumeration of post lifecycle states.

    Attributes:
        DRAFT: Post is being written, visible only to its author.
        PUBLISHED: Post is live and listed.
        ARCHIVED: Post is retired but preserved.
    """
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class SortOption(str, Enum):
    LATEST = "latest"
    OLDEST = "oldest"
    POPULAR = "popular"
    VIEWS = "views"


def clean_text(value: str) -> str:
    """Strip all markup and return plain text. Entities escaped by bleach are decoded again."""
    return html.unescape(bleach.clean(value, tags=[], strip=True)).strip()


def _normalize_tags(tags: List[str]) -> List[str]:
    seen = []
    for tag in tags:
        cleaned = clean_text(tag).lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class CreatePostRequest(BaseModel):
    """
    Request model for creating a post.

    **Sanitization:**
    *   **title**: All HTML tags are stripped.
    *   **content**: Only `ALLOWED_CONTENT_TAGS` survive.
    *   **category** / **tags**: Lowercased and trimmed; duplicate tags collapse.

    **Derived fields** (`slug`, `excerpt` when omitted, `read_time`, `published_at`) are
    never accepted from the client.
    """

    title: str = Field(..., min_length=1, max_length=200, description="Post title")
    content: str = Field(..., min_length=1, description="Post content, may contain markup")
    category: str = Field(..., min_length=1, max_length=50, description="Post category")
    tags: List[str] = Field(default_factory=list, max_length=20, description="Post tags")
    status: PostStatus = Field(default=PostStatus.DRAFT, description="Post status")
    excerpt: Optional[str] = Field(None, max_length=300, description="Explicit excerpt")
    thumbnail: str = Field(default="", description="Stored asset reference for the thumbnail")
    seo_title: Optional[str] = Field(None, max_length=60, description="SEO title")
    seo_description: Optional[str] = Field(None, max_length=160, description="SEO description")
    featured: bool = Field(default=False, description="Whether the post is featured (admin only)")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        cleaned = clean_text(v)
        if not cleaned:
            raise ValueError("Title cannot be empty")
        return cleaned

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        cleaned = bleach.clean(v, tags=ALLOWED_CONTENT_TAGS, attributes=ALLOWED_CONTENT_ATTRIBUTES, strip=True)
        if not cleaned.strip():
            raise ValueError("Content cannot be empty")
        return cleaned

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        cleaned = clean_text(v).lower()
        if not cleaned:
            raise ValueError("Category cannot be empty")
        return cleaned

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _normalize_tags(v)

    @field_validator("excerpt")
    @classmethod
    def validate_excerpt(cls, v):
        if v is None:
            return v
        return clean_text(v) or None


class UpdatePostRequest(BaseModel):
    """
    Request model for updating a post.

    Every field is optional; only the fields present in the payload are applied. Including
    `title` re-derives `slug`, `excerpt` and `read_time`.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    tags: Optional[List[str]] = Field(None, max_length=20)
    status: Optional[PostStatus] = None
    excerpt: Optional[str] = Field(None, max_length=300)
    thumbnail: Optional[str] = None
    seo_title: Optional[str] = Field(None, max_length=60)
    seo_description: Optional[str] = Field(None, max_length=160)
    featured: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is None:
            return v
        cleaned = clean_text(v)
        if not cleaned:
            raise ValueError("Title cannot be empty")
        return cleaned

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if v is None:
            return v
        cleaned = bleach.clean(v, tags=ALLOWED_CONTENT_TAGS, attributes=ALLOWED_CONTENT_ATTRIBUTES, strip=True)
        if not cleaned.strip():
            raise ValueError("Content cannot be empty")
        return cleaned

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        if v is None:
            return v
        cleaned = clean_text(v).lower()
        if not cleaned:
            raise ValueError("Category cannot be empty")
        return cleaned

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        if v is None:
            return v
        return _normalize_tags(v)


class CreateCommentRequest(BaseModel):
    """
    Request model for posting a comment or a reply.

    Markup is stripped. Emptiness and the length limit are checked again by the comment
    service on the trimmed text, so direct service callers get the same rules.
    """

    post_id: str = Field(..., description="Post being commented on")
    content: str = Field(..., description="Comment text")
    parent_comment: Optional[str] = Field(None, description="Parent comment id for a reply")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return clean_text(v)


class UpdateCommentRequest(BaseModel):
    content: str = Field(..., description="New comment text")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return clean_text(v)


class AuthorSummary(BaseModel):
    """Public author fields embedded in post and comment listings."""

    account_id: str
    username: Optional[str] = None
    avatar: str = ""
    bio: str = ""


class PostSummaryResponse(BaseModel):
    """
    A post as it appears in list results.

    `content` is never part of a listing.
    """

    post_id: str
    title: str
    slug: str
    excerpt: str
    category: str
    tags: List[str] = []
    thumbnail: str = ""
    author_id: str
    author: Optional[AuthorSummary] = None
    status: PostStatus
    featured: bool = False
    likes_count: int = 0
    views: int = 0
    read_time: int = 1
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PostResponse(PostSummaryResponse):
    """A single post with its full content and relationship sets."""

    content: str
    likes: List[str] = []
    comments: List[str] = []
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


class CommentResponse(BaseModel):
    """
    Response model for a comment.

    Top-level comments in a thread listing carry their direct replies, oldest first.
    """

    comment_id: str
    post_id: str
    author_id: str
    author: Optional[AuthorSummary] = None
    content: str
    parent_comment: Optional[str] = None
    likes_count: int = 0
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    replies: List["CommentResponse"] = []


# Pagination Models
class PaginationMeta(BaseModel):
    """
    Standard pagination metadata.

    `total` counts every match independent of the page window; `pages` is
    `ceil(total / limit)`.
    """

    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class PaginatedPostsResponse(BaseModel):
    posts: List[PostSummaryResponse]
    pagination: PaginationMeta


class PaginatedCommentsResponse(BaseModel):
    comments: List[CommentResponse]
    pagination: PaginationMeta


# Toggle Models
class LikeToggleResponse(BaseModel):
    """Result of a like toggle on a post or comment."""

    model_config = ConfigDict(populate_by_name=True)

    is_liked: bool = Field(..., alias="isLiked")
    likes_count: int = Field(..., alias="likesCount")


class BookmarkToggleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_bookmarked: bool = Field(..., alias="isBookmarked")


class TagCount(BaseModel):
    name: str
    count: int


class MessageResponse(BaseModel):
    message: str


# Database Schema Models
class PostDocument(BaseModel):
    """
    MongoDB document model for the `posts` collection.

    New posts are built through this model before insertion, so every stored document
    carries the full field set with enum values stored as plain strings.
    """

    post_id: str
    title: str
    slug: str
    content: str
    excerpt: str
    category: str
    tags: List[str] = []
    thumbnail: str = ""
    author_id: str
    likes: List[str] = []
    likes_count: int = 0
    comments: List[str] = []
    views: int = 0
    read_time: int = 1
    status: PostStatus = PostStatus.DRAFT
    featured: bool = False
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "post_id": "post_abc123def4567890",
                "title": "Getting Started with FastAPI",
                "slug": "getting-started-with-fastapi",
                "content": "<p>FastAPI is a modern web framework...</p>",
                "excerpt": "FastAPI is a modern web framework......",
                "category": "technology",
                "tags": ["fastapi", "python"],
                "thumbnail": "",
                "author_id": "user_0123456789abcdef",
                "likes": [],
                "likes_count": 0,
                "comments": [],
                "views": 0,
                "read_time": 1,
                "status": "published",
                "featured": False,
                "published_at": "2024-01-15T10:30:00Z",
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-15T10:30:00Z",
            }
        }
    )


class CommentDocument(BaseModel):
    """
    MongoDB document model for the `comments` collection.
    """

    comment_id: str
    post_id: str
    author_id: str
    content: str = Field(..., max_length=MAX_COMMENT_LENGTH)
    parent_comment: Optional[str] = None
    replies: List[str] = []
    likes: List[str] = []
    likes_count: int = 0
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# Error Response Models
class ErrorResponse(BaseModel):
    """
    Standard error response body for every domain failure.
    """

    error: Dict[str, Any]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "NOT_FOUND",
                    "message": "Post not found",
                    "details": {"slug": "missing-post"},
                }
            }
        }
    )
