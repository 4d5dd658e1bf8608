"""
# Query Builder

Turns listing parameters (`page`, `limit`, `category`, `tags`, `search`, `sort`) into a
MongoDB filter, a deterministic sort and a page window over **published** posts.

## Sort Options

| `sort`    | Order                                         |
|-----------|-----------------------------------------------|
| `latest`  | `published_at` desc (default, and for unknown) |
| `oldest`  | `published_at` asc                            |
| `popular` | `likes_count` desc, then `views` desc         |
| `views`   | `views` desc                                  |

Every sort ends with `post_id` so that documents with equal keys keep a stable order across
pages.

## Usage

```python
query = build_post_query(page=2, limit=10, tags="python, FastAPI", sort="popular")
cursor = posts.find(query.filter, SUMMARY_PROJECTION).sort(query.sort).skip(query.skip).limit(query.limit)
total = await posts.count_documents(query.filter)
pagination = build_pagination(query.page, query.limit, total)
```
"""

from dataclasses import dataclass, field
import math
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pymongo import ASCENDING, DESCENDING

from fly_thoughts.config import settings
from fly_thoughts.exceptions import ValidationError
from fly_thoughts.models.blog_models import PaginationMeta, PostStatus, SortOption

SortSpec = List[Tuple[str, int]]

SORTS: Dict[str, SortSpec] = {
    SortOption.LATEST.value: [("published_at", DESCENDING), ("post_id", DESCENDING)],
    SortOption.OLDEST.value: [("published_at", ASCENDING), ("post_id", ASCENDING)],
    SortOption.POPULAR.value: [("likes_count", DESCENDING), ("views", DESCENDING), ("post_id", DESCENDING)],
    SortOption.VIEWS.value: [("views", DESCENDING), ("post_id", DESCENDING)],
}

# Listings never carry the body or the raw relationship arrays.
SUMMARY_PROJECTION = {"_id": 0, "content": 0, "likes": 0, "comments": 0}


@dataclass
class PostQuery:
    filter: Dict[str, Any]
    sort: SortSpec
    page: int
    limit: int
    skip: int = field(init=False)

    def __post_init__(self):
        self.skip = (self.page - 1) * self.limit


def validate_page_window(page: int, limit: int) -> Tuple[int, int]:
    """
    Reject a page window outside the supported range.

    Raises:
        ValidationError: If `page < 1` or `limit` is outside `1..MAX_PAGE_SIZE`.
    """
    if page < 1:
        raise ValidationError("page must be at least 1", {"page": page})
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}", {"limit": limit})
    return page, limit


def parse_tags(tags: Union[str, Sequence[str], None]) -> List[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    parsed = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in parsed:
            parsed.append(tag)
    return parsed


def build_sort(sort: Optional[str]) -> SortSpec:
    """Resolve a sort name, falling back to `latest` for anything unrecognised."""
    return list(SORTS.get((sort or "").strip().lower(), SORTS[SortOption.LATEST.value]))


def build_filter(
    category: Optional[str] = None,
    tags: Union[str, Sequence[str], None] = None,
    search: Optional[str] = None,
    base_filter: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the post filter.

    Args:
        category: Matched exactly after lowercasing.
        tags: Comma-separated string or list. A post matches if it has any of them.
        search: Case-insensitive literal substring over title, content and tags.
        base_filter: Starting constraints. Defaults to published posts only.
    """
    query: Dict[str, Any] = dict(base_filter) if base_filter is not None else {"status": PostStatus.PUBLISHED.value}

    if category and category.strip():
        query["category"] = category.strip().lower()

    tag_list = parse_tags(tags)
    if tag_list:
        query["tags"] = {"$in": tag_list}

    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"content": pattern}, {"tags": pattern}]

    return query


def build_post_query(
    page: int = 1,
    limit: Optional[int] = None,
    category: Optional[str] = None,
    tags: Union[str, Sequence[str], None] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    base_filter: Optional[Dict[str, Any]] = None,
    order: Optional[SortSpec] = None,
) -> PostQuery:
    """
    Build a complete paginated post query.

    `order` overrides the named `sort` for internal listings such as an author's own posts.

    Raises:
        ValidationError: If the page window is out of range.
    """
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
    validate_page_window(page, limit)
    return PostQuery(
        filter=build_filter(category=category, tags=tags, search=search, base_filter=base_filter),
        sort=order if order is not None else build_sort(sort),
        page=page,
        limit=limit,
    )


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination metadata for a result window; `total` counts every match."""
    pages = math.ceil(total / limit) if limit else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        has_next=page < pages,
        has_prev=page > 1,
    ).model_dump()
