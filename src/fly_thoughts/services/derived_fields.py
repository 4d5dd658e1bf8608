"""
# Derived-Field Pipeline

Pure functions that compute the post fields clients never set directly:

| Field          | Rule                                                                   |
|----------------|------------------------------------------------------------------------|
| `slug`         | Lowercase ASCII, non-alphanumeric runs collapsed to `-`, `post` if empty |
| `excerpt`      | Markup stripped from content, first 200 characters, then `...`        |
| `read_time`    | `ceil(words / 200)` minutes, at least 1                                |
| `published_at` | Stamped the first time the post is `published`, never overwritten     |

`slug`, `excerpt` and `read_time` are only recomputed when `title` is part of the
mutation. A content-only edit leaves them as they are. Slug uniqueness needs the store and
is resolved by the publication service with `next_free_slug()`.

```python
derive_post_fields({"title": "Héllo, World!", "content": "<p>Hi</p>", "status": "published"})
# {"slug": "hello-world", "excerpt": "Hi...", "read_time": 1, "published_at": datetime(...)}
```
"""

from datetime import datetime, timezone
import html
import math
import re
from typing import Any, Dict, Iterable, Mapping, Optional
import unicodedata

import bleach

from fly_thoughts.config import settings
from fly_thoughts.models.blog_models import PostStatus

DEFAULT_SLUG = "post"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Return the URL-safe base slug for `text`."""
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", folded.lower()).strip("-")
    return slug or DEFAULT_SLUG


def next_free_slug(base: str, taken: Iterable[str]) -> str:
    """
    Return `base` if it is free, otherwise `base-N` with the lowest free `N >= 2`.

    Args:
        base (str): Slug produced by `slugify()`.
        taken (Iterable[str]): Slugs already held by other posts.
    """
    taken = set(taken)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


def strip_markup(content: str) -> str:
    """Remove every tag from `content` and decode HTML entities."""
    return html.unescape(bleach.clean(content, tags=[], strip=True)).strip()


def make_excerpt(content: str, length: Optional[int] = None) -> str:
    length = length or settings.EXCERPT_LENGTH
    return strip_markup(content)[:length] + "..."


def compute_read_time(content: str, words_per_minute: Optional[int] = None) -> int:
    words_per_minute = words_per_minute or settings.WORDS_PER_MINUTE
    words = len(content.split())
    return max(1, math.ceil(words / words_per_minute))


def derive_post_fields(
    changes: Mapping[str, Any],
    current: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Compute the derived fields produced by a create or update.

    Args:
        changes (Mapping[str, Any]): The incoming mutation. For a create this is the whole
            new post.
        current (Optional[Mapping[str, Any]]): The stored post for an update, `None` for a
            create.
        now (Optional[datetime]): Timestamp used for `published_at`. Defaults to now (UTC).

    Returns:
        Dict[str, Any]: Only the fields that must be written. `slug` is the base slug, not
        yet disambiguated against other posts.
    """
    current = current or {}
    derived: Dict[str, Any] = {}

    if "title" in changes:
        content = changes.get("content", current.get("content", ""))
        derived["slug"] = slugify(changes["title"])
        derived["read_time"] = compute_read_time(content)
        if not changes.get("excerpt") and not current.get("excerpt"):
            derived["excerpt"] = make_excerpt(content)

    status = changes.get("status", current.get("status", PostStatus.DRAFT))
    if PostStatus(status) == PostStatus.PUBLISHED and not current.get("published_at"):
        derived["published_at"] = now or datetime.now(timezone.utc)

    return derived
