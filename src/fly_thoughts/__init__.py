"""
# Fly Thoughts

A **FastAPI-based publishing service**: authors write posts, readers comment in threads,
and accounts like, bookmark and follow each other.

## Package Structure

- **`config`**: Pydantic-based configuration with `.env` / environment variable support
- **`database`**: Motor (async MongoDB) connection management, indexes and transactions
- **`managers`**: Cross-cutting managers (logging)
- **`models`**: Pydantic request, response and document models
- **`services`**: Business logic
    - `derived_fields`: slug, excerpt, read time and publication stamping
    - `relationship_toggle`: atomic set-membership toggles (likes, bookmarks, follows)
    - `query_builder`: filter / sort / pagination for post listings
    - `comment_service`: two-level comment threads with cascading deletion
    - `publication_service`: post lifecycle orchestration
    - `account_service`: profiles, follows and bookmarks
- **`routes`**: FastAPI routers exposing the services over HTTP
- **`main`**: Application entry point and lifespan

## Module-Level Attributes

Attributes:
    __version__ (str): Package version following semantic versioning.
    settings (Settings): Re-exported global configuration singleton from `config.py`.
"""

__version__ = "1.0.0"

# Re-export commonly used objects for convenience
from fly_thoughts.config import settings

__description__ = "A FastAPI publishing service for posts, threaded comments and reader relationships"
