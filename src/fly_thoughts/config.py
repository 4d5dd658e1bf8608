"""
# Configuration

This module provides the **configuration system** for Fly Thoughts.
Built on **Pydantic Settings**, it loads values from a configuration file or the process
environment, validates them at import time and exposes a single `settings` object.

## Configuration Hierarchy

The configuration file is located with the following precedence:

1. **Environment Variable**: `FLY_THOUGHTS_CONFIG_PATH` (if set and the file exists).
2. **Project Config**: `.flythoughts` in the project root.
3. **Dotenv**: `.env` in the project root.
4. **Fallback**: no file, environment variables only.

Values found in the file are loaded with `python-dotenv` (overriding the environment), so
container deployments can rely purely on environment variables while local development uses
a file.

## Example `.env`

```bash
DEBUG=true
LOG_LEVEL=DEBUG
MONGODB_URL=mongodb://localhost:27017
MONGODB_DATABASE=fly_thoughts_dev
CORS_ORIGINS=http://localhost:3000,http://localhost:3001
```

## Usage

```python
from fly_thoughts.config import settings

limit = settings.DEFAULT_PAGE_SIZE
```

Attributes:
    CONFIG_PATH (Optional[str]): The configuration file in use, or `None`.
    settings (Settings): Global settings instance.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
PROJECT_FILENAME: str = ".flythoughts"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "FLY_THOUGHTS_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determines the configuration file path based on a predefined precedence order.

    Returns:
        Optional[str]: The absolute path to the configuration file, or `None` if not found.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    project_path: Path = PROJECT_ROOT / PROJECT_FILENAME
    if project_path.exists():
        return str(project_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=True)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, CORS origins.
    *   **Logging**: Root level for every `get_logger()` logger.
    *   **Database**: MongoDB connection details, timeouts and pool sizes.
    *   **Listing**: Page sizes and caps for featured posts and popular tags.
    *   **Content**: Reading speed, excerpt length, slug disambiguation budget.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = True
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    # Logging
    LOG_LEVEL: str = "INFO"

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "fly_thoughts"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_MIN_POOL_SIZE: int = 5
    MONGODB_MAX_POOL_SIZE: int = 50

    # Authentication (optional)
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    FEATURED_POSTS_LIMIT: int = 6
    POPULAR_TAGS_LIMIT: int = 20

    # Content
    WORDS_PER_MINUTE: int = 200
    EXCERPT_LENGTH: int = 200
    SLUG_MAX_ATTEMPTS: int = 5

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return v

    @field_validator(
        "DEFAULT_PAGE_SIZE",
        "MAX_PAGE_SIZE",
        "FEATURED_POSTS_LIMIT",
        "POPULAR_TAGS_LIMIT",
        "WORDS_PER_MINUTE",
        "EXCERPT_LENGTH",
        "SLUG_MAX_ATTEMPTS",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be a positive integer")
        return v

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        if self.MAX_PAGE_SIZE < self.DEFAULT_PAGE_SIZE:
            raise ValueError("MAX_PAGE_SIZE must be greater than or equal to DEFAULT_PAGE_SIZE")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins parsed from the comma-separated `CORS_ORIGINS` value."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings: Settings = Settings()
