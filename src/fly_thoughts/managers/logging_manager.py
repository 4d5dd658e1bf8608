"""
# Logging Manager

Central logger factory. Every module obtains its logger through `get_logger()` so that
formatting and level are configured once, from `settings.LOG_LEVEL`.

A `prefix` tags each record with the component that emitted it:

```python
from fly_thoughts.managers.logging_manager import get_logger

logger = get_logger(prefix="[PublicationService]")
logger.info("Created post %s", post_id)
# 2024-01-15 10:30:00,000 - FlyThoughts - INFO - [PublicationService] Created post post_abc
```
"""

import logging
import sys
from typing import Any, MutableMapping, Tuple

from fly_thoughts.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOGGER_NAME = "FlyThoughts"

_configured = False


class PrefixedLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed component prefix to every message."""

    def __init__(self, logger: logging.Logger, prefix: str = ""):
        super().__init__(logger, {})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if self.prefix:
            return f"{self.prefix} {msg}", kwargs
        return msg, kwargs


def _configure_root(name: str) -> None:
    global _configured
    if _configured:
        return
    base = logging.getLogger(name)
    base.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        base.addHandler(handler)
    base.propagate = False
    _configured = True


def get_logger(name: str = DEFAULT_LOGGER_NAME, prefix: str = "") -> PrefixedLoggerAdapter:
    """
    Return a logger for `name`, optionally tagging every record with `prefix`.

    Args:
        name (str): Logger name. Defaults to the application logger.
        prefix (str): Component tag such as `"[DATABASE]"`.

    Returns:
        PrefixedLoggerAdapter: A logger supporting the standard `logging` call API.
    """
    _configure_root(DEFAULT_LOGGER_NAME)
    return PrefixedLoggerAdapter(logging.getLogger(name), prefix)
