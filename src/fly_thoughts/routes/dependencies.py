"""
# Actor Dependencies

FastAPI dependencies resolving the **acting identity** of a request.

Credential verification happens upstream in the identity collaborator (gateway), which
forwards the verified identity in two trusted headers:

- `X-Actor-Id`: the account id.
- `X-Actor-Role`: `user` (default) or `admin`.

```python
@router.delete("/{post_id}")
async def delete_post(post_id: str, actor: Actor = Depends(get_current_actor)):
    ...
```
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from fly_thoughts.exceptions import FlyThoughtsError
from fly_thoughts.managers.logging_manager import get_logger
from fly_thoughts.models.account_models import AccountRole, Actor
from fly_thoughts.models.blog_models import ErrorResponse

logger = get_logger(prefix="[Actor]")

# Re-raised untouched by route handlers; the application exception handlers render them.
HANDLED_ERRORS = (HTTPException, FlyThoughtsError, ConnectionError)

# Documented on every router; bodies are rendered by the handlers in main.py.
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    403: {"model": ErrorResponse, "description": "Actor lacks ownership or the admin role"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Unique field already taken"},
    503: {"model": ErrorResponse, "description": "Database unavailable"},
}


def _parse_actor(actor_id: Optional[str], role: Optional[str]) -> Optional[Actor]:
    if not actor_id or not actor_id.strip():
        return None
    try:
        return Actor(account_id=actor_id.strip(), role=AccountRole((role or AccountRole.USER.value).strip().lower()))
    except ValueError:
        logger.warning("Rejected request with invalid actor role %r", role)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid actor role")


async def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """
    Require an authenticated actor.

    Raises:
        HTTPException(401): If no actor identity was forwarded.
    """
    actor = _parse_actor(x_actor_id, x_actor_role)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return actor

