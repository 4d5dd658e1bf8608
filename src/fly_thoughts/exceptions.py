"""
# Domain Exceptions

Every failure a service can report is one of the classes below. The request layer maps them
to HTTP responses shaped like `{"error": {"code", "message", "details"}}`.

| Exception         | Code               | HTTP | Meaning                                     |
|-------------------|--------------------|------|---------------------------------------------|
| `ValidationError` | `VALIDATION_ERROR` | 400  | Missing or malformed input                  |
| `ConflictError`   | `CONFLICT`         | 409  | Uniqueness violation (slug/username/email)  |
| `NotFoundError`   | `NOT_FOUND`        | 404  | Id, slug or username does not resolve       |
| `ForbiddenError`  | `FORBIDDEN`        | 403  | Actor lacks ownership or the admin role     |
| `StorageError`    | `STORAGE_ERROR`    | 503  | Database unreachable or a cascade step fail |
"""

from typing import Any, Dict, Optional


class FlyThoughtsError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}


class ValidationError(FlyThoughtsError):
    """Input is missing or malformed. Recoverable by correcting the input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(ValidationError):
    """A unique field already holds the submitted value."""

    code = "CONFLICT"
    status_code = 409

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"{field} already exists", {"field": field})
        self.field = field


class NotFoundError(FlyThoughtsError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(FlyThoughtsError):
    code = "FORBIDDEN"
    status_code = 403


class StorageError(FlyThoughtsError):
    """The store failed; no partial success is reported."""

    code = "STORAGE_ERROR"
    status_code = 503
