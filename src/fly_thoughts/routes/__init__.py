"""
# Routes Package

FastAPI routers for the public API.

- **`posts`**: `/api/posts`
- **`comments`**: `/api/comments`
- **`users`**: `/api/users`
- **`dependencies`**: Actor resolution from the identity collaborator's headers.
"""
