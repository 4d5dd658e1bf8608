"""
# Models Package

Pydantic v2 models for requests, responses and stored documents.

- **`blog_models`**: Posts, comments, pagination, toggle results and the error body.
- **`account_models`**: Accounts, profiles and the acting identity (`Actor`).
"""
