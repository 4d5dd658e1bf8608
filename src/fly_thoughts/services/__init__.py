"""
# Services Package

Business logic for Fly Thoughts. Routes stay thin and delegate here.

- **`derived_fields`**: Slug, excerpt, read time and publication stamp.
- **`relationship_toggle`**: Guarded set-membership toggles (likes, bookmarks, follows).
- **`query_builder`**: Filter, sort and pagination for post listings.
- **`comment_service`**: Two-level comment threads with cascading delete.
- **`publication_service`**: The post lifecycle.
- **`account_service`**: Profiles, registration and follows.
"""
