"""
ShelfTrack domain core.

- User registration and token-based authentication
- Book validation, ISBN uniqueness and reading-status lifecycle
- Filtered, sorted and paginated listings
- Per-user collection statistics
"""
