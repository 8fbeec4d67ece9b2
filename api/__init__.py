"""
FastAPI RESTful API for the ShelfTrack personal library.

This package exposes:
- Registration and login with bearer tokens
- Book CRUD scoped to the authenticated user
- Reading-status tracking
- Filtered, sorted, paginated listings and collection statistics
"""
