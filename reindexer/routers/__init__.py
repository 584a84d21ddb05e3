"""API routers package."""

from .reindex import router as reindex_router

__all__ = [
    "reindex_router",
]
