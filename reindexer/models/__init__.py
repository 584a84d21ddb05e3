"""SQLAlchemy ORM models package."""

from .document import DELETED_STATE, Document, ImmutableDocumentError
from .user import User

__all__ = [
    "DELETED_STATE",
    "Document",
    "ImmutableDocumentError",
    "User",
]
