"""Document SQLAlchemy model for the repository being reindexed.

Every stored document has a primary type (which decides its schemas and
whether its content is fulltext-indexable), a lifecycle state, and two
structural flags: proxies point at another document, versions are frozen
historical states. Versions are immutable through the ORM; only the
privileged session (SQLAlchemy Core) may touch them.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
    event,
)
from sqlalchemy.dialects.postgresql import UUID

from ..database import Base

# Lifecycle state excluded from reindexing
DELETED_STATE = "deleted"


class ImmutableDocumentError(Exception):
    """Raised when the ORM is asked to modify a version document."""


class Document(Base):
    """
    One stored document, live or historical.

    Attributes:
        id: Primary key; also the enumeration order of a reindex run
        primary_type: Type name (File, Note, Folder...), see document_types
        title: dublincore title, null on types without that schema
        content_plain: Text handed to the search index
        is_proxy: Row points at another document and is never reindexed
        is_version: Frozen historical state, read-only through the ORM
        lifecycle_state: "project", "approved", ..., or "deleted"
        fulltext_job_id: Pending extraction marker, the document's own id
        created_at / updated_at: Write timestamps; updated_at drives change tracking
    """

    __tablename__ = "Documents"
    __allow_unmapped__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    primary_type = Column(String(100), nullable=False, index=True)

    title = Column(Text, nullable=True)  # unbounded: the touch phase appends a character
    content_plain = Column(Text, nullable=True)

    is_proxy = Column(Boolean, nullable=False, default=False)
    is_version = Column(Boolean, nullable=False, default=False)
    lifecycle_state = Column(String(50), nullable=False, default="project")

    fulltext_job_id = Column(UUID(as_uuid=True), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Covers the enumeration filter
    __table_args__ = (Index("ix_documents_live", "is_proxy", "lifecycle_state"),)

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, type={self.primary_type}, version={self.is_version})>"


@event.listens_for(Document, "before_update")
def _reject_version_update(mapper, connection, target: Document) -> None:
    """Versions are read-only for regular ORM writes."""
    if target.is_version:
        raise ImmutableDocumentError(f"Document {target.id} is a version and cannot be modified")
