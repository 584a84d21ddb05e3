"""SQLAlchemy implementations of the reindex collaborators.

- SqlDocumentQuery: streamed enumeration of live documents, ordered by id
- SqlTransactionManager: begin / commit / rollback on one AsyncSession
- PrivilegedDocumentSession: attribute reads and writes through
  SQLAlchemy Core, so ORM listeners (including the version immutability
  guard on Document) never run
"""

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.document import DELETED_STATE, Document
from .document_types import DocumentTypeRegistry
from .reindex_ports import (
    AttributeNotPresentError,
    DocumentNotFoundError,
    DocumentRef,
    EnumerationError,
)

logger = logging.getLogger(__name__)

# Rows per round-trip while streaming the enumeration
ENUMERATION_FETCH_SIZE = 1000

documents_table = Document.__table__

# Columns the privileged session keeps in its working set
_WORKING_COLUMNS = (
    documents_table.c.id,
    documents_table.c.primary_type,
    documents_table.c.title,
    documents_table.c.content_plain,
    documents_table.c.lifecycle_state,
    documents_table.c.fulltext_job_id,
)


class SqlDocumentQuery:
    """Enumerates reindexable documents with its own short-lived session."""

    def __init__(self, session_maker: async_sessionmaker) -> None:
        self._session_maker = session_maker

    async def query_documents(self) -> list[DocumentRef]:
        stmt = (
            select(Document.id, Document.primary_type)
            .where(
                Document.is_proxy.is_(False),
                Document.lifecycle_state != DELETED_STATE,
            )
            .order_by(Document.id)
            .execution_options(yield_per=ENUMERATION_FETCH_SIZE)
        )
        refs: list[DocumentRef] = []
        try:
            async with self._session_maker() as db:
                result = await db.stream(stmt)
                async for row in result:
                    refs.append(DocumentRef(id=row.id, type=row.primary_type))
        except (SQLAlchemyError, OSError) as exc:
            raise EnumerationError(f"Document enumeration failed: {exc}") from exc
        return refs


class SqlTransactionManager:
    """
    Transaction control over a single AsyncSession.

    Each start() / commit_or_rollback() pair is one unit of work on the
    same session. A transaction the session already had open when the
    manager was created (for instance the request's) counts as active.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db
        self._rollback_only = False

    def is_active(self) -> bool:
        return self._db.in_transaction()

    async def start(self) -> bool:
        if self._db.in_transaction():
            return False
        await self._db.begin()
        self._rollback_only = False
        return True

    def set_rollback_only(self) -> None:
        self._rollback_only = True

    async def commit_or_rollback(self) -> None:
        if not self._db.in_transaction():
            return
        try:
            if self._rollback_only:
                await self._db.rollback()
            else:
                await self._db.commit()
        finally:
            self._rollback_only = False


class PrivilegedDocumentSession:
    """
    Low-level document access for maintenance jobs.

    Reads go through a per-batch working set filled by prefetch(); writes
    are buffered until save(), which issues Core UPDATE statements inside
    the session's current transaction. Core statements bypass every ORM
    mapper event, so versions can be modified and no document listener
    fires. The updated_at column default still applies, which is what
    change tracking keys on.
    """

    def __init__(self, db: AsyncSession, types: DocumentTypeRegistry) -> None:
        self._db = db
        self._types = types
        self._rows: dict[UUID, dict[str, Any]] = {}
        self._pending: dict[UUID, dict[str, Any]] = {}

    async def prefetch(self, ids: Iterable[UUID]) -> None:
        """Replace the working set with the given documents."""
        id_list = list(ids)
        self._rows.clear()
        self._pending.clear()
        if not id_list:
            return
        result = await self._db.execute(
            select(*_WORKING_COLUMNS).where(documents_table.c.id.in_(id_list))
        )
        for row in result.mappings():
            self._rows[row["id"]] = dict(row)

    async def _row(self, doc_id: UUID) -> dict[str, Any]:
        row = self._rows.get(doc_id)
        if row is not None:
            return row
        result = await self._db.execute(
            select(*_WORKING_COLUMNS).where(documents_table.c.id == doc_id)
        )
        found = result.mappings().first()
        if found is None:
            raise DocumentNotFoundError(f"Document {doc_id} not found")
        row = self._rows[doc_id] = dict(found)
        return row

    async def _checked_row(self, doc_id: UUID, name: str) -> dict[str, Any]:
        row = await self._row(doc_id)
        if not self._types.has_attribute(row["primary_type"], name):
            raise AttributeNotPresentError(doc_id, name)
        return row

    async def get_attribute(self, doc_id: UUID, name: str) -> Any:
        row = await self._checked_row(doc_id, name)
        return row[name]

    async def set_attribute(self, doc_id: UUID, name: str, value: Any) -> None:
        row = await self._checked_row(doc_id, name)
        row[name] = value
        self._pending.setdefault(doc_id, {})[name] = value

    async def save(self) -> None:
        """Write pending attribute changes into the current transaction."""
        pending, self._pending = self._pending, {}
        for doc_id, values in pending.items():
            await self._db.execute(
                update(documents_table)
                .where(documents_table.c.id == doc_id)
                .values(**values)
            )
        logger.debug("Privileged save wrote %d documents", len(pending))
