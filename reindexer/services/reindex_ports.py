"""Collaborator interfaces consumed by the fulltext reindex engine.

The engine in reindex_service.py never reaches for globals: the principal,
the document query, the privileged session, the transaction controller,
the fulltext oracle and the async dispatcher are all handed to it. The SQL
and ARQ implementations live in document_store.py and
fulltext_dispatcher.py; tests substitute in-memory fakes.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Protocol
from uuid import UUID


# ============================================================================
# Errors
# ============================================================================


class ReindexError(Exception):
    """Base class for reindex failures."""


class EnumerationError(ReindexError):
    """The document enumeration query failed; the run cannot start."""


class AttributeNotPresentError(ReindexError):
    """The attribute is not part of the document type's schemas."""

    def __init__(self, doc_id: Any, name: str) -> None:
        super().__init__(f"Document {doc_id} has no attribute {name!r}")
        self.doc_id = doc_id
        self.name = name


class DocumentNotFoundError(ReindexError):
    """A document id handed to the privileged session does not exist."""


class FulltextOracleError(ReindexError):
    """The fulltext indexability information is unavailable."""


class DispatchError(ReindexError):
    """An indexing request could not be enqueued or did not complete."""


# ============================================================================
# Data
# ============================================================================


@dataclass(frozen=True)
class DocumentRef:
    """A live document as returned by the enumeration query."""

    id: UUID
    type: str


# ============================================================================
# Interfaces
# ============================================================================


class PrincipalResolver(Protocol):
    """Resolves who is calling and whether they administer the repository."""

    def current_principal(self) -> Any:
        ...

    def is_administrator(self, principal: Any) -> bool:
        ...


class DocumentQuery(Protocol):
    """Bulk, read-only enumeration of reindexable documents."""

    async def query_documents(self) -> list[DocumentRef]:
        """Return non-proxy, non-deleted documents ordered by id."""
        ...


class PrivilegedSession(Protocol):
    """
    Low-level attribute access that bypasses document listeners.

    Writes made here skip change-notification listeners and modifiability
    checks, so historical versions can be touched. save() pushes pending
    writes into the current transaction; it does not commit.
    """

    async def prefetch(self, ids: Iterable[UUID]) -> None:
        ...

    async def get_attribute(self, doc_id: UUID, name: str) -> Any:
        """Raises AttributeNotPresentError if the type has no such attribute."""
        ...

    async def set_attribute(self, doc_id: UUID, name: str, value: Any) -> None:
        ...

    async def save(self) -> None:
        ...


class TransactionControl(Protocol):
    """Begin / commit / rollback of the unit of work a batch phase runs in."""

    def is_active(self) -> bool:
        ...

    async def start(self) -> bool:
        """Start a transaction; False if none was started."""
        ...

    def set_rollback_only(self) -> None:
        ...

    async def commit_or_rollback(self) -> None:
        ...


class FulltextOracle(Protocol):
    """Answers whether a document type carries fulltext-indexable content."""

    def is_fulltext_indexable(self, doc_type: str) -> bool:
        ...


class IndexingDispatcher(Protocol):
    """Fires asynchronous text extraction and waits for it."""

    async def fire_indexing_request(
        self,
        ids: set[UUID],
        fulltext_info: FulltextOracle,
        repository_name: str,
    ) -> None:
        ...

    async def wait_for_completion(self) -> None:
        """Block until every request fired so far has finished."""
        ...
