"""Business logic services."""

from .auth_service import (
    UserPrincipalResolver,
    create_access_token,
    decode_access_token,
    get_current_principal,
    get_user_by_email,
)
from .document_store import (
    PrivilegedDocumentSession,
    SqlDocumentQuery,
    SqlTransactionManager,
)
from .document_types import (
    DocumentType,
    DocumentTypeRegistry,
    get_document_types,
)
from .fulltext_dispatcher import (
    ArqFulltextDispatcher,
)
from .reindex_ports import (
    AttributeNotPresentError,
    DispatchError,
    DocumentNotFoundError,
    DocumentRef,
    EnumerationError,
    FulltextOracleError,
    ReindexError,
)
from .reindex_service import (
    BatchPlan,
    FulltextReindexer,
    RunSummary,
    plan_batches,
)

__all__ = [
    # Auth service
    "UserPrincipalResolver",
    "create_access_token",
    "decode_access_token",
    "get_current_principal",
    "get_user_by_email",
    # SQL document store
    "PrivilegedDocumentSession",
    "SqlDocumentQuery",
    "SqlTransactionManager",
    # Document types
    "DocumentType",
    "DocumentTypeRegistry",
    "get_document_types",
    # Dispatcher
    "ArqFulltextDispatcher",
    # Errors and data
    "AttributeNotPresentError",
    "DispatchError",
    "DocumentNotFoundError",
    "DocumentRef",
    "EnumerationError",
    "FulltextOracleError",
    "ReindexError",
    # Reindex engine
    "BatchPlan",
    "FulltextReindexer",
    "RunSummary",
    "plan_batches",
]
