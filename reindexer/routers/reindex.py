"""Fulltext reindex API endpoint.

GET /reindexFulltext?batchSize=<n>&batch=<k> reindexes the whole
repository (or only batch k) and answers with a one-line plain text status.
Administrators only; everyone else gets "unauthorized".
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import async_session_maker, get_db
from ..models.user import User
from ..services.auth_service import UserPrincipalResolver, get_current_principal
from ..services.document_store import (
    PrivilegedDocumentSession,
    SqlDocumentQuery,
    SqlTransactionManager,
)
from ..services.document_types import DocumentTypeRegistry, get_document_types
from ..services.fulltext_dispatcher import ArqFulltextDispatcher
from ..services.reindex_ports import DocumentQuery, EnumerationError, IndexingDispatcher
from ..services.reindex_service import UNAUTHORIZED, FulltextReindexer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["maintenance"])


def get_document_query() -> DocumentQuery:
    """Enumeration runs on its own session, outside the request transaction."""
    return SqlDocumentQuery(async_session_maker)


async def get_fulltext_dispatcher(request: Request) -> Optional[IndexingDispatcher]:
    """Dispatcher over the ARQ pool opened in the application lifespan, if any."""
    pool = getattr(request.app.state, "arq_pool", None)
    if pool is None:
        return None
    return ArqFulltextDispatcher(pool)


@router.get("/reindexFulltext", response_class=PlainTextResponse)
async def reindex_fulltext_endpoint(
    batch_size: int = Query(default=0, alias="batchSize"),
    batch: int = Query(default=0),
    principal: Optional[User] = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    documents: DocumentQuery = Depends(get_document_query),
    types: DocumentTypeRegistry = Depends(get_document_types),
    dispatcher: Optional[IndexingDispatcher] = Depends(get_fulltext_dispatcher),
) -> str:
    """Launch a fulltext reindexing of the repository.

    Args:
        batch_size: Batch size, defaults to REINDEX_DEFAULT_BATCH_SIZE
        batch: If set, the only batch to process (starts at 1)
    """
    principals = UserPrincipalResolver(principal)
    # Queue state is only reported to administrators
    if not principals.is_administrator(principals.current_principal()):
        logger.warning("Fulltext reindex refused for principal %r", principal)
        return UNAUTHORIZED
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Fulltext job queue unavailable",
        )

    reindexer = FulltextReindexer(
        principals=principals,
        documents=documents,
        session=PrivilegedDocumentSession(db, types),
        transactions=SqlTransactionManager(db),
        fulltext_info=types,
        dispatcher=dispatcher,
        repository_name=settings.repository_name,
        default_batch_size=settings.reindex_default_batch_size,
    )
    try:
        return await reindexer.reindex(batch_size, batch)
    except EnumerationError as exc:
        logger.error("Fulltext reindex aborted: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document enumeration failed",
        )
