"""
Fulltext extraction worker.

The reindex run enqueues one extract_fulltext job per batch and blocks on
its result before moving to the next batch, so a job must only succeed
once the search index holds the documents.

Run with:
    arq reindexer.worker.WorkerSettings
"""

import logging
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

from arq.connections import RedisSettings
from sqlalchemy import select, update

from .config import settings
from .database import async_session_maker
from .models.document import Document
from .services.document_types import DocumentTypeRegistry
from .services.search_service import (
    build_search_doc_data,
    close_search_index,
    index_documents,
    open_search_index,
)

logger = logging.getLogger(__name__)


def parse_redis_url(url: str) -> RedisSettings:
    """RedisSettings from redis://[:password@]host[:port][/db]."""
    parts = urlparse(url)
    db = parts.path.lstrip("/")
    return RedisSettings(
        host=parts.hostname or "localhost",
        port=parts.port or 6379,
        password=parts.password,
        database=int(db) if db else 0,
    )


# =============================================================================
# Fulltext Extraction
# =============================================================================


async def extract_fulltext(
    ctx: dict[str, Any],
    ids: list[str],
    fulltext_info: dict[str, Any],
    repository_name: str,
) -> dict[str, int]:
    """
    Index the text of documents marked by the reindex touch phase.

    Documents whose marker was already cleared (indexed by an earlier job)
    or whose type is no longer fulltext-indexable are skipped. The marker
    is cleared with a Core UPDATE so version documents are handled too.

    Returns:
        dict with indexed and skipped counts
    """
    types = DocumentTypeRegistry.from_dict(fulltext_info)
    session_maker = ctx.get("session_maker") or async_session_maker
    doc_ids = [UUID(doc_id) for doc_id in ids]

    async with session_maker() as db:
        result = await db.execute(
            select(
                Document.id,
                Document.primary_type,
                Document.title,
                Document.content_plain,
                Document.fulltext_job_id,
            ).where(Document.id.in_(doc_ids))
        )
        rows = result.all()

        records = []
        indexed_ids = []
        for row in rows:
            if row.fulltext_job_id != row.id or not types.is_fulltext_indexable(row.primary_type):
                continue
            records.append(build_search_doc_data(row, repository_name))
            indexed_ids.append(row.id)

        # Raises on failure so the waiting reindex run records a batch error
        await index_documents(records)

        if indexed_ids:
            table = Document.__table__
            await db.execute(
                update(table)
                .where(
                    table.c.id.in_(indexed_ids),
                    table.c.fulltext_job_id == table.c.id,
                )
                .values(fulltext_job_id=None)
            )
            await db.commit()

    skipped = len(ids) - len(indexed_ids)
    logger.info(
        "Fulltext extraction for %s: %d indexed, %d skipped",
        repository_name, len(indexed_ids), skipped,
    )
    return {"indexed": len(indexed_ids), "skipped": skipped}


# =============================================================================
# Lifecycle
# =============================================================================

async def startup(ctx: dict[str, Any]) -> None:
    ctx["session_maker"] = async_session_maker
    await open_search_index()
    logger.info("Fulltext worker ready (repository %s)", settings.repository_name)


async def shutdown(ctx: dict[str, Any]) -> None:
    await close_search_index()
    logger.info("Fulltext worker stopped")


class WorkerSettings:
    """arq entry point."""

    redis_settings = parse_redis_url(settings.redis_url)
    functions = [extract_fulltext]
    on_startup = startup
    on_shutdown = shutdown

    max_jobs = 10
    job_timeout = 600  # one batch of documents
    # Results are read by the waiting reindex run
    keep_result = 3600
    health_check_interval = 30
