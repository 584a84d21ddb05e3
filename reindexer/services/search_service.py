"""Meilisearch index fed by the fulltext extraction worker.

The worker opens the client on startup and closes it on shutdown. Each
extract_fulltext job turns document rows into search records and pushes
them with index_documents(), which only returns once Meilisearch has
applied the update.
"""

import logging
import re
from typing import Any

from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.index import AsyncIndex

from ..config import settings

logger = logging.getLogger(__name__)

# Stripped from extracted text before indexing (tab, LF and CR are kept)
CONTROL_CHAR_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

# Extracted text beyond this is truncated
MAX_CONTENT_LENGTH = 300_000

# Milliseconds to wait for Meilisearch to process one indexing task
INDEX_TASK_TIMEOUT_MS = 60_000

SEARCHABLE_ATTRIBUTES = ["title", "content_plain"]  # ranking order
FILTERABLE_ATTRIBUTES = ["primary_type", "repository"]


_client: AsyncClient | None = None
_index: AsyncIndex | None = None


async def open_search_index() -> AsyncIndex:
    """Connect, create the index if missing and apply its settings."""
    global _client, _index

    if not settings.meilisearch_api_key:
        logger.warning("MEILISEARCH_API_KEY is not set, connecting unauthenticated")

    client = AsyncClient(
        url=settings.meilisearch_url,
        api_key=settings.meilisearch_api_key or None,
        timeout=settings.meilisearch_timeout,
    )
    name = settings.meilisearch_index_name
    try:
        index = await client.get_index(name)
    except Exception:
        logger.info("Creating Meilisearch index %s", name)
        index = await client.create_index(name, primary_key="id")

    for update_settings, values in (
        (index.update_searchable_attributes, SEARCHABLE_ATTRIBUTES),
        (index.update_filterable_attributes, FILTERABLE_ATTRIBUTES),
    ):
        task = await update_settings(values)
        await client.wait_for_task(task.task_uid)

    _client, _index = client, index
    logger.info("Meilisearch index %s ready", name)
    return index


async def close_search_index() -> None:
    global _client, _index

    if _client is not None:
        await _client.aclose()
    _client = None
    _index = None


def _require_open() -> tuple[AsyncClient, AsyncIndex]:
    if _client is None or _index is None:
        raise RuntimeError("Meilisearch index is not open")
    return _client, _index


def build_search_doc_data(row: Any, repository_name: str) -> dict:
    """Build the Meilisearch record for one document row.

    Args:
        row: Row (or object) with id, primary_type, title and content_plain.
        repository_name: Repository the document belongs to.

    Returns:
        Record keyed by the document id.
    """
    content = CONTROL_CHAR_RE.sub("", row.content_plain or "")
    return {
        "id": str(row.id),
        "primary_type": row.primary_type,
        "title": row.title,
        "content_plain": content[:MAX_CONTENT_LENGTH],
        "repository": repository_name,
    }


async def index_documents(records: list[dict]) -> None:
    """Add or replace records; raise unless Meilisearch applied them."""
    if not records:
        return
    client, index = _require_open()
    task = await index.update_documents(records)
    await client.wait_for_task(
        task.task_uid,
        timeout_in_ms=INDEX_TASK_TIMEOUT_MS,
        raise_for_status=True,
    )
    logger.debug("Indexed %d documents", len(records))
