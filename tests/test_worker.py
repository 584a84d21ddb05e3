"""Tests for the ARQ fulltext extraction worker."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from reindexer.models import Document
from reindexer.services.document_types import DocumentTypeRegistry
from reindexer.services.search_service import build_search_doc_data
from reindexer.worker import (
    WorkerSettings,
    extract_fulltext,
    parse_redis_url,
)

from conftest import add_document, sortable_uuid


# =============================================================================
# Helpers
# =============================================================================


async def marker_of(db, n: int):
    result = await db.execute(
        select(Document.fulltext_job_id).where(Document.id == sortable_uuid(n))
    )
    return result.scalar_one()


def ids_of(*ns: int) -> list[str]:
    return [str(sortable_uuid(n)) for n in ns]


# =============================================================================
# extract_fulltext
# =============================================================================


class TestExtractFulltext:
    """Tests for the extraction job."""

    @pytest.mark.asyncio
    async def test_indexes_marked_documents_and_clears_marker(self, db_session, session_maker):
        """Test that marked documents are indexed and unmarked."""
        await add_document(db_session, 0, title="One", content_plain="alpha",
                           fulltext_job_id=sortable_uuid(0))
        await add_document(db_session, 1, primary_type="Note", title="Two",
                           content_plain="beta", fulltext_job_id=sortable_uuid(1),
                           is_version=True)
        await db_session.commit()

        with patch("reindexer.worker.index_documents", new_callable=AsyncMock) as mock_index:
            result = await extract_fulltext(
                {"session_maker": session_maker},
                ids_of(0, 1),
                DocumentTypeRegistry().to_dict(),
                "default",
            )

        assert result == {"indexed": 2, "skipped": 0}
        (records,), _ = mock_index.await_args
        assert sorted(r["id"] for r in records) == ids_of(0, 1)
        assert {r["repository"] for r in records} == {"default"}
        assert await marker_of(db_session, 0) is None
        assert await marker_of(db_session, 1) is None

    @pytest.mark.asyncio
    async def test_skips_unmarked_and_non_indexable(self, db_session, session_maker):
        """Test that stale requests and excluded types are skipped."""
        await add_document(db_session, 0, fulltext_job_id=None)
        await add_document(db_session, 1, primary_type="Relation", title=None,
                           fulltext_job_id=sortable_uuid(1))
        await add_document(db_session, 2, fulltext_job_id=sortable_uuid(2))
        await db_session.commit()

        with patch("reindexer.worker.index_documents", new_callable=AsyncMock) as mock_index:
            result = await extract_fulltext(
                {"session_maker": session_maker},
                ids_of(0, 1, 2, 3),
                DocumentTypeRegistry().to_dict(),
                "default",
            )

        assert result == {"indexed": 1, "skipped": 3}
        (records,), _ = mock_index.await_args
        assert [r["id"] for r in records] == ids_of(2)
        # Non-indexable document keeps its marker
        assert await marker_of(db_session, 1) == sortable_uuid(1)

    @pytest.mark.asyncio
    async def test_index_failure_keeps_markers(self, db_session, session_maker):
        """Test that a failed index update raises and leaves markers set."""
        await add_document(db_session, 0, fulltext_job_id=sortable_uuid(0))
        await db_session.commit()

        with patch(
            "reindexer.worker.index_documents",
            new_callable=AsyncMock,
            side_effect=RuntimeError("meilisearch unreachable"),
        ):
            with pytest.raises(RuntimeError):
                await extract_fulltext(
                    {"session_maker": session_maker},
                    ids_of(0),
                    DocumentTypeRegistry().to_dict(),
                    "default",
                )

        assert await marker_of(db_session, 0) == sortable_uuid(0)


class TestBuildSearchDocData:
    """Tests for search record construction."""

    def test_strips_control_characters(self):
        """Test that control characters are removed from content."""
        class Row:
            id = sortable_uuid(0)
            primary_type = "File"
            title = "T"
            content_plain = "a\x00b\x07c\nd"

        record = build_search_doc_data(Row(), "repo")
        assert record == {
            "id": str(sortable_uuid(0)),
            "primary_type": "File",
            "title": "T",
            "content_plain": "abc\nd",
            "repository": "repo",
        }

    def test_missing_content(self):
        """Test that a document without content gets an empty string."""
        class Row:
            id = sortable_uuid(1)
            primary_type = "Folder"
            title = None
            content_plain = None

        assert build_search_doc_data(Row(), "repo")["content_plain"] == ""


# =============================================================================
# Configuration
# =============================================================================


class TestWorkerSettings:
    """Tests for ARQ worker configuration."""

    def test_parse_redis_url(self):
        """Test Redis URL parsing."""
        redis_settings = parse_redis_url("redis://:secret@cache.internal:6380/2")
        assert redis_settings.host == "cache.internal"
        assert redis_settings.port == 6380
        assert redis_settings.password == "secret"
        assert redis_settings.database == 2

    def test_parse_redis_url_defaults(self):
        """Test Redis URL parsing with defaults."""
        redis_settings = parse_redis_url("redis://")
        assert redis_settings.host == "localhost"
        assert redis_settings.port == 6379
        assert redis_settings.database == 0

    def test_extract_fulltext_registered(self):
        """Test that the extraction job is registered with the worker."""
        assert extract_fulltext in WorkerSettings.functions
        assert WorkerSettings.job_timeout >= 600
