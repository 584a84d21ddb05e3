"""Integration tests for the /reindexFulltext endpoint."""

import pytest
import pytest_asyncio
from sqlalchemy import select

from reindexer.main import app
from reindexer.models import Document
from reindexer.routers.reindex import get_document_query, get_fulltext_dispatcher
from reindexer.services.document_store import SqlDocumentQuery
from reindexer.services.reindex_ports import EnumerationError

from conftest import add_document, sortable_uuid


class RecordingDispatcher:
    def __init__(self):
        self.fired = []
        self.waits = 0

    async def fire_indexing_request(self, ids, fulltext_info, repository_name):
        self.fired.append(set(ids))

    async def wait_for_completion(self):
        self.waits += 1


class FailingQuery:
    async def query_documents(self):
        raise EnumerationError("store unreachable")


@pytest.fixture
def dispatcher(session_maker) -> RecordingDispatcher:
    """Bind the endpoint to the test database and a recording dispatcher."""
    recording = RecordingDispatcher()
    app.dependency_overrides[get_document_query] = lambda: SqlDocumentQuery(session_maker)
    app.dependency_overrides[get_fulltext_dispatcher] = lambda: recording
    return recording


@pytest_asyncio.fixture
async def documents(db_session) -> None:
    """25 files."""
    for n in range(25):
        await add_document(db_session, n, title=f"File {n}")
    await db_session.commit()


class TestReindexFulltextEndpoint:
    """Tests for GET /reindexFulltext."""

    @pytest.mark.asyncio
    async def test_admin_full_run(self, client, admin_headers, dispatcher, documents, db_session):
        """Test a full run by an administrator."""
        response = await client.get(
            "/reindexFulltext", params={"batchSize": 10}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "done: 25 total: 25 batch_errors: 0"
        assert len(dispatcher.fired) == 3
        assert dispatcher.waits == 3

        result = await db_session.execute(
            select(Document.fulltext_job_id).where(Document.id == sortable_uuid(24))
        )
        assert result.scalar_one() == sortable_uuid(24)

    @pytest.mark.asyncio
    async def test_admin_selected_batch(self, client, admin_headers, dispatcher, documents):
        """Test that batch=2 processes only the second batch."""
        response = await client.get(
            "/reindexFulltext", params={"batchSize": 10, "batch": 2}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.text == "done: 10 total: 25 batch_errors: 0"
        assert dispatcher.fired == [{sortable_uuid(n) for n in range(10, 20)}]

    @pytest.mark.asyncio
    async def test_default_batch_size(self, client, admin_headers, dispatcher, documents):
        """Test that a missing batchSize uses the configured default."""
        response = await client.get("/reindexFulltext", headers=admin_headers)

        assert response.text == "done: 25 total: 25 batch_errors: 0"
        assert len(dispatcher.fired) == 1

    @pytest.mark.asyncio
    async def test_regular_user_unauthorized(self, client, user_headers, dispatcher, documents):
        """Test that a non-administrator gets "unauthorized"."""
        response = await client.get("/reindexFulltext", headers=user_headers)

        assert response.status_code == 200
        assert response.text == "unauthorized"
        assert dispatcher.fired == []

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized(self, client, dispatcher, documents):
        """Test that an anonymous caller gets "unauthorized"."""
        response = await client.get("/reindexFulltext")
        assert response.text == "unauthorized"

    @pytest.mark.asyncio
    async def test_enumeration_failure(self, client, admin_headers, dispatcher):
        """Test that a failing enumeration answers 503."""
        app.dependency_overrides[get_document_query] = lambda: FailingQuery()

        response = await client.get("/reindexFulltext", headers=admin_headers)

        assert response.status_code == 503
        assert dispatcher.fired == []

    @pytest.mark.asyncio
    async def test_job_queue_unavailable(self, client, admin_headers):
        """Test that the endpoint answers 503 without an ARQ pool."""
        app.state.arq_pool = None

        response = await client.get("/reindexFulltext", headers=admin_headers)

        assert response.status_code == 503
        assert response.json()["detail"] == "Fulltext job queue unavailable"

    @pytest.mark.asyncio
    async def test_anonymous_unauthorized_without_job_queue(self, client):
        """Test that the gate answers before the job queue state is revealed."""
        app.state.arq_pool = None

        response = await client.get("/reindexFulltext")

        assert response.status_code == 200
        assert response.text == "unauthorized"

    @pytest.mark.asyncio
    async def test_regular_user_unauthorized_without_job_queue(self, client, user_headers):
        """Test that a non-administrator gets "unauthorized" without a queue."""
        app.state.arq_pool = None

        response = await client.get("/reindexFulltext", headers=user_headers)

        assert response.status_code == 200
        assert response.text == "unauthorized"


class TestHealth:
    """Tests for the health endpoints."""

    @pytest.mark.asyncio
    async def test_health_reports_queue(self, client):
        """Test that /health reports the job queue state."""
        app.state.arq_pool = None
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["job_queue"] == "unavailable"
