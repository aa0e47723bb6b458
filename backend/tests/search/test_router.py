"""Tests for the search router."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from bizfinder.main import app
from bizfinder.search.exceptions import NoQueriesError, SearchNotConfiguredError
from bizfinder.search.router import get_service
from bizfinder.search.schemas import (
    Pagination,
    QueryResult,
    SearchResponse,
    SearchResultItem,
    SearchTraceability,
)


@pytest.fixture
def mock_service():
    """Create a mock search service."""
    return AsyncMock()


@pytest_asyncio.fixture
async def client(mock_service):
    """Provide an async test client with a mocked service."""
    app.dependency_overrides[get_service] = lambda: mock_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestSearchEndpoint:
    """Test POST /search."""

    async def test_returns_results(self, client, mock_service):
        """Should return merged results and per-query outcomes."""
        hit = SearchResultItem(
            position=1,
            title="Peak Roofing",
            url="https://peakroofing.com",
            display_url="peakroofing.com",
            description="Roof repair",
            query="roofers denver",
        )
        mock_service.search.return_value = SearchResponse(
            results=[hit],
            query_results={"roofers denver": QueryResult(success=True, results=[hit], total_results=1)},
            total_results=1,
            successful_queries=1,
            pagination=Pagination(page=1, results_limit=10, has_next_page=False),
            search_time=0.2,
            traceability=SearchTraceability(enabled=True, session_id="s-1", results_stored=1, queries_stored=1),
        )

        response = await client.post("/search", json={"query": "roofers denver"})

        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["url"] == "https://peakroofing.com"
        assert data["traceability"]["session_id"] == "s-1"
        request = mock_service.search.await_args.args[0]
        assert request.search_queries() == ["roofers denver"]

    async def test_returns_400_without_queries(self, client, mock_service):
        """Should return 400 when no query is given."""
        mock_service.search.side_effect = NoQueriesError()

        response = await client.post("/search", json={"queries": []})

        assert response.status_code == 400
        assert response.json()["detail"] == "No search queries provided"

    async def test_returns_503_when_not_configured(self, client, mock_service):
        """Should return 503 when search credentials are missing."""
        mock_service.search.side_effect = SearchNotConfiguredError()

        response = await client.post("/search", json={"query": "roofers"})

        assert response.status_code == 503
