from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient
from httpx import AsyncClient, ASGITransport

from bizfinder.main import app
from bizfinder.database import get_database
from bizfinder.jobs.repository import get_job_repository
from bizfinder.traceability.repository import TraceabilityRepository


@pytest_asyncio.fixture
async def mock_db():
    """Provide a mock MongoDB database for testing."""
    client = AsyncMongoMockClient()
    db = client["test_db"]
    yield db
    client.close()


@pytest_asyncio.fixture
async def test_client(mock_db):
    """Provide an async test client with mocked database."""
    app.dependency_overrides[get_database] = lambda: mock_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def traceability_repository(mock_db):
    """Provide a TraceabilityRepository on the mock database."""
    return TraceabilityRepository(mock_db)


@pytest.fixture
def job_repository(mock_db):
    """Provide the shared JobRepository for the mock database (the one routers use)."""
    return get_job_repository(mock_db)


@pytest.fixture
def mock_llm():
    """Create a mock LLM client; set ``call.side_effect`` to script replies."""
    return AsyncMock()
