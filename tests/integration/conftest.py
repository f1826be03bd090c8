"""Fixtures for integration tests; these need a reachable database and OpenRouter key."""

import pytest

from askql.config import get_settings
from askql.infrastructure.database_client import DatabaseClient
from askql.infrastructure.llm_client import LLMClient


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def db_client(settings):
    """Create and connect database client."""
    client = DatabaseClient(settings.database)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.fixture
async def llm_client(settings):
    """Create and connect LLM client."""
    client = LLMClient(settings.llm)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()
