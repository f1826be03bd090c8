"""Unit tests for DatabaseClient against an in-memory pool."""

from contextlib import asynccontextmanager

import pytest

from askql.config import DatabaseConfig
from askql.domain.errors import DatabaseConnectionError, DatabaseQueryError
from askql.infrastructure.database_client import DatabaseClient


class FakeConnection:
    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error
        self.fetchval_calls = []
        self.read_only_transactions = 0

    async def fetchval(self, query, *args):
        self.fetchval_calls.append(query)
        if self.error:
            raise self.error
        return self.value

    async def execute(self, query):
        return "SET"

    @asynccontextmanager
    async def transaction(self, readonly=False):
        if readonly:
            self.read_only_transactions += 1
        yield


class FakePool:
    def __init__(self, connection):
        self.connection = connection

    @asynccontextmanager
    async def acquire(self):
        yield self.connection

    def get_size(self):
        return 2

    def get_idle_size(self):
        return 1


def connected_client(connection: FakeConnection) -> DatabaseClient:
    client = DatabaseClient(DatabaseConfig(database_url="postgresql://askql@localhost/askql"))
    client._pool = FakePool(connection)
    return client


class TestHealthCheck:

    async def test_healthy_pool_reports_schema(self):
        connection = FakeConnection(value="public")
        health = await connected_client(connection).health_check()

        assert health == {"status": "healthy", "current_schema": "public", "pool_size": 2, "pool_idle": 1}
        assert connection.fetchval_calls == ["SELECT current_schema()"]
        assert connection.read_only_transactions == 1

    async def test_failing_query_is_unhealthy(self):
        connection = FakeConnection(error=RuntimeError("server closed the connection"))
        health = await connected_client(connection).health_check()

        assert health["status"] == "unhealthy"
        assert health["error"] == "Query execution failed: server closed the connection"

    async def test_not_connected_is_unhealthy(self):
        client = DatabaseClient(DatabaseConfig(database_url="postgresql://askql@localhost/askql"))
        assert await client.health_check() == {"status": "unhealthy", "error": "Database client not connected"}


class TestExecuteScalar:

    async def test_returns_first_value(self):
        assert await connected_client(FakeConnection(value=5)).execute_scalar("SELECT COUNT(*) FROM orders") == 5

    async def test_failure_becomes_query_error(self):
        client = connected_client(FakeConnection(error=RuntimeError("boom")))
        with pytest.raises(DatabaseQueryError, match="Query execution failed: boom"):
            await client.execute_scalar("SELECT 1")

    async def test_not_connected_raises(self):
        client = DatabaseClient(DatabaseConfig(database_url="postgresql://askql@localhost/askql"))
        with pytest.raises(DatabaseConnectionError):
            await client.execute_scalar("SELECT 1")
