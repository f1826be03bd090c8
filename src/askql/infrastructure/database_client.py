"""
Database client for PostgreSQL using asyncpg.

Every connection the workflow uses comes from one pool. Queries run in a
READ ONLY transaction unless the caller opts out, so generated SQL cannot
write even when it slips past validation. Query failures are translated
into DatabaseQueryError with a short, user-presentable message; the
executor and validator surface that message unchanged.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type

import asyncpg

from ..config import DatabaseConfig
from ..domain.errors import DatabaseConnectionError, DatabaseError, DatabaseQueryError
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

# asyncpg failure -> message prefix; first match wins
QUERY_ERROR_PREFIXES: Tuple[Tuple[Tuple[Type[BaseException], ...], str], ...] = (
    ((asyncpg.QueryCanceledError, asyncio.TimeoutError), "Query timeout exceeded"),
    ((asyncpg.ReadOnlySQLTransactionError,), "Write operation rejected in read-only transaction"),
    ((asyncpg.PostgresSyntaxError,), "SQL syntax error"),
    ((asyncpg.UndefinedTableError,), "Table does not exist"),
    ((asyncpg.UndefinedColumnError,), "Column does not exist"),
    ((asyncpg.InvalidSchemaNameError,), "Invalid schema name"),
)


def describe_query_error(error: BaseException) -> str:
    for error_types, prefix in QUERY_ERROR_PREFIXES:
        if isinstance(error, error_types):
            return f"{prefix}: {error}"
    return f"Query execution failed: {error}"


class DatabaseClient:
    """
    Async PostgreSQL client with a connection pool.

    Schema introspection, validation and execution policies live in the
    repository layer; this class only moves SQL and rows.

    Usage:
        client = DatabaseClient(settings.database)
        await client.connect()

        rows = await client.execute_query("SELECT * FROM orders LIMIT 10")
        explain = await client.execute_query("EXPLAIN SELECT 1", read_only=True)
        count = await client.execute_scalar("SELECT COUNT(*) FROM orders")

        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None

        logger.info(
            "DatabaseClient initialized",
            default_schema=config.default_schema,
            pool_max_size=config.connection_pool_max_size,
            query_timeout_seconds=config.query_timeout_seconds,
            enforce_read_only_default=config.enforce_read_only_default,
        )

    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """
        Create the connection pool and check it with a test query.

        Raises:
            DatabaseConnectionError: If the database is unreachable or rejects the login
        """
        if self._pool is not None:
            logger.warning("Database client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Establishing database connection", trace_id=trace_id)

        try:
            pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                command_timeout=self.config.query_timeout_seconds,
                timeout=self.config.connection_timeout_seconds,
                max_queries=self.config.connection_pool_max_queries,
                max_cached_statement_lifetime=self.config.max_cached_statement_lifetime,
                max_cacheable_statement_size=self.config.max_cacheable_statement_size,
                server_settings={
                    "application_name": self.config.application_name,
                    "search_path": self.config.default_schema,
                    "jit": "on" if self.config.jit_enabled else "off",
                },
            )
        except asyncpg.InvalidCatalogNameError as e:
            raise self._connection_error(f"Database does not exist: {e}", e) from e
        except asyncpg.InvalidPasswordError as e:
            raise self._connection_error(f"Authentication failed: {e}", e) from e
        except Exception as e:
            raise self._connection_error(f"Failed to connect to database: {e}", e) from e

        try:
            async with pool.acquire() as conn:
                current_schema = await conn.fetchval("SELECT current_schema()")
        except Exception as e:
            await pool.close()
            raise self._connection_error(f"Connection test failed: {e}", e) from e

        self._pool = pool
        logger.info(
            "Database connection established",
            current_schema=current_schema,
            pool_max_size=self.config.connection_pool_max_size,
            trace_id=trace_id,
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        logger.info("Database connection closed", trace_id=current_trace_id())

    async def health_check(self) -> Dict[str, Any]:
        """
        Check the pool with a trivial query.

        Returns:
            {"status": "healthy", "current_schema", "pool_size", "pool_idle"}
            or {"status": "unhealthy", "error"}
        """
        if self._pool is None:
            return {"status": "unhealthy", "error": "Database client not connected"}

        try:
            current_schema = await self.execute_scalar("SELECT current_schema()", read_only=True)
        except DatabaseError as e:
            logger.error("Database health check failed", error=str(e), trace_id=current_trace_id())
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "current_schema": current_schema,
            "pool_size": self._pool.get_size(),
            "pool_idle": self._pool.get_idle_size(),
        }

    @asynccontextmanager
    async def acquire_connection(
        self,
        schema: Optional[str] = None,
        read_only: Optional[bool] = None,
    ) -> AsyncIterator[asyncpg.Connection]:
        """
        Borrow a pooled connection.

        With read_only in effect the connection is handed out inside a
        READ ONLY transaction, so any write raises
        asyncpg.ReadOnlySQLTransactionError.

        Args:
            schema: search_path for this borrow (defaults to config.default_schema)
            read_only: Defaults to config.enforce_read_only_default

        Raises:
            DatabaseConnectionError: If the client is not connected
        """
        if self._pool is None:
            raise DatabaseConnectionError("Database client is not connected")

        if read_only is None:
            read_only = self.config.enforce_read_only_default
        switch_schema = bool(schema) and schema != self.config.default_schema

        async with self._pool.acquire() as connection:
            if switch_schema:
                await connection.execute(f"SET search_path TO {schema}")
            try:
                if read_only:
                    async with connection.transaction(readonly=True):
                        yield connection
                else:
                    yield connection
            finally:
                if switch_schema:
                    await connection.execute(f"SET search_path TO {self.config.default_schema}")

    async def execute_query(
        self,
        query: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
        schema: Optional[str] = None,
        read_only: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a query and return its rows as dictionaries.

        Args:
            query: SQL text
            params: Positional parameters ($1, $2, ...)
            timeout: Client-side timeout in seconds; cancels the query on expiry
            schema: search_path override
            read_only: Defaults to config.enforce_read_only_default

        Raises:
            DatabaseConnectionError: If the client is not connected
            DatabaseQueryError: If the query fails or times out
        """
        trace_id = current_trace_id()
        logger.debug("Executing database query", query=query[:200], read_only=read_only, trace_id=trace_id)

        try:
            async with self.acquire_connection(schema=schema, read_only=read_only) as conn:
                rows = await conn.fetch(query, *(params or []), timeout=timeout)
        except DatabaseConnectionError:
            raise
        except Exception as e:
            message = describe_query_error(e)
            logger.warning(message, error_type=type(e).__name__, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(message) from e

        results = [dict(row) for row in rows]
        logger.debug("Query executed", row_count=len(results), trace_id=trace_id)
        return results

    async def execute_scalar(
        self,
        query: str,
        params: Optional[List[Any]] = None,
        read_only: Optional[bool] = None,
    ) -> Any:
        """Run a query and return the first column of the first row."""
        try:
            async with self.acquire_connection(read_only=read_only) as conn:
                return await conn.fetchval(query, *(params or []))
        except DatabaseConnectionError:
            raise
        except Exception as e:
            raise DatabaseQueryError(describe_query_error(e)) from e

    @staticmethod
    def _connection_error(message: str, cause: Exception) -> DatabaseConnectionError:
        logger.error(message, error_type=type(cause).__name__, trace_id=current_trace_id())
        return DatabaseConnectionError(message)
