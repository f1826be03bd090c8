"""
SQL Execution Repository.

This repository runs validated SQL queries against the database with
strict safety constraints and reports every outcome as an ExecutionResult.

Safety Features:
- Policy refusals: unvalidated, HIGH-risk and non-SELECT queries never run
- Read-only enforcement: All queries run with read_only=True
- Row cap: every query runs as SELECT * FROM (<query>) ... LIMIT <max_rows + 1>,
  so nested LIMITs, GROUP BY and subquery aggregates are all bounded
- Timeout protection: wall-clock bound enforced with asyncio.wait_for

Execution Flow:
1. Apply refusal policies
2. Strip trailing semicolons and wrap the query in the row cap
3. Execute in a read-only transaction under the timeout
4. Drop the extra row past the cap and infer column types from the first row
5. Return ExecutionResult with rows, row_count, execution_time, column_info

Error Handling:
- Refusals, database errors and timeouts are returned as success=False
- Only unexpected failures propagate to the caller
"""

import asyncio
import re
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List

from ..domain.base_enums import ColumnType, RiskLevel
from ..domain.errors import DatabaseError
from ..domain.results import ColumnInfo, ExecutionResult
from ..domain.types import ResultRow
from ..infrastructure.database_client import DatabaseClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

_TRAILING_SEMICOLONS = re.compile(r";+\s*$")
_DATE_LIKE = re.compile(r"^\d{4}-\d{2}-\d{2}|^\d{2}/\d{2}/\d{4}")


def infer_column_type(value: Any) -> ColumnType:
    """Map a Python value returned by asyncpg to a column type."""
    if value is None:
        return ColumnType.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ColumnType.BOOLEAN
    if isinstance(value, int):
        return ColumnType.INTEGER
    if isinstance(value, Decimal):
        return ColumnType.INTEGER if value == value.to_integral_value() else ColumnType.NUMBER
    if isinstance(value, float):
        return ColumnType.INTEGER if value.is_integer() else ColumnType.NUMBER
    if isinstance(value, datetime):
        return ColumnType.DATETIME
    if isinstance(value, date):
        return ColumnType.DATE
    if isinstance(value, str):
        return ColumnType.DATETIME if _DATE_LIKE.match(value) else ColumnType.STRING
    if isinstance(value, (list, tuple)):
        return ColumnType.ARRAY
    if isinstance(value, dict):
        return ColumnType.OBJECT
    return ColumnType.STRING


def extract_column_info(rows: List[ResultRow]) -> List[ColumnInfo]:
    """Column names and types, inferred from the first row."""
    if not rows:
        return []
    first_row = rows[0]
    return [ColumnInfo(name=name, type=infer_column_type(value)) for name, value in first_row.items()]


class SQLExecutionRepository:
    """
    Repository for SQL execution.

    Executes validated SQL with read-only enforcement, a row cap and a timeout.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        max_rows: int = 1000,
        timeout_seconds: float = 30.0,
    ):
        self.db_client = db_client
        self.max_rows = max_rows
        self.timeout_seconds = timeout_seconds

    def prepare_query(self, sql_query: str) -> str:
        """
        Strip trailing semicolons and wrap the query in the row cap.

        One row more than max_rows is requested so that execute() can tell
        a result that fits from one that was cut. The inner query sits on
        its own lines so a trailing "--" comment cannot swallow the wrapper.
        """
        query = _TRAILING_SEMICOLONS.sub("", sql_query.strip())
        return f"SELECT * FROM (\n{query}\n) AS capped_result LIMIT {self.max_rows + 1}"

    async def execute(
        self,
        sql_query: str,
        is_validated: bool,
        risk_level: RiskLevel,
    ) -> ExecutionResult:
        """
        Execute a validated SQL query.

        Args:
            sql_query: SQL string
            is_validated: Whether the query went through validation
            risk_level: Risk level assigned by the validator

        Returns:
            ExecutionResult; success=False for refusals, database errors and timeouts
        """
        trace_id = current_trace_id()
        start = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        if not is_validated:
            return ExecutionResult.failure("Query must be validated before execution", elapsed_ms())

        if risk_level == RiskLevel.HIGH:
            return ExecutionResult.failure("High-risk queries are not allowed to execute", elapsed_ms())

        if not sql_query.strip().upper().startswith(("SELECT", "WITH")):
            return ExecutionResult.failure("Only SELECT queries are allowed", elapsed_ms())

        query = self.prepare_query(sql_query)

        logger.info(
            "Executing SQL query",
            sql_length=len(query),
            max_rows=self.max_rows,
            timeout_seconds=self.timeout_seconds,
            trace_id=trace_id,
        )

        try:
            rows = await asyncio.wait_for(
                self.db_client.execute_query(query=query, read_only=True),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            timeout_ms = int(self.timeout_seconds * 1000)
            logger.warning("SQL execution timed out", timeout_ms=timeout_ms, trace_id=trace_id)
            return ExecutionResult.failure(f"Query execution timed out after {timeout_ms}ms", elapsed_ms())
        except DatabaseError as e:
            logger.warning("SQL execution failed", error=e.message, trace_id=trace_id)
            return ExecutionResult.failure(e.message, elapsed_ms())

        execution_time_ms = elapsed_ms()
        was_limited = len(rows) > self.max_rows
        rows = rows[:self.max_rows]

        result = ExecutionResult(
            success=True,
            rows=rows,
            execution_time_ms=execution_time_ms,
            row_count=len(rows),
            column_info=extract_column_info(rows),
            was_limited=was_limited,
            executed_query=query,
        )

        logger.info(
            "SQL execution successful",
            row_count=result.row_count,
            execution_time_ms=round(execution_time_ms, 2),
            was_limited=was_limited,
            trace_id=trace_id,
        )

        return result
