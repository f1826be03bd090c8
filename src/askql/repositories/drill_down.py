"""
Drill-Down Repository.

Plans a follow-up query for a visualization the user clicked into.

Planning Flow:
1. check_request: the visualization must carry an enabled drill-down context
   with a table, and the requested operation must be one it supports
2. Ask the LLM for a new SELECT query and visualization
3. Reject plans that are unsuccessful, not a SELECT, or that name columns
   outside the data source

The planned query is executed afterwards by SQLExecutionRepository, which
keeps the SELECT-only, read-only and row cap guarantees.
"""

import json
import re
from typing import Iterable, List, Optional, Set

from ..domain.base_enums import DrillDownOperation
from ..domain.errors import AskQLException, DrillDownError
from ..domain.requests import DrillDownParameters
from ..domain.responses import DrillDownContext, Visualization
from ..domain.results import DrillDownPlan
from ..domain.types import ResultRow
from ..infrastructure.llm_client import LLMClient
from ..utils.logging import get_module_logger
from ..utils.token_utils import truncate_rows
from ..utils.tracing import current_trace_id
from .prompts import DRILL_DOWN_SYSTEM_PROMPT, DRILL_DOWN_USER_PROMPT, format_rows

logger = get_module_logger()

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_QUOTED_IDENTIFIER = re.compile(r'"([^"]+)"')
_LINE_COMMENT = re.compile(r"--[^\n]*")
_IDENTIFIER = re.compile(r"(?<![\w.])([A-Za-z_][A-Za-z0-9_]*)(?:\s*\.\s*([A-Za-z_][A-Za-z0-9_]*))?(\s*\()?")
_TABLE_REFERENCE = re.compile(
    r"\b(?:FROM|JOIN)\s+([A-Za-z_][\w.]*)(?:\s+(?:AS\s+)?([A-Za-z_]\w*))?",
    re.IGNORECASE,
)
_OUTPUT_ALIAS = re.compile(r"\bAS\s+([A-Za-z_]\w*)", re.IGNORECASE)
_CTE_NAME = re.compile(r"(?:\bWITH|,)\s*([A-Za-z_]\w*)\s+AS\s*\(", re.IGNORECASE)

SQL_KEYWORDS = frozenset({
    "SELECT", "FROM", "WHERE", "AND", "OR", "NOT", "IN", "IS", "NULL", "AS", "ON",
    "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "FULL", "CROSS", "NATURAL", "USING",
    "GROUP", "BY", "ORDER", "HAVING", "LIMIT", "OFFSET", "DISTINCT", "ALL", "ANY",
    "UNION", "INTERSECT", "EXCEPT", "WITH", "RECURSIVE", "CASE", "WHEN", "THEN",
    "ELSE", "END", "ASC", "DESC", "NULLS", "FIRST", "LAST", "BETWEEN", "LIKE",
    "ILIKE", "SIMILAR", "TO", "EXISTS", "TRUE", "FALSE", "INTERVAL", "DATE",
    "TIME", "TIMESTAMP", "TIMESTAMPTZ", "WITHOUT", "ZONE", "AT", "CURRENT_DATE",
    "CURRENT_TIMESTAMP", "CURRENT_TIME", "NOW", "FILTER", "OVER", "PARTITION",
    "ROWS", "RANGE", "PRECEDING", "FOLLOWING", "UNBOUNDED", "CURRENT", "ROW",
    "LATERAL", "FETCH", "NEXT", "ONLY", "INTEGER", "INT", "BIGINT", "NUMERIC",
    "DECIMAL", "TEXT", "VARCHAR", "BOOLEAN", "FLOAT", "REAL", "DOUBLE", "PRECISION",
    "YEAR", "MONTH", "DAY", "WEEK", "QUARTER", "HOUR", "MINUTE", "SECOND",
    "EPOCH", "DOW", "DOY",
})


def query_identifiers(sql_query: str) -> Set[str]:
    """
    Column-like identifiers a query references.

    Keywords, function names, table names and their aliases, CTE names and
    output aliases (AS x) are left out. A qualified name (o.status) counts
    as its column part.
    """
    text = _LINE_COMMENT.sub(" ", sql_query)
    text = _STRING_LITERAL.sub(" ", text)
    text = _QUOTED_IDENTIFIER.sub(lambda match: match.group(1) if match.group(1).isidentifier() else " ", text)

    excluded = {name.lower() for name in _OUTPUT_ALIAS.findall(text)}
    excluded.update(name.lower() for name in _CTE_NAME.findall(text))
    for table, alias in _TABLE_REFERENCE.findall(text):
        excluded.update(part.lower() for part in table.split("."))
        if alias and alias.upper() not in SQL_KEYWORDS:
            excluded.add(alias.lower())

    identifiers: Set[str] = set()
    for first, second, call in _IDENTIFIER.findall(text):
        name = second or first
        if call:
            continue
        if name.upper() in SQL_KEYWORDS or name.lower() in excluded:
            continue
        identifiers.add(name.lower())
    return identifiers


def unknown_columns(sql_query: str, allowed: Iterable[str]) -> List[str]:
    """Identifiers in sql_query that are not in allowed (case-insensitive)."""
    known = {column.lower() for column in allowed}
    return sorted(identifier for identifier in query_identifiers(sql_query) if identifier not in known)


def check_request(visualization: Visualization, operation: DrillDownOperation) -> DrillDownContext:
    """
    Return the visualization's drill-down context if it supports the operation.

    Raises:
        DrillDownError: If drill-down is disabled, the context has no table,
            or the operation is not supported
    """
    context = visualization.drill_down
    if context is None or not context.enabled:
        raise DrillDownError("No drill-down context available for this visualization")

    if not context.data_source.table:
        raise DrillDownError("No table information available for drill-down")

    if operation not in context.supported_operations:
        available = ", ".join(op.value for op in context.supported_operations)
        raise DrillDownError(
            f"Operation '{operation.value}' not supported. Available: {available}",
            details={"operation": operation.value, "supported": [op.value for op in context.supported_operations]},
        )

    return context


class DrillDownRepository:
    """
    Repository for LLM-based drill-down planning.

    The model sees the original question and query, the data source and a
    preview of the rows the user is looking at.
    """

    def __init__(self, llm_client: LLMClient, preview_rows: int = 10):
        self.llm_client = llm_client
        self.preview_rows = preview_rows

    async def plan(
        self,
        visualization: Visualization,
        operation: DrillDownOperation,
        parameters: DrillDownParameters,
        available_data: Optional[List[ResultRow]] = None,
    ) -> DrillDownPlan:
        """
        Plan the drill-down query.

        Args:
            visualization: Clicked visualization with its drill-down context
            operation: Requested drill-down operation
            parameters: Filter, grouping or time period for the operation
            available_data: Rows the client currently shows

        Returns:
            DrillDownPlan with a SELECT query over known columns

        Raises:
            DrillDownError: If the request is unsupported or the plan is unusable
        """
        trace_id = current_trace_id()
        context = check_request(visualization, operation)
        source = context.data_source

        preview = truncate_rows(available_data or visualization.data or [], max_rows=self.preview_rows)
        prompt = DRILL_DOWN_USER_PROMPT.format(
            question=context.original_question,
            sql_query=context.sql_context,
            table=source.table,
            columns=", ".join(source.columns) or "(unknown)",
            filters=json.dumps(source.filters, default=str) if source.filters else "none",
            operation=operation.value,
            parameters=parameters.model_dump_json(exclude_none=True, indent=2),
            title=visualization.title,
            preview_count=len(preview),
            rows=format_rows(preview),
        )

        logger.debug(
            "Calling LLM for drill-down plan",
            operation=operation.value,
            table=source.table,
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=DRILL_DOWN_SYSTEM_PROMPT,
                temperature=0.2,
            )
            plan = DrillDownPlan.from_llm_response(response)
        except AskQLException as e:
            raise DrillDownError(f"Failed to plan drill-down: {e.message}", details=e.details) from e

        if not plan.success:
            raise DrillDownError(plan.error or "Failed to process drill-down request")

        sql_query = plan.new_sql_query.strip()
        if not sql_query.upper().startswith(("SELECT", "WITH")):
            raise DrillDownError("Generated drill-down query is not a SELECT statement")

        # Without column metadata there is nothing to check against
        if source.columns:
            invalid = unknown_columns(sql_query, [*source.columns, *query_identifiers(context.sql_context)])
            if invalid:
                raise DrillDownError(
                    f"Generated SQL uses invalid columns: {', '.join(invalid)}",
                    details={"invalid_columns": invalid},
                )

        logger.info(
            "Drill-down planned",
            operation=operation.value,
            visualization_type=plan.new_visualization.type.value,
            filters_applied=len(plan.filters_applied),
            trace_id=trace_id,
        )

        plan.new_sql_query = sql_query
        return plan
