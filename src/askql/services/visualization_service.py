"""
Visualization Service - drill-downs and edits of returned visualizations.

Drill-down flow:
1. DrillDownRepository plans a new query for the clicked visualization
2. SQLExecutionRepository runs it read-only under the row cap
3. The rows become a new visualization with its own drill-down context

Edits and suggestions go to VisualizationEditRepository. Failures are
reported in the response (success=False) rather than raised.
"""

import re
import secrets
import time
from typing import Iterable, List, Optional

from ..domain.base_enums import DrillDownOperation, RiskLevel, VisualizationType
from ..domain.errors import AskQLException
from ..domain.requests import DrillDownRequest, VisualizationEditRequest, VisualizationSuggestionsRequest
from ..domain.responses import (
    DrillDownContext,
    DrillDownMetadata,
    DrillDownResponse,
    DrillDownSource,
    Visualization,
    VisualizationEditResponse,
    VisualizationSuggestionsResponse,
)
from ..domain.results import ExecutionResult, ProposedVisualization
from ..domain.types import DatabaseSchema, ResultRow
from ..repositories.drill_down import DrillDownRepository
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.visualization_edit import VisualizationEditRepository, suggest_edits
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

MISSING_VISUALIZATION_ERROR = (
    "Visualization context is required for drill-down operations. "
    "Please ensure the visualization has drill-down metadata."
)
MISSING_CONTEXT_ERROR = "This visualization does not support drill-down operations. Drill-down context is missing."

_FROM_TABLE = re.compile(r"\bFROM\s+(?:\w+\.)?(\w+)", re.IGNORECASE)

TABLE_OPERATIONS = [DrillDownOperation.DETAIL, DrillDownOperation.FILTER, DrillDownOperation.GROUP]
CHART_OPERATIONS = TABLE_OPERATIONS + [DrillDownOperation.TREND]


def new_visualization_id() -> str:
    return f"viz_{secrets.token_hex(5)}"


def build_drill_down_context(
    question: str,
    sql_query: str,
    kind: VisualizationType,
    execution_result: Optional[ExecutionResult] = None,
    schema: Optional[DatabaseSchema] = None,
    extra_columns: Iterable[str] = (),
) -> DrillDownContext:
    """
    Drill-down context for a visualization built from sql_query.

    The data source table is the first FROM table. Its columns are the
    result columns, then the table's schema columns, then extra_columns.
    """
    match = _FROM_TABLE.search(sql_query)
    table = match.group(1) if match else "unknown_table"

    columns: List[str] = []
    if execution_result is not None:
        columns = [column.name for column in execution_result.column_info]
        if not columns and execution_result.rows:
            columns = list(execution_result.rows[0].keys())
    if schema and table in schema:
        columns.extend(schema[table].columns)
    columns.extend(extra_columns)

    return DrillDownContext(
        original_question=question,
        sql_context=sql_query,
        data_source=DrillDownSource(table=table, columns=list(dict.fromkeys(columns))),
        supported_operations=list(CHART_OPERATIONS if kind == VisualizationType.CHART else TABLE_OPERATIONS),
        description=f"Click to explore more details about this {kind.value}",
    )


def to_visualization(
    proposed: ProposedVisualization,
    visualization_id: str,
    rows: Optional[List[ResultRow]] = None,
) -> Visualization:
    """Turn a model-proposed visualization into an API one; tables get the given rows."""
    config = proposed.config
    data = proposed.data
    if proposed.type == VisualizationType.TABLE and rows is not None:
        data = rows
        if not config.columns and rows:
            config = config.model_copy(update={"columns": list(rows[0].keys())})

    return Visualization(
        id=visualization_id,
        type=proposed.type,
        title=proposed.title or "Visualization",
        config=config,
        data=data,
    )


class VisualizationService:
    """
    Drill-downs, edits and edit suggestions for visualizations.

    Usage:
        service = VisualizationService(drill_down, editor, executor)
        response = await service.drill_down(request)
    """

    def __init__(
        self,
        drill_down_repository: DrillDownRepository,
        edit_repository: VisualizationEditRepository,
        executor: SQLExecutionRepository,
    ):
        self.drill_down_repository = drill_down_repository
        self.edit_repository = edit_repository
        self.executor = executor

    async def drill_down(self, request: DrillDownRequest) -> DrillDownResponse:
        """
        Plan, execute and visualize a drill-down.

        Returns:
            DrillDownResponse; success=False with an error message when the
            request is unsupported, the plan is unusable or execution fails
        """
        trace_id = current_trace_id()
        start = time.perf_counter()

        def failed(error: str) -> DrillDownResponse:
            logger.warning("Drill-down failed", operation=request.operation.value, error=error, trace_id=trace_id)
            return DrillDownResponse(trace_id=trace_id, success=False, error=error)

        visualization = request.visualization
        if visualization is None:
            return failed(MISSING_VISUALIZATION_ERROR)
        if visualization.drill_down is None:
            return failed(MISSING_CONTEXT_ERROR)

        logger.info(
            "Drilling down",
            visualization_id=request.visualization_id,
            operation=request.operation.value,
            trace_id=trace_id,
        )

        try:
            plan = await self.drill_down_repository.plan(
                visualization,
                request.operation,
                request.parameters,
                request.available_data,
            )
        except AskQLException as e:
            return failed(e.message)

        # The plan went through the drill-down checks; the executor still
        # enforces SELECT-only, read-only and the row cap
        result = await self.executor.execute(plan.new_sql_query, is_validated=True, risk_level=RiskLevel.LOW)
        if not result.success:
            return failed(f"SQL execution failed: {result.error}")

        new_visualization = to_visualization(plan.new_visualization, new_visualization_id(), result.rows)
        new_visualization.drill_down = build_drill_down_context(
            visualization.drill_down.original_question,
            plan.new_sql_query,
            new_visualization.type,
            result,
            extra_columns=visualization.drill_down.data_source.columns,
        )

        execution_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Drill-down complete",
            row_count=result.row_count,
            execution_time_ms=round(execution_time_ms, 2),
            trace_id=trace_id,
        )

        return DrillDownResponse(
            trace_id=trace_id,
            success=True,
            visualization=new_visualization,
            metadata=DrillDownMetadata(
                execution_time_ms=execution_time_ms,
                sql_query=plan.new_sql_query,
                row_count=result.row_count,
            ),
        )

    async def edit(self, request: VisualizationEditRequest) -> VisualizationEditResponse:
        trace_id = current_trace_id()
        current = request.current_visualization

        try:
            edit = await self.edit_repository.edit(
                request.user_request,
                current,
                available_data=request.available_data,
                original_sql_query=request.original_sql_query,
                original_question=request.original_question,
            )
        except AskQLException as e:
            logger.warning("Visualization edit failed", error=e.message, trace_id=trace_id)
            return VisualizationEditResponse(trace_id=trace_id, success=False, error=e.message)

        new_visualization = None
        if edit.new_visualization is not None:
            new_visualization = to_visualization(
                edit.new_visualization,
                current.id,
                request.available_data or current.data,
            )
            new_visualization.drill_down = current.drill_down

        return VisualizationEditResponse(
            trace_id=trace_id,
            success=True,
            reasoning=edit.reasoning,
            new_visualization=new_visualization,
            requires_new_query=edit.requires_new_query,
            new_sql_query=edit.new_sql_query,
        )

    def suggestions(self, request: VisualizationSuggestionsRequest) -> VisualizationSuggestionsResponse:
        return VisualizationSuggestionsResponse(
            trace_id=current_trace_id(),
            suggestions=suggest_edits(request.visualization, request.available_data),
        )
