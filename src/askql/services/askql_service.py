"""
AskQL Service - turns a question into an API answer.

This service is a THIN LAYER over the workflow:
1. AskQLWorkflow - runs the staged pipeline to a terminal state
2. Response mapping - terminal state -> AskResponse (answer, views, metadata)

The workflow never raises; this layer reads state.error as the
authoritative failure signal.
"""

import time
from typing import List, Optional

from ..domain.base_enums import VisualizationType
from ..domain.pipeline import PipelineState
from ..domain.responses import (
    AskDebugInfo,
    AskMetadata,
    AskResponse,
    Visualization,
)
from ..domain.results import VisualizationConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..workflow.orchestrator import AskQLWorkflow
from .visualization_service import build_drill_down_context, new_visualization_id

logger = get_module_logger()

NO_RESPONSE_ERROR = "No final response generated"


def build_visualizations(state: PipelineState) -> List[Visualization]:
    """
    Charts (bar, line, pie) the model asked for, then the table view.

    Each visualization carries a drill-down context built from the executed query.
    """
    final_response = state.final_response
    if final_response is None:
        return []

    def drill_down(kind: VisualizationType):
        if not state.sql_query:
            return None
        return build_drill_down_context(state.question, state.sql_query, kind, state.execution_result, state.schema)

    visualizations: List[Visualization] = []

    for chart_type, chart in final_response.visible_charts():
        visualizations.append(
            Visualization(
                id=new_visualization_id(),
                type=VisualizationType.CHART,
                title=chart.title or f"{chart_type.value.capitalize()} Chart",
                config=VisualizationConfig(
                    chart_type=chart_type,
                    labels=chart.data.labels,
                    datasets=chart.data.datasets,
                ),
                drill_down=drill_down(VisualizationType.CHART),
            )
        )

    table = final_response.table
    if table.should_show:
        # Prefer the executed rows over whatever the model echoed back
        execution_rows = state.execution_result.rows if state.execution_result else []
        rows = execution_rows or table.data
        columns = table.columns or (list(rows[0].keys()) if rows else [])
        visualizations.append(
            Visualization(
                id=new_visualization_id(),
                type=VisualizationType.TABLE,
                title="Data Table",
                config=VisualizationConfig(columns=columns),
                data=rows,
                drill_down=drill_down(VisualizationType.TABLE),
            )
        )

    return visualizations


def summarize_steps(state: PipelineState) -> List[str]:
    """One line per stage that left a trace in the state."""
    steps: List[str] = []

    if state.schema is not None:
        steps.append("Loaded database schema")
    if state.sql_query:
        steps.append("Converted natural language to SQL")
    if state.validation is not None:
        steps.append(f"Validated SQL query ({state.validation.risk_level.value} risk)")
    if state.alternatives:
        steps.append(f"Experimented with {len(state.alternatives)} alternative approaches")
    if state.execution_result is not None:
        steps.append(
            "Executed SQL query successfully" if state.execution_result.success else "SQL execution failed"
        )
    if state.final_response is not None:
        steps.append("Interpreted results to natural language")
    if state.error:
        steps.append(f"Error: {state.error}")

    return steps


def build_debug_info(state: PipelineState) -> AskDebugInfo:
    validation = state.validation
    return AskDebugInfo(
        query_explanation=state.query_explanation,
        risk_level=validation.risk_level if validation else None,
        validation_issues=validation.issues if validation else [],
        alternatives=state.alternatives or [],
        retry_count=state.retry_count,
        steps=summarize_steps(state),
    )


def build_response(
    state: PipelineState,
    execution_time_ms: float,
    include_debug_info: bool = False,
    trace_id: Optional[str] = None,
) -> AskResponse:
    """
    Map a terminal PipelineState to an AskResponse.

    A non-empty state.error always produces a failed response, whatever
    else the state holds.
    """
    debug_info = build_debug_info(state) if include_debug_info else None

    if state.error:
        return AskResponse(
            trace_id=trace_id,
            success=False,
            answer=f"I encountered an error while processing your question: {state.error}",
            metadata=AskMetadata(execution_time_ms=execution_time_ms),
            debug_info=debug_info,
            error=state.error,
        )

    if state.final_response is None:
        return AskResponse(
            trace_id=trace_id,
            success=False,
            answer="I was unable to generate a response to your question.",
            metadata=AskMetadata(execution_time_ms=execution_time_ms),
            debug_info=debug_info,
            error=NO_RESPONSE_ERROR,
        )

    return AskResponse(
        trace_id=trace_id,
        success=True,
        answer=state.final_response.summary,
        visualizations=build_visualizations(state),
        metadata=AskMetadata(
            execution_time_ms=execution_time_ms,
            sql_query=state.sql_query,
            confidence=state.confidence,
            row_count=state.execution_result.row_count if state.execution_result else 0,
        ),
        debug_info=debug_info,
    )


class AskQLService:
    """
    Answers natural-language questions about the database.

    Usage:
        service = AskQLService(workflow)
        response = await service.ask("How many orders are there?")
    """

    def __init__(self, workflow: AskQLWorkflow):
        self.workflow = workflow

    async def ask(
        self,
        question: str,
        session_id: Optional[str] = None,
        include_debug_info: bool = False,
    ) -> AskResponse:
        """
        Run the workflow for one question and build the API response.

        Args:
            question: Natural language question
            session_id: Session that receives progress events, if any
            include_debug_info: Attach workflow internals to the response

        Returns:
            AskResponse; success=False when the workflow ended in error
        """
        trace_id = current_trace_id()
        start = time.perf_counter()

        logger.info(
            "Answering question",
            question_length=len(question),
            session_id=session_id,
            trace_id=trace_id,
        )

        state = await self.workflow.run(question, session_id=session_id)
        execution_time_ms = (time.perf_counter() - start) * 1000

        response = build_response(
            state,
            execution_time_ms=execution_time_ms,
            include_debug_info=include_debug_info,
            trace_id=trace_id,
        )

        logger.info(
            "Question answered" if response.success else "Question failed",
            success=response.success,
            row_count=response.metadata.row_count,
            visualizations=len(response.visualizations),
            error=response.error,
            trace_id=trace_id,
        )

        return response
