"""
Progress events describing each stage of a run.

The orchestrator asks for the events before a stage starts and after its
update has been merged; the wording is what end users see in the live
progress view.
"""

from typing import Any, Dict, List, Optional

from ..config_constants import PROGRESS_ANSWER_PREVIEW_CHARS
from ..domain.base_enums import StageName, StagePhase
from ..domain.events import WORKFLOW_STAGE, ProgressEvent
from ..domain.pipeline import PipelineState
from ..domain.types import StateUpdate
from ..utils.token_utils import preview_text


def _event(
    stage: str,
    phase: StagePhase,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ProgressEvent:
    return ProgressEvent(stage=stage, phase=phase, message=message, data=data, metadata=metadata)


def stage_error_event(stage: StageName, error: str) -> ProgressEvent:
    return _event(stage.value, StagePhase.ERROR, f"Error in {stage.value}: {error}", data={"error": error})


def stage_started_events(stage: StageName, state: PipelineState) -> List[ProgressEvent]:
    """Events emitted right before `stage` runs."""
    if stage is StageName.SCHEMA_LOADING:
        return [_event(stage.value, StagePhase.STARTING, "Loading database schema information...")]

    if stage is StageName.NL_TO_SQL:
        return [
            _event(stage.value, StagePhase.STARTING, f'Converting natural language to SQL: "{state.question}"'),
            _event(stage.value, StagePhase.PROCESSING, "AI is analyzing the question and generating SQL query..."),
        ]

    if stage is StageName.SQL_VALIDATION:
        return [_event(stage.value, StagePhase.STARTING, "Validating SQL query for safety and correctness...")]

    if stage is StageName.EXPERIMENTATION:
        return [_event(stage.value, StagePhase.STARTING, "Experimenting with alternative query approaches...")]

    if stage is StageName.SQL_EXECUTION:
        return [
            _event(
                stage.value,
                StagePhase.STARTING,
                "Executing SQL query against the database...",
                data={"query": state.sql_query or ""},
            )
        ]

    if stage is StageName.RESULT_INTERPRETATION:
        row_count = state.execution_result.row_count if state.execution_result else 0
        return [
            _event(stage.value, StagePhase.STARTING, f"Interpreting {row_count} result(s) into natural language...")
        ]

    return [_event(stage.value, StagePhase.STARTING, "Handling workflow error...", data={"error": state.error})]


def stage_finished_event(stage: StageName, state: PipelineState, update: StateUpdate) -> ProgressEvent:
    """
    Event emitted after `stage` returned `update` and it was merged into `state`.

    A stage that reported an error yields an error event, except
    HandleError whose whole job is to carry the error forward.
    """
    if stage is not StageName.ERROR_HANDLING and update.get("error"):
        return stage_error_event(stage, update["error"])

    if stage is StageName.SCHEMA_LOADING:
        table_count = state.table_count
        return _event(
            stage.value,
            StagePhase.COMPLETED,
            f"Database schema loaded successfully. Found {table_count} tables.",
            data={"tables": list(state.schema or {})},
            metadata={"row_count": table_count},
        )

    if stage is StageName.NL_TO_SQL:
        return _event(
            stage.value,
            StagePhase.COMPLETED,
            "SQL query generated successfully",
            data={"sql_query": state.sql_query, "explanation": state.query_explanation},
            metadata={"confidence": state.confidence},
        )

    if stage is StageName.SQL_VALIDATION:
        validation = state.validation
        if validation.is_valid:
            message = f"SQL validation passed (Risk: {validation.risk_level.value})"
        else:
            message = f"SQL validation found issues: {', '.join(validation.issues)}"
        return _event(
            stage.value,
            StagePhase.COMPLETED,
            message,
            data={
                "is_valid": validation.is_valid,
                "risk_level": validation.risk_level.value,
                "issues": validation.issues,
            },
        )

    if stage is StageName.EXPERIMENTATION:
        count = len(update.get("alternatives") or [])
        return _event(
            stage.value,
            StagePhase.COMPLETED,
            f"Generated {count} alternative approaches",
            data={"query_replaced": "sql_query" in update},
            metadata={"row_count": count, "confidence": state.confidence},
        )

    if stage is StageName.SQL_EXECUTION:
        result = state.execution_result
        metadata = {
            "execution_time_ms": round(result.execution_time_ms, 2),
            "row_count": result.row_count,
        }
        if result.success:
            return _event(
                stage.value,
                StagePhase.COMPLETED,
                f"Query executed successfully. Found {result.row_count} result(s) in "
                f"{result.execution_time_ms:.0f}ms",
                metadata=metadata,
            )
        return _event(
            stage.value,
            StagePhase.ERROR,
            f"Query execution failed: {result.error}",
            data={"error": result.error},
            metadata=metadata,
        )

    if stage is StageName.RESULT_INTERPRETATION:
        answer = state.final_response.summary
        return _event(
            stage.value,
            StagePhase.COMPLETED,
            "Generated natural language response",
            data={"answer": preview_text(answer, PROGRESS_ANSWER_PREVIEW_CHARS)},
        )

    return _event(
        stage.value,
        StagePhase.COMPLETED,
        f"Error handled (retry count: {state.retry_count})",
        data={"error": state.error},
        metadata={"retry_count": state.retry_count},
    )


def workflow_finished_event(state: PipelineState, execution_time_ms: float) -> ProgressEvent:
    """Final event closing a run."""
    metadata: Dict[str, Any] = {"execution_time_ms": round(execution_time_ms, 2)}

    if state.has_error or state.final_response is None:
        error = state.error or "No final response generated"
        return _event(WORKFLOW_STAGE, StagePhase.ERROR, error, data={"error": error}, metadata=metadata)

    if state.execution_result is not None:
        metadata["row_count"] = state.execution_result.row_count
    if state.confidence is not None:
        metadata["confidence"] = state.confidence

    return _event(
        WORKFLOW_STAGE,
        StagePhase.COMPLETED,
        "Workflow completed successfully",
        data={
            "summary": state.final_response.summary,
            "sql_query": state.sql_query,
        },
        metadata=metadata,
    )
