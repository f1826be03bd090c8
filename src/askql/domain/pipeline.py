"""
Pipeline state for the AskQL workflow.

One PipelineState is created per run and threaded through every stage.
Stages never mutate it directly: they return a partial update that the
orchestrator applies with PipelineState.merge.
"""

from dataclasses import dataclass, fields
from typing import Any, List, Mapping, Optional

from .base_enums import StageName
from .errors import PipelineStateError
from .results import ExecutionResult, InterpretationResult, QueryAlternative, ValidationResult
from .types import DatabaseSchema


@dataclass
class PipelineState:
    """
    Mutable state passed through the workflow stages.

    question and retry_count exist from creation; every other field stays
    None until the stage that produces it has run.
    """

    # Input
    question: str
    session_id: Optional[str] = None

    # Schema discovery
    schema: Optional[DatabaseSchema] = None

    # Translation (Experiment may replace these once)
    sql_query: Optional[str] = None
    query_explanation: Optional[str] = None
    confidence: Optional[float] = None

    # Validation and experimentation
    validation: Optional[ValidationResult] = None
    alternatives: Optional[List[QueryAlternative]] = None

    # Execution and interpretation
    execution_result: Optional[ExecutionResult] = None
    final_response: Optional[InterpretationResult] = None

    # Error tracking
    error: Optional[str] = None
    retry_count: int = 0

    # Fields fixed at creation
    IMMUTABLE_FIELDS = frozenset({"question", "session_id"})

    # Written by translation; only experimentation may replace them
    QUERY_FIELDS = frozenset({"sql_query", "query_explanation", "confidence"})

    def merge(self, update: Mapping[str, Any], stage: Optional[StageName] = None) -> None:
        """
        Shallow-merge a stage update onto the state.

        The whole update is checked before anything is applied, so a
        rejected update leaves the state untouched.

        Args:
            update: Fields returned by a stage
            stage: Stage that produced the update; None for updates made
                outside the workflow, which may not replace a query

        Raises:
            PipelineStateError: If the update names an immutable or unknown
                field, clears a recorded error, or replaces the query without
                being experimentation with a strictly higher confidence
        """
        known = {f.name for f in fields(self)}

        immutable = sorted(self.IMMUTABLE_FIELDS.intersection(update))
        if immutable:
            raise PipelineStateError(
                f"Stage update may not change {', '.join(immutable)}",
                details={"fields": immutable},
            )

        unknown = sorted(set(update) - known)
        if unknown:
            raise PipelineStateError(
                f"Stage update names unknown field(s): {', '.join(unknown)}",
                details={"fields": unknown},
            )

        if self.error and "error" in update and not update["error"]:
            raise PipelineStateError(
                "Stage update may not clear a recorded error",
                details={"error": self.error},
            )

        replaced = sorted(self.QUERY_FIELDS.intersection(update))
        if replaced and self.sql_query is not None:
            self._check_query_replacement(update, stage, replaced)

        for name, value in update.items():
            setattr(self, name, value)

    def _check_query_replacement(
        self,
        update: Mapping[str, Any],
        stage: Optional[StageName],
        replaced: List[str],
    ) -> None:
        stage_name = stage.value if stage is not None else "unknown"
        if stage is not StageName.EXPERIMENTATION:
            raise PipelineStateError(
                f"Only experimentation may replace the query, not {stage_name}",
                details={"fields": replaced, "stage": stage_name},
            )

        current = self.confidence or 0
        proposed = update.get("confidence")
        if proposed is None or proposed <= current:
            raise PipelineStateError(
                f"Replacement query confidence {proposed} is not above {current}",
                details={"fields": replaced, "stage": stage_name},
            )

    @property
    def has_error(self) -> bool:
        return bool(self.error)

    @property
    def table_count(self) -> int:
        return len(self.schema) if self.schema else 0
