"""
Progress events emitted while the workflow runs.

Events are delivered to a progress sink keyed by session id. They are
observations only; nothing in the workflow reads them back.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .base_enums import StagePhase

# Stage value of the final event that closes a run
WORKFLOW_STAGE = "workflow"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressEvent(BaseModel):
    """A single stage progress notification."""

    stage: str = Field(..., description="Stage name, or 'workflow' for the final event")
    phase: StagePhase = Field(..., description="Where the stage is in its lifecycle")
    message: str = Field(..., description="Human-readable progress message")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Stage output summary")
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Measurements such as execution_time_ms, confidence, row_count",
    )
    timestamp: datetime = Field(default_factory=_utc_now, description="When the event was created")

    def to_message(self) -> Dict[str, Any]:
        """JSON-ready payload for streaming transports."""
        return self.model_dump(mode="json", exclude_none=True)
