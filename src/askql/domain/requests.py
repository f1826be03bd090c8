"""
API request models for the AskQL system.

These models define the structure for all incoming API requests,
ensuring type safety and validation at API boundaries.

All fields include detailed descriptions that appear in Swagger/OpenAPI documentation.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from .base_enums import DrillDownOperation
from .responses import Visualization


class AskRequest(BaseModel):
    """Request model for answering a natural-language question."""

    question: str = Field(
        ...,
        description="Natural language question about the data. "
                    "Example: 'How many orders were placed last month?'",
        min_length=1,
        max_length=2000,
        json_schema_extra={"example": "count rows in orders"}
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Optional session id. When set, progress events for this run "
                    "are delivered to the WebSocket connection with the same id."
    )
    include_debug_info: bool = Field(
        default=False,
        description="If true, includes the SQL explanation, validation verdict, "
                    "alternatives and processing steps in the response."
    )


class WebSocketAskMessage(BaseModel):
    """Message a WebSocket client sends to start a run."""

    question: str = Field(
        ...,
        description="Natural language question about the data",
        min_length=1,
        max_length=2000,
    )
    include_debug_info: bool = Field(default=False, description="Include debug info in the final event")


# -------------------------
# Visualization Requests
# -------------------------

class DrillDownParameters(BaseModel):
    """What to drill into."""

    filter_column: Optional[str] = Field(default=None, description="Column to filter on")
    filter_value: Optional[Any] = Field(default=None, description="Value of the clicked element")
    group_by_column: Optional[str] = Field(default=None, description="Column to regroup by")
    time_period: Optional[str] = Field(default=None, description="Time bucket for trend drill-downs", examples=["month"])
    limit: Optional[int] = Field(default=None, ge=1, le=10000, description="Maximum rows wanted")


class DrillDownRequest(BaseModel):
    """Request model for drilling into a visualization."""

    visualization_id: str = Field(..., min_length=1, description="Id of the visualization being explored")
    operation: DrillDownOperation = Field(..., description="detail, filter, group or trend")
    parameters: DrillDownParameters = Field(default_factory=DrillDownParameters)
    visualization: Optional[Visualization] = Field(
        default=None,
        description="The visualization being explored, with its drill_down context",
    )
    available_data: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Rows the client currently shows",
    )


class VisualizationEditRequest(BaseModel):
    """Request model for changing a visualization with a natural-language instruction."""

    user_request: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="What to change. Example: 'make it a pie chart'",
    )
    current_visualization: Visualization = Field(..., description="Visualization to edit")
    available_data: List[Dict[str, Any]] = Field(default_factory=list, description="Rows behind the visualization")
    original_sql_query: Optional[str] = Field(default=None, description="Query that produced the data")
    original_question: Optional[str] = Field(default=None, description="Question the visualization answers")


class VisualizationSuggestionsRequest(BaseModel):
    """Request model for visualization edit suggestions."""

    visualization: Visualization = Field(..., description="Visualization to suggest edits for")
    available_data: List[Dict[str, Any]] = Field(default_factory=list, description="Rows behind the visualization")
