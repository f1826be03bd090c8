"""
API response models for the AskQL system.

These models define the structure for all outgoing API responses,
ensuring consistent response formats and type safety.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from .base_enums import DrillDownOperation, RiskLevel, VisualizationType
from .results import QueryAlternative, VisualizationConfig
from .schema_nodes import TableSchema


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Health status", examples=["healthy", "degraded", "unhealthy"])
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    database_status: str = Field(..., description="Database connection status")
    llm_service_status: str = Field(..., description="LLM service status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
    trace_id: Optional[str] = Field(
        default=None,
        description="Trace ID for debugging"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


# -------------------------
# Ask Response Models
# -------------------------

class DrillDownSource(BaseModel):
    """Where a visualization's data came from."""

    table: str = Field(..., description="Primary table of the query", examples=["orders"])
    columns: List[str] = Field(default_factory=list, description="Columns available for drill-down")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Filters already applied")


class DrillDownContext(BaseModel):
    """What a client needs to request a drill-down from a visualization."""

    enabled: bool = Field(default=True, description="Whether drill-down is available")
    original_question: str = Field(..., description="Question the visualization answers")
    sql_context: str = Field(..., description="SQL query that produced the data")
    data_source: DrillDownSource = Field(..., description="Table and columns behind the data")
    supported_operations: List[DrillDownOperation] = Field(default_factory=list, description="Operations the client may request")
    description: str = Field(default="", description="Hint shown to the user")


class Visualization(BaseModel):
    """A chart or table suggested for the answer."""

    id: str = Field(..., description="Unique visualization id", examples=["viz_3f2a9c1b7d"])
    type: VisualizationType = Field(..., description="chart or table")
    title: str = Field(..., description="Display title")
    config: VisualizationConfig = Field(default_factory=VisualizationConfig)
    data: Optional[List[Dict[str, Any]]] = Field(default=None, description="Table rows (tables only)")
    drill_down: Optional[DrillDownContext] = Field(default=None, description="Drill-down context (if available)")


class AskMetadata(BaseModel):
    """Execution measurements for an answered question."""

    execution_time_ms: float = Field(..., description="Total processing time in milliseconds")
    sql_query: Optional[str] = Field(default=None, description="Final SQL query that was executed")
    confidence: Optional[float] = Field(default=None, description="Confidence of the final SQL query (0-100)")
    row_count: int = Field(default=0, description="Number of rows returned")


class AskDebugInfo(BaseModel):
    """Intermediate workflow results, returned on request."""

    query_explanation: Optional[str] = Field(default=None, description="Translator's explanation of the query")
    risk_level: Optional[RiskLevel] = Field(default=None, description="Validator's risk verdict")
    validation_issues: List[str] = Field(default_factory=list, description="Issues found by the validator")
    alternatives: List[QueryAlternative] = Field(default_factory=list, description="Alternatives generated during experimentation")
    retry_count: int = Field(default=0, description="Times the error handler ran")
    steps: List[str] = Field(default_factory=list, description="Human-readable summary of the stages that ran")


class AskResponse(BaseModel):
    """Response model for the ask endpoint."""

    trace_id: Optional[str] = Field(default=None, description="Unique trace ID for this request")
    success: bool = Field(..., description="Whether the question was answered")
    answer: str = Field(..., description="Natural-language answer or error explanation")
    visualizations: List[Visualization] = Field(default_factory=list, description="Suggested charts and tables")
    metadata: AskMetadata = Field(..., description="Execution measurements")
    debug_info: Optional[AskDebugInfo] = Field(default=None, description="Workflow internals (if requested)")
    error: Optional[str] = Field(default=None, description="Error message (if success is False)")


# -------------------------
# Schema Response Models
# -------------------------

class SchemaResponse(BaseModel):
    """Response model for the schema endpoint."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    schema_name: str = Field(..., description="Name of the database schema")
    table_count: int = Field(..., description="Total number of tables in the schema")
    relationship_count: int = Field(..., description="Total number of foreign key relationships")
    tables: Dict[str, TableSchema] = Field(..., description="Tables keyed by name")


class SuggestionsResponse(BaseModel):
    """Response model for question suggestions."""

    trace_id: str = Field(..., description="Unique trace ID for this request")
    suggestions: List[str] = Field(..., description="Example questions for the current database")


# -------------------------
# Visualization Response Models
# -------------------------

class DrillDownMetadata(BaseModel):
    """Execution measurements for a drill-down query."""

    execution_time_ms: float = Field(..., description="Processing time in milliseconds")
    sql_query: Optional[str] = Field(default=None, description="Drill-down SQL query that was executed")
    row_count: int = Field(default=0, description="Number of rows returned")


class DrillDownResponse(BaseModel):
    """Response model for the drill-down endpoint."""

    trace_id: Optional[str] = Field(default=None, description="Unique trace ID for this request")
    success: bool = Field(..., description="Whether the drill-down succeeded")
    visualization: Optional[Visualization] = Field(default=None, description="Visualization of the drilled-down data")
    metadata: Optional[DrillDownMetadata] = Field(default=None, description="Execution measurements")
    error: Optional[str] = Field(default=None, description="Error message (if success is False)")


class VisualizationEditResponse(BaseModel):
    """Response model for the visualization edit endpoint."""

    trace_id: Optional[str] = Field(default=None, description="Unique trace ID for this request")
    success: bool = Field(..., description="Whether the edit succeeded")
    reasoning: str = Field(default="", description="Why the model chose this edit")
    new_visualization: Optional[Visualization] = Field(default=None, description="Edited visualization")
    requires_new_query: bool = Field(default=False, description="Whether the edit needs data the current query does not return")
    new_sql_query: Optional[str] = Field(default=None, description="Suggested query when new data is needed")
    error: Optional[str] = Field(default=None, description="Error message (if success is False)")


class VisualizationSuggestionsResponse(BaseModel):
    """Response model for visualization edit suggestions."""

    trace_id: Optional[str] = Field(default=None, description="Unique trace ID for this request")
    success: bool = Field(default=True, description="Whether suggestions were produced")
    suggestions: List[str] = Field(default_factory=list, description="Edit requests the user might try")


class StreamStatusResponse(BaseModel):
    """Response model for the stream status endpoint."""

    active_connections: int = Field(..., description="Number of open WebSocket sessions")
    timestamp: datetime = Field(..., description="Status timestamp")
