"""
Domain package for the AskQL system.

This package contains all domain models, entities, and value objects
used throughout the application for type safety and validation.
"""

from .base_enums import (
    StageName,
    Route,
    StagePhase,
    RiskLevel,
    SQLOperationType,
    ColumnType,
    ChartType,
    VisualizationType,
    DrillDownOperation,
)
from .schema_nodes import TableSchema, ColumnSchema, RelationshipSchema
from .results import (
    TranslationResult,
    ValidationResult,
    QueryAlternative,
    AlternativesResult,
    ColumnInfo,
    ExecutionResult,
    InterpretationResult,
    TableView,
    ChartView,
    ChartData,
    ChartDataset,
    VisualizationConfig,
    ProposedVisualization,
    VisualizationEdit,
    DrillDownPlan,
)
from .pipeline import PipelineState
from .events import ProgressEvent, WORKFLOW_STAGE
from .requests import (
    AskRequest,
    WebSocketAskMessage,
    DrillDownParameters,
    DrillDownRequest,
    VisualizationEditRequest,
    VisualizationSuggestionsRequest,
)
from .responses import (
    HealthResponse,
    ErrorResponse,
    AskResponse,
    AskMetadata,
    AskDebugInfo,
    Visualization,
    DrillDownContext,
    DrillDownSource,
    SchemaResponse,
    SuggestionsResponse,
    DrillDownMetadata,
    DrillDownResponse,
    VisualizationEditResponse,
    VisualizationSuggestionsResponse,
    StreamStatusResponse,
)

__all__ = [
    # Enums
    "StageName",
    "Route",
    "StagePhase",
    "RiskLevel",
    "SQLOperationType",
    "ColumnType",
    "ChartType",
    "VisualizationType",
    "DrillDownOperation",

    # Schema
    "TableSchema",
    "ColumnSchema",
    "RelationshipSchema",

    # Collaborator results
    "TranslationResult",
    "ValidationResult",
    "QueryAlternative",
    "AlternativesResult",
    "ColumnInfo",
    "ExecutionResult",
    "InterpretationResult",
    "TableView",
    "ChartView",
    "ChartData",
    "ChartDataset",
    "VisualizationConfig",
    "ProposedVisualization",
    "VisualizationEdit",
    "DrillDownPlan",

    # Workflow
    "PipelineState",
    "ProgressEvent",
    "WORKFLOW_STAGE",

    # Requests
    "AskRequest",
    "WebSocketAskMessage",
    "DrillDownParameters",
    "DrillDownRequest",
    "VisualizationEditRequest",
    "VisualizationSuggestionsRequest",

    # Responses
    "HealthResponse",
    "ErrorResponse",
    "AskResponse",
    "AskMetadata",
    "AskDebugInfo",
    "Visualization",
    "DrillDownContext",
    "DrillDownSource",
    "SchemaResponse",
    "SuggestionsResponse",
    "DrillDownMetadata",
    "DrillDownResponse",
    "VisualizationEditResponse",
    "VisualizationSuggestionsResponse",
    "StreamStatusResponse",
]
