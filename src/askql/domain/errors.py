"""
Exception hierarchy for AskQL.

Every error carries a machine-readable error_code and the HTTP status the
API layer answers with when the error escapes to a request handler.
Inside the workflow, collaborators raise these and the stages turn them
into a message on the pipeline state instead of propagating.

Usage:
    raise DatabaseConnectionError("Failed to connect to database")
    raise SQLGenerationError("Generated query is not a SELECT statement")
"""

from typing import Any, Dict, Optional


class AskQLException(Exception):
    """
    Base exception for all AskQL errors.

    Attributes:
        message: Human-readable description, shown to the user as-is
        error_code: Machine-readable code (e.g. "DATABASE_QUERY_ERROR")
        http_status: Status code for API responses
        details: Optional structured context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status


# =============================================================================
# Workflow wiring and state
# =============================================================================


class ConfigurationError(AskQLException):
    error_code = "CONFIGURATION_ERROR"


class WorkflowConfigurationError(ConfigurationError):
    """Stage table is inconsistent: duplicate stage, missing routing entry, unknown target, cycle."""

    error_code = "WORKFLOW_CONFIGURATION_ERROR"


class PipelineStateError(AskQLException):
    """A stage update tried to change the question or session id, or named an unknown field."""

    error_code = "PIPELINE_STATE_ERROR"


# =============================================================================
# Database
# =============================================================================


class DatabaseError(AskQLException):
    error_code = "DATABASE_ERROR"
    http_status = 503


class DatabaseConnectionError(DatabaseError):
    """Pool could not be created, login rejected, or client used before connect()."""

    error_code = "DATABASE_CONNECTION_ERROR"


class DatabaseQueryError(DatabaseError):
    """Query failed: syntax, missing relation, timeout, write inside a read-only transaction."""

    error_code = "DATABASE_QUERY_ERROR"
    http_status = 500


class SchemaError(AskQLException):
    """Schema metadata could not be loaded."""

    error_code = "SCHEMA_ERROR"


# =============================================================================
# Model-backed collaborators
# =============================================================================


class LLMError(AskQLException):
    """LLM unreachable, input too large, or empty answer."""

    error_code = "LLM_ERROR"
    http_status = 503


class SQLGenerationError(AskQLException):
    """Empty question, unusable model answer, or a translation that is not a SELECT."""

    error_code = "SQL_GENERATION_ERROR"


class SQLValidationError(AskQLException):
    """Validator could not produce a verdict or alternatives."""

    error_code = "SQL_VALIDATION_ERROR"
    http_status = 422


class InterpretationError(AskQLException):
    """Model answer could not be turned into a FinalResponse."""

    error_code = "INTERPRETATION_ERROR"


class DrillDownError(AskQLException):
    """Drill-down request is unsupported by its visualization, or the planned query is unusable."""

    error_code = "DRILL_DOWN_ERROR"
    http_status = 422


class VisualizationEditError(AskQLException):
    """Model could not produce an edited visualization."""

    error_code = "VISUALIZATION_EDIT_ERROR"


class ServiceUnavailableError(AskQLException):
    """A dependency the request needs (database, LLM, workflow) is not initialized."""

    error_code = "SERVICE_UNAVAILABLE"
    http_status = 503
