"""
Result models produced by the workflow collaborators.

LLM-backed collaborators (translator, validator, interpreter) parse the
model's JSON answer through LLMJsonModel.from_llm_response, which tolerates
markdown fences and surrounding prose. The executor builds ExecutionResult
directly from database rows.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Self, Tuple

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from .base_enums import ChartType, ColumnType, RiskLevel, VisualizationType
from .errors import LLMError
from .types import ResultRow

logger = logging.getLogger(__name__)


class LLMJsonModel(BaseModel):
    """
    Base class for models parsed from an LLM JSON response.

    Handles:
    - Empty/whitespace response: raises LLMError with a clear message
    - JSON format: {"field": ...}
    - Markdown-wrapped JSON: ```json ... ```
    - JSON object embedded in prose
    - Subclass-specific fallback for non-JSON text (see _from_plain_text)
    """

    @classmethod
    def from_llm_response(cls, response: str) -> Self:
        """
        Parse LLM response string into a model instance.

        Args:
            response: Raw LLM response string

        Returns:
            Parsed and validated model

        Raises:
            LLMError: If the response is empty, not JSON, or does not match the model
        """
        # Handle empty or whitespace-only responses
        if not response or not response.strip():
            logger.warning("LLM returned empty response")
            raise LLMError(
                "LLM returned empty response - may indicate rate limiting or model unavailability"
            )

        cleaned = cls._strip_markdown(response)

        # Check if cleaned content is empty (e.g., just markdown fences with no content)
        if not cleaned:
            logger.warning("LLM response contained only markdown fences with no content")
            raise LLMError("LLM response was empty after removing markdown formatting")

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            # Try to extract JSON object from the response
            data = cls._extract_json_object(cleaned)
            if data is None:
                logger.warning(
                    "Failed to parse LLM response as JSON, attempting plain text fallback",
                    extra={"error": str(e), "cleaned_preview": cleaned[:200]},
                )
                fallback = cls._from_plain_text(response)
                if fallback is not None:
                    return fallback

                preview = cleaned[:150]
                raise LLMError(f"LLM response was not valid JSON. Preview: {preview}") from e

        if not isinstance(data, dict):
            raise LLMError(f"LLM response must be a JSON object, got {type(data).__name__}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise LLMError(
                f"LLM response did not match the expected {cls.__name__} format: {e.error_count()} invalid field(s)",
                details={"errors": str(e), "response_preview": cleaned[:200]},
            ) from e

    @classmethod
    def _from_plain_text(cls, response: str) -> Optional[Self]:
        """Fallback for non-JSON responses. No fallback by default."""
        return None

    @staticmethod
    def _strip_markdown(text: str) -> str:
        """
        Strip markdown code fence from text.

        Handles various formats:
        - ```json\\n{...}\\n```
        - ```\\n{...}\\n```
        - ``` json\\n{...}```
        - Mixed whitespace and newlines
        """
        cleaned = text.strip()

        markdown_pattern = re.compile(
            r'^```(?:json)?\s*\n?(.*?)\n?```$',
            re.DOTALL | re.IGNORECASE
        )

        match = markdown_pattern.match(cleaned)
        if match:
            return match.group(1).strip()

        # Fallback: manual stripping for edge cases
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:]
        elif cleaned.startswith("```"):
            cleaned = cleaned[3:]

        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]

        return cleaned.strip()

    @staticmethod
    def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
        """
        Try to extract a JSON object from text that may contain extra content.

        Finds the first { and last } and tries to parse what's between.
        """
        start = text.find('{')
        end = text.rfind('}')

        if start == -1 or end == -1 or end <= start:
            return None

        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None


def extract_raw_sql(response: str) -> Optional[str]:
    """Extract a bare SELECT/WITH statement from a non-JSON response."""
    sql = response.strip()

    if sql.startswith("```sql"):
        sql = sql[6:]
    elif sql.startswith("```"):
        sql = sql[3:]
    if sql.endswith("```"):
        sql = sql[:-3]

    sql = sql.strip()

    if sql.upper().startswith(("SELECT", "WITH")):
        return sql
    return None


# -------------------------
# Translation
# -------------------------

class TranslationResult(LLMJsonModel):
    """SQL query produced from a natural-language question."""

    sql_query: str = Field(
        ...,
        validation_alias=AliasChoices("sql_query", "sqlQuery", "sql"),
        description="Generated SQL query",
    )
    explanation: str = Field(default="", description="What the query does, in plain language")
    confidence: float = Field(..., ge=0, le=100, description="Self-assessed confidence (0-100)")

    @classmethod
    def _from_plain_text(cls, response: str) -> Optional[Self]:
        # Raw SQL carries no self-assessment, so it gets the lowest confidence
        sql = extract_raw_sql(response)
        if sql:
            return cls(sql_query=sql, explanation="Model returned raw SQL without explanation", confidence=0)
        return None


# -------------------------
# Validation
# -------------------------

class ValidationResult(LLMJsonModel):
    """Verdict on a candidate SQL query."""

    is_valid: bool = Field(..., validation_alias=AliasChoices("is_valid", "isValid"))
    risk_level: RiskLevel = Field(..., validation_alias=AliasChoices("risk_level", "riskLevel"))
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    improved_query: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("improved_query", "improvedQuery"),
    )
    should_execute: bool = Field(..., validation_alias=AliasChoices("should_execute", "shouldExecute"))

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_risk_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class QueryAlternative(BaseModel):
    """One alternative formulation of a query."""

    query: str = Field(..., validation_alias=AliasChoices("query", "sql_query", "sqlQuery"))
    explanation: str = Field(default="")
    confidence: float = Field(..., ge=0, le=100)


class AlternativesResult(LLMJsonModel):
    """Ordered alternatives produced during experimentation."""

    alternatives: List[QueryAlternative] = Field(default_factory=list)

    def best(self) -> Optional[QueryAlternative]:
        """Highest-confidence alternative; ties keep the earliest."""
        best: Optional[QueryAlternative] = None
        for alternative in self.alternatives:
            if best is None or alternative.confidence > best.confidence:
                best = alternative
        return best


# -------------------------
# Execution
# -------------------------

class ColumnInfo(BaseModel):
    """Name and inferred value type of a result column."""

    name: str
    type: ColumnType


class ExecutionResult(BaseModel):
    """
    Outcome of running a query.

    Policy refusals, database errors and timeouts are reported with
    success=False rather than raised.
    """

    success: bool = Field(..., description="Whether the query ran to completion")
    rows: List[ResultRow] = Field(default_factory=list, description="Result rows")
    error: Optional[str] = Field(default=None, description="Failure reason when success is False")
    execution_time_ms: float = Field(default=0.0, description="Wall-clock execution time in milliseconds")
    row_count: int = Field(default=0, description="Number of rows returned")
    column_info: List[ColumnInfo] = Field(default_factory=list, description="Result columns in order")
    was_limited: bool = Field(default=False, description="Whether rows past the row cap were dropped")
    executed_query: Optional[str] = Field(default=None, description="Query as actually sent to the database")

    @classmethod
    def failure(cls, error: str, execution_time_ms: float = 0.0) -> "ExecutionResult":
        return cls(success=False, error=error, execution_time_ms=execution_time_ms)


# -------------------------
# Interpretation
# -------------------------

class ChartDataset(BaseModel):
    label: str = ""
    data: List[Optional[float]] = Field(default_factory=list)
    color: Optional[str] = None


class ChartData(BaseModel):
    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)

    @field_validator("labels", mode="before")
    @classmethod
    def stringify_labels(cls, value: Any) -> Any:
        # Models often emit years or ids as bare numbers
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class ChartView(BaseModel):
    should_show: bool = False
    title: str = ""
    data: ChartData = Field(default_factory=ChartData)


class TableView(BaseModel):
    should_show: bool = False
    columns: List[str] = Field(default_factory=list)
    data: List[ResultRow] = Field(default_factory=list)


class InterpretationResult(LLMJsonModel):
    """Natural-language answer with suggested views of the result set."""

    summary: str = Field(..., description="Answer to the question in plain language")
    table: TableView = Field(default_factory=TableView)
    bar_chart: Optional[ChartView] = None
    line_chart: Optional[ChartView] = None
    pie_chart: Optional[ChartView] = None

    def visible_charts(self) -> List[Tuple[ChartType, ChartView]]:
        """Charts the model marked visible, in bar/line/pie order."""
        charts = [
            (ChartType.BAR, self.bar_chart),
            (ChartType.LINE, self.line_chart),
            (ChartType.PIE, self.pie_chart),
        ]
        return [(chart_type, view) for chart_type, view in charts if view is not None and view.should_show]


# -------------------------
# Visualization edits and drill-downs
# -------------------------

class VisualizationConfig(BaseModel):
    """Rendering hints for a visualization."""

    chart_type: Optional[ChartType] = Field(
        default=None,
        validation_alias=AliasChoices("chart_type", "chartType"),
        description="Chart type (charts only)",
    )
    labels: Optional[List[str]] = Field(default=None, description="Category labels (charts only)")
    datasets: Optional[List[ChartDataset]] = Field(default=None, description="Series values (charts only)")
    columns: Optional[List[str]] = Field(default=None, description="Column order (tables only)")

    @field_validator("labels", mode="before")
    @classmethod
    def stringify_labels(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class ProposedVisualization(BaseModel):
    """Chart or table the model proposes for an edit or a drill-down."""

    type: VisualizationType = VisualizationType.TABLE
    title: str = ""
    config: VisualizationConfig = Field(default_factory=VisualizationConfig)
    data: Optional[List[ResultRow]] = None


class VisualizationEdit(LLMJsonModel):
    """Model's answer to a natural-language request to change a visualization."""

    success: bool
    reasoning: str = ""
    new_visualization: Optional[ProposedVisualization] = Field(
        default=None,
        validation_alias=AliasChoices("new_visualization", "newVisualization"),
    )
    requires_new_query: bool = Field(
        default=False,
        validation_alias=AliasChoices("requires_new_query", "requiresNewQuery"),
    )
    new_sql_query: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("new_sql_query", "newSqlQuery"),
    )
    error: Optional[str] = None


class DrillDownPlan(LLMJsonModel):
    """Query and visualization the model proposes for a drill-down."""

    success: bool
    reasoning: str = ""
    new_sql_query: str = Field(
        default="",
        validation_alias=AliasChoices("new_sql_query", "newSqlQuery"),
    )
    new_visualization: ProposedVisualization = Field(
        default_factory=ProposedVisualization,
        validation_alias=AliasChoices("new_visualization", "newVisualization"),
    )
    operation_type: str = Field(default="", validation_alias=AliasChoices("operation_type", "operationType"))
    filters_applied: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("filters_applied", "filtersApplied"),
    )
    error: Optional[str] = None
