"""
Visualization Edit Repository.

Changes an existing visualization from a natural-language request
("make it a pie chart", "show only the top 5") using the LLM, and offers
rule-based suggestions for such requests.
"""

import re
from typing import List, Optional

from ..domain.base_enums import ChartType, VisualizationType
from ..domain.errors import AskQLException, VisualizationEditError
from ..domain.responses import Visualization
from ..domain.results import VisualizationEdit
from ..domain.types import ResultRow
from ..infrastructure.llm_client import LLMClient
from ..utils.logging import get_module_logger
from ..utils.token_utils import truncate_rows
from ..utils.tracing import current_trace_id
from .prompts import VISUALIZATION_EDIT_SYSTEM_PROMPT, VISUALIZATION_EDIT_USER_PROMPT, format_rows

logger = get_module_logger()

MAX_SUGGESTIONS = 6

_TIME_COLUMN = re.compile(r"date|time|year|month", re.IGNORECASE)

_CHART_SWITCHES = [
    (ChartType.PIE, "Convert to pie chart"),
    (ChartType.BAR, "Show as bar chart"),
    (ChartType.LINE, "Make it a line graph"),
]


def suggest_edits(visualization: Visualization, available_data: Optional[List[ResultRow]] = None) -> List[str]:
    """
    Edit requests the user might try on this visualization.

    Every chart type other than the current one is offered first. The
    first two columns can be grouped by, and date-like columns add time
    based edits. At most MAX_SUGGESTIONS are returned.
    """
    current = visualization.config.chart_type if visualization.type == VisualizationType.CHART else None
    suggestions = [text for chart_type, text in _CHART_SWITCHES if chart_type != current]

    rows = available_data or visualization.data or []
    columns = list(rows[0].keys()) if rows else list(visualization.config.columns or [])
    for column in columns[:2]:
        suggestions.append(f"Group by {column.replace('_', ' ')}")

    if any(_TIME_COLUMN.search(column) for column in columns):
        suggestions.extend(["Show trends over time", "Group by time period"])

    suggestions.extend(["Show only top 10", "Filter recent data"])

    # Keep order, drop duplicates
    return list(dict.fromkeys(suggestions))[:MAX_SUGGESTIONS]


class VisualizationEditRepository:
    """Repository for LLM-based visualization edits."""

    def __init__(self, llm_client: LLMClient, preview_rows: int = 10):
        self.llm_client = llm_client
        self.preview_rows = preview_rows

    async def edit(
        self,
        user_request: str,
        visualization: Visualization,
        available_data: Optional[List[ResultRow]] = None,
        original_sql_query: Optional[str] = None,
        original_question: Optional[str] = None,
    ) -> VisualizationEdit:
        """
        Apply a natural-language edit to a visualization.

        Args:
            user_request: What to change
            visualization: Visualization being edited
            available_data: Rows behind the visualization
            original_sql_query: Query that produced the rows
            original_question: Question the visualization answers

        Returns:
            VisualizationEdit with the new visualization, or a new query
            when the edit needs data the rows do not contain

        Raises:
            VisualizationEditError: If the LLM call fails or the model declines
        """
        trace_id = current_trace_id()
        rows = available_data or visualization.data or []
        preview = truncate_rows(rows, max_rows=self.preview_rows)

        prompt = VISUALIZATION_EDIT_USER_PROMPT.format(
            user_request=user_request,
            visualization=visualization.model_dump_json(exclude={"data", "drill_down"}, exclude_none=True, indent=2),
            row_count=len(rows),
            preview_count=len(preview),
            rows=format_rows(preview),
            question=original_question or "(unknown)",
            sql_query=original_sql_query or "(unknown)",
        )

        logger.debug(
            "Calling LLM for visualization edit",
            visualization_type=visualization.type.value,
            request_length=len(user_request),
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=VISUALIZATION_EDIT_SYSTEM_PROMPT,
                temperature=0.3,
            )
            result = VisualizationEdit.from_llm_response(response)
        except AskQLException as e:
            raise VisualizationEditError(f"Visualization edit failed: {e.message}", details=e.details) from e

        if not result.success:
            raise VisualizationEditError(f"Visualization edit failed: {result.error or 'model declined the request'}")

        if result.new_visualization is None and not result.requires_new_query:
            raise VisualizationEditError("Visualization edit failed: no visualization returned")

        if result.requires_new_query and not (result.new_sql_query or "").strip().upper().startswith(("SELECT", "WITH")):
            raise VisualizationEditError("Visualization edit failed: suggested query is not a SELECT statement")

        logger.info(
            "Visualization edited",
            requires_new_query=result.requires_new_query,
            trace_id=trace_id,
        )

        return result
