"""
Result Interpretation Repository.

Turns executed query results into a natural-language answer with
suggested table and chart views, using the LLM.
"""

from typing import List

from ..domain.errors import AskQLException, InterpretationError
from ..domain.results import InterpretationResult
from ..domain.types import ResultRow
from ..infrastructure.llm_client import LLMClient
from ..utils.logging import get_module_logger
from ..utils.token_utils import truncate_rows
from ..utils.tracing import current_trace_id
from .prompts import INTERPRETATION_SYSTEM_PROMPT, INTERPRETATION_USER_PROMPT, format_rows

logger = get_module_logger()


class ResultInterpretationRepository:
    """
    Repository for LLM-based result interpretation.

    Only a preview of the rows is sent to the model; when the model asks
    for a table but leaves it empty, the real rows are attached.
    """

    def __init__(self, llm_client: LLMClient, preview_rows: int = 10):
        self.llm_client = llm_client
        self.preview_rows = preview_rows

    async def interpret(
        self,
        question: str,
        sql_query: str,
        rows: List[ResultRow],
    ) -> InterpretationResult:
        """
        Interpret query results.

        Args:
            question: Original natural language question
            sql_query: Query that produced the rows
            rows: Result rows

        Returns:
            InterpretationResult with summary, table view and optional charts

        Raises:
            InterpretationError: If the LLM call fails or its answer is unusable
        """
        trace_id = current_trace_id()

        preview = truncate_rows(rows, max_rows=self.preview_rows)
        prompt = INTERPRETATION_USER_PROMPT.format(
            question=question,
            sql_query=sql_query,
            row_count=len(rows),
            preview_count=len(preview),
            rows=format_rows(preview),
        )

        logger.debug(
            "Calling LLM for result interpretation",
            row_count=len(rows),
            preview_rows=len(preview),
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=INTERPRETATION_SYSTEM_PROMPT,
                temperature=0.3,
            )
            result = InterpretationResult.from_llm_response(response)
        except AskQLException as e:
            raise InterpretationError(f"Failed to interpret results: {e.message}", details=e.details) from e

        if result.table.should_show and not any(result.table.data):
            # Model asked for a table without rows (or only empty rows): attach the real result set
            result.table.data = list(rows)
            if rows:
                result.table.columns = list(rows[0].keys())

        logger.info(
            "Results interpreted",
            summary_length=len(result.summary),
            show_table=result.table.should_show,
            charts=[chart_type.value for chart_type, _ in result.visible_charts()],
            trace_id=trace_id,
        )

        return result
