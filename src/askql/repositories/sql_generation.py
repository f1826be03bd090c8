"""
SQL Generation Repository.

Handles LLM-based translation of a natural-language question into SQL:
- Prompt building with the full schema description
- LLM interaction
- Response parsing and the SELECT-only safety check
"""

from ..domain.errors import AskQLException, SQLGenerationError
from ..domain.results import TranslationResult
from ..domain.types import DatabaseSchema
from ..infrastructure.llm_client import LLMClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from .prompts import TRANSLATION_SYSTEM_PROMPT, TRANSLATION_USER_PROMPT, format_schema

logger = get_module_logger()


class SQLGenerationRepository:
    """
    Repository for LLM-based SQL generation.

    Handles prompt construction and LLM interaction. Every failure is
    raised as SQLGenerationError.
    """

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    async def translate(self, question: str, schema: DatabaseSchema) -> TranslationResult:
        """
        Translate a question into a SQL query.

        Args:
            question: Natural language question from the user
            schema: Database schema description

        Returns:
            TranslationResult with sql_query, explanation and confidence

        Raises:
            SQLGenerationError: If the question is empty, the LLM fails,
                or the generated query is not a SELECT statement
        """
        trace_id = current_trace_id()

        if not question or not question.strip():
            raise SQLGenerationError("Question must not be empty")

        system_prompt = TRANSLATION_SYSTEM_PROMPT.format(schema=format_schema(schema))
        prompt = TRANSLATION_USER_PROMPT.format(question=question.strip())

        logger.debug(
            "Calling LLM for SQL generation",
            prompt_length=len(prompt) + len(system_prompt),
            table_count=len(schema),
            trace_id=trace_id,
        )

        try:
            response = await self.llm_client.generate(
                prompt=prompt,
                system_prompt=system_prompt,
                temperature=0.0,
            )
            result = TranslationResult.from_llm_response(response)
        except AskQLException as e:
            raise SQLGenerationError(e.message, details=e.details) from e

        # Additional safety check: the translator only ever hands out reads
        if not result.sql_query.strip().upper().startswith(("SELECT", "WITH")):
            raise SQLGenerationError(
                "Generated query is not a SELECT statement",
                details={"sql_query": result.sql_query[:200]},
            )

        logger.info(
            "SQL generated",
            confidence=result.confidence,
            sql_length=len(result.sql_query),
            trace_id=trace_id,
        )

        return result
