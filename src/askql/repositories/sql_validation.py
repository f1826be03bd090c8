"""
SQL Validation Repository.

This repository decides whether a candidate query is fit to run and, when
asked, proposes alternative formulations of it.

Validation Checks (in order):
1. SELECT-Only Check: Ensures query starts with SELECT or WITH
2. Dangerous Keywords Check: Blocks INSERT, UPDATE, DELETE, DROP, ALTER, etc.
3. Single-Statement Check: Rejects a second statement after a semicolon
4. Syntax Check: Uses EXPLAIN to validate SQL against the real database
5. Semantic Review: LLM judges correctness, risk and whether to execute

Security Philosophy:
- Defense in depth: static checks, EXPLAIN in a read-only transaction,
  LLM review, then read-only execution
- Fail-fast: First failing check returns immediately
- No trusted input: All LLM-generated SQL is treated as untrusted

Error Handling:
- A failing check is a verdict (is_valid=False), not an exception
- An unusable LLM review is also a verdict: HIGH risk, manual review required
- Exceptions only for infrastructure failures (database unavailable)
  and for alternative generation, which has no verdict to fall back on
"""

import re
from typing import Optional

from ..domain.base_enums import RiskLevel, SQLOperationType
from ..domain.errors import AskQLException, DatabaseQueryError, SQLValidationError
from ..domain.results import AlternativesResult, ValidationResult
from ..domain.types import DatabaseSchema
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from .prompts import (
    ALTERNATIVES_SYSTEM_PROMPT,
    ALTERNATIVES_USER_PROMPT,
    VALIDATION_SYSTEM_PROMPT,
    VALIDATION_USER_PROMPT,
    format_schema,
)

logger = get_module_logger()

# Keywords that indicate potentially dangerous SQL
DANGEROUS_KEYWORDS = {
    op.value.upper() for op in SQLOperationType if op is not SQLOperationType.SELECT
} | {"EXECUTE", "EXEC", "COPY", "VACUUM"}

_DANGEROUS_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(DANGEROUS_KEYWORDS)) + r")\b",
    re.IGNORECASE,
)

# Single-quoted SQL string literal, with '' escapes
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_LINE_COMMENT = re.compile(r"--[^\n]*")
# A semicolon followed by anything but whitespace or more semicolons starts a second statement
_SECOND_STATEMENT = re.compile(r";[\s;]*[^\s;]")


class SQLValidationRepository:
    """
    Repository for SQL validation and alternative generation.

    Performs static checks, an EXPLAIN syntax check and an LLM review.
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        llm_client: LLMClient,
        max_alternatives: int = 3,
    ):
        self.db_client = db_client
        self.llm_client = llm_client
        self.max_alternatives = max_alternatives

    async def validate(
        self,
        sql_query: str,
        question: str,
        schema: DatabaseSchema,
        explanation: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate SQL with static, syntax and semantic checks.

        Args:
            sql_query: SQL string to validate
            question: Original natural language question
            schema: Database schema description
            explanation: Translator's explanation of the query

        Returns:
            ValidationResult verdict

        Raises:
            SQLValidationError: If the syntax check cannot reach the database
        """
        trace_id = current_trace_id()

        static_verdict = self._check_static(sql_query)
        if static_verdict is not None:
            logger.info("SQL rejected by static checks", issues=static_verdict.issues, trace_id=trace_id)
            return static_verdict

        syntax_error = await self._check_syntax(sql_query)
        if syntax_error is not None:
            logger.info("SQL rejected by syntax check", error=syntax_error, trace_id=trace_id)
            return ValidationResult(
                is_valid=False,
                issues=[f"Syntax error: {syntax_error}"],
                suggestions=["Fix the SQL syntax before proceeding"],
                risk_level=RiskLevel.HIGH,
                should_execute=False,
            )

        return await self._review(sql_query, question, schema, explanation or "")

    async def generate_alternatives(
        self,
        sql_query: str,
        question: str,
        schema: DatabaseSchema,
        explanation: Optional[str] = None,
    ) -> AlternativesResult:
        """
        Ask the LLM for alternative queries answering the same question.

        Returns:
            AlternativesResult, in the order the model produced them

        Raises:
            SQLValidationError: If the LLM call fails or its answer is unusable
        """
        trace_id = current_trace_id()

        system_prompt = ALTERNATIVES_SYSTEM_PROMPT.format(
            schema=format_schema(schema),
            max_alternatives=self.max_alternatives,
        )
        prompt = ALTERNATIVES_USER_PROMPT.format(
            question=question,
            sql_query=sql_query,
            explanation=explanation or "",
        )

        try:
            response = await self.llm_client.generate(prompt=prompt, system_prompt=system_prompt)
            result = AlternativesResult.from_llm_response(response)
        except AskQLException as e:
            raise SQLValidationError(f"Alternative generation failed: {e.message}", details=e.details) from e

        result.alternatives = result.alternatives[:self.max_alternatives]

        logger.info(
            "Alternatives generated",
            count=len(result.alternatives),
            confidences=[alt.confidence for alt in result.alternatives],
            trace_id=trace_id,
        )

        return result

    def _check_static(self, sql_query: str) -> Optional[ValidationResult]:
        """Return a rejecting verdict when a static check fails, else None."""
        if not sql_query.strip().upper().startswith(("SELECT", "WITH")):
            return ValidationResult(
                is_valid=False,
                issues=["Query must be a SELECT statement"],
                suggestions=["Rewrite the query as a read-only SELECT"],
                risk_level=RiskLevel.HIGH,
                should_execute=False,
            )

        # Keywords inside string literals (e.g. WHERE status = 'DELETED') are data, not commands
        without_literals = _STRING_LITERAL.sub("''", sql_query)
        found = sorted({match.upper() for match in _DANGEROUS_PATTERN.findall(without_literals)})
        if found:
            return ValidationResult(
                is_valid=False,
                issues=[f"SQL contains dangerous keywords: {', '.join(found)}"],
                suggestions=["Remove data-modifying statements; only reads are allowed"],
                risk_level=RiskLevel.HIGH,
                should_execute=False,
            )

        if _SECOND_STATEMENT.search(_LINE_COMMENT.sub("", without_literals)):
            return ValidationResult(
                is_valid=False,
                issues=["Multiple statements are not allowed"],
                suggestions=["Send a single SELECT statement"],
                risk_level=RiskLevel.HIGH,
                should_execute=False,
            )

        return None

    async def _check_syntax(self, sql_query: str) -> Optional[str]:
        """
        Validate SQL syntax using EXPLAIN in a read-only transaction.

        Returns:
            None when the database accepts the query, else the database error

        Raises:
            SQLValidationError: If the database cannot be reached
        """
        try:
            await self.db_client.execute_query(
                query=f"EXPLAIN {sql_query.strip().rstrip(';')}",
                read_only=True,
            )
            return None
        except DatabaseQueryError as e:
            return e.message
        except AskQLException as e:
            raise SQLValidationError(f"Syntax check unavailable: {e.message}") from e

    async def _review(
        self,
        sql_query: str,
        question: str,
        schema: DatabaseSchema,
        explanation: str,
    ) -> ValidationResult:
        """LLM review of correctness and risk; an unusable review is a HIGH-risk verdict."""
        trace_id = current_trace_id()

        system_prompt = VALIDATION_SYSTEM_PROMPT.format(schema=format_schema(schema))
        prompt = VALIDATION_USER_PROMPT.format(
            question=question,
            sql_query=sql_query,
            explanation=explanation,
        )

        try:
            response = await self.llm_client.generate(prompt=prompt, system_prompt=system_prompt)
            verdict = ValidationResult.from_llm_response(response)
        except AskQLException as e:
            logger.warning("LLM review failed", error=e.message, trace_id=trace_id)
            return ValidationResult(
                is_valid=False,
                issues=[f"Validation failed: {e.message}"],
                suggestions=["Manual review required"],
                risk_level=RiskLevel.HIGH,
                should_execute=False,
            )

        logger.info(
            "SQL reviewed",
            is_valid=verdict.is_valid,
            risk_level=verdict.risk_level.value,
            should_execute=verdict.should_execute,
            issue_count=len(verdict.issues),
            trace_id=trace_id,
        )

        return verdict
