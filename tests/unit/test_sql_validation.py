"""Unit tests for SQLValidationRepository."""

import pytest

from askql.domain.base_enums import RiskLevel
from askql.domain.errors import DatabaseConnectionError, DatabaseQueryError, LLMError, SQLValidationError
from askql.repositories.sql_validation import SQLValidationRepository
from repository_fakes import FakeDatabaseClient, FakeLLMClient
from workflow_fakes import orders_schema

APPROVED = {
    "is_valid": True,
    "risk_level": "low",
    "issues": [],
    "suggestions": [],
    "should_execute": True,
}


async def validate(sql_query, db=None, llm=None):
    repository = SQLValidationRepository(db or FakeDatabaseClient(), llm or FakeLLMClient(APPROVED))
    return await repository.validate(sql_query, "count rows in orders", orders_schema(), "Counts orders")


class TestStaticChecks:

    async def test_non_select_rejected(self):
        db = FakeDatabaseClient()
        verdict = await validate("UPDATE orders SET total = 0", db=db)
        assert verdict.is_valid is False
        assert verdict.risk_level is RiskLevel.HIGH
        assert verdict.should_execute is False
        assert verdict.issues == ["Query must be a SELECT statement"]
        assert db.queries == []

    async def test_dangerous_keyword_rejected(self):
        verdict = await validate("SELECT * FROM orders; DROP TABLE orders")
        assert verdict.issues == ["SQL contains dangerous keywords: DROP"]

    async def test_keyword_inside_string_literal_allowed(self):
        verdict = await validate("SELECT * FROM orders WHERE status = 'DELETED'")
        assert verdict.is_valid is True

    async def test_cte_is_accepted(self):
        verdict = await validate("WITH t AS (SELECT 1) SELECT * FROM t")
        assert verdict.is_valid is True

    @pytest.mark.parametrize(
        "sql_query",
        [
            "SELECT * FROM orders; SELECT * FROM customers",
            "SELECT 1;SELECT 2",
            "SELECT 1; ; SELECT 2",
        ],
    )
    async def test_multiple_statements_rejected(self, sql_query):
        db = FakeDatabaseClient()
        verdict = await validate(sql_query, db=db)
        assert verdict.is_valid is False
        assert verdict.risk_level is RiskLevel.HIGH
        assert verdict.issues == ["Multiple statements are not allowed"]
        assert db.queries == []

    @pytest.mark.parametrize(
        "sql_query",
        [
            "SELECT * FROM orders;",
            "SELECT * FROM orders;;  \n",
            "SELECT * FROM orders WHERE note = 'a; b'",
            "SELECT * FROM orders; -- trailing note",
        ],
    )
    async def test_single_statement_accepted(self, sql_query):
        verdict = await validate(sql_query)
        assert verdict.is_valid is True


class TestSyntaxCheck:

    async def test_explain_runs_read_only(self):
        db = FakeDatabaseClient()
        await validate("SELECT COUNT(*) FROM orders;", db=db)
        assert db.queries == [{"query": "EXPLAIN SELECT COUNT(*) FROM orders", "read_only": True}]

    async def test_syntax_error_is_a_verdict(self):
        db = FakeDatabaseClient(error=DatabaseQueryError('syntax error at or near "FORM"'))
        llm = FakeLLMClient()
        verdict = await validate("SELECT * FORM orders", db=db, llm=llm)
        assert verdict.is_valid is False
        assert verdict.risk_level is RiskLevel.HIGH
        assert verdict.issues == ['Syntax error: syntax error at or near "FORM"']
        assert llm.prompts == []

    async def test_unreachable_database_raises(self):
        db = FakeDatabaseClient(error=DatabaseConnectionError("pool closed"))
        with pytest.raises(SQLValidationError, match="pool closed"):
            await validate("SELECT 1", db=db)


class TestReview:

    async def test_model_verdict_is_returned(self):
        llm = FakeLLMClient({**APPROVED, "risk_level": "MEDIUM", "issues": ["Full scan"]})
        verdict = await validate("SELECT * FROM orders", llm=llm)
        assert verdict.risk_level is RiskLevel.MEDIUM
        assert verdict.issues == ["Full scan"]
        assert "count rows in orders" in llm.prompts[0]["prompt"]

    async def test_camel_case_keys_accepted(self):
        llm = FakeLLMClient({"isValid": True, "riskLevel": "LOW", "shouldExecute": True})
        verdict = await validate("SELECT 1", llm=llm)
        assert verdict.is_valid is True
        assert verdict.should_execute is True

    @pytest.mark.parametrize("response", [LLMError("rate limited"), "I think it looks fine"])
    async def test_unusable_review_is_high_risk(self, response):
        verdict = await validate("SELECT 1", llm=FakeLLMClient(response))
        assert verdict.is_valid is False
        assert verdict.risk_level is RiskLevel.HIGH
        assert verdict.should_execute is False
        assert verdict.suggestions == ["Manual review required"]
        assert verdict.issues[0].startswith("Validation failed:")


class TestGenerateAlternatives:

    async def test_alternatives_are_capped(self):
        llm = FakeLLMClient(
            {
                "alternatives": [
                    {"query": f"SELECT {i}", "explanation": "", "confidence": 50 + i} for i in range(5)
                ]
            }
        )
        repository = SQLValidationRepository(FakeDatabaseClient(), llm, max_alternatives=2)
        result = await repository.generate_alternatives("SELECT 0", "q", orders_schema())
        assert [alt.query for alt in result.alternatives] == ["SELECT 0", "SELECT 1"]

    async def test_failure_raises(self):
        repository = SQLValidationRepository(FakeDatabaseClient(), FakeLLMClient(LLMError("rate limited")))
        with pytest.raises(SQLValidationError, match="Alternative generation failed"):
            await repository.generate_alternatives("SELECT 0", "q", orders_schema())
