"""Unit tests for SQLGenerationRepository."""

import pytest

from askql.domain.errors import LLMError, SQLGenerationError
from askql.repositories.sql_generation import SQLGenerationRepository
from repository_fakes import FakeLLMClient
from workflow_fakes import orders_schema


async def translate(*responses, question="count rows in orders"):
    return await SQLGenerationRepository(FakeLLMClient(*responses)).translate(question, orders_schema())


class TestTranslate:

    async def test_json_response(self):
        result = await translate(
            {"sql_query": "SELECT COUNT(*) FROM orders", "explanation": "Counts orders", "confidence": 95}
        )
        assert result.sql_query == "SELECT COUNT(*) FROM orders"
        assert result.confidence == 95

    async def test_markdown_wrapped_json(self):
        response = '```json\n{"sqlQuery": "SELECT 1", "explanation": "one", "confidence": 80}\n```'
        result = await translate(response)
        assert result.sql_query == "SELECT 1"

    async def test_raw_sql_gets_zero_confidence(self):
        result = await translate("```sql\nSELECT COUNT(*) FROM orders\n```")
        assert result.sql_query == "SELECT COUNT(*) FROM orders"
        assert result.confidence == 0

    async def test_non_select_rejected(self):
        with pytest.raises(SQLGenerationError, match="not a SELECT"):
            await translate({"sql_query": "DELETE FROM orders", "explanation": "", "confidence": 99})

    async def test_empty_question_rejected(self):
        llm = FakeLLMClient()
        with pytest.raises(SQLGenerationError, match="empty"):
            await SQLGenerationRepository(llm).translate("   ", orders_schema())
        assert llm.prompts == []

    async def test_llm_failure_wrapped(self):
        with pytest.raises(SQLGenerationError, match="timed out"):
            await translate(LLMError("LLM request timed out"))

    async def test_schema_is_in_system_prompt(self):
        llm = FakeLLMClient({"sql_query": "SELECT 1", "explanation": "", "confidence": 70})
        await SQLGenerationRepository(llm).translate("count rows in orders", orders_schema())
        assert "orders" in llm.prompts[0]["system_prompt"]
        assert llm.prompts[0]["temperature"] == 0.0
