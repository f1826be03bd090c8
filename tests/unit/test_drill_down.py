"""Unit tests for DrillDownRepository and its request and column checks."""

import pytest

from askql.domain.base_enums import DrillDownOperation, VisualizationType
from askql.domain.errors import DrillDownError, LLMError
from askql.domain.requests import DrillDownParameters
from askql.domain.responses import DrillDownContext, DrillDownSource, Visualization
from askql.repositories.drill_down import DrillDownRepository, check_request, query_identifiers, unknown_columns
from repository_fakes import FakeLLMClient

ORIGINAL_SQL = "SELECT status, COUNT(*) AS orders FROM orders GROUP BY status"


def chart_visualization(**context_overrides) -> Visualization:
    context = dict(
        original_question="orders by status",
        sql_context=ORIGINAL_SQL,
        data_source=DrillDownSource(table="orders", columns=["status", "orders", "id", "total", "created_at"]),
        supported_operations=[DrillDownOperation.DETAIL, DrillDownOperation.FILTER, DrillDownOperation.TREND],
    )
    context.update(context_overrides)
    return Visualization(
        id="viz_0123456789",
        type=VisualizationType.CHART,
        title="Orders by status",
        drill_down=DrillDownContext(**context),
    )


def plan_response(sql, **overrides):
    response = {
        "success": True,
        "reasoning": "Rows behind the shipped bar",
        "newSqlQuery": sql,
        "newVisualization": {"type": "table", "title": "Shipped orders", "config": {"columns": ["id", "total"]}},
        "operationType": "detail",
        "filtersApplied": ["status = shipped"],
    }
    response.update(overrides)
    return response


async def plan(response, visualization=None, operation=DrillDownOperation.DETAIL):
    llm = FakeLLMClient(response)
    result = await DrillDownRepository(llm).plan(
        visualization or chart_visualization(),
        operation,
        DrillDownParameters(filter_column="status", filter_value="shipped"),
        [{"status": "shipped", "orders": 3}],
    )
    return result, llm


class TestCheckRequest:

    def test_supported_operation_returns_context(self):
        visualization = chart_visualization()
        assert check_request(visualization, DrillDownOperation.TREND) is visualization.drill_down

    def test_missing_context(self):
        visualization = Visualization(id="viz_1", type=VisualizationType.TABLE, title="t")
        with pytest.raises(DrillDownError, match="No drill-down context available"):
            check_request(visualization, DrillDownOperation.DETAIL)

    def test_disabled_context(self):
        with pytest.raises(DrillDownError, match="No drill-down context available"):
            check_request(chart_visualization(enabled=False), DrillDownOperation.DETAIL)

    def test_missing_table(self):
        visualization = chart_visualization(data_source=DrillDownSource(table=""))
        with pytest.raises(DrillDownError, match="No table information available"):
            check_request(visualization, DrillDownOperation.DETAIL)

    def test_unsupported_operation_lists_available(self):
        with pytest.raises(DrillDownError) as excinfo:
            check_request(chart_visualization(), DrillDownOperation.GROUP)
        assert excinfo.value.message == "Operation 'group' not supported. Available: detail, filter, trend"
        assert excinfo.value.http_status == 422


class TestQueryIdentifiers:

    def test_keywords_functions_tables_and_aliases_are_ignored(self):
        sql = (
            "SELECT o.status, DATE_TRUNC('month', o.created_at) AS month, SUM(o.total) AS revenue "
            "FROM public.orders o JOIN customers AS c ON c.id = o.customer_id "
            "WHERE o.status = 'shipped' AND o.total > 10 GROUP BY o.status, month ORDER BY revenue DESC"
        )
        assert query_identifiers(sql) == {"status", "created_at", "total", "id", "customer_id"}

    def test_literals_and_comments_are_ignored(self):
        sql = "SELECT id FROM orders WHERE note = 'secret column' -- also ignored_column"
        assert query_identifiers(sql) == {"id", "note"}

    def test_cte_names_are_ignored(self):
        sql = "WITH recent AS (SELECT id FROM orders) SELECT id FROM recent"
        assert query_identifiers(sql) == {"id"}

    def test_unknown_columns_is_case_insensitive(self):
        assert unknown_columns("SELECT ID, Email FROM orders", ["id", "status"]) == ["email"]


class TestPlan:

    async def test_plan_with_known_columns(self):
        result, llm = await plan(plan_response("SELECT id, total FROM orders WHERE status = 'shipped';"))

        assert result.new_sql_query == "SELECT id, total FROM orders WHERE status = 'shipped';"
        assert result.new_visualization.type == VisualizationType.TABLE
        assert result.filters_applied == ["status = shipped"]
        assert llm.prompts[0]["temperature"] == 0.2
        prompt = llm.prompts[0]["prompt"]
        assert "Drill-down operation: detail" in prompt
        assert '"filter_value": "shipped"' in prompt
        assert ORIGINAL_SQL in prompt

    async def test_invalid_columns_rejected(self):
        with pytest.raises(DrillDownError, match="Generated SQL uses invalid columns: password_hash"):
            await plan(plan_response("SELECT id, password_hash FROM orders"))

    async def test_columns_of_original_query_are_allowed(self):
        visualization = chart_visualization(data_source=DrillDownSource(table="orders", columns=["orders"]))
        result, _ = await plan(plan_response("SELECT status FROM orders"), visualization=visualization)
        assert result.new_sql_query == "SELECT status FROM orders"

    async def test_no_column_metadata_skips_check(self):
        visualization = chart_visualization(data_source=DrillDownSource(table="orders"))
        result, _ = await plan(plan_response("SELECT anything FROM orders"), visualization=visualization)
        assert result.new_sql_query == "SELECT anything FROM orders"

    async def test_non_select_plan_rejected(self):
        with pytest.raises(DrillDownError, match="not a SELECT"):
            await plan(plan_response("DELETE FROM orders"))

    async def test_model_declines(self):
        with pytest.raises(DrillDownError, match="Cannot drill into a total"):
            await plan({"success": False, "error": "Cannot drill into a total"})

    async def test_unsupported_operation_does_not_call_model(self):
        llm = FakeLLMClient()
        with pytest.raises(DrillDownError, match="not supported"):
            await DrillDownRepository(llm).plan(
                chart_visualization(), DrillDownOperation.GROUP, DrillDownParameters()
            )
        assert llm.prompts == []

    @pytest.mark.parametrize("response", [LLMError("rate limited"), "", "no json here"])
    async def test_unusable_answer_raises(self, response):
        with pytest.raises(DrillDownError, match="Failed to plan drill-down"):
            await plan(response)
