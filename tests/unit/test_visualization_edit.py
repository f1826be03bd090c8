"""Unit tests for VisualizationEditRepository and rule-based edit suggestions."""

import pytest

from askql.domain.base_enums import ChartType, VisualizationType
from askql.domain.errors import LLMError, VisualizationEditError
from askql.domain.responses import Visualization
from askql.domain.results import VisualizationConfig
from askql.repositories.visualization_edit import MAX_SUGGESTIONS, VisualizationEditRepository, suggest_edits
from repository_fakes import FakeLLMClient

ROWS = [{"status": "shipped", "count": 3}, {"status": "pending", "count": 2}]


def bar_chart() -> Visualization:
    return Visualization(
        id="viz_0123456789",
        type=VisualizationType.CHART,
        title="Orders by status",
        config=VisualizationConfig(chart_type=ChartType.BAR, labels=["shipped", "pending"]),
    )


async def edit(response, user_request="make it a pie chart"):
    llm = FakeLLMClient(response)
    result = await VisualizationEditRepository(llm).edit(
        user_request,
        bar_chart(),
        available_data=ROWS,
        original_sql_query="SELECT status, COUNT(*) AS count FROM orders GROUP BY status",
    )
    return result, llm


class TestEdit:

    async def test_chart_type_change(self):
        result, llm = await edit({
            "success": True,
            "reasoning": "A pie chart shows shares",
            "newVisualization": {
                "type": "chart",
                "title": "Order share by status",
                "config": {
                    "chartType": "pie",
                    "labels": ["shipped", "pending"],
                    "datasets": [{"label": "orders", "data": [3, 2], "color": "#3b82f6"}],
                },
            },
        })

        assert result.new_visualization.config.chart_type is ChartType.PIE
        assert result.new_visualization.config.datasets[0].color == "#3b82f6"
        assert result.requires_new_query is False
        assert llm.prompts[0]["temperature"] == 0.3
        prompt = llm.prompts[0]["prompt"]
        assert 'Edit request: "make it a pie chart"' in prompt
        assert "Available data (2 rows" in prompt

    async def test_edit_needing_new_data(self):
        result, _ = await edit(
            {
                "success": True,
                "requiresNewQuery": True,
                "newSqlQuery": "SELECT status, SUM(total) FROM orders GROUP BY status",
            },
            user_request="show revenue instead",
        )
        assert result.requires_new_query is True
        assert result.new_sql_query.startswith("SELECT status, SUM(total)")
        assert result.new_visualization is None

    async def test_new_query_must_be_select(self):
        with pytest.raises(VisualizationEditError, match="not a SELECT"):
            await edit({"success": True, "requires_new_query": True, "new_sql_query": "DROP TABLE orders"})

    async def test_model_declines(self):
        with pytest.raises(VisualizationEditError, match="Visualization edit failed: cannot plot text"):
            await edit({"success": False, "error": "cannot plot text"})

    async def test_missing_visualization(self):
        with pytest.raises(VisualizationEditError, match="no visualization returned"):
            await edit({"success": True, "reasoning": "done"})

    @pytest.mark.parametrize("response", [LLMError("rate limited"), "", "[1, 2]"])
    async def test_unusable_answer_raises(self, response):
        with pytest.raises(VisualizationEditError, match="Visualization edit failed"):
            await edit(response)


class TestSuggestEdits:

    def test_bar_chart_offers_other_chart_types(self):
        suggestions = suggest_edits(bar_chart(), ROWS)
        assert suggestions[:2] == ["Convert to pie chart", "Make it a line graph"]
        assert "Group by status" in suggestions

    def test_time_columns_add_trend_edits(self):
        rows = [{"order_date": "2024-01-01", "total_amount": 10}]
        suggestions = suggest_edits(bar_chart(), rows)
        assert suggestions == [
            "Convert to pie chart",
            "Make it a line graph",
            "Group by order date",
            "Group by total amount",
            "Show trends over time",
            "Group by time period",
        ]

    def test_table_uses_configured_columns_without_rows(self):
        table = Visualization(
            id="viz_1",
            type=VisualizationType.TABLE,
            title="Data Table",
            config=VisualizationConfig(columns=["customer_name"]),
        )
        assert suggest_edits(table) == [
            "Convert to pie chart",
            "Show as bar chart",
            "Make it a line graph",
            "Group by customer name",
            "Show only top 10",
            "Filter recent data",
        ]

    def test_never_more_than_the_cap(self):
        rows = [{"created_at": "2024-01-01", "month": 1, "year": 2024}]
        assert len(suggest_edits(bar_chart(), rows)) == MAX_SUGGESTIONS
