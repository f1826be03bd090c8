"""Unit tests for AskQLService and the terminal-state response mapping."""

from askql.domain.base_enums import ChartType, DrillDownOperation, RiskLevel, VisualizationType
from askql.domain.pipeline import PipelineState
from askql.domain.results import (
    ChartData,
    ChartDataset,
    ChartView,
    ExecutionResult,
    InterpretationResult,
    TableView,
)
from askql.services.askql_service import (
    NO_RESPONSE_ERROR,
    AskQLService,
    build_response,
    build_visualizations,
    summarize_steps,
)
from workflow_fakes import Collaborators, FakeInterpreter, FakeTranslator, alternative, orders_schema, valid_verdict


def answered_state(final_response: InterpretationResult) -> PipelineState:
    return PipelineState(
        question="orders per month",
        schema=orders_schema(),
        sql_query="SELECT month, COUNT(*) FROM orders GROUP BY month",
        query_explanation="Counts orders per month",
        confidence=90,
        validation=valid_verdict(),
        execution_result=ExecutionResult(
            success=True,
            rows=[{"month": "2024-01", "count": 3}, {"month": "2024-02", "count": 7}],
            row_count=2,
        ),
        final_response=final_response,
    )


class TestBuildVisualizations:

    def test_charts_come_before_table(self):
        state = answered_state(
            InterpretationResult(
                summary="Orders grew.",
                table=TableView(should_show=True),
                line_chart=ChartView(
                    should_show=True,
                    data=ChartData(labels=["2024-01", "2024-02"], datasets=[ChartDataset(label="orders", data=[3, 7])]),
                ),
                pie_chart=ChartView(should_show=False),
            )
        )
        visualizations = build_visualizations(state)

        assert [v.type for v in visualizations] == [VisualizationType.CHART, VisualizationType.TABLE]
        chart, table = visualizations
        assert chart.title == "Line Chart"
        assert chart.config.chart_type is ChartType.LINE
        assert chart.config.labels == ["2024-01", "2024-02"]
        assert table.title == "Data Table"
        assert table.config.columns == ["month", "count"]
        assert table.data == state.execution_result.rows
        assert chart.id.startswith("viz_") and chart.id != table.id

    def test_chart_title_from_model_is_kept(self):
        state = answered_state(
            InterpretationResult(summary="s", bar_chart=ChartView(should_show=True, title="Orders by month"))
        )
        assert build_visualizations(state)[0].title == "Orders by month"

    def test_hidden_views_produce_nothing(self):
        state = answered_state(InterpretationResult(summary="Just text."))
        assert build_visualizations(state) == []

    def test_table_columns_from_model_win(self):
        state = answered_state(
            InterpretationResult(summary="s", table=TableView(should_show=True, columns=["count", "month"]))
        )
        assert build_visualizations(state)[0].config.columns == ["count", "month"]

    def test_visualizations_carry_drill_down_context(self):
        state = answered_state(
            InterpretationResult(
                summary="s",
                table=TableView(should_show=True),
                bar_chart=ChartView(should_show=True),
            )
        )
        chart, table = build_visualizations(state)

        assert table.drill_down.original_question == "orders per month"
        assert table.drill_down.sql_context == state.sql_query
        assert table.drill_down.data_source.table == "orders"
        assert table.drill_down.data_source.columns == ["month", "count", "id", "total"]
        assert table.drill_down.supported_operations == [
            DrillDownOperation.DETAIL, DrillDownOperation.FILTER, DrillDownOperation.GROUP
        ]
        assert DrillDownOperation.TREND in chart.drill_down.supported_operations
        assert chart.drill_down.description == "Click to explore more details about this chart"


class TestBuildResponse:

    def test_success(self):
        state = answered_state(InterpretationResult(summary="10 orders in two months."))
        response = build_response(state, execution_time_ms=12.5, trace_id="t1")

        assert response.success is True
        assert response.answer == "10 orders in two months."
        assert response.metadata.sql_query == state.sql_query
        assert response.metadata.confidence == 90
        assert response.metadata.row_count == 2
        assert response.debug_info is None
        assert response.error is None
        assert response.trace_id == "t1"

    def test_error_wins_over_final_response(self):
        state = answered_state(InterpretationResult(summary="unused"))
        state.error = "SQL execution failed: timeout"
        response = build_response(state, execution_time_ms=1.0)

        assert response.success is False
        assert response.answer == "I encountered an error while processing your question: SQL execution failed: timeout"
        assert response.error == "SQL execution failed: timeout"
        assert response.visualizations == []

    def test_missing_final_response(self):
        response = build_response(PipelineState(question="q"), execution_time_ms=1.0)
        assert response.success is False
        assert response.error == NO_RESPONSE_ERROR
        assert response.answer == "I was unable to generate a response to your question."

    def test_debug_info(self):
        state = answered_state(InterpretationResult(summary="s"))
        state.validation = valid_verdict(risk_level=RiskLevel.MEDIUM, issues=["No index on month"])
        state.alternatives = [alternative("SELECT 1", 10)]
        response = build_response(state, execution_time_ms=1.0, include_debug_info=True)

        debug = response.debug_info
        assert debug.query_explanation == "Counts orders per month"
        assert debug.risk_level is RiskLevel.MEDIUM
        assert debug.validation_issues == ["No index on month"]
        assert len(debug.alternatives) == 1
        assert "Experimented with 1 alternative approaches" in debug.steps


class TestSummarizeSteps:

    def test_failed_run(self):
        state = PipelineState(
            question="q",
            schema=orders_schema(),
            sql_query="SELECT 1",
            validation=valid_verdict(risk_level=RiskLevel.HIGH),
            execution_result=ExecutionResult.failure("High-risk queries are not allowed to execute"),
            error="SQL execution failed: High-risk queries are not allowed to execute",
        )
        assert summarize_steps(state) == [
            "Loaded database schema",
            "Converted natural language to SQL",
            "Validated SQL query (HIGH risk)",
            "SQL execution failed",
            "Error: SQL execution failed: High-risk queries are not allowed to execute",
        ]


class TestAskQLService:

    async def test_ask_runs_workflow(self, collaborators):
        service = AskQLService(collaborators.workflow())
        response = await service.ask("count rows in orders")
        assert response.success is True
        assert response.answer == "There are 5 orders."
        assert response.metadata.execution_time_ms >= 0

    async def test_ask_reports_failure(self):
        collaborators = Collaborators(translator=FakeTranslator(error=RuntimeError("model offline")))
        response = await AskQLService(collaborators.workflow()).ask("count rows in orders", include_debug_info=True)
        assert response.success is False
        assert response.error == "NL to SQL conversion failed: model offline"
        assert response.debug_info.retry_count == 1

    async def test_table_rows_come_from_execution(self):
        interpreter = FakeInterpreter(
            result=InterpretationResult(
                summary="There are 5 orders.",
                table=TableView(should_show=True, data=[{"count": 999}]),
            )
        )
        collaborators = Collaborators(interpreter=interpreter)
        response = await AskQLService(collaborators.workflow()).ask("count rows in orders")
        assert response.visualizations[0].data == [{"count": 5}]
