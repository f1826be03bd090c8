"""Unit tests for VisualizationService over in-memory clients."""

from askql.domain.base_enums import ChartType, DrillDownOperation, VisualizationType
from askql.domain.errors import DatabaseQueryError
from askql.domain.requests import DrillDownRequest, VisualizationEditRequest, VisualizationSuggestionsRequest
from askql.domain.responses import DrillDownContext, DrillDownSource, Visualization
from askql.domain.results import ColumnInfo, ExecutionResult, VisualizationConfig
from askql.repositories.drill_down import DrillDownRepository
from askql.repositories.sql_execution import SQLExecutionRepository
from askql.repositories.visualization_edit import VisualizationEditRepository
from askql.services.visualization_service import VisualizationService, build_drill_down_context
from repository_fakes import FakeDatabaseClient, FakeLLMClient
from workflow_fakes import orders_schema

SQL = "SELECT status, COUNT(*) AS count FROM orders GROUP BY status"


def chart_visualization() -> Visualization:
    return Visualization(
        id="viz_0123456789",
        type=VisualizationType.CHART,
        title="Orders by status",
        config=VisualizationConfig(chart_type=ChartType.BAR, labels=["shipped"]),
        drill_down=DrillDownContext(
            original_question="orders by status",
            sql_context=SQL,
            data_source=DrillDownSource(table="orders", columns=["status", "count", "id", "total"]),
            supported_operations=[DrillDownOperation.DETAIL, DrillDownOperation.TREND],
        ),
    )


def service(*responses, rows=None, db_error=None, max_rows=100):
    llm = FakeLLMClient(*responses)
    db = FakeDatabaseClient(rows=rows, error=db_error)
    return (
        VisualizationService(
            drill_down_repository=DrillDownRepository(llm),
            edit_repository=VisualizationEditRepository(llm),
            executor=SQLExecutionRepository(db, max_rows=max_rows),
        ),
        db,
    )


def detail_plan(sql="SELECT id, total FROM orders WHERE status = 'shipped'", visualization_type="table"):
    return {
        "success": True,
        "new_sql_query": sql,
        "new_visualization": {"type": visualization_type, "title": "Shipped orders", "config": {}},
    }


def drill_request(visualization=None, operation=DrillDownOperation.DETAIL) -> DrillDownRequest:
    return DrillDownRequest(
        visualization_id="viz_0123456789",
        operation=operation,
        visualization=visualization,
    )


class TestDrillDown:

    async def test_planned_query_runs_read_only_under_row_cap(self):
        svc, db = service(detail_plan(), rows=[{"id": 1, "total": 10}, {"id": 2, "total": 20}, {"id": 3, "total": 5}], max_rows=2)
        response = await svc.drill_down(drill_request(chart_visualization()))

        assert response.success is True
        assert db.queries[0]["read_only"] is True
        assert db.queries[0]["query"].endswith("AS capped_result LIMIT 3")
        assert response.metadata.row_count == 2
        assert response.metadata.sql_query == "SELECT id, total FROM orders WHERE status = 'shipped'"

        visualization = response.visualization
        assert visualization.type == VisualizationType.TABLE
        assert visualization.id.startswith("viz_") and visualization.id != "viz_0123456789"
        assert visualization.config.columns == ["id", "total"]
        assert visualization.data == [{"id": 1, "total": 10}, {"id": 2, "total": 20}]

    async def test_result_gets_new_drill_down_context(self):
        svc, _ = service(detail_plan(), rows=[{"id": 1, "total": 10}])
        response = await svc.drill_down(drill_request(chart_visualization()))

        context = response.visualization.drill_down
        assert context.original_question == "orders by status"
        assert context.sql_context == "SELECT id, total FROM orders WHERE status = 'shipped'"
        assert context.data_source.columns == ["id", "total", "status", "count"]
        assert DrillDownOperation.TREND not in context.supported_operations

    async def test_missing_visualization(self):
        svc, db = service()
        response = await svc.drill_down(drill_request())
        assert response.success is False
        assert response.error.startswith("Visualization context is required for drill-down operations")
        assert db.queries == []

    async def test_missing_drill_down_context(self):
        visualization = chart_visualization()
        visualization.drill_down = None
        svc, _ = service()
        response = await svc.drill_down(drill_request(visualization))
        assert response.error == (
            "This visualization does not support drill-down operations. Drill-down context is missing."
        )

    async def test_unsupported_operation(self):
        svc, _ = service()
        response = await svc.drill_down(drill_request(chart_visualization(), DrillDownOperation.GROUP))
        assert response.success is False
        assert response.error == "Operation 'group' not supported. Available: detail, trend"

    async def test_execution_failure(self):
        svc, _ = service(detail_plan(), db_error=DatabaseQueryError("Query execution failed: relation missing"))
        response = await svc.drill_down(drill_request(chart_visualization()))
        assert response.success is False
        assert response.error == "SQL execution failed: Query execution failed: relation missing"
        assert response.visualization is None

    async def test_chart_result_has_no_rows(self):
        svc, _ = service(detail_plan(visualization_type="chart"), rows=[{"id": 1, "total": 10}])
        response = await svc.drill_down(drill_request(chart_visualization()))
        assert response.visualization.type == VisualizationType.CHART
        assert response.visualization.data is None
        assert DrillDownOperation.TREND in response.visualization.drill_down.supported_operations


class TestEdit:

    async def test_edit_keeps_id_and_drill_down(self):
        svc, _ = service({
            "success": True,
            "reasoning": "Line charts show change",
            "new_visualization": {"type": "chart", "title": "Orders", "config": {"chart_type": "line"}},
        })
        current = chart_visualization()
        response = await svc.edit(VisualizationEditRequest(user_request="make it a line graph", current_visualization=current))

        assert response.success is True
        assert response.reasoning == "Line charts show change"
        assert response.new_visualization.id == current.id
        assert response.new_visualization.config.chart_type is ChartType.LINE
        assert response.new_visualization.drill_down == current.drill_down

    async def test_edit_failure_is_reported(self):
        svc, _ = service({"success": False, "error": "unsupported"})
        response = await svc.edit(
            VisualizationEditRequest(user_request="make it 3D", current_visualization=chart_visualization())
        )
        assert response.success is False
        assert response.error == "Visualization edit failed: unsupported"
        assert response.new_visualization is None


class TestSuggestions:

    def test_suggestions_for_chart(self):
        svc, _ = service()
        response = svc.suggestions(
            VisualizationSuggestionsRequest(visualization=chart_visualization(), available_data=[{"status": "shipped"}])
        )
        assert response.success is True
        assert response.suggestions[:3] == ["Convert to pie chart", "Make it a line graph", "Group by status"]


class TestBuildDrillDownContext:

    def test_columns_from_result_then_schema(self):
        result = ExecutionResult(
            success=True,
            rows=[{"n": 1}],
            row_count=1,
            column_info=[ColumnInfo(name="n", type="integer")],
        )
        context = build_drill_down_context(
            "how many orders", "SELECT COUNT(*) AS n FROM public.orders", VisualizationType.TABLE, result, orders_schema()
        )
        assert context.data_source.table == "orders"
        assert context.data_source.columns == ["n", "id", "total"]
        assert context.enabled is True
        assert context.description == "Click to explore more details about this table"

    def test_unknown_table(self):
        context = build_drill_down_context("q", "SELECT 1", VisualizationType.CHART)
        assert context.data_source.table == "unknown_table"
        assert context.data_source.columns == []
