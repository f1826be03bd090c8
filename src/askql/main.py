"""
Main FastAPI application for the AskQL system.

This module sets up the FastAPI application with proper logging,
tracing, and error handling middleware, and exposes the AskQL workflow
over HTTP and WebSocket.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Union

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id
from .domain.responses import (
    AskResponse,
    HealthResponse,
    SchemaResponse,
    SuggestionsResponse,
    DrillDownResponse,
    VisualizationEditResponse,
    VisualizationSuggestionsResponse,
    StreamStatusResponse,
)
from .domain.requests import (
    AskRequest,
    DrillDownRequest,
    VisualizationEditRequest,
    VisualizationSuggestionsRequest,
)
from .api.middleware import (
    trace_id_middleware,
    logging_middleware,
    register_exception_handlers,
    ERROR_RESPONSES,
)
from .api.dependencies import (
    SettingsDep,
    SchemaServiceDep,
    AskQLServiceDep,
    VisualizationServiceDep,
    ConnectionManagerDep,
    OptionalDatabaseClientDep,
    OptionalLLMClientDep,
)
from .api.websocket import ConnectionManager, WebSocketProgressSink, serve_session
from .config import get_settings
from .config_constants import SHUTDOWN_DRAIN_TIMEOUT_SECONDS
from .infrastructure.database_client import DatabaseClient
from .infrastructure.llm_client import LLMClient
from .services.askql_service import AskQLService
from .workflow import CompositeProgressSink, LoggingProgressSink, create_workflow

APP_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


async def _connect(name: str, client: Union[DatabaseClient, LLMClient]) -> None:
    # A failed client leaves the app running in degraded mode; /health reports it
    try:
        await client.connect()
    except Exception as e:
        logger.error("Client connection failed at startup", client=name, error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect clients, build the shared workflow; drain and close on shutdown."""
    settings = get_settings()
    logger.info("Starting AskQL API server", version=APP_VERSION, log_level=settings.app.log_level)

    db_client = DatabaseClient(settings.database)
    llm_client = LLMClient(settings.llm)
    await _connect("database", db_client)
    await _connect("llm", llm_client)

    # Progress events go to the log and to the session's WebSocket
    connection_manager = ConnectionManager()
    progress_sink = CompositeProgressSink([
        LoggingProgressSink(),
        WebSocketProgressSink(connection_manager),
    ])

    app.state.settings = settings
    app.state.db_client = db_client
    app.state.llm_client = llm_client
    app.state.connection_manager = connection_manager
    app.state.workflow = create_workflow(settings, db_client, llm_client, progress_sink)

    yield

    logger.info("Shutting down AskQL API server")
    await app.state.workflow.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    await db_client.close()
    await llm_client.close()


# Create FastAPI application
app = FastAPI(
    title="AskQL API",
    description="Ask questions about your PostgreSQL database in natural language",
    version=APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register middleware in correct order (last registered = first executed)
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

# Register all exception handlers (AskQLException, ValidationError, HTTPException, etc.)
register_exception_handlers(app)


# API Routes
@app.get("/", tags=["Root"])
async def root(settings: SettingsDep) -> Dict[str, Union[str, None]]:
    """
    Root endpoint returning basic API information.

    **Response**: Dict with message, version, trace_id, log_level
    """

    trace_id = get_trace_id()
    logger.info("Root endpoint accessed", trace_id=trace_id)

    return {
        "message": "AskQL API",
        "version": APP_VERSION,
        "trace_id": trace_id,
        "log_level": settings.app.log_level
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    db_client: OptionalDatabaseClientDep,
    llm_client: OptionalLLMClientDep,
) -> HealthResponse:
    """Overall status is "healthy" only when both the database and the LLM client are."""
    database_status = (await db_client.health_check())["status"] if db_client else "not_configured"
    if llm_client is None:
        llm_status = "not_configured"
    else:
        llm_status = "healthy" if llm_client.is_connected() else "unhealthy"

    degraded = database_status != "healthy" or llm_status != "healthy"
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database_status=database_status,
        llm_service_status=llm_status,
    )


# -------------------------
# Schema Endpoints
# -------------------------

@app.get(
    "/api/v1/schema",
    response_model=SchemaResponse,
    tags=["Schema"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [500, 503]},
    },
)
async def get_schema(schema_service: SchemaServiceDep) -> SchemaResponse:
    """
    Describe the database schema the workflow queries.

    **Response Model**: `SchemaResponse`
    - schema_name, table_count, relationship_count
    - tables: TableSchema keyed by table name (columns and relationships)
    """
    trace_id = get_trace_id()
    logger.info("Schema endpoint accessed", trace_id=trace_id)

    summary = await schema_service.get_schema_summary()

    logger.info(
        "Schema summary fetched successfully",
        table_count=summary["table_count"],
        relationship_count=summary["relationship_count"],
        trace_id=trace_id
    )

    return SchemaResponse(trace_id=trace_id, **summary)


@app.get("/api/v1/suggestions", response_model=SuggestionsResponse, tags=["Schema"])
async def get_suggestions(schema_service: SchemaServiceDep) -> SuggestionsResponse:
    """
    Example questions for the current database.

    Never fails on schema errors; a generic list is returned instead.
    """
    trace_id = get_trace_id()
    suggestions = await schema_service.get_query_suggestions()
    return SuggestionsResponse(trace_id=trace_id, suggestions=suggestions)


# -------------------------
# AskQL Endpoints
# -------------------------

@app.post(
    "/api/v1/ask",
    response_model=AskResponse,
    response_model_exclude_none=True,
    tags=["AskQL"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500, 503]},
    },
)
async def ask(request: AskRequest, askql_service: AskQLServiceDep) -> AskResponse:
    """
    Answer a natural language question about the database.

    The question runs through the AskQL workflow:

    1. **Schema loading**: Read tables, columns and relationships
    2. **NL to SQL**: LLM translates the question to a SELECT query
    3. **Validation**: Static checks, EXPLAIN and an LLM review
    4. **Experimentation**: Alternative queries when the first one is doubtful
    5. **Execution**: Read-only, row-capped, time-limited
    6. **Interpretation**: Natural language answer plus chart/table suggestions

    **Request Model**: `AskRequest`
    - question: Natural language question (required)
    - session_id: Deliver progress events to this WebSocket session
    - include_debug_info: Include workflow internals

    **Response Model**: `AskResponse`
    - success, answer, visualizations
    - metadata: execution_time_ms, sql_query, confidence, row_count
    - error: Failure reason when success is false

    Workflow failures are reported in the body (success=false), not as HTTP errors.
    """
    trace_id = get_trace_id()

    logger.info(
        "Ask requested",
        question_length=len(request.question),
        session_id=request.session_id,
        include_debug_info=request.include_debug_info,
        trace_id=trace_id,
    )

    return await askql_service.ask(
        request.question,
        session_id=request.session_id,
        include_debug_info=request.include_debug_info,
    )


# -------------------------
# Visualization Endpoints
# -------------------------

@app.post(
    "/api/v1/visualization/drill-down",
    response_model=DrillDownResponse,
    response_model_exclude_none=True,
    tags=["Visualization"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500, 503]},
    },
)
async def drill_down(request: DrillDownRequest, visualization_service: VisualizationServiceDep) -> DrillDownResponse:
    """
    Explore a visualization further.

    The request must carry the visualization with the drill_down context
    returned by /api/v1/ask. A new read-only query is planned for the
    operation (detail, filter, group or trend), executed under the row cap
    and returned as a new visualization.

    Failures are reported in the body (success=false), not as HTTP errors.
    """
    trace_id = get_trace_id()
    logger.info(
        "Drill-down requested",
        visualization_id=request.visualization_id,
        operation=request.operation.value,
        trace_id=trace_id,
    )
    return await visualization_service.drill_down(request)


@app.post(
    "/api/v1/edit-visualization",
    response_model=VisualizationEditResponse,
    response_model_exclude_none=True,
    tags=["Visualization"],
    responses={
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [422, 500, 503]},
    },
)
async def edit_visualization(
    request: VisualizationEditRequest,
    visualization_service: VisualizationServiceDep,
) -> VisualizationEditResponse:
    """
    Change a visualization with a natural-language request, e.g. "make it a pie chart".

    When the edit needs data the current rows do not contain,
    requires_new_query is true and new_sql_query holds a suggested query.
    """
    trace_id = get_trace_id()
    logger.info("Visualization edit requested", request_length=len(request.user_request), trace_id=trace_id)
    return await visualization_service.edit(request)


@app.post(
    "/api/v1/visualization-suggestions",
    response_model=VisualizationSuggestionsResponse,
    tags=["Visualization"],
)
async def visualization_suggestions(
    request: VisualizationSuggestionsRequest,
    visualization_service: VisualizationServiceDep,
) -> VisualizationSuggestionsResponse:
    """Edit requests the user might try on a visualization."""
    return visualization_service.suggestions(request)


@app.get("/api/v1/stream/status", response_model=StreamStatusResponse, tags=["AskQL"])
async def stream_status(manager: ConnectionManagerDep) -> StreamStatusResponse:
    """Number of open WebSocket sessions."""
    return StreamStatusResponse(
        active_connections=manager.active_sessions,
        timestamp=datetime.now(timezone.utc),
    )


@app.websocket("/ws/askql")
async def askql_websocket(websocket: WebSocket) -> None:
    """Live AskQL session: progress events per stage, then the final answer."""
    await serve_session(
        websocket,
        manager=websocket.app.state.connection_manager,
        askql_service=AskQLService(websocket.app.state.workflow),
    )


# FastAPI app is now ready to be imported and run by uvicorn or other ASGI servers
# Use scripts/serve.py or uvicorn askql.main:app
