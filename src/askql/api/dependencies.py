"""
FastAPI dependencies for dependency injection.

This module provides reusable dependencies that can be injected into
API route handlers following proper layered architecture:
- Services (SchemaService, AskQLService, VisualizationService) for business logic
- Settings for configuration
- Optional client dependencies for health checks only

Routes should depend on services, not infrastructure clients directly.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..config import Settings
from ..domain.errors import ServiceUnavailableError
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.drill_down import DrillDownRepository
from ..repositories.schema_repository import SchemaRepository
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.visualization_edit import VisualizationEditRepository
from ..services.askql_service import AskQLService
from ..services.schema_service import SchemaService
from ..services.visualization_service import VisualizationService
from .websocket import ConnectionManager


def get_settings(request: Request) -> Settings:
    """
    Dependency to get the settings from app state.

    Usage in routes:
        @app.get("/config")
        async def get_config(settings: SettingsDep):
            return {"log_level": settings.app.log_level}

    Raises:
        RuntimeError: If settings are not initialized
    """
    if not hasattr(request.app.state, "settings"):
        raise RuntimeError("Settings not initialized")

    return request.app.state.settings


# Optional dependency getters for health checks and endpoints that need graceful degradation
def get_db_client_optional(request: Request) -> DatabaseClient | None:
    """Get database client if available, None otherwise."""
    return getattr(request.app.state, "db_client", None)


def get_llm_client_optional(request: Request) -> LLMClient | None:
    """Get LLM client if available, None otherwise."""
    return getattr(request.app.state, "llm_client", None)


def get_schema_service(request: Request) -> SchemaService:
    """
    Dependency to get a SchemaService instance.

    This creates a SchemaService with SchemaRepository, following proper
    layered architecture (API → Service → Repository → Infrastructure).

    Raises:
        ServiceUnavailableError: If the database client is not initialized
    """
    db_client = getattr(request.app.state, "db_client", None)
    if db_client is None:
        raise ServiceUnavailableError("Database client not initialized")

    settings = get_settings(request)

    return SchemaService(
        schema_repository=SchemaRepository(db_client),
        schema_name=settings.database.default_schema,
    )


def get_askql_service(request: Request) -> AskQLService:
    """
    Dependency to get an AskQLService over the shared workflow.

    The workflow is built once in the application lifespan; its stages
    share the app's DatabaseClient and LLMClient.

    Raises:
        ServiceUnavailableError: If the workflow is not initialized
    """
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise ServiceUnavailableError("AskQL workflow not initialized")

    return AskQLService(workflow)


def get_visualization_service(request: Request) -> VisualizationService:
    """
    Dependency to get a VisualizationService over the app's clients.

    Drill-down queries run through an SQLExecutionRepository with the same
    row cap and timeout as the workflow.

    Raises:
        ServiceUnavailableError: If the database or LLM client is not initialized
    """
    db_client = getattr(request.app.state, "db_client", None)
    llm_client = getattr(request.app.state, "llm_client", None)
    if db_client is None or llm_client is None:
        raise ServiceUnavailableError("Database or LLM client not initialized")

    workflow_config = get_settings(request).workflow

    return VisualizationService(
        drill_down_repository=DrillDownRepository(
            llm_client=llm_client,
            preview_rows=workflow_config.interpretation_preview_rows,
        ),
        edit_repository=VisualizationEditRepository(
            llm_client=llm_client,
            preview_rows=workflow_config.interpretation_preview_rows,
        ),
        executor=SQLExecutionRepository(
            db_client=db_client,
            max_rows=workflow_config.max_result_rows,
            timeout_seconds=workflow_config.execution_timeout_seconds,
        ),
    )


def get_connection_manager(request: Request) -> ConnectionManager:
    """
    Raises:
        ServiceUnavailableError: If the WebSocket connection manager is not initialized
    """
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        raise ServiceUnavailableError("WebSocket connection manager not initialized")
    return manager


# Type aliases for cleaner dependency injection
# Service dependencies (used in API routes)
SchemaServiceDep = Annotated[SchemaService, Depends(get_schema_service)]
AskQLServiceDep = Annotated[AskQLService, Depends(get_askql_service)]
VisualizationServiceDep = Annotated[VisualizationService, Depends(get_visualization_service)]
ConnectionManagerDep = Annotated[ConnectionManager, Depends(get_connection_manager)]
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Optional client dependencies (used in health checks)
OptionalDatabaseClientDep = Annotated[DatabaseClient | None, Depends(get_db_client_optional)]
OptionalLLMClientDep = Annotated[LLMClient | None, Depends(get_llm_client_optional)]
