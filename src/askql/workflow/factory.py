"""
Assembles an AskQLWorkflow from settings and connected clients.

Dependency tree:
    AskQLWorkflow
      └── PipelineStages
            ├── SchemaService → SchemaRepository (schema discovery)
            ├── SQLGenerationRepository (NL → SQL)
            ├── SQLValidationRepository (validation + alternatives)
            ├── SQLExecutionRepository (read-only execution)
            └── ResultInterpretationRepository (answer + views)
"""

from typing import Optional

from ..config import Settings
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.result_interpretation import ResultInterpretationRepository
from ..repositories.schema_repository import SchemaRepository
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.sql_generation import SQLGenerationRepository
from ..repositories.sql_validation import SQLValidationRepository
from ..services.schema_service import SchemaService
from .orchestrator import AskQLWorkflow
from .progress import ProgressSink
from .stages import PipelineStages


def create_workflow(
    settings: Settings,
    db_client: DatabaseClient,
    llm_client: LLMClient,
    progress_sink: Optional[ProgressSink] = None,
) -> AskQLWorkflow:
    workflow_config = settings.workflow

    schema_service = SchemaService(
        schema_repository=SchemaRepository(db_client),
        schema_name=settings.database.default_schema,
    )

    stages = PipelineStages(
        schema_provider=schema_service,
        translator=SQLGenerationRepository(llm_client=llm_client),
        validator=SQLValidationRepository(
            db_client=db_client,
            llm_client=llm_client,
            max_alternatives=workflow_config.max_alternatives,
        ),
        executor=SQLExecutionRepository(
            db_client=db_client,
            max_rows=workflow_config.max_result_rows,
            timeout_seconds=workflow_config.execution_timeout_seconds,
        ),
        interpreter=ResultInterpretationRepository(
            llm_client=llm_client,
            preview_rows=workflow_config.interpretation_preview_rows,
        ),
    )

    return AskQLWorkflow(stages=stages, progress_sink=progress_sink)
