"""
Schema Service for orchestrating schema operations.

This service provides the schema description the workflow needs,
plus schema-derived helpers for the API layer.
"""

from typing import Any, Dict, List

from ..repositories.schema_repository import SchemaRepository
from ..domain.errors import AskQLException, SchemaError
from ..domain.types import DatabaseSchema
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

# Questions that make sense for any database
GENERIC_SUGGESTIONS = [
    "Show me all tables in this database",
    "What is the structure of this database?",
    "How many records are in each table?",
    "Show me the distribution of data across categories",
    "What are the trends in the data over time?",
    "Give me a breakdown of the data by category",
    "Show me the top 10 records by value",
    "What are the key metrics for this dataset?",
]

# Returned when the schema cannot be read
FALLBACK_SUGGESTIONS = [
    "Show me all tables in this database",
    "What is the structure of this database?",
    "How many tables are in this database?",
]


class SchemaService:
    """
    Service for schema-related business logic.

    Usage:
        schema_service = SchemaService(schema_repo, schema_name="public")
        schema = await schema_service.get_schema_info()
    """

    def __init__(self, schema_repository: SchemaRepository, schema_name: str = "public"):
        """
        Initialize schema service.

        Args:
            schema_repository: SchemaRepository instance for data access
            schema_name: PostgreSQL schema the workflow queries
        """
        self.schema_repo = schema_repository
        self.schema_name = schema_name

        logger.info("SchemaService initialized", schema_name=schema_name)

    async def get_schema_info(self) -> DatabaseSchema:
        """
        Load the full schema description (tables, columns, relationships).

        Returns:
            DatabaseSchema mapping table name to TableSchema

        Raises:
            SchemaError: If the schema cannot be read
        """
        trace_id = current_trace_id()
        logger.info("Loading schema info", schema=self.schema_name, trace_id=trace_id)

        try:
            schema = await self.schema_repo.get_database_schema(schema=self.schema_name)
        except AskQLException as e:
            raise SchemaError(e.message, details={"schema_name": self.schema_name}) from e

        logger.info(
            "Schema info loaded",
            table_count=len(schema),
            trace_id=trace_id
        )

        return schema

    async def get_schema_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the schema for the API.

        Returns:
            Dictionary with schema_name, table_count, relationship_count and tables

        Raises:
            SchemaError: If the schema cannot be read
        """
        schema = await self.get_schema_info()
        relationship_count = sum(len(table.relationships) for table in schema.values())

        return {
            "schema_name": self.schema_name,
            "table_count": len(schema),
            "relationship_count": relationship_count,
            "tables": schema,
        }

    async def get_query_suggestions(self, limit: int = 8) -> List[str]:
        """
        Example questions for the current database.

        Table-specific questions for the first three tables come first,
        followed by generic ones. Never raises: a schema failure yields
        a short generic list.

        Args:
            limit: Maximum number of suggestions

        Returns:
            List of example questions
        """
        trace_id = current_trace_id()

        try:
            schema = await self.get_schema_info()
        except SchemaError as e:
            logger.warning("Suggestions fall back to generic list", error=e.message, trace_id=trace_id)
            return FALLBACK_SUGGESTIONS[:limit]

        if not schema:
            return ["No tables found in the database."]

        suggestions: List[str] = []
        for table_name in list(schema)[:3]:
            suggestions.append(f"How many records are in the {table_name} table?")
            suggestions.append(f"Show me the first 5 rows from {table_name}")

        suggestions.extend(GENERIC_SUGGESTIONS)
        return suggestions[:limit]
