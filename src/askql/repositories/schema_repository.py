"""
Schema Repository: reads table, column and foreign-key metadata from
information_schema and assembles the DatabaseSchema mapping
(table name -> TableSchema) the workflow puts into every prompt.

The whole schema is read with three queries regardless of table count.
"""

from collections import defaultdict
from typing import Any, Dict, List, Tuple

from ..domain.errors import DatabaseQueryError
from ..domain.schema_nodes import ColumnSchema, RelationshipSchema, TableSchema
from ..domain.types import DatabaseSchema
from ..infrastructure.database_client import DatabaseClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


TABLES_QUERY = """
    SELECT
        t.table_name,
        t.table_type,
        obj_description(
            (quote_ident(t.table_schema) || '.' || quote_ident(t.table_name))::regclass,
            'pg_class'
        ) AS description
    FROM information_schema.tables t
    WHERE t.table_schema = $1
    ORDER BY t.table_name
"""

# One row per column; constraint flags aggregated over every constraint the column takes part in
COLUMNS_QUERY = """
    SELECT
        c.table_name,
        c.column_name,
        c.data_type,
        c.is_nullable = 'YES' AS is_nullable,
        col_description(
            (quote_ident(c.table_schema) || '.' || quote_ident(c.table_name))::regclass,
            c.ordinal_position
        ) AS description,
        COALESCE(bool_or(tc.constraint_type = 'PRIMARY KEY'), false) AS is_primary_key,
        COALESCE(bool_or(tc.constraint_type = 'UNIQUE'), false) AS is_unique,
        COALESCE(bool_or(tc.constraint_type = 'FOREIGN KEY'), false) AS is_foreign_key
    FROM information_schema.columns c
    LEFT JOIN information_schema.key_column_usage kcu
        ON kcu.table_schema = c.table_schema
        AND kcu.table_name = c.table_name
        AND kcu.column_name = c.column_name
    LEFT JOIN information_schema.table_constraints tc
        ON tc.constraint_schema = kcu.constraint_schema
        AND tc.constraint_name = kcu.constraint_name
    WHERE c.table_schema = $1
    GROUP BY c.table_schema, c.table_name, c.column_name, c.data_type, c.is_nullable, c.ordinal_position
    ORDER BY c.table_name, c.ordinal_position
"""

RELATIONSHIPS_QUERY = """
    SELECT
        tc.constraint_name,
        tc.table_name AS from_table,
        kcu.column_name AS from_column,
        ccu.table_name AS to_table,
        ccu.column_name AS to_column
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_schema = tc.constraint_schema
        AND kcu.constraint_name = tc.constraint_name
    JOIN information_schema.constraint_column_usage ccu
        ON ccu.constraint_schema = tc.constraint_schema
        AND ccu.constraint_name = tc.constraint_name
    WHERE tc.constraint_type = 'FOREIGN KEY'
        AND tc.table_schema = $1
    ORDER BY tc.table_name, tc.constraint_name
"""


class SchemaRepository:
    """
    Data access for schema metadata.

    Usage:
        schema_repo = SchemaRepository(db_client)
        schema = await schema_repo.get_database_schema("public")
        schema["orders"].columns["customer_id"].references  # "customers.id"
    """

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def _fetch(self, what: str, query: str, schema: str) -> List[Dict[str, Any]]:
        try:
            return await self.db_client.execute_query(query=query, params=[schema], read_only=True)
        except Exception as e:
            message = f"Failed to fetch {what} from schema '{schema}': {e}"
            logger.error(message, trace_id=current_trace_id())
            raise DatabaseQueryError(message, details={"schema": schema}) from e

    async def get_tables(self, schema: str = "public") -> List[TableSchema]:
        """Tables and views of the schema, without their columns."""
        rows = await self._fetch("tables", TABLES_QUERY, schema)
        return [
            TableSchema(
                table_name=row["table_name"],
                table_type=row["table_type"],
                schema_name=schema,
                description=row["description"],
            )
            for row in rows
        ]

    async def get_columns(self, schema: str = "public") -> Dict[str, List[ColumnSchema]]:
        """Columns of every table in the schema, keyed by table name, in ordinal order."""
        rows = await self._fetch("columns", COLUMNS_QUERY, schema)

        columns: Dict[str, List[ColumnSchema]] = defaultdict(list)
        for row in rows:
            columns[row["table_name"]].append(
                ColumnSchema(
                    column_name=row["column_name"],
                    data_type=row["data_type"],
                    description=row["description"],
                    is_nullable=row["is_nullable"],
                    is_primary_key=row["is_primary_key"],
                    is_unique=row["is_unique"],
                    is_foreign_key=row["is_foreign_key"],
                )
            )
        return dict(columns)

    async def get_relationships(self, schema: str = "public") -> List[RelationshipSchema]:
        """Foreign keys declared in the schema."""
        rows = await self._fetch("relationships", RELATIONSHIPS_QUERY, schema)
        return [RelationshipSchema(**row) for row in rows]

    async def get_database_schema(self, schema: str = "public") -> DatabaseSchema:
        """
        Every table of the schema with its columns and outgoing foreign keys.

        Foreign-key columns get `references` set to "table.column".

        Raises:
            DatabaseQueryError: If any metadata query fails
        """
        tables = await self.get_tables(schema)
        columns = await self.get_columns(schema)
        relationships = await self.get_relationships(schema)

        references: Dict[Tuple[str, str], str] = {
            (rel.from_table, rel.from_column): f"{rel.to_table}.{rel.to_column}"
            for rel in relationships
        }

        database_schema: DatabaseSchema = {}
        for table in tables:
            for column in columns.get(table.table_name, []):
                column.references = references.get((table.table_name, column.column_name))
                table.columns[column.column_name] = column
            table.relationships = [rel for rel in relationships if rel.from_table == table.table_name]
            database_schema[table.table_name] = table

        logger.info(
            "Database schema loaded",
            schema=schema,
            table_count=len(database_schema),
            relationship_count=len(relationships),
            trace_id=current_trace_id(),
        )
        return database_schema
