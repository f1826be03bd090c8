"""
Type aliases for the AskQL system.

Provides reusable, descriptive type aliases for common patterns
to improve code readability and type safety.
"""

from typing import Any, Dict

from .schema_nodes import TableSchema


# Full database description: {table_name: TableSchema}
DatabaseSchema = Dict[str, TableSchema]

# One result row: {column_name: value}
ResultRow = Dict[str, Any]

# Partial state produced by a stage: {field_name: value}
StateUpdate = Dict[str, Any]
