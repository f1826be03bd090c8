from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ColumnSchema(BaseModel):
    """Represents a column of a database table."""

    column_name : str = Field(..., description="Name of the column")
    data_type : str = Field(..., description="Data type of the column")
    description : Optional[str] = Field(default=None, description="Description of the column")

    is_primary_key : bool = Field(default=False, description="Indicates if the column is a primary key")
    is_nullable : bool = Field(default=True, description="Indicates if the column can contain null values")
    is_unique : bool = Field(default=False, description="Indicates if the column has unique values")
    is_foreign_key : bool = Field(default=False, description="Indicates if the column is a foreign key")
    references : Optional[str] = Field(default=None, description="Referenced 'table.column' when the column is a foreign key")

    def describe(self) -> str:
        """
        One-line description used in LLM prompts.

        Example:
            "integer (primary key) (required)"
            "integer (foreign key to customers.id)"
        """
        parts = [self.data_type]
        if self.is_primary_key:
            parts.append("(primary key)")
        if self.references:
            parts.append(f"(foreign key to {self.references})")
        if not self.is_nullable:
            parts.append("(required)")
        return " ".join(parts)


class RelationshipSchema(BaseModel):
    """Represents a foreign key relationship between two tables."""

    constraint_name : Optional[str] = Field(default=None, description="Name of the FK constraint")
    from_table : str = Field(..., description="Name of the source table in the relationship")
    from_column : str = Field(..., description="Column in the source table")
    to_table : str = Field(..., description="Name of the target table in the relationship")
    to_column : str = Field(..., description="Column in the target table")

    def describe(self) -> str:
        return f"{self.from_table}.{self.from_column} -> {self.to_table}.{self.to_column}"


class TableSchema(BaseModel):
    """Represents a database table with its columns and outgoing relationships."""

    table_name : str = Field(..., description="Name of the table")
    schema_name : str = Field(..., description="Schema to which the table belongs")
    table_type : str = Field(default="BASE TABLE", description="information_schema table type")
    description : Optional[str] = Field(default=None, description="Description of the table")
    columns : Dict[str, ColumnSchema] = Field(default_factory=dict, description="Columns keyed by name, in ordinal order")
    relationships : List[RelationshipSchema] = Field(default_factory=list, description="Foreign keys declared on this table")

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Compact representation of the table for LLM prompts."""
        return {
            "description": self.description or f"Table: {self.table_name}",
            "columns": {name: column.describe() for name, column in self.columns.items()},
            "relationships": [relationship.describe() for relationship in self.relationships],
        }
