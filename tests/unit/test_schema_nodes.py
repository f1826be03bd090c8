"""
Unit tests for schema node domain models.

Tests the Pydantic models describing a database schema:
- ColumnSchema
- RelationshipSchema
- TableSchema
"""

import pytest
from pydantic import ValidationError

from askql.domain.schema_nodes import ColumnSchema, RelationshipSchema, TableSchema


class TestColumnSchema:
    """Test cases for ColumnSchema."""

    def test_defaults(self):
        column = ColumnSchema(column_name="total", data_type="numeric")
        assert column.is_nullable is True
        assert column.is_primary_key is False
        assert column.references is None

    def test_name_and_type_required(self):
        with pytest.raises(ValidationError):
            ColumnSchema(column_name="total")

    def test_describe_primary_key(self):
        column = ColumnSchema(column_name="id", data_type="integer", is_primary_key=True, is_nullable=False)
        assert column.describe() == "integer (primary key) (required)"

    def test_describe_foreign_key(self):
        column = ColumnSchema(
            column_name="customer_id",
            data_type="integer",
            is_foreign_key=True,
            references="customers.id",
        )
        assert column.describe() == "integer (foreign key to customers.id)"


class TestRelationshipSchema:
    """Test cases for RelationshipSchema."""

    def test_describe(self):
        relationship = RelationshipSchema(
            from_table="orders", from_column="customer_id", to_table="customers", to_column="id"
        )
        assert relationship.describe() == "orders.customer_id -> customers.id"


class TestTableSchema:
    """Test cases for TableSchema."""

    def test_prompt_dict(self):
        table = TableSchema(
            table_name="orders",
            schema_name="public",
            columns={"id": ColumnSchema(column_name="id", data_type="integer", is_primary_key=True)},
            relationships=[
                RelationshipSchema(from_table="orders", from_column="customer_id", to_table="customers", to_column="id")
            ],
        )
        assert table.to_prompt_dict() == {
            "description": "Table: orders",
            "columns": {"id": "integer (primary key)"},
            "relationships": ["orders.customer_id -> customers.id"],
        }

    def test_description_used_when_set(self):
        table = TableSchema(table_name="orders", schema_name="public", description="Customer orders")
        assert table.to_prompt_dict()["description"] == "Customer orders"
        assert table.table_type == "BASE TABLE"
