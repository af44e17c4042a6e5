"""
Unit tests for SchemaIntrospector and the DuckDB executor.
"""

import pytest
from unittest.mock import Mock
from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from sku_verify.adapters.connection import QueryExecutionError
from sku_verify.core.introspector import SchemaIntrospector, SchemaLookupError


class TestSchemaIntrospector:
    """Column discovery from information_schema."""

    def test_columns_are_lower_cased(self, con, executor):
        con.execute('CREATE TABLE im_sku_flat_table ("SKU_Code" VARCHAR, "Attr_Color" VARCHAR)')

        columns = SchemaIntrospector(executor).columns_of("im_sku_flat_table")

        assert columns == {"sku_code", "attr_color"}

    def test_missing_table_gives_empty_snapshot(self, executor):
        snapshot = SchemaIntrospector(executor).snapshot("does_not_exist")

        assert snapshot.table_name == "does_not_exist"
        assert len(snapshot) == 0
        assert not snapshot.has("sku_code")

    def test_snapshot_lookup_is_case_insensitive(self, con, executor):
        con.execute("CREATE TABLE vendor_sku_flat_table (sku_code VARCHAR, color VARCHAR)")

        snapshot = SchemaIntrospector(executor).snapshot("vendor_sku_flat_table")

        assert snapshot.has("COLOR")
        assert snapshot.missing(["color", "size"]) == ["size"]

    def test_query_failure_raises_schema_lookup_error(self):
        failing = Mock()
        failing.execute.side_effect = QueryExecutionError("connection lost")

        with pytest.raises(SchemaLookupError, match="vendor_sku_flat_table"):
            SchemaIntrospector(failing).columns_of("vendor_sku_flat_table")


class TestDuckDBExecutor:
    """Row decoding and error translation."""

    def test_rows_keyed_by_lower_cased_column(self, executor):
        rows = executor.execute("SELECT 1 AS Answer, ? AS Echo", ["x"])

        assert rows == [{"answer": 1, "echo": "x"}]

    def test_store_errors_become_query_execution_errors(self, executor):
        with pytest.raises(QueryExecutionError):
            executor.execute("SELECT * FROM no_such_table")

    def test_counts_queries(self, executor):
        executor.execute("SELECT 1")
        with pytest.raises(QueryExecutionError):
            executor.execute("SELECT broken FROM")

        assert executor.queries_executed == 2
