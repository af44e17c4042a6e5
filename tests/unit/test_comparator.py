"""
Unit tests for ColumnComparator.
"""

import pytest
from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from sku_verify.adapters.connection import QueryExecutionError
from sku_verify.core.comparator import (
    ColumnComparator,
    ComparisonColumnError,
    build_mismatch_sql,
    needs_text_comparison,
)
from sku_verify.core.introspector import SchemaIntrospector
from sku_verify.core.models import ColumnCategory, ColumnMapping


class FlakyExecutor:
    """Executor failing every query that mentions a given column."""

    def __init__(self, executor, failing_column):
        self.executor = executor
        self.failing_column = failing_column

    def execute(self, sql, params=None):
        if f'"{self.failing_column}"' in sql:
            raise QueryExecutionError(f"Conversion Error on {self.failing_column}")
        return self.executor.execute(sql, params)


class TestColumnComparator:
    """Value comparison with SQL NULL semantics."""

    @pytest.fixture
    def tables(self, con, executor):
        con.execute("""
            CREATE TABLE vendor_sku_flat_table (
                sku_code VARCHAR, color VARCHAR, size VARCHAR, name VARCHAR
            )
        """)
        con.execute("""
            CREATE TABLE im_sku_flat_table (
                sku_code VARCHAR, attr_color VARCHAR, attr_size VARCHAR, name VARCHAR
            )
        """)
        con.execute("""
            INSERT INTO vendor_sku_flat_table VALUES
                ('A1', 'red', 'M', 'Shirt'),
                ('B2', NULL, NULL, 'Mug'),
                ('C3', 'blue', NULL, 'Cap'),
                ('D4', NULL, 'L', 'Sock'),
                (NULL, 'green', 'S', 'Orphan'),
                ('E5', 'black', 'XL', 'Only old')
        """)
        con.execute("""
            INSERT INTO im_sku_flat_table VALUES
                ('A1', 'crimson', 'M', 'Shirt'),
                ('B2', NULL, NULL, 'Mug'),
                ('C3', NULL, NULL, 'Cap'),
                ('D4', 'white', 'L', 'Socks'),
                (NULL, 'lime', 'S', 'Orphan')
        """)
        introspector = SchemaIntrospector(executor)
        return (introspector.snapshot("vendor_sku_flat_table"),
                introspector.snapshot("im_sku_flat_table"))

    def comparator(self, executor):
        return ColumnComparator(executor, "vendor_sku_flat_table", "im_sku_flat_table",
                                tenant="test")

    def test_null_semantics(self, executor, tables):
        old, new = tables
        outcome = self.comparator(executor).compare_mappings(
            [ColumnMapping("attr_color", "color")], ColumnCategory.ATTRIBUTE, old, new)

        by_key = {r.entity_key.sku_code: (r.old_value, r.new_value) for r in outcome.records}

        # B2 is NULL on both sides; NULL keys and keys missing in new never match
        assert by_key == {
            "A1": ("red", "crimson"),
            "C3": ("blue", None),
            "D4": (None, "white"),
        }

    def test_records_carry_mapping_label_and_category(self, executor, tables):
        old, new = tables
        outcome = self.comparator(executor).compare_mappings(
            [ColumnMapping("attr_color", "color")], ColumnCategory.CATEGORY, old, new)

        assert {r.column_name for r in outcome.records} == {"color -> attr_color"}
        assert {r.column_category for r in outcome.records} == {ColumnCategory.CATEGORY}
        assert [r.entity_key.sku_code for r in outcome.records] == ["A1", "C3", "D4"]

    def test_common_columns_use_shared_name(self, executor, tables):
        old, new = tables
        outcome = self.comparator(executor).compare_columns(["name"], old, new)

        assert len(outcome.records) == 1
        record = outcome.records[0]
        assert record.column_name == "name"
        assert record.column_category is ColumnCategory.COMMON
        assert (record.old_value, record.new_value) == ("Sock", "Socks")

    def test_unknown_column_raises(self, executor, tables):
        old, new = tables
        with pytest.raises(ComparisonColumnError):
            self.comparator(executor).compare_pair(
                "weight", "attr_weight", "weight -> attr_weight",
                ColumnCategory.ATTRIBUTE, old, new)

    def test_one_failing_column_does_not_stop_the_others(self, executor, tables):
        old, new = tables
        flaky = FlakyExecutor(executor, "attr_color")
        comparator = ColumnComparator(flaky, "vendor_sku_flat_table", "im_sku_flat_table")

        outcome = comparator.compare_mappings(
            [ColumnMapping("attr_color", "color"), ColumnMapping("attr_size", "size")],
            ColumnCategory.ATTRIBUTE, old, new)

        assert outcome.failed == ["color -> attr_color"]
        assert outcome.compared == ["size -> attr_size"]
        assert outcome.records == []

    def test_identical_columns_yield_no_records(self, executor, tables):
        old, new = tables
        outcome = self.comparator(executor).compare_mappings(
            [ColumnMapping("attr_size", "size")], ColumnCategory.ATTRIBUTE, old, new)

        assert outcome.records == []
        assert outcome.mismatched_columns == []


class TestMixedColumnTypes:
    """Column pairs whose declared types differ between the tables."""

    @pytest.fixture
    def tables(self, con, executor):
        con.execute("CREATE TABLE vendor_sku_flat_table (sku_code VARCHAR, weight INTEGER)")
        con.execute("CREATE TABLE im_sku_flat_table (sku_code VARCHAR, attr_weight VARCHAR)")
        con.execute("INSERT INTO vendor_sku_flat_table VALUES ('A1', 12), ('A2', 7), ('A3', NULL)")
        con.execute("INSERT INTO im_sku_flat_table VALUES ('A1', '12'), ('A2', 'n/a'), ('A3', NULL)")
        introspector = SchemaIntrospector(executor)
        return (introspector.snapshot("vendor_sku_flat_table"),
                introspector.snapshot("im_sku_flat_table"))

    def test_unconvertible_value_is_reported_not_failed(self, executor, tables):
        old, new = tables
        comparator = ColumnComparator(executor, "vendor_sku_flat_table", "im_sku_flat_table")

        outcome = comparator.compare_mappings(
            [ColumnMapping("attr_weight", "weight")], ColumnCategory.ATTRIBUTE, old, new)

        assert outcome.failed == []
        assert outcome.compared == ["weight -> attr_weight"]
        assert [(r.entity_key.sku_code, r.old_value, r.new_value) for r in outcome.records] == [
            ("A2", 7, "n/a")]

    def test_snapshot_carries_types(self, tables):
        old, new = tables

        assert old.type_of("WEIGHT") == "INTEGER"
        assert new.type_of("attr_weight") == "VARCHAR"

    def test_type_families(self):
        assert needs_text_comparison("INTEGER", "VARCHAR")
        assert not needs_text_comparison("DECIMAL(10,2)", "DOUBLE")
        assert not needs_text_comparison("VARCHAR", "VARCHAR")
        assert not needs_text_comparison(None, "VARCHAR")


class TestBuildMismatchSql:
    """Generated SQL shape."""

    def test_identifiers_are_quoted(self):
        sql = build_mismatch_sql("old_t", "new_t", "sku_code", "color", "attr_color")

        assert 'LEFT JOIN "new_t" n ON o."sku_code" = n."sku_code"' in sql
        assert 'o."color" != n."attr_color"' in sql

    def test_text_comparison_casts_both_sides(self):
        sql = build_mismatch_sql("old_t", "new_t", "sku_code", "weight", "attr_weight",
                                 as_text=True)

        assert 'CAST(o."weight" AS VARCHAR) != CAST(n."attr_weight" AS VARCHAR)' in sql
        assert 'o."weight" AS old_value' in sql

    def test_unsafe_identifier_rejected(self):
        with pytest.raises(ValueError):
            build_mismatch_sql("old_t", "new_t", "sku_code", 'color"; DROP TABLE x; --', "c")
