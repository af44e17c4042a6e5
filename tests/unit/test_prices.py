"""
Unit tests for price reconciliation strategies.
"""

import pytest
from decimal import Decimal
from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from sku_verify.core.introspector import SchemaIntrospector
from sku_verify.core.models import ColumnCategory, Side
from sku_verify.core.prices import (
    CountingExecutor,
    NestedLookupStrategy,
    OuterJoinStrategy,
    PriceTables,
    benchmark_strategies,
    compare_prices,
    get_strategy,
    strategies_agree,
    values_differ,
    verify_price_columns,
)


STRATEGY_CLASSES = [NestedLookupStrategy, OuterJoinStrategy]

PRICE_TABLES = (
    "vendor_item_price_mapping",
    "im_sku_price_mapping",
)


def create_price_tables(con):
    for table in PRICE_TABLES:
        con.execute(f"""
            CREATE TABLE {table} (
                sku_code VARCHAR,
                price_book_id INTEGER,
                mrp DECIMAL(10, 2),
                rsp DECIMAL(10, 2),
                spp DECIMAL(10, 2)
            )
        """)


def seed(con, old_rows, new_rows):
    create_price_tables(con)
    for row in old_rows:
        con.execute("INSERT INTO vendor_item_price_mapping VALUES (?, ?, ?, ?, ?)", list(row))
    for row in new_rows:
        con.execute("INSERT INTO im_sku_price_mapping VALUES (?, ?, ?, ?, ?)", list(row))


class TestPriceStrategies:
    """Both strategies on the same data."""

    @pytest.mark.parametrize("strategy_cls", STRATEGY_CLASSES)
    def test_single_field_mismatch(self, con, executor, strategy_cls):
        seed(con, [("A1", 1, 10, 9, 8)], [("A1", 1, 12, 9, 8)])

        result = strategy_cls().compare(executor, PriceTables())

        assert len(result.mismatches) == 1
        record = result.mismatches[0]
        assert record.entity_key.as_tuple() == ("A1", 1)
        assert record.field == "mrp"
        assert record.column_category is ColumnCategory.PRICE
        assert record.old_value == Decimal("10")
        assert record.new_value == Decimal("12")
        assert result.missing_in_new == []
        assert result.missing_in_old == []

    @pytest.mark.parametrize("strategy_cls", STRATEGY_CLASSES)
    def test_missing_in_new_carries_old_prices(self, con, executor, strategy_cls):
        seed(con, [("A1", 1, 10, 9, 8), ("B2", 1, 5, 4, 3)], [("A1", 1, 10, 9, 8)])

        result = strategy_cls().compare(executor, PriceTables())

        assert result.mismatches == []
        assert len(result.missing_in_new) == 1
        missing = result.missing_in_new[0]
        assert missing.entity_key.as_tuple() == ("B2", 1)
        assert missing.side_missing is Side.NEW
        assert missing.available_values == {"mrp": Decimal("5"), "rsp": Decimal("4"),
                                            "spp": Decimal("3")}

    @pytest.mark.parametrize("strategy_cls", STRATEGY_CLASSES)
    def test_missing_in_old(self, con, executor, strategy_cls):
        seed(con, [], [("C3", 2, 1, 1, 1)])

        result = strategy_cls().compare(executor, PriceTables())

        assert [r.entity_key.as_tuple() for r in result.missing_in_old] == [("C3", 2)]
        assert result.missing_in_old[0].side_missing is Side.OLD

    @pytest.mark.parametrize("strategy_cls", STRATEGY_CLASSES)
    def test_null_fields_and_null_price_book(self, con, executor, strategy_cls):
        seed(
            con,
            [("A1", None, 10, None, None), ("B2", 1, None, 5, 5)],
            [("A1", None, 10, None, 7), ("B2", 1, None, 5, 5)],
        )

        result = strategy_cls().compare(executor, PriceTables())

        # NULL price_book_id still correlates; NULL vs NULL is no mismatch
        assert [(r.entity_key.as_tuple(), r.field) for r in result.mismatches] == [
            (("A1", None), "spp")
        ]
        assert result.missing_in_new == []
        assert result.missing_in_old == []

    def test_strategies_agree_on_mixed_data(self, con, executor):
        seed(
            con,
            [("A1", 1, 10, 9, 8), ("A1", 2, 10, 9, 8), ("B2", 1, 5, 5, 5),
             ("D4", None, 1, None, 1), ("E5", 3, 2, 2, 2)],
            [("A1", 1, 12, 9, 8), ("A1", 2, 10, 9, 8), ("C3", 1, 1, 1, 1),
             ("D4", None, 1, 2, 1), ("E5", 3, 2, 2, 2)],
        )

        nested = NestedLookupStrategy().compare(executor, PriceTables())
        outer = OuterJoinStrategy().compare(executor, PriceTables())

        assert strategies_agree(nested, outer)
        assert nested.mismatch_keys() == {("A1", 1), ("D4", None)}
        assert nested.missing_keys(Side.NEW) == {("B2", 1)}
        assert nested.missing_keys(Side.OLD) == {("C3", 1)}
        assert nested.pairs_examined == 6
        assert outer.pairs_examined is None

    def test_strategies_agree_when_column_types_differ(self, con, executor):
        con.execute("""
            CREATE TABLE vendor_item_price_mapping (
                sku_code VARCHAR, price_book_id INTEGER,
                mrp VARCHAR, rsp VARCHAR, spp VARCHAR
            )
        """)
        con.execute("""
            CREATE TABLE im_sku_price_mapping (
                sku_code VARCHAR, price_book_id INTEGER,
                mrp DECIMAL(10, 2), rsp DECIMAL(10, 2), spp DECIMAL(10, 2)
            )
        """)
        con.execute("INSERT INTO vendor_item_price_mapping VALUES "
                    "('A1', 1, '10.0', '5', '4'), ('B2', 1, '7', '1', '1')")
        con.execute("INSERT INTO im_sku_price_mapping VALUES "
                    "('A1', 1, 10, 5, 4), ('B2', 1, 8, 1, 1)")

        nested = NestedLookupStrategy().compare(executor, PriceTables())
        outer = OuterJoinStrategy().compare(executor, PriceTables())

        assert strategies_agree(nested, outer)
        assert nested.mismatch_keys() == {("B2", 1)}
        assert [(r.column_name, r.old_value, r.new_value) for r in nested.mismatches] == [
            ("mrp", Decimal("7"), Decimal("8"))]

    @pytest.mark.parametrize("strategy_cls", STRATEGY_CLASSES)
    def test_row_cap_limits_pairs_in_key_order(self, con, executor, strategy_cls):
        seed(con, [("A1", 1, 1, 1, 1), ("B2", 1, 1, 1, 1)], [])

        result = strategy_cls().compare(executor, PriceTables(), row_cap=1)

        assert [r.entity_key.sku_code for r in result.missing_in_new] == ["A1"]

    def test_negative_row_cap_rejected(self, executor):
        with pytest.raises(ValueError):
            OuterJoinStrategy().compare(executor, PriceTables(), row_cap=-1)

    def test_nested_issues_two_lookups_per_pair(self, con, executor):
        seed(con, [("A1", 1, 1, 1, 1), ("B2", 1, 1, 1, 1)], [("A1", 1, 1, 1, 1)])
        counting = CountingExecutor(executor)

        NestedLookupStrategy().compare(counting, PriceTables())

        assert counting.queries == 1 + 2 * 2

    def test_outer_join_is_a_single_query(self, con, executor):
        seed(con, [("A1", 1, 1, 1, 1), ("B2", 1, 1, 1, 1)], [("A1", 1, 1, 1, 1)])
        counting = CountingExecutor(executor)

        OuterJoinStrategy().compare(counting, PriceTables())

        assert counting.queries == 1


class TestComparePrices:
    """Prerequisite gate and registry."""

    def test_missing_required_column_skips(self, con, executor):
        con.execute("CREATE TABLE vendor_item_price_mapping (sku_code VARCHAR, mrp DECIMAL)")
        con.execute("CREATE TABLE im_sku_price_mapping "
                    "(sku_code VARCHAR, price_book_id INTEGER, mrp DECIMAL, rsp DECIMAL, spp DECIMAL)")
        introspector = SchemaIntrospector(executor)
        old = introspector.snapshot("vendor_item_price_mapping")
        new = introspector.snapshot("im_sku_price_mapping")

        result = compare_prices(executor, PriceTables(), old, new)

        assert result.skipped
        assert "price_book_id" in result.skip_reason
        assert [ref.column for ref in result.missing_columns.old_table] == [
            "price_book_id", "rsp", "spp"]
        assert result.missing_columns.new_table == []

    def test_verify_price_columns_clean(self, con, executor):
        create_price_tables(con)
        introspector = SchemaIntrospector(executor)

        report = verify_price_columns(introspector.snapshot("vendor_item_price_mapping"),
                                      introspector.snapshot("im_sku_price_mapping"))

        assert report.is_empty

    def test_get_strategy(self):
        assert isinstance(get_strategy("nested"), NestedLookupStrategy)
        assert isinstance(get_strategy("OUTER_JOIN"), OuterJoinStrategy)
        with pytest.raises(KeyError):
            get_strategy("hash_join")


class TestValuesDiffer:
    """Shared field comparison."""

    def test_null_handling(self):
        assert not values_differ(None, None)
        assert values_differ(None, 1)
        assert values_differ(Decimal("1.00"), None)

    def test_numeric_types_compare_by_value(self):
        assert not values_differ(Decimal("10.00"), 10)
        assert not values_differ(Decimal("0.10"), 0.1)
        assert values_differ(Decimal("10.00"), 12.0)


class TestBenchmark:
    """Strategy benchmark."""

    def test_benchmark_reports_every_strategy_and_agreement(self, con, executor):
        seed(con, [("A1", 1, 10, 9, 8), ("B2", 1, 5, 5, 5)], [("A1", 1, 12, 9, 8)])

        report = benchmark_strategies(executor, PriceTables())

        assert [r.strategy for r in report.results] == ["nested", "outer_join"]
        assert report.agree
        assert all(r.mismatches == 1 and r.missing_in_new == 1 for r in report.results)
        assert report.results[0].queries == 5
        assert report.results[1].queries == 1
        assert all(r.duration_seconds >= 0 for r in report.results)
