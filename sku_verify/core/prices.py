"""
Price reconciliation.
Single responsibility: compare price rows keyed by (sku_code, price_book_id) between the
old and new price tables, with two interchangeable strategies.
"""

import abc
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from ..adapters.connection import QueryExecutor, Row
from ..utils.logger import get_logger
from ..utils.metrics import MetricsCollector
from ..utils.normalizers import qident
from .models import (
    ColumnCategory,
    ColumnRef,
    EntityKey,
    MismatchRecord,
    MissingColumnReport,
    MissingEntityRecord,
    PriceComparisonResult,
    SchemaSnapshot,
    Side,
)


logger = get_logger()

KEY_COLUMNS = ("sku_code", "price_book_id")
PRICE_FIELDS = ("mrp", "rsp", "spp")
REQUIRED_PRICE_COLUMNS = KEY_COLUMNS + PRICE_FIELDS


class PrerequisiteUnmet(Exception):
    """Raised when price comparison cannot run; recorded as a skip, not an error."""

    def __init__(self, message: str, missing_columns: MissingColumnReport):
        super().__init__(message)
        self.missing_columns = missing_columns


@dataclass(frozen=True)
class PriceTables:
    old_table: str = "vendor_item_price_mapping"
    new_table: str = "im_sku_price_mapping"


@dataclass(frozen=True)
class PriceRow:
    """One price row decoded right after the query."""

    sku_code: Any
    price_book_id: Any
    mrp: Any = None
    rsp: Any = None
    spp: Any = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], prefix: str = "") -> "PriceRow":
        return cls(
            sku_code=row["sku_code"],
            price_book_id=row["price_book_id"],
            mrp=row[f"{prefix}mrp"],
            rsp=row[f"{prefix}rsp"],
            spp=row[f"{prefix}spp"],
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(sku_code=self.sku_code, price_book_id=self.price_book_id)

    def prices(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in PRICE_FIELDS}


def verify_price_columns(old_schema: SchemaSnapshot,
                         new_schema: SchemaSnapshot) -> MissingColumnReport:
    """Required price columns absent from either price table."""
    return MissingColumnReport(
        old_table=[ColumnRef(column=c) for c in old_schema.missing(REQUIRED_PRICE_COLUMNS)],
        new_table=[ColumnRef(column=c) for c in new_schema.missing(REQUIRED_PRICE_COLUMNS)],
    )


def require_price_columns(old_schema: SchemaSnapshot, new_schema: SchemaSnapshot):
    """
    Raises:
        PrerequisiteUnmet: If any required column is missing on either side
    """
    missing = verify_price_columns(old_schema, new_schema)
    if not missing.is_empty:
        columns = [ref.column for ref in missing.old_table + missing.new_table]
        raise PrerequisiteUnmet(
            f"Missing required price columns: {', '.join(sorted(set(columns)))}",
            missing,
        )


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def values_differ(old_value: Any, new_value: Any) -> bool:
    """
    Field comparison shared by both strategies.

    NULL equals NULL, NULL differs from any value. Numbers compare by
    decimal value so DECIMAL and DOUBLE columns agree.
    """
    if old_value is None or new_value is None:
        return (old_value is None) != (new_value is None)
    old_dec, new_dec = _as_decimal(old_value), _as_decimal(new_value)
    if old_dec is not None and new_dec is not None:
        return old_dec != new_dec
    return old_value != new_value


def diff_prices(old: PriceRow, new: PriceRow) -> List[MismatchRecord]:
    """One record per differing price field."""
    return [
        MismatchRecord(
            entity_key=old.key,
            column_name=name,
            column_category=ColumnCategory.PRICE,
            old_value=getattr(old, name),
            new_value=getattr(new, name),
        )
        for name in PRICE_FIELDS
        if values_differ(getattr(old, name), getattr(new, name))
    ]


def _pairs_sql(tables: PriceTables, row_cap: Optional[int]) -> str:
    limit = f"\n        LIMIT {int(row_cap)}" if row_cap is not None else ""
    return f"""
        SELECT sku_code, price_book_id
        FROM (
            SELECT DISTINCT o.sku_code, o.price_book_id
            FROM {qident(tables.old_table)} o
            UNION
            SELECT DISTINCT n.sku_code, n.price_book_id
            FROM {qident(tables.new_table)} n
        ) pairs
        ORDER BY sku_code, price_book_id{limit}
    """


# Duplicate keys resolve to the same row in both strategies
ROW_ORDER = "mrp, rsp, spp"

# Text that does not parse as a number reads as NULL
PRICE_TYPE = "DECIMAL(38, 10)"


def _typed_price_rows(table: str) -> str:
    """Price rows with every price field cast to one numeric type."""
    fields = ", ".join(f"TRY_CAST({name} AS {PRICE_TYPE}) AS {name}" for name in PRICE_FIELDS)
    return f"(SELECT sku_code, price_book_id, {fields} FROM {qident(table)})"


class ReconciliationStrategy(abc.ABC):
    """Base class for price reconciliation algorithms."""

    name: str = ""

    def compare(self, executor: QueryExecutor, tables: PriceTables,
                row_cap: Optional[int] = None) -> PriceComparisonResult:
        """
        Compare the price tables.

        Args:
            executor: Query executor bound to one tenant connection
            tables: Old and new price table names
            row_cap: Optional limit on the number of key pairs examined

        Returns:
            Price comparison result
        """
        if row_cap is not None and int(row_cap) < 0:
            raise ValueError("row_cap must be non-negative")
        logger.info("prices.compare.start", strategy=self.name,
                    old=tables.old_table, new=tables.new_table, row_cap=row_cap)
        result = self._execute(executor, tables, row_cap)
        logger.info("prices.compare.complete", strategy=self.name,
                    mismatches=len(result.mismatches),
                    missing_in_new=len(result.missing_in_new),
                    missing_in_old=len(result.missing_in_old))
        return result

    @abc.abstractmethod
    def _execute(self, executor: QueryExecutor, tables: PriceTables,
                 row_cap: Optional[int]) -> PriceComparisonResult:
        ...


class NestedLookupStrategy(ReconciliationStrategy):
    """
    Enumerate every key pair, then fetch each side's row per pair.

    Two queries per pair plus the union query.
    """

    name = "nested"

    def _lookup_sql(self, table: str) -> str:
        return f"""
            SELECT sku_code, price_book_id, mrp, rsp, spp
            FROM {_typed_price_rows(table)} t
            WHERE sku_code IS NOT DISTINCT FROM ?
              AND price_book_id IS NOT DISTINCT FROM ?
            ORDER BY {ROW_ORDER}
            LIMIT 1
        """

    def _fetch(self, executor: QueryExecutor, table: str,
               key: EntityKey) -> Optional[PriceRow]:
        rows = executor.execute(self._lookup_sql(table), [key.sku_code, key.price_book_id])
        return PriceRow.from_row(rows[0]) if rows else None

    def _execute(self, executor: QueryExecutor, tables: PriceTables,
                 row_cap: Optional[int]) -> PriceComparisonResult:
        pairs = [EntityKey(sku_code=row["sku_code"], price_book_id=row["price_book_id"])
                 for row in executor.execute(_pairs_sql(tables, row_cap))]
        result = PriceComparisonResult(strategy=self.name, pairs_examined=len(pairs))

        for key in pairs:
            old_row = self._fetch(executor, tables.old_table, key)
            new_row = self._fetch(executor, tables.new_table, key)

            if old_row is None and new_row is not None:
                result.missing_in_old.append(MissingEntityRecord(
                    entity_key=key, side_missing=Side.OLD,
                    available_values=new_row.prices()))
            elif new_row is None and old_row is not None:
                result.missing_in_new.append(MissingEntityRecord(
                    entity_key=key, side_missing=Side.NEW,
                    available_values=old_row.prices()))
            elif old_row is not None and new_row is not None:
                result.mismatches.extend(diff_prices(old_row, new_row))

        return result


class OuterJoinStrategy(ReconciliationStrategy):
    """
    Classify every key pair in a single query.

    The pair union is joined to both tables and only rows with a missing
    side or a differing field come back.
    """

    name = "outer_join"

    def _sql(self, tables: PriceTables, row_cap: Optional[int]) -> str:
        def side(table: str) -> str:
            return f"""
                SELECT sku_code, price_book_id, mrp, rsp, spp, 1 AS present
                FROM {_typed_price_rows(table)} t
                QUALIFY ROW_NUMBER() OVER (
                    PARTITION BY sku_code, price_book_id ORDER BY {ROW_ORDER}
                ) = 1
            """

        key_match = ("{a}.sku_code IS NOT DISTINCT FROM p.sku_code "
                     "AND {a}.price_book_id IS NOT DISTINCT FROM p.price_book_id")
        field_diffs = " OR ".join(f"o.{name} IS DISTINCT FROM n.{name}"
                                  for name in PRICE_FIELDS)
        old_fields = ", ".join(f"o.{name} AS old_{name}" for name in PRICE_FIELDS)
        new_fields = ", ".join(f"n.{name} AS new_{name}" for name in PRICE_FIELDS)

        return f"""
            WITH pairs AS ({_pairs_sql(tables, row_cap)}),
            old_rows AS ({side(tables.old_table)}),
            new_rows AS ({side(tables.new_table)})
            SELECT
                p.sku_code,
                p.price_book_id,
                {old_fields},
                {new_fields},
                CASE
                    WHEN o.present IS NULL THEN 'missing_in_old'
                    WHEN n.present IS NULL THEN 'missing_in_new'
                    ELSE 'exists_in_both'
                END AS status
            FROM pairs p
            LEFT JOIN old_rows o ON {key_match.format(a="o")}
            LEFT JOIN new_rows n ON {key_match.format(a="n")}
            WHERE o.present IS NULL
               OR n.present IS NULL
               OR {field_diffs}
            ORDER BY p.sku_code, p.price_book_id
        """

    def _execute(self, executor: QueryExecutor, tables: PriceTables,
                 row_cap: Optional[int]) -> PriceComparisonResult:
        result = PriceComparisonResult(strategy=self.name, pairs_examined=None)

        for row in executor.execute(self._sql(tables, row_cap)):
            status = row["status"]
            old_row = PriceRow.from_row(row, prefix="old_")
            new_row = PriceRow.from_row(row, prefix="new_")

            if status == "missing_in_old":
                result.missing_in_old.append(MissingEntityRecord(
                    entity_key=new_row.key, side_missing=Side.OLD,
                    available_values=new_row.prices()))
            elif status == "missing_in_new":
                result.missing_in_new.append(MissingEntityRecord(
                    entity_key=old_row.key, side_missing=Side.NEW,
                    available_values=old_row.prices()))
            else:
                result.mismatches.extend(diff_prices(old_row, new_row))

        return result


STRATEGIES: Dict[str, Type[ReconciliationStrategy]] = {
    NestedLookupStrategy.name: NestedLookupStrategy,
    OuterJoinStrategy.name: OuterJoinStrategy,
}


def get_strategy(name: str) -> ReconciliationStrategy:
    """
    Instantiate a strategy by name.

    Raises:
        KeyError: If no strategy has that name
    """
    key = (name or "").strip().lower()
    if key not in STRATEGIES:
        raise KeyError(f"Unknown price strategy '{name}'. Use one of: {', '.join(STRATEGIES)}")
    return STRATEGIES[key]()


def compare_prices(executor: QueryExecutor, tables: PriceTables,
                   old_schema: SchemaSnapshot, new_schema: SchemaSnapshot,
                   strategy: Optional[ReconciliationStrategy] = None,
                   row_cap: Optional[int] = None,
                   tenant: str = None) -> PriceComparisonResult:
    """
    Run price reconciliation after the column prerequisite gate.

    A table missing any required column gives a skipped result.
    """
    strategy = strategy or OuterJoinStrategy()
    try:
        require_price_columns(old_schema, new_schema)
    except PrerequisiteUnmet as e:
        logger.warning("prices.skipped", tenant=tenant, reason=str(e))
        return PriceComparisonResult(strategy=strategy.name, skipped=True,
                                     skip_reason=str(e),
                                     missing_columns=e.missing_columns)
    return strategy.compare(executor, tables, row_cap=row_cap)


def strategies_agree(left: PriceComparisonResult, right: PriceComparisonResult) -> bool:
    """Whether two results have the same keys for mismatches and both missing lists."""
    return (left.mismatch_keys() == right.mismatch_keys()
            and left.missing_keys(Side.NEW) == right.missing_keys(Side.NEW)
            and left.missing_keys(Side.OLD) == right.missing_keys(Side.OLD))


class CountingExecutor:
    """Executor proxy counting round trips."""

    def __init__(self, executor: QueryExecutor):
        self.executor = executor
        self.queries = 0

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Row]:
        self.queries += 1
        return self.executor.execute(sql, params)


@dataclass
class BenchmarkResult:
    strategy: str
    duration_seconds: float
    queries: int
    mismatches: int
    missing_in_new: int
    missing_in_old: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "duration_s": round(self.duration_seconds, 4),
            "queries": self.queries,
            "mismatches": self.mismatches,
            "missing_in_new": self.missing_in_new,
            "missing_in_old": self.missing_in_old,
        }


@dataclass
class BenchmarkReport:
    results: List[BenchmarkResult] = field(default_factory=list)
    agree: bool = True


def benchmark_strategies(executor: QueryExecutor, tables: PriceTables,
                         row_cap: Optional[int] = None,
                         strategies: Optional[Sequence[ReconciliationStrategy]] = None,
                         metrics: Optional[MetricsCollector] = None) -> BenchmarkReport:
    """
    Time every strategy on the same data and cross-check their results.

    Purely informational, verification output is not affected.
    """
    strategies = list(strategies) if strategies else [cls() for cls in STRATEGIES.values()]
    metrics = metrics or MetricsCollector()
    report = BenchmarkReport()
    outcomes: List[PriceComparisonResult] = []

    for strategy in strategies:
        counting = CountingExecutor(executor)
        operation = f"prices.{strategy.name}"
        metrics.start_operation(operation)
        outcome = strategy.compare(counting, tables, row_cap=row_cap)
        timing = metrics.end_operation(
            operation,
            rows_processed=len(outcome.mismatches) + len(outcome.missing_in_new)
            + len(outcome.missing_in_old),
        )
        outcomes.append(outcome)
        report.results.append(BenchmarkResult(
            strategy=strategy.name,
            duration_seconds=timing.duration_seconds if timing else 0.0,
            queries=counting.queries,
            mismatches=len(outcome.mismatches),
            missing_in_new=len(outcome.missing_in_new),
            missing_in_old=len(outcome.missing_in_old),
        ))

    report.agree = all(strategies_agree(outcomes[0], other) for other in outcomes[1:])
    if report.agree:
        logger.success("prices.benchmark.strategies_agree", strategies=len(outcomes))
    else:
        logger.error("prices.benchmark.strategies_disagree",
                     strategies=[outcome.strategy for outcome in outcomes])
    logger.table([result.to_dict() for result in report.results],
                 caption="Price strategy benchmark")
    return report
