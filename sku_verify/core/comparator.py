"""
Core column comparison logic.
Single responsibility: find per-SKU value differences between the old and new flat tables.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..adapters.connection import QueryExecutionError, QueryExecutor
from ..utils.logger import get_logger
from ..utils.normalizers import is_safe_identifier, normalize_column_name, qident
from .models import (
    ColumnCategory,
    ColumnMapping,
    EntityKey,
    MismatchRecord,
    SchemaSnapshot,
)


logger = get_logger()


class ComparisonColumnError(Exception):
    """Exception raised when one column pair cannot be compared."""
    pass


@dataclass
class ComparisonOutcome:
    """Records produced by one comparator run."""

    category: ColumnCategory
    records: List[MismatchRecord] = field(default_factory=list)
    compared: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def mismatched_columns(self) -> List[str]:
        seen = []
        for record in self.records:
            if record.column_name not in seen:
                seen.append(record.column_name)
        return seen


NUMERIC_TYPES = {
    "TINYINT", "SMALLINT", "INTEGER", "BIGINT", "HUGEINT",
    "UTINYINT", "USMALLINT", "UINTEGER", "UBIGINT", "UHUGEINT",
    "FLOAT", "REAL", "DOUBLE", "DECIMAL", "NUMERIC",
}
TEXT_TYPES = {"VARCHAR", "CHAR", "BPCHAR", "TEXT", "STRING"}


def type_family(data_type: Optional[str]) -> Optional[str]:
    """Coarse type class of a catalog type name: numeric, text, or the base name."""
    if not data_type:
        return None
    base = data_type.upper().split("(")[0].strip()
    if base in NUMERIC_TYPES:
        return "numeric"
    if base in TEXT_TYPES:
        return "text"
    return base


def needs_text_comparison(old_type: Optional[str], new_type: Optional[str]) -> bool:
    """Whether a column pair must be compared as VARCHAR."""
    old_family, new_family = type_family(old_type), type_family(new_type)
    if old_family is None or new_family is None:
        return False
    return old_family != new_family


def build_mismatch_sql(old_table: str, new_table: str, entity_key: str,
                       old_column: str, new_column: str, as_text: bool = False) -> str:
    """
    Build the comparison query for one column pair.

    Rows are returned where the values differ or exactly one side is NULL;
    two NULLs are not a mismatch. Both sides need a non-NULL entity key.
    With as_text both sides are compared as VARCHAR, so values that do not
    convert between the column types still show up as mismatches. The
    reported values are always the stored ones.
    Every identifier must already be allow-listed by the caller.
    """
    key = qident(entity_key)
    old_value = f"o.{qident(old_column)}"
    new_value = f"n.{qident(new_column)}"
    if as_text:
        old_col, new_col = f"CAST({old_value} AS VARCHAR)", f"CAST({new_value} AS VARCHAR)"
    else:
        old_col, new_col = old_value, new_value

    return f"""
        SELECT
            o.{key} AS entity_key,
            {old_value} AS old_value,
            {new_value} AS new_value
        FROM {qident(old_table)} o
        LEFT JOIN {qident(new_table)} n ON o.{key} = n.{key}
        WHERE ({old_col} != {new_col}
            OR ({old_col} IS NULL AND {new_col} IS NOT NULL)
            OR ({old_col} IS NOT NULL AND {new_col} IS NULL))
          AND o.{key} IS NOT NULL
          AND n.{key} IS NOT NULL
        ORDER BY o.{key}
    """


class ColumnComparator:
    """
    Compare mapped or same-named columns of the old and new SKU tables.
    """

    def __init__(self, executor: QueryExecutor, old_table: str, new_table: str,
                 entity_key: str = "sku_code", tenant: str = None):
        """
        Initialize comparator.

        Args:
            executor: Query executor bound to one tenant connection
            old_table: Legacy flat table name
            new_table: New flat table name
            entity_key: Column correlating rows between the tables
            tenant: Tenant name used in log context
        """
        self.executor = executor
        self.old_table = old_table
        self.new_table = new_table
        self.entity_key = entity_key
        self.tenant = tenant

    def compare_mappings(self, mappings: Sequence[ColumnMapping],
                         category: ColumnCategory,
                         old_schema: SchemaSnapshot,
                         new_schema: SchemaSnapshot) -> ComparisonOutcome:
        """
        Compare every validated mapping.

        The display column name of each record is "old -> new".
        """
        outcome = ComparisonOutcome(category=category)
        logger.info("comparator.mappings.start", tenant=self.tenant,
                    category=category.value, mappings=len(mappings))

        for mapping in mappings:
            self._compare_pair(outcome, mapping.old_column, mapping.new_column,
                               mapping.label, old_schema, new_schema)

        self._log_outcome(outcome)
        return outcome

    def compare_columns(self, columns: Sequence[str],
                        old_schema: SchemaSnapshot,
                        new_schema: SchemaSnapshot) -> ComparisonOutcome:
        """Compare columns that share one name in both tables."""
        outcome = ComparisonOutcome(category=ColumnCategory.COMMON)
        logger.info("comparator.common.start", tenant=self.tenant, columns=len(columns))

        for column in columns:
            self._compare_pair(outcome, column, column, column, old_schema, new_schema)

        self._log_outcome(outcome)
        return outcome

    def _compare_pair(self, outcome: ComparisonOutcome, old_column: str,
                      new_column: str, label: str,
                      old_schema: SchemaSnapshot, new_schema: SchemaSnapshot):
        try:
            records = self.compare_pair(old_column, new_column, label,
                                        outcome.category, old_schema, new_schema)
        except (ComparisonColumnError, QueryExecutionError) as e:
            logger.warning("comparator.column_failed", tenant=self.tenant,
                           category=outcome.category.value,
                           old_table=self.old_table, new_table=self.new_table,
                           column=label, error=str(e))
            outcome.failed.append(label)
            return

        outcome.compared.append(label)
        if records:
            logger.info("comparator.column_mismatches", tenant=self.tenant,
                        column=label, mismatches=len(records))
        outcome.records.extend(records)

    def compare_pair(self, old_column: str, new_column: str, label: str,
                     category: ColumnCategory,
                     old_schema: SchemaSnapshot,
                     new_schema: SchemaSnapshot) -> List[MismatchRecord]:
        """
        Compare one column pair.

        Raises:
            ComparisonColumnError: If an identifier is not in the introspected schema
            QueryExecutionError: If the comparison query fails
        """
        old_name = self._allowed(old_column, old_schema)
        new_name = self._allowed(new_column, new_schema)
        key = normalize_column_name(self.entity_key)
        if not old_schema.has(key) or not new_schema.has(key):
            raise ComparisonColumnError(
                f"Entity key '{self.entity_key}' missing from "
                f"{old_schema.table_name} or {new_schema.table_name}"
            )

        try:
            sql = build_mismatch_sql(
                self.old_table, self.new_table, key, old_name, new_name,
                as_text=needs_text_comparison(old_schema.type_of(old_name),
                                              new_schema.type_of(new_name)),
            )
        except ValueError as e:
            raise ComparisonColumnError(str(e)) from e
        rows = self.executor.execute(sql)

        return [
            MismatchRecord(
                entity_key=EntityKey(sku_code=row["entity_key"]),
                column_name=label,
                column_category=category,
                old_value=row["old_value"],
                new_value=row["new_value"],
            )
            for row in rows
        ]

    def _allowed(self, column: str, schema: SchemaSnapshot) -> str:
        name = normalize_column_name(column)
        if not name:
            raise ComparisonColumnError(f"Empty column name for table {schema.table_name}")
        if not schema.has(name):
            raise ComparisonColumnError(
                f"Column '{column}' not found in table {schema.table_name}"
            )
        if not is_safe_identifier(name):
            raise ComparisonColumnError(
                f"Column '{column}' is not a plain identifier"
            )
        return name

    def _log_outcome(self, outcome: ComparisonOutcome):
        logger.info("comparator.complete", tenant=self.tenant,
                    category=outcome.category.value,
                    compared=len(outcome.compared),
                    failed=len(outcome.failed),
                    mismatched_columns=len(outcome.mismatched_columns),
                    mismatches=len(outcome.records))
