"""
Result aggregation.
Single responsibility: shape a tenant result into summary counts and per-SKU groups.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..utils.logger import StructuredLogger, get_logger
from ..utils.normalizers import display_value
from .models import (
    ColumnCategory,
    EntityKey,
    MismatchRecord,
    MissingColumnReport,
    MissingEntityRecord,
    TenantVerificationResult,
)


@dataclass
class GroupedDifference:
    """One row of the per-SKU mismatch view."""

    column_name: str
    column_category: ColumnCategory
    old_value: Any
    new_value: Any

    def to_display(self) -> Dict[str, str]:
        return {
            "column_name": self.column_name,
            "column_type": self.column_category.label,
            "old_value": display_value(self.old_value),
            "new_value": display_value(self.new_value),
        }


@dataclass
class SideCounts:
    old_table: int = 0
    new_table: int = 0

    @classmethod
    def of(cls, report: MissingColumnReport) -> "SideCounts":
        return cls(old_table=len(report.old_table), new_table=len(report.new_table))


@dataclass
class TenantSummary:
    """Counts only, for indexing many tenants."""

    tenant: str
    missing_attribute_columns: SideCounts = field(default_factory=SideCounts)
    missing_category_columns: SideCounts = field(default_factory=SideCounts)
    missing_common_columns: SideCounts = field(default_factory=SideCounts)
    missing_price_columns: SideCounts = field(default_factory=SideCounts)
    skus_missing_in_new: int = 0
    skus_missing_in_old: int = 0
    mismatched_columns: Dict[str, int] = field(default_factory=dict)
    mismatch_records: Dict[str, int] = field(default_factory=dict)
    skus_with_mismatches: int = 0
    price_mismatches: int = 0
    prices_missing_in_new: int = 0
    prices_missing_in_old: int = 0
    prices_skipped: bool = False
    price_strategy: Optional[str] = None
    error: Optional[str] = None

    @property
    def missing_columns_old(self) -> int:
        return (self.missing_attribute_columns.old_table
                + self.missing_category_columns.old_table
                + self.missing_common_columns.old_table)

    @property
    def missing_columns_new(self) -> int:
        return (self.missing_attribute_columns.new_table
                + self.missing_category_columns.new_table
                + self.missing_common_columns.new_table)

    @property
    def total_value_mismatches(self) -> int:
        return sum(self.mismatched_columns.values())

    @property
    def is_clean(self) -> bool:
        return (self.error is None
                and self.missing_columns_old == 0 and self.missing_columns_new == 0
                and self.skus_missing_in_new == 0 and self.skus_missing_in_old == 0
                and self.total_value_mismatches == 0
                and self.price_mismatches == 0
                and self.prices_missing_in_new == 0 and self.prices_missing_in_old == 0)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["missing_columns_old"] = self.missing_columns_old
        data["missing_columns_new"] = self.missing_columns_new
        data["total_value_mismatches"] = self.total_value_mismatches
        data["is_clean"] = self.is_clean
        return data


VALUE_CATEGORIES = (ColumnCategory.ATTRIBUTE, ColumnCategory.CATEGORY, ColumnCategory.COMMON)


def _distinct_columns(records: Iterable[MismatchRecord]) -> int:
    return len({record.column_name for record in records})


def build_summary(tenant: str, result: TenantVerificationResult) -> TenantSummary:
    """Summary counts for one tenant result."""
    summary = TenantSummary(
        tenant=tenant,
        missing_attribute_columns=SideCounts.of(result.missing_attribute_columns),
        missing_category_columns=SideCounts.of(result.missing_category_columns),
        missing_common_columns=SideCounts.of(result.missing_common_columns),
        missing_price_columns=SideCounts.of(result.missing_price_columns),
        skus_missing_in_new=len(result.sku_existence.missing_in_new),
        skus_missing_in_old=len(result.sku_existence.missing_in_old),
        error=result.error,
    )

    for category in VALUE_CATEGORIES:
        records = result.mismatches_for(category)
        summary.mismatched_columns[category.value] = _distinct_columns(records)
        summary.mismatch_records[category.value] = len(records)

    summary.skus_with_mismatches = len({r.entity_key for r in result.value_mismatches()})

    if result.prices is not None:
        summary.price_strategy = result.prices.strategy
        summary.prices_skipped = result.prices.skipped
        summary.price_mismatches = len(result.prices.mismatches)
        summary.prices_missing_in_new = len(result.prices.missing_in_new)
        summary.prices_missing_in_old = len(result.prices.missing_in_old)

    return summary


def group_records(records: Iterable[MismatchRecord]
                  ) -> Dict[EntityKey, List[GroupedDifference]]:
    """
    Group mismatch records by entity key.

    Keys appear in first-seen order and differences keep insertion order
    within a key.
    """
    grouped: Dict[EntityKey, List[GroupedDifference]] = {}
    for record in records:
        grouped.setdefault(record.entity_key, []).append(GroupedDifference(
            column_name=record.column_name,
            column_category=record.column_category,
            old_value=record.old_value,
            new_value=record.new_value,
        ))
    return grouped


def group_by_entity(result: TenantVerificationResult
                    ) -> Dict[EntityKey, List[GroupedDifference]]:
    """Per-SKU view over attribute, category and common mismatches."""
    return group_records(result.value_mismatches())


def missing_entity_rows(records: Iterable[MissingEntityRecord]) -> List[Dict[str, Any]]:
    """Flatten missing-entity records for tables."""
    rows = []
    for record in records:
        row: Dict[str, Any] = {"sku_code": record.entity_key.sku_code}
        if record.entity_key.price_book_id is not None:
            row["price_book_id"] = record.entity_key.price_book_id
        row.update({k: display_value(v) for k, v in record.available_values.items()})
        rows.append(row)
    return rows


def price_mismatch_rows(records: Iterable[MismatchRecord]) -> List[Dict[str, Any]]:
    return [
        {"sku_code": record.entity_key.sku_code,
         "price_book_id": record.entity_key.price_book_id,
         "field": record.field,
         "old_value": display_value(record.old_value),
         "new_value": display_value(record.new_value)}
        for record in records
    ]


def log_grouped_mismatches(result: TenantVerificationResult,
                           logger: Optional[StructuredLogger] = None) -> int:
    """
    Print one table per SKU with all of its value differences.

    Returns:
        Number of SKUs with differences
    """
    logger = logger or get_logger()
    grouped = group_by_entity(result)
    if not grouped:
        logger.success("result.values_match", tenant=result.tenant)
        return 0

    logger.error("result.value_mismatches", tenant=result.tenant, skus=len(grouped))
    for key, differences in grouped.items():
        logger.table([difference.to_display() for difference in differences],
                     caption=f"SKU Code: {key} ({len(differences)} differences)")
    return len(grouped)


def log_result(result: TenantVerificationResult,
               logger: Optional[StructuredLogger] = None):
    """Write the tenant's findings to the logging sink as tables."""
    logger = logger or get_logger()

    for title, report in (("attribute", result.missing_attribute_columns),
                          ("category", result.missing_category_columns),
                          ("common", result.missing_common_columns)):
        if report.old_table:
            logger.table([ref.to_dict() for ref in report.old_table],
                         caption=f"Missing {title} columns in old table")
        if report.new_table:
            logger.table([ref.to_dict() for ref in report.new_table],
                         caption=f"Missing {title} columns in new table")

    if result.sku_existence.missing_in_new:
        logger.table(missing_entity_rows(result.sku_existence.missing_in_new),
                     caption="SKUs present in old table but missing in new table")
    if result.sku_existence.missing_in_old:
        logger.table(missing_entity_rows(result.sku_existence.missing_in_old),
                     caption="SKUs present in new table but missing in old table")

    if result.succeeded:
        log_grouped_mismatches(result, logger)

    prices = result.prices
    if prices is not None and not prices.skipped:
        if prices.mismatches:
            logger.table(price_mismatch_rows(prices.mismatches), caption="Price mismatches")
        if prices.missing_in_new:
            logger.table(missing_entity_rows(prices.missing_in_new),
                         caption="Prices missing in new table")
        if prices.missing_in_old:
            logger.table(missing_entity_rows(prices.missing_in_old),
                         caption="Prices missing in old table")
