"""Core verification logic."""

from .models import (
    ColumnCategory,
    ColumnMapping,
    EntityKey,
    MismatchRecord,
    MissingColumnReport,
    MissingEntityRecord,
    PriceComparisonResult,
    SchemaSnapshot,
    Side,
    TenantVerificationResult,
)
from .introspector import SchemaIntrospector, SchemaLookupError
from .mapping import MappingFileError, load_mapping, resolve, resolve_common_columns
from .comparator import ColumnComparator, ComparisonColumnError
from .existence import check_sku_existence
from .prices import (
    NestedLookupStrategy,
    OuterJoinStrategy,
    PriceTables,
    ReconciliationStrategy,
    STRATEGIES,
    benchmark_strategies,
    compare_prices,
    get_strategy,
    verify_price_columns,
)
from .aggregator import TenantSummary, build_summary, group_by_entity, log_grouped_mismatches

__all__ = [
    "ColumnCategory",
    "ColumnMapping",
    "EntityKey",
    "MismatchRecord",
    "MissingColumnReport",
    "MissingEntityRecord",
    "PriceComparisonResult",
    "SchemaSnapshot",
    "Side",
    "TenantVerificationResult",
    "SchemaIntrospector",
    "SchemaLookupError",
    "MappingFileError",
    "load_mapping",
    "resolve",
    "resolve_common_columns",
    "ColumnComparator",
    "ComparisonColumnError",
    "check_sku_existence",
    "NestedLookupStrategy",
    "OuterJoinStrategy",
    "PriceTables",
    "ReconciliationStrategy",
    "STRATEGIES",
    "benchmark_strategies",
    "compare_prices",
    "get_strategy",
    "verify_price_columns",
    "TenantSummary",
    "build_summary",
    "group_by_entity",
    "log_grouped_mismatches",
]
