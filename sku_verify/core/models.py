"""
Verification data model.
Single responsibility: fixed-shape records shared by comparators, aggregator and renderers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from ..utils.normalizers import normalize_column_name


class ColumnCategory(str, Enum):
    """Comparison category a mismatch belongs to."""

    ATTRIBUTE = "attribute"
    CATEGORY = "category"
    COMMON = "common"
    PRICE = "price"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Side(str, Enum):
    """Table family side."""

    OLD = "old"
    NEW = "new"


@dataclass
class ColumnMapping:
    """Declared correspondence between a new-schema and an old-schema column."""

    new_column: str
    old_column: str

    @property
    def label(self) -> str:
        return f"{self.old_column} -> {self.new_column}"

    @property
    def is_complete(self) -> bool:
        return bool(self.new_column) and bool(self.old_column)


@dataclass(frozen=True)
class SchemaSnapshot:
    """Lower-cased column set of one table, taken once per tenant run."""

    table_name: str
    columns: FrozenSet[str] = frozenset()
    column_types: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False)

    def has(self, column: str) -> bool:
        return bool(column) and normalize_column_name(column) in self.columns

    def missing(self, required: Iterable[str]) -> List[str]:
        return [col for col in required if not self.has(col)]

    def type_of(self, column: str) -> Optional[str]:
        return self.column_types.get(normalize_column_name(column))

    def __len__(self) -> int:
        return len(self.columns)


@dataclass(frozen=True)
class ColumnRef:
    """A column that could not be resolved, with the mapping it came from."""

    column: str
    mapping: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.mapping is None:
            return {"column": self.column}
        return {"mapping": self.mapping, "missing_column": self.column}


@dataclass
class MissingColumnReport:
    """Unresolved columns per side."""

    old_table: List[ColumnRef] = field(default_factory=list)
    new_table: List[ColumnRef] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.old_table and not self.new_table

    def counts(self) -> Dict[str, int]:
        return {"old_table": len(self.old_table), "new_table": len(self.new_table)}


@dataclass(frozen=True)
class EntityKey:
    """Identity of an entity across both schemas."""

    sku_code: Any
    price_book_id: Any = None

    def as_tuple(self) -> Tuple[Any, Any]:
        return (self.sku_code, self.price_book_id)

    def __str__(self) -> str:
        if self.price_book_id is None:
            return str(self.sku_code)
        return f"{self.sku_code} / {self.price_book_id}"


@dataclass(frozen=True)
class MismatchRecord:
    """One differing value for one entity and one compared column."""

    entity_key: EntityKey
    column_name: str
    column_category: ColumnCategory
    old_value: Any = None
    new_value: Any = None

    @property
    def field(self) -> str:
        return self.column_name


@dataclass(frozen=True)
class MissingEntityRecord:
    """An entity present on exactly one side."""

    entity_key: EntityKey
    side_missing: Side
    available_values: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class SkuExistenceReport:
    missing_in_new: List[MissingEntityRecord] = field(default_factory=list)
    missing_in_old: List[MissingEntityRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.missing_in_new and not self.missing_in_old


@dataclass
class PriceComparisonResult:
    """Outcome of one price reconciliation strategy."""

    strategy: str
    mismatches: List[MismatchRecord] = field(default_factory=list)
    missing_in_new: List[MissingEntityRecord] = field(default_factory=list)
    missing_in_old: List[MissingEntityRecord] = field(default_factory=list)
    pairs_examined: Optional[int] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
    missing_columns: MissingColumnReport = field(default_factory=MissingColumnReport)

    def mismatch_keys(self) -> Set[Tuple[Any, Any]]:
        return {record.entity_key.as_tuple() for record in self.mismatches}

    def missing_keys(self, side: Side) -> Set[Tuple[Any, Any]]:
        records = self.missing_in_new if side is Side.NEW else self.missing_in_old
        return {record.entity_key.as_tuple() for record in records}

    @property
    def is_clean(self) -> bool:
        return not self.mismatches and not self.missing_in_new and not self.missing_in_old


class ResultFinalizedError(Exception):
    """Raised when a finalized tenant result is modified."""
    pass


@dataclass
class TenantVerificationResult:
    """
    Everything one tenant run produced.

    Created empty, filled step by step by the orchestrator, then finalized
    and handed to the renderers.
    """

    tenant: str
    missing_attribute_columns: MissingColumnReport = field(default_factory=MissingColumnReport)
    missing_category_columns: MissingColumnReport = field(default_factory=MissingColumnReport)
    missing_common_columns: MissingColumnReport = field(default_factory=MissingColumnReport)
    missing_price_columns: MissingColumnReport = field(default_factory=MissingColumnReport)
    sku_existence: SkuExistenceReport = field(default_factory=SkuExistenceReport)
    attribute_mismatches: List[MismatchRecord] = field(default_factory=list)
    category_mismatches: List[MismatchRecord] = field(default_factory=list)
    common_mismatches: List[MismatchRecord] = field(default_factory=list)
    prices: Optional[PriceComparisonResult] = None
    completed_steps: List[str] = field(default_factory=list)
    error: Optional[str] = None
    finalized: bool = False

    def _check_open(self):
        if self.finalized:
            raise ResultFinalizedError(f"Result for tenant '{self.tenant}' is finalized")

    def record_step(self, step: str):
        self._check_open()
        self.completed_steps.append(step)

    def record_mismatches(self, category: ColumnCategory,
                          records: Iterable[MismatchRecord]):
        self._check_open()
        if category is ColumnCategory.PRICE:
            raise ValueError("Price mismatches are recorded through record_prices")
        self.mismatches_for(category).extend(records)

    def record_missing_columns(self, category: ColumnCategory, report: MissingColumnReport):
        self._check_open()
        setattr(self, f"missing_{category.value}_columns", report)

    def record_sku_existence(self, report: SkuExistenceReport):
        self._check_open()
        self.sku_existence = report

    def record_prices(self, prices: PriceComparisonResult):
        self._check_open()
        self.prices = prices

    def record_error(self, error: str):
        self._check_open()
        self.error = error

    def mismatches_for(self, category: ColumnCategory) -> List[MismatchRecord]:
        if category is ColumnCategory.ATTRIBUTE:
            return self.attribute_mismatches
        if category is ColumnCategory.CATEGORY:
            return self.category_mismatches
        if category is ColumnCategory.COMMON:
            return self.common_mismatches
        return list(self.prices.mismatches) if self.prices else []

    def value_mismatches(self) -> List[MismatchRecord]:
        """Attribute, category and common mismatches, in that order."""
        return [*self.attribute_mismatches, *self.category_mismatches,
                *self.common_mismatches]

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def finalize(self) -> "TenantVerificationResult":
        self.attribute_mismatches = tuple(self.attribute_mismatches)
        self.category_mismatches = tuple(self.category_mismatches)
        self.common_mismatches = tuple(self.common_mismatches)
        self.completed_steps = tuple(self.completed_steps)
        self.finalized = True
        return self
