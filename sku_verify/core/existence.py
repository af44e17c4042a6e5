"""
SKU existence check.
Single responsibility: find SKU codes present in only one of the flat tables.
"""

from typing import List

from ..adapters.connection import QueryExecutor
from ..utils.logger import get_logger
from ..utils.normalizers import qident
from .models import EntityKey, MissingEntityRecord, SchemaSnapshot, Side, SkuExistenceReport


logger = get_logger()

DISPLAY_COLUMN = "name"


def _only_in_sql(present_table: str, other_table: str, entity_key: str,
                 include_name: bool) -> str:
    key = qident(entity_key)
    name_select = f", MIN(p.{qident(DISPLAY_COLUMN)}) AS name" if include_name else ""
    return f"""
        SELECT p.{key} AS entity_key{name_select}
        FROM {qident(present_table)} p
        WHERE p.{key} IS NOT NULL
          AND NOT EXISTS (
            SELECT 1 FROM {qident(other_table)} x WHERE x.{key} = p.{key}
          )
        GROUP BY p.{key}
        ORDER BY p.{key}
    """


def _fetch_only_in(executor: QueryExecutor, present: SchemaSnapshot,
                   other: SchemaSnapshot, entity_key: str,
                   missing_side: Side) -> List[MissingEntityRecord]:
    include_name = present.has(DISPLAY_COLUMN)
    rows = executor.execute(_only_in_sql(present.table_name, other.table_name,
                                         entity_key, include_name))
    return [
        MissingEntityRecord(
            entity_key=EntityKey(sku_code=row["entity_key"]),
            side_missing=missing_side,
            available_values={"name": row["name"]} if include_name else {},
        )
        for row in rows
    ]


def check_sku_existence(executor: QueryExecutor,
                        old_schema: SchemaSnapshot,
                        new_schema: SchemaSnapshot,
                        entity_key: str = "sku_code",
                        tenant: str = None) -> SkuExistenceReport:
    """
    Set difference of distinct SKU codes in both directions.

    Independent of any mapping. NULL codes are not SKUs and never reported.

    Raises:
        QueryExecutionError: If either query fails
    """
    report = SkuExistenceReport(
        missing_in_new=_fetch_only_in(executor, old_schema, new_schema,
                                      entity_key, Side.NEW),
        missing_in_old=_fetch_only_in(executor, new_schema, old_schema,
                                      entity_key, Side.OLD),
    )

    if report.is_empty:
        logger.success("sku_existence.all_match", tenant=tenant)
    else:
        logger.warning("sku_existence.mismatches", tenant=tenant,
                       missing_in_new=len(report.missing_in_new),
                       missing_in_old=len(report.missing_in_old))
    return report
