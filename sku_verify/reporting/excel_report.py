"""
Excel and JSON export.
Single responsibility: write tenant results to a workbook and run summaries to JSON.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pandas as pd

from ..core.aggregator import (
    TenantSummary,
    build_summary,
    group_by_entity,
    missing_entity_rows,
    price_mismatch_rows,
)
from ..core.models import Side, TenantVerificationResult
from ..utils.logger import get_logger
from ..utils.normalizers import display_value


logger = get_logger()


def _summary_frame(summary: TenantSummary) -> pd.DataFrame:
    rows = [
        ["tenant", summary.tenant],
        ["missing_columns_old", summary.missing_columns_old],
        ["missing_columns_new", summary.missing_columns_new],
        ["skus_missing_in_new", summary.skus_missing_in_new],
        ["skus_missing_in_old", summary.skus_missing_in_old],
    ]
    for category, count in summary.mismatched_columns.items():
        rows.append([f"{category}_mismatched_columns", count])
    for category, count in summary.mismatch_records.items():
        rows.append([f"{category}_mismatch_records", count])
    rows.extend([
        ["skus_with_mismatches", summary.skus_with_mismatches],
        ["price_strategy", summary.price_strategy],
        ["prices_skipped", summary.prices_skipped],
        ["price_mismatches", summary.price_mismatches],
        ["prices_missing_in_new", summary.prices_missing_in_new],
        ["prices_missing_in_old", summary.prices_missing_in_old],
        ["error", summary.error],
        ["timestamp_utc", datetime.now(timezone.utc).isoformat()],
    ])
    return pd.DataFrame(rows, columns=["Metric", "Value"])


def _missing_columns_frame(result: TenantVerificationResult) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for category, report in (("attribute", result.missing_attribute_columns),
                             ("category", result.missing_category_columns),
                             ("common", result.missing_common_columns),
                             ("price", result.missing_price_columns)):
        for side, refs in ((Side.OLD, report.old_table), (Side.NEW, report.new_table)):
            for ref in refs:
                rows.append({"category": category, "table": side.value,
                             "column": ref.column, "mapping": ref.mapping})
    return pd.DataFrame(rows, columns=["category", "table", "column", "mapping"])


def _missing_skus_frame(result: TenantVerificationResult) -> pd.DataFrame:
    rows = []
    for record in (*result.sku_existence.missing_in_new, *result.sku_existence.missing_in_old):
        rows.append({"sku_code": record.entity_key.sku_code,
                     "missing_in": record.side_missing.value,
                     "name": display_value(record.available_values.get("name"))})
    return pd.DataFrame(rows, columns=["sku_code", "missing_in", "name"])


def _value_mismatches_frame(result: TenantVerificationResult) -> pd.DataFrame:
    rows = []
    for key, differences in group_by_entity(result).items():
        for difference in differences:
            rows.append({"sku_code": key.sku_code, **difference.to_display()})
    return pd.DataFrame(rows, columns=["sku_code", "column_name", "column_type",
                                       "old_value", "new_value"])


def _missing_prices_frame(result: TenantVerificationResult) -> pd.DataFrame:
    columns = ["sku_code", "price_book_id", "missing_in", "mrp", "rsp", "spp"]
    if result.prices is None:
        return pd.DataFrame(columns=columns)
    rows = []
    for side, records in ((Side.NEW, result.prices.missing_in_new),
                          (Side.OLD, result.prices.missing_in_old)):
        for row in missing_entity_rows(records):
            row.setdefault("price_book_id", None)
            row["missing_in"] = side.value
            rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def export_workbook(path: Path, tenant: str, result: TenantVerificationResult) -> Path:
    """
    Write a tenant result as an Excel workbook.

    Sheets: Summary, Missing Columns, Missing SKUs, Value Mismatches,
    Price Mismatches and Missing Prices. Each data sheet has a frozen header
    row and an autofilter.

    Args:
        path: Workbook path
        tenant: Tenant name
        result: Finalized tenant result

    Returns:
        Path of the written workbook
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    price_rows = price_mismatch_rows(result.prices.mismatches) if result.prices else []
    sheets = {
        "Summary": _summary_frame(build_summary(tenant, result)),
        "Missing Columns": _missing_columns_frame(result),
        "Missing SKUs": _missing_skus_frame(result),
        "Value Mismatches": _value_mismatches_frame(result),
        "Price Mismatches": pd.DataFrame(
            price_rows, columns=["sku_code", "price_book_id", "field", "old_value", "new_value"]),
        "Missing Prices": _missing_prices_frame(result),
    }

    with pd.ExcelWriter(path, engine="xlsxwriter") as writer:
        for sheet_name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
            worksheet = writer.sheets[sheet_name]
            nrows, ncols = frame.shape
            worksheet.freeze_panes(1, 0)
            worksheet.autofilter(0, 0, max(nrows, 1), max(ncols - 1, 0))

    logger.info("report.excel.written", tenant=tenant, file=str(path))
    return path


def write_summary_json(path: Path, summaries: Iterable[TenantSummary]) -> Path:
    """Write every tenant summary as one JSON document."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    summaries = list(summaries)
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "tenants": [summary.to_dict() for summary in summaries],
    }
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.info("report.summary_json.written", file=str(path), tenants=len(summaries))
    return path
