"""
HTML report generation.
Single responsibility: render tenant results as static HTML pages plus an index.
"""

import html
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from ..core.aggregator import (
    TenantSummary,
    build_summary,
    group_by_entity,
    missing_entity_rows,
    price_mismatch_rows,
)
from ..core.models import ColumnCategory, MissingColumnReport, TenantVerificationResult
from ..utils.logger import get_logger
from ..utils.normalizers import display_value


logger = get_logger()

BOOTSTRAP_CSS = "https://cdn.jsdelivr.net/npm/bootstrap@5.1.3/dist/css/bootstrap.min.css"

BADGE_CLASSES = {
    ColumnCategory.ATTRIBUTE: "bg-primary",
    ColumnCategory.CATEGORY: "bg-warning",
    ColumnCategory.COMMON: "bg-secondary",
    ColumnCategory.PRICE: "bg-info",
}

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <link href="{css}" rel="stylesheet">
  <style>
    body {{ padding: 20px; }}
    .section {{ margin-bottom: 30px; }}
    .table {{ margin-top: 10px; }}
    .summary-card {{ margin-bottom: 20px; }}
    .badge {{ font-size: 0.9em; }}
    td.text-danger {{ color: #dc3545 !important; }}
    td.text-success {{ color: #198754 !important; }}
    em {{ color: #6c757d; }}
  </style>
</head>
<body>
  <div class="container">
    <h1 class="mb-4">{title}</h1>
    <p class="text-muted">Generated on: {generated}</p>
{body}
  </div>
</body>
</html>
"""


def records_to_html(records: List[Dict[str, Any]], empty: str = "No data available") -> str:
    """Render a list of flat records as a Bootstrap table."""
    if not records:
        return f"<p>{html.escape(empty)}</p>"
    frame = pd.DataFrame.from_records(
        [{key: display_value(value) for key, value in record.items()} for record in records]
    ).fillna("null")
    return frame.to_html(index=False, escape=True, border=0,
                         classes="table table-striped table-sm")


def grouped_mismatches_html(result: TenantVerificationResult) -> str:
    """
    Value mismatch table grouped by SKU.

    The SKU cell spans all rows of its group. Old values are red, new values
    green, and missing values show as an italic null.
    """
    grouped = group_by_entity(result)
    if not grouped:
        return "<p>No mismatches found</p>"

    def value_cell(value: Any, css: str) -> str:
        if value is None:
            return f'<td class="{css}"><em>null</em></td>'
        return f'<td class="{css}">{html.escape(display_value(value))}</td>'

    rows = []
    for key, differences in grouped.items():
        for index, difference in enumerate(differences):
            cells = []
            if index == 0:
                cells.append(f'<td rowspan="{len(differences)}">{html.escape(str(key))}</td>')
            badge = BADGE_CLASSES.get(difference.column_category, "bg-secondary")
            cells.append(f"<td>{html.escape(difference.column_name)}</td>")
            cells.append(f'<td><span class="badge {badge}">'
                         f"{difference.column_category.label}</span></td>")
            cells.append(value_cell(difference.old_value, "text-danger"))
            cells.append(value_cell(difference.new_value, "text-success"))
            rows.append("<tr>" + "".join(cells) + "</tr>")

    return (
        '<table class="table table-striped table-bordered">\n'
        "<thead><tr><th>SKU Code</th><th>Column Name</th><th>Column Type</th>"
        "<th>Old Value</th><th>New Value</th></tr></thead>\n"
        "<tbody>\n" + "\n".join(rows) + "\n</tbody>\n</table>"
    )


class HtmlReportGenerator:
    """
    Write one HTML page per tenant and an index page into a timestamped directory.
    """

    def __init__(self, output_dir: Path, old_table: str = "vendor_sku_flat_table",
                 new_table: str = "im_sku_flat_table", timestamp: Optional[str] = None):
        """
        Initialize generator.

        Args:
            output_dir: Root reports directory
            old_table: Legacy SKU table name shown in section headings
            new_table: New SKU table name shown in section headings
            timestamp: Run directory name (defaults to the current time)
        """
        self.timestamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_dir = Path(output_dir) / self.timestamp
        self.old_table = old_table
        self.new_table = new_table
        self.summaries: Dict[str, TenantSummary] = {}

    def initialize(self) -> Path:
        self.run_dir.mkdir(parents=True, exist_ok=True)
        return self.run_dir

    def generate_tenant_report(self, tenant: str, result: TenantVerificationResult) -> Path:
        """
        Render one tenant's report.

        Returns:
            Path of the written page
        """
        self.initialize()
        summary = build_summary(tenant, result)
        self.summaries[tenant] = summary

        sections = [self._summary_section(summary)]
        if result.error:
            sections.append(
                '<div class="alert alert-danger"><strong>Verification failed:</strong> '
                f"{html.escape(result.error)}</div>")

        for title, report in (("Attribute", result.missing_attribute_columns),
                              ("Category", result.missing_category_columns),
                              ("Common", result.missing_common_columns),
                              ("Price", result.missing_price_columns)):
            sections.append(self._missing_columns_section(title, report))

        existence = result.sku_existence
        if not existence.is_empty:
            parts = ['<div class="section">', "<h2>SKU Mismatches</h2>"]
            if existence.missing_in_new:
                parts.append("<h4>SKUs present in old table but missing in new table</h4>")
                parts.append(records_to_html(missing_entity_rows(existence.missing_in_new)))
            if existence.missing_in_old:
                parts.append("<h4>SKUs present in new table but missing in old table</h4>")
                parts.append(records_to_html(missing_entity_rows(existence.missing_in_old)))
            parts.append("</div>")
            sections.append("\n".join(parts))

        if result.value_mismatches():
            sections.append(
                '<div class="section">\n<h2>Value Mismatches</h2>\n'
                '<div class="alert alert-info"><strong>Note:</strong> Values are color-coded: '
                '<span class="text-danger">red for old values</span> and '
                '<span class="text-success">green for new values</span>. '
                "<em>null</em> indicates missing values.</div>\n"
                + grouped_mismatches_html(result) + "\n</div>")

        sections.append(self._prices_section(result))

        page = PAGE_TEMPLATE.format(
            title=html.escape(f"Verification Report - {tenant}"),
            css=BOOTSTRAP_CSS,
            generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            body="\n".join(section for section in sections if section),
        )
        path = self.run_dir / f"{safe_filename(tenant)}.html"
        path.write_text(page, encoding="utf-8")
        logger.info("report.html.tenant_written", tenant=tenant, file=str(path))
        return path

    def generate_index_page(self, summaries: Optional[Iterable[TenantSummary]] = None) -> Path:
        """Render the index page linking every tenant report."""
        self.initialize()
        summaries = list(summaries) if summaries is not None else list(self.summaries.values())

        rows = []
        for summary in summaries:
            status = ("error" if summary.error else "clean" if summary.is_clean else "mismatches")
            rows.append({
                "Database": summary.tenant,
                "Status": status,
                "Missing Columns (Old/New)":
                    f"{summary.missing_columns_old} / {summary.missing_columns_new}",
                "SKU Mismatches (Old/New)":
                    f"{summary.skus_missing_in_new} / {summary.skus_missing_in_old}",
                "Value Mismatches": summary.total_value_mismatches,
                "Price Mismatches": ("skipped" if summary.prices_skipped
                                     else summary.price_mismatches),
                "Report": f"{safe_filename(summary.tenant)}.html",
            })

        if rows:
            table = records_to_html(rows)
            # Link column is rendered after escaping
            for row in rows:
                target = html.escape(row["Report"])
                table = table.replace(
                    f"<td>{target}</td>",
                    f'<td><a href="./{target}" class="btn btn-primary btn-sm">View Report</a></td>',
                    1,
                )
        else:
            table = "<p>No tenants verified</p>"

        page = PAGE_TEMPLATE.format(
            title="Verification Reports Summary",
            css=BOOTSTRAP_CSS,
            generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            body=table,
        )
        path = self.run_dir / "index.html"
        path.write_text(page, encoding="utf-8")
        logger.info("report.html.index_written", file=str(path), tenants=len(rows))
        return path

    def _summary_section(self, summary: TenantSummary) -> str:
        def side_line(side: str) -> str:
            return (
                f"{getattr(summary.missing_attribute_columns, side)} attribute(s), "
                f"{getattr(summary.missing_category_columns, side)} category(ies), "
                f"{getattr(summary.missing_common_columns, side)} common column(s)"
            )

        if summary.prices_skipped:
            price_line = "Price comparison skipped"
        elif summary.price_strategy is None:
            price_line = "Price comparison not run"
        else:
            price_line = (f"{summary.price_mismatches} price mismatch(es), "
                          f"{summary.prices_missing_in_new} missing in new, "
                          f"{summary.prices_missing_in_old} missing in old")

        return f"""
    <div class="section">
      <h2>Summary</h2>
      <div class="row">
        <div class="col-md-6">
          <div class="card summary-card"><div class="card-body">
            <h5 class="card-title">Missing Columns</h5>
            <ul class="list-group list-group-flush">
              <li class="list-group-item">Old Table: {side_line("old_table")}</li>
              <li class="list-group-item">New Table: {side_line("new_table")}</li>
            </ul>
          </div></div>
        </div>
        <div class="col-md-6">
          <div class="card summary-card"><div class="card-body">
            <h5 class="card-title">Mismatches</h5>
            <ul class="list-group list-group-flush">
              <li class="list-group-item">SKUs missing in new table: {summary.skus_missing_in_new}</li>
              <li class="list-group-item">SKUs missing in old table: {summary.skus_missing_in_old}</li>
              <li class="list-group-item">Total value mismatches: {summary.total_value_mismatches}</li>
              <li class="list-group-item">{html.escape(price_line)}</li>
            </ul>
          </div></div>
        </div>
      </div>
    </div>"""

    def _missing_columns_section(self, title: str, report: MissingColumnReport) -> str:
        if report.is_empty:
            return ""
        parts = ['<div class="section">', f"<h2>Missing {title} Columns</h2>"]
        if report.old_table:
            parts.append(f"<h4>Old Table ({html.escape(self.old_table)})</h4>")
            parts.append(records_to_html([ref.to_dict() for ref in report.old_table]))
        if report.new_table:
            parts.append(f"<h4>New Table ({html.escape(self.new_table)})</h4>")
            parts.append(records_to_html([ref.to_dict() for ref in report.new_table]))
        parts.append("</div>")
        return "\n".join(parts)

    def _prices_section(self, result: TenantVerificationResult) -> str:
        prices = result.prices
        if prices is None:
            return ""
        parts = ['<div class="section">', "<h2>Price Comparison</h2>",
                 f'<p class="text-muted">Strategy: {html.escape(prices.strategy)}</p>']
        if prices.skipped:
            parts.append('<div class="alert alert-warning"><strong>Skipped:</strong> '
                         f"{html.escape(prices.skip_reason or '')}</div>")
        elif prices.is_clean:
            parts.append("<p>All prices match</p>")
        else:
            if prices.mismatches:
                parts.append("<h4>Price mismatches</h4>")
                parts.append(records_to_html(price_mismatch_rows(prices.mismatches)))
            if prices.missing_in_new:
                parts.append("<h4>Prices missing in new table</h4>")
                parts.append(records_to_html(missing_entity_rows(prices.missing_in_new)))
            if prices.missing_in_old:
                parts.append("<h4>Prices missing in old table</h4>")
                parts.append(records_to_html(missing_entity_rows(prices.missing_in_old)))
        parts.append("</div>")
        return "\n".join(parts)


def safe_filename(name: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in name) or "tenant"
