"""Report renderers."""

from .html_report import HtmlReportGenerator
from .excel_report import export_workbook, write_summary_json

__all__ = [
    "HtmlReportGenerator",
    "export_workbook",
    "write_summary_json",
]
