"""
Unit tests for the structured logger.
"""

import io
import json
from decimal import Decimal
from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from rich.console import Console

from sku_verify.utils.logger import StructuredLogger


def make_logger(log_file=None):
    buffer = io.StringIO()
    logger = StructuredLogger("test", log_file=log_file,
                              console=Console(file=buffer, width=160))
    return logger, buffer


class TestStructuredLogger:
    """Console lines, JSON file lines and tables."""

    def test_console_line_with_context(self):
        logger, buffer = make_logger()

        logger.warning("comparator.column_failed", column="attr_color", tenant="a")

        output = buffer.getvalue()
        assert "WARN" in output
        assert "comparator.column_failed" in output
        assert "column=attr_color" in output

    def test_json_lines_written_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger, _ = make_logger(log_file)

        logger.info("orchestrator.tenant.start", tenant="tenant_a")
        logger.success("prices.benchmark.strategies_agree", strategies=2)

        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert [e["level"] for e in entries] == ["INFO", "SUCCESS"]
        assert entries[0]["context"] == {"tenant": "tenant_a"}

    def test_table_renders_null_and_logs_rows(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger, buffer = make_logger(log_file)

        logger.table([{"sku_code": "A1", "mrp": Decimal("10.50")},
                      {"sku_code": "B2", "mrp": None}], caption="Price mismatches")

        output = buffer.getvalue()
        assert "Price mismatches" in output
        assert "null" in output
        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        table_entry = entries[-1]
        assert table_entry["level"] == "TABLE"
        assert table_entry["rows"][0] == {"sku_code": "A1", "mrp": "10.50"}

    def test_empty_table_prints_caption_only(self):
        logger, buffer = make_logger()

        logger.table([], caption="Nothing here")

        assert "Nothing here" in buffer.getvalue()

    def test_debug_only_on_console_when_verbose(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger, buffer = make_logger(log_file)

        logger.debug("executor.query", sql="SELECT 1")
        assert "executor.query" not in buffer.getvalue()

        logger.verbose = True
        logger.debug("executor.query", sql="SELECT 2")
        assert "SELECT 2" in buffer.getvalue()

        levels = [json.loads(line)["level"]
                  for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert levels == ["DEBUG", "DEBUG"]
