"""
Unit tests for progress monitors.
"""

import io
from pathlib import Path
import sys

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from rich.console import Console

from sku_verify.core.aggregator import build_summary
from sku_verify.core.models import TenantVerificationResult
from sku_verify.ui.progress import ProgressMonitor, RichProgressMonitor, get_progress_monitor


def summaries():
    clean = TenantVerificationResult(tenant="tenant_a").finalize()
    failed = TenantVerificationResult(tenant="ghost")
    failed.record_error("TenantConnectionError during connect: missing")
    return [build_summary("tenant_a", clean), build_summary("ghost", failed.finalize())]


class TestProgressMonitor:
    """Plain and rich monitors."""

    def test_factory(self):
        assert isinstance(get_progress_monitor(True), RichProgressMonitor)
        monitor = get_progress_monitor(False)
        assert type(monitor) is ProgressMonitor

    def test_rich_run_and_summary(self):
        buffer = io.StringIO()
        monitor = RichProgressMonitor(console=Console(file=buffer, width=140))

        monitor.start_run(2)
        monitor.start_tenant("tenant_a")
        monitor.advance("tenant_a", "compare_prices")
        monitor.finish_tenant("tenant_a", True)
        monitor.stop()
        monitor.show_run_summary(summaries())

        output = buffer.getvalue()
        assert "SKU Migration Verification" in output
        assert "Verification Summary" in output
        assert "tenant_a" in output
        assert "clean" in output
        assert "error" in output
        assert monitor.progress is None

    def test_calls_before_start_are_ignored(self):
        monitor = RichProgressMonitor(console=Console(file=io.StringIO()))

        monitor.advance("tenant_a", "connect")
        monitor.finish_tenant("tenant_a", False)
        monitor.stop()
