"""
Run progress monitoring.
Single responsibility: show tenant progress and the final run summary in the terminal.
"""

from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from ..core.aggregator import TenantSummary
from ..utils.logger import get_logger


logger = get_logger()


class ProgressMonitor:
    """
    Plain monitor used when rich output is disabled.
    """

    def start_run(self, tenants: int):
        logger.info("progress.run.start", tenants=tenants)

    def start_tenant(self, tenant: str):
        pass

    def advance(self, tenant: str, step: str):
        pass

    def finish_tenant(self, tenant: str, ok: bool):
        pass

    def stop(self):
        pass

    def show_run_summary(self, summaries: Iterable[TenantSummary]):
        logger.table([_summary_row(summary) for summary in summaries],
                     caption="Verification summary")


class RichProgressMonitor(ProgressMonitor):
    """
    Tenant progress bar plus a step description using Rich.
    """

    def __init__(self, console: Optional[Console] = None):
        """
        Initialize Rich progress monitor.

        Args:
            console: Console to draw on (defaults to stderr)
        """
        self.console = console or Console(stderr=True)
        self.progress: Optional[Progress] = None
        self.task_id = None

    def start_run(self, tenants: int):
        self.console.print(Panel(Text("SKU Migration Verification", justify="center",
                                      style="bold cyan"),
                                 box=box.DOUBLE, style="cyan"))
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.progress.start()
        self.task_id = self.progress.add_task("Tenants", total=tenants)

    def start_tenant(self, tenant: str):
        if self.progress is not None:
            self.progress.update(self.task_id, description=f"{tenant}: connecting")

    def advance(self, tenant: str, step: str):
        if self.progress is not None:
            self.progress.update(self.task_id, description=f"{tenant}: {step}")

    def finish_tenant(self, tenant: str, ok: bool):
        if self.progress is not None:
            mark = "done" if ok else "failed"
            self.progress.update(self.task_id, advance=1, description=f"{tenant}: {mark}")

    def stop(self):
        if self.progress is not None:
            self.progress.stop()
            self.progress = None

    def show_run_summary(self, summaries: Iterable[TenantSummary]):
        table = Table(title="Verification Summary", box=box.ROUNDED)
        table.add_column("Tenant", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Missing Columns (Old/New)")
        table.add_column("SKU Mismatches (Old/New)")
        table.add_column("Value Mismatches", style="magenta")
        table.add_column("Price Mismatches", style="magenta")

        for summary in summaries:
            row = _summary_row(summary)
            style = {"clean": "green", "mismatches": "yellow", "error": "red"}[row["status"]]
            table.add_row(row["tenant"], Text(row["status"], style=style),
                          row["missing_columns"], row["missing_skus"],
                          str(row["value_mismatches"]), str(row["price_mismatches"]))

        self.console.print()
        self.console.print(table)
        self.console.print()


def _summary_row(summary: TenantSummary) -> dict:
    if summary.error:
        status = "error"
    elif summary.is_clean:
        status = "clean"
    else:
        status = "mismatches"
    return {
        "tenant": summary.tenant,
        "status": status,
        "missing_columns": f"{summary.missing_columns_old} / {summary.missing_columns_new}",
        "missing_skus": f"{summary.skus_missing_in_new} / {summary.skus_missing_in_old}",
        "value_mismatches": summary.total_value_mismatches,
        "price_mismatches": "skipped" if summary.prices_skipped else summary.price_mismatches,
    }


def get_progress_monitor(use_rich: bool = True) -> ProgressMonitor:
    """
    Get the progress monitor for this run.

    Args:
        use_rich: Draw a live progress bar

    Returns:
        Progress monitor instance
    """
    return RichProgressMonitor() if use_rich else ProgressMonitor()
