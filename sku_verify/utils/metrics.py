"""
Performance metrics collection.
Single responsibility: time tenant runs and price strategies, and track process memory.
"""

import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import psutil

from .logger import get_logger


logger = get_logger()


@dataclass
class OperationMetrics:
    """Timing and memory of one tracked operation."""

    name: str
    start_time: float
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    rows_processed: int = 0
    memory_mb_start: float = 0
    memory_mb_end: float = 0
    success: bool = True
    error: Optional[str] = None

    @property
    def memory_mb_growth(self) -> float:
        return self.memory_mb_end - self.memory_mb_start


@dataclass
class RunMetrics:
    """Totals for one verification run."""

    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    operations: List[OperationMetrics] = field(default_factory=list)
    tenants_verified: int = 0
    tenants_failed: int = 0
    errors_encountered: int = 0
    memory_mb_peak: float = 0

    @property
    def total_duration_seconds(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()


class MetricsCollector:
    """
    Collect timings for tenants and strategies.

    Operations are keyed by name, e.g. "tenant.acme" or "prices.outer_join".
    """

    def __init__(self):
        self.run_metrics = RunMetrics()
        self.current_operations: Dict[str, OperationMetrics] = {}
        self.process = psutil.Process(os.getpid())

    def start_operation(self, name: str) -> None:
        memory_mb = self._get_memory_usage()
        self.current_operations[name] = OperationMetrics(
            name=name,
            start_time=time.perf_counter(),
            memory_mb_start=memory_mb
        )
        self._track_peak(memory_mb)
        logger.debug("metrics.operation.start", operation=name,
                     memory_mb=round(memory_mb, 2))

    def end_operation(self, name: str, rows_processed: int = 0,
                      success: bool = True,
                      error: Optional[str] = None) -> Optional[OperationMetrics]:
        """
        Stop timing an operation.

        Args:
            name: Operation name given to start_operation
            rows_processed: Rows or findings the operation produced
            success: Whether the operation succeeded
            error: Error message if it failed

        Returns:
            The completed operation, or None if it was never started
        """
        operation = self.current_operations.pop(name, None)
        if operation is None:
            logger.warning("metrics.operation.not_found", operation=name)
            return None

        operation.end_time = time.perf_counter()
        operation.duration_seconds = operation.end_time - operation.start_time
        operation.rows_processed = rows_processed
        operation.memory_mb_end = self._get_memory_usage()
        operation.success = success
        operation.error = error
        self._track_peak(operation.memory_mb_end)

        self.run_metrics.operations.append(operation)
        if not success:
            self.run_metrics.errors_encountered += 1

        logger.debug("metrics.operation.end", operation=name,
                     duration_s=round(operation.duration_seconds, 4),
                     rows=rows_processed, success=success)
        return operation

    def record_tenant(self, succeeded: bool) -> None:
        if succeeded:
            self.run_metrics.tenants_verified += 1
        else:
            self.run_metrics.tenants_failed += 1

    def get_operation(self, name: str) -> Optional[OperationMetrics]:
        """Latest completed operation with this name."""
        for operation in reversed(self.run_metrics.operations):
            if operation.name == name:
                return operation
        return None

    def slowest(self, prefix: str = "", limit: int = 3) -> List[OperationMetrics]:
        matching = [op for op in self.run_metrics.operations if op.name.startswith(prefix)]
        return sorted(matching, key=lambda op: op.duration_seconds or 0, reverse=True)[:limit]

    def finalize(self) -> Dict[str, Any]:
        """
        Close the run and log its totals.

        Returns:
            Run totals as a dictionary
        """
        metrics = self.run_metrics
        metrics.end_time = datetime.now()
        totals = {
            "duration_s": round(metrics.total_duration_seconds, 2),
            "tenants_verified": metrics.tenants_verified,
            "tenants_failed": metrics.tenants_failed,
            "errors": metrics.errors_encountered,
            "memory_mb_peak": round(metrics.memory_mb_peak, 2),
            "slowest_tenants": [
                {"tenant": op.name[len("tenant."):],
                 "duration_s": round(op.duration_seconds or 0, 2)}
                for op in self.slowest("tenant.")
            ],
        }
        logger.info("metrics.run.finalized", **totals)
        return totals

    def _track_peak(self, memory_mb: float):
        self.run_metrics.memory_mb_peak = max(self.run_metrics.memory_mb_peak, memory_mb)

    def _get_memory_usage(self) -> float:
        """Resident memory of this process in MB."""
        return self.process.memory_info().rss / (1024 * 1024)
