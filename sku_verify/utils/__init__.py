"""Utility functions and helpers."""

from .logger import get_logger, set_log_file, set_verbose, StructuredLogger
from .normalizers import (
    normalize_column_name,
    is_safe_identifier,
    qident,
    display_value
)
from .metrics import MetricsCollector, OperationMetrics

__all__ = [
    "get_logger",
    "set_log_file",
    "set_verbose",
    "StructuredLogger",
    "normalize_column_name",
    "is_safe_identifier",
    "qident",
    "display_value",
    "MetricsCollector",
    "OperationMetrics",
]
