"""Tenant database adapters."""

from .connection import (
    DuckDBExecutor,
    QueryExecutionError,
    QueryExecutor,
    TenantConnectionError,
    TenantConnector,
)

__all__ = [
    "DuckDBExecutor",
    "QueryExecutionError",
    "QueryExecutor",
    "TenantConnectionError",
    "TenantConnector",
]
