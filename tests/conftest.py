"""
Shared fixtures: in-memory DuckDB executors and tenant database files.
"""

import sys
from pathlib import Path

import duckdb
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sku_verify.adapters.connection import DuckDBExecutor


def run_script(con: duckdb.DuckDBPyConnection, script: str):
    for statement in script.split(";"):
        if statement.strip():
            con.execute(statement)


@pytest.fixture
def con():
    """Fresh in-memory DuckDB connection."""
    connection = duckdb.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def executor(con):
    """Executor over the in-memory connection."""
    return DuckDBExecutor(con, tenant="test")


@pytest.fixture
def make_tenant_db(tmp_path):
    """Create a tenant DuckDB file from SQL scripts and return its path."""

    def _make(tenant: str, *scripts: str) -> Path:
        path = tmp_path / f"{tenant}.duckdb"
        connection = duckdb.connect(str(path))
        try:
            for script in scripts:
                run_script(connection, script)
        finally:
            connection.close()
        return path

    return _make
