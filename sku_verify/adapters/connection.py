"""
Tenant database access through DuckDB.
Single responsibility: open one exclusive connection per tenant and execute queries on it.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import duckdb

from ..config.manager import DatabaseConfig
from ..utils.logger import get_logger


logger = get_logger()

Row = Dict[str, Any]


class QueryExecutionError(Exception):
    """Exception raised when the store rejects or fails a query."""
    pass


class TenantConnectionError(Exception):
    """Exception raised when a tenant database cannot be opened."""
    pass


class QueryExecutor(Protocol):
    """Query-execution capability consumed by the verification core."""

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Row]:
        ...


class DuckDBExecutor:
    """
    Execute parameterized SQL on a DuckDB connection.

    Rows come back as dictionaries keyed by lower-cased column name.
    """

    def __init__(self, con: duckdb.DuckDBPyConnection, tenant: Optional[str] = None):
        """
        Initialize executor.

        Args:
            con: DuckDB connection
            tenant: Tenant name used in log context
        """
        self.con = con
        self.tenant = tenant
        self.queries_executed = 0

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Row]:
        """
        Run one statement and fetch all rows.

        Raises:
            QueryExecutionError: If DuckDB fails the statement
        """
        logger.debug("executor.query", tenant=self.tenant, sql=" ".join(sql.split()),
                     params=list(params or []))
        try:
            cursor = self.con.execute(sql, list(params or []))
            description = cursor.description or []
            names = [column[0].lower() for column in description]
            rows = cursor.fetchall() if description else []
        except duckdb.Error as e:
            raise QueryExecutionError(str(e)) from e
        finally:
            self.queries_executed += 1

        return [dict(zip(names, row)) for row in rows]

    def close(self):
        self.con.close()


class TenantConnector:
    """
    Open DuckDB connections for tenants.

    Engine "duckdb" opens one database file per tenant from a path template.
    Engine "mysql" attaches the tenant's MySQL database read-only through the
    DuckDB mysql extension and makes it the default catalog.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config

    def connect(self, tenant: str) -> DuckDBExecutor:
        """
        Open the tenant database.

        Raises:
            TenantConnectionError: If the database cannot be opened
        """
        logger.info("connector.connecting", tenant=tenant, engine=self.config.engine)
        try:
            if self.config.engine == "mysql":
                con = self._connect_mysql(tenant)
            else:
                con = self._connect_duckdb(tenant)
        except (duckdb.Error, OSError) as e:
            logger.error("connector.connect_failed", tenant=tenant, error=str(e))
            raise TenantConnectionError(
                f"Could not open database for tenant '{tenant}': {e}"
            ) from e
        return DuckDBExecutor(con, tenant=tenant)

    def disconnect(self, executor: DuckDBExecutor):
        logger.info("connector.disconnecting", tenant=executor.tenant)
        try:
            executor.close()
        except duckdb.Error as e:
            logger.warning("connector.disconnect_failed", tenant=executor.tenant, error=str(e))

    def _connect_duckdb(self, tenant: str) -> duckdb.DuckDBPyConnection:
        path = Path(self.config.path_template.format(tenant=tenant))
        if not path.exists():
            raise TenantConnectionError(f"Database file not found: {path}")
        return duckdb.connect(str(path), read_only=True)

    def _connect_mysql(self, tenant: str) -> duckdb.DuckDBPyConnection:
        con = duckdb.connect(":memory:")
        try:
            con.execute("INSTALL mysql")
            con.execute("LOAD mysql")
            dsn = " ".join([
                f"host={self.config.host}",
                f"port={self.config.port}",
                f"user={self.config.user}",
                f"password={self.config.password}",
                f"database={tenant}",
            ])
            con.execute(f"ATTACH '{_escape_literal(dsn)}' AS tenant_db (TYPE mysql, READ_ONLY)")
            con.execute("USE tenant_db")
        except duckdb.Error:
            con.close()
            raise
        return con


def _escape_literal(value: str) -> str:
    return value.replace("'", "''")
