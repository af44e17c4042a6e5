"""
Schema discovery.
Single responsibility: read a table's column names and types from catalog metadata.
"""

from typing import Dict, Set

from ..adapters.connection import QueryExecutionError, QueryExecutor
from ..utils.logger import get_logger
from .models import SchemaSnapshot


logger = get_logger()


class SchemaLookupError(Exception):
    """Exception raised when catalog metadata for a table cannot be read."""
    pass


COLUMNS_SQL = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_name = ?
      AND table_catalog = current_database()
    ORDER BY ordinal_position
"""


class SchemaIntrospector:
    """
    Look up column names and types of tables in the current tenant database.
    """

    def __init__(self, executor: QueryExecutor):
        """
        Initialize introspector.

        Args:
            executor: Query executor bound to one tenant connection
        """
        self.executor = executor

    def column_types(self, table_name: str) -> Dict[str, str]:
        """
        Get the declared type of every column of a table.

        Args:
            table_name: Table to inspect

        Returns:
            Lower-cased column name to upper-cased type name, in column order
            (empty if the table does not exist)

        Raises:
            SchemaLookupError: If the catalog query fails
        """
        try:
            rows = self.executor.execute(COLUMNS_SQL, [table_name])
        except QueryExecutionError as e:
            logger.error("introspector.lookup_failed", table=table_name, error=str(e))
            raise SchemaLookupError(
                f"Could not read columns of table '{table_name}': {e}"
            ) from e

        return {str(row["column_name"]).lower(): str(row["data_type"] or "").upper()
                for row in rows}

    def columns_of(self, table_name: str) -> Set[str]:
        """Lower-cased column names of a table."""
        return set(self.column_types(table_name))

    def snapshot(self, table_name: str) -> SchemaSnapshot:
        """Take a SchemaSnapshot of a table."""
        types = self.column_types(table_name)
        if not types:
            logger.warning("introspector.table_empty_or_missing", table=table_name)
        return SchemaSnapshot(table_name=table_name, columns=frozenset(types),
                              column_types=types)
