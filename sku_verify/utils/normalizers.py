"""
Identifier and value normalization utilities.
Single responsibility: normalize column names, quote identifiers and format values.
"""

import re
from decimal import Decimal
from typing import Any


_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def normalize_column_name(col: str) -> str:
    """
    Normalize a column name for case-insensitive schema lookups.

    Args:
        col: Column name as written in a mapping or config file

    Returns:
        Lower-cased, trimmed column name
    """
    if col is None:
        return ""
    return col.strip().lower()


def is_safe_identifier(name: str) -> bool:
    """Whether the name is a plain SQL identifier (letters, digits, underscores)."""
    return bool(name) and bool(_SAFE_IDENTIFIER.match(name))


def qident(name: str) -> str:
    """
    Quote SQL identifiers for safe usage in DuckDB queries.

    Only plain identifiers are accepted; callers must have checked the name
    against an introspected schema before building SQL with it.

    Args:
        name: SQL identifier (table name, column name, etc.)

    Returns:
        Quoted identifier safe for SQL usage

    Raises:
        ValueError: If the name is empty or not a plain identifier
    """
    if not is_safe_identifier(name):
        raise ValueError(f"Unsafe SQL identifier: {name!r}")
    return f'"{name}"'


def display_value(value: Any) -> str:
    """
    Format a fetched value for reports.

    None becomes "null"; Decimals drop insignificant trailing zeros.
    """
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        normalized = value.normalize()
        # normalize() turns 100 into 1E+2
        if normalized == normalized.to_integral_value():
            return str(normalized.quantize(Decimal(1)))
        return str(normalized)
    return str(value)
