"""
Column mapping loading and resolution.
Single responsibility: turn declared mappings into validated mappings plus diagnostics.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..utils.logger import get_logger
from ..utils.normalizers import normalize_column_name
from .models import ColumnMapping, ColumnRef, MissingColumnReport, SchemaSnapshot


logger = get_logger()

MAPPING_SEPARATOR = "->"


class MappingFileError(Exception):
    """Exception raised when a mapping file cannot be read."""
    pass


def parse_mapping_line(line: str) -> Optional[ColumnMapping]:
    """
    Parse one "new_column -> old_column" line.

    Blank lines give None. A line without a separator keeps its text as the
    new column and an empty old column, which resolution later drops.
    """
    if not line or not line.strip():
        return None
    new_col, _, old_col = line.partition(MAPPING_SEPARATOR)
    return ColumnMapping(new_column=new_col.strip(), old_column=old_col.strip())


def load_mapping(source: Union[str, Path, Iterable[str]]) -> List[ColumnMapping]:
    """
    Load a mapping set.

    Duplicates by new column are overwritten, the last declaration wins and
    keeps the position of the first.

    Args:
        source: Path to a UTF-8 mapping file, or an iterable of lines

    Returns:
        Ordered list of mappings

    Raises:
        MappingFileError: If the file cannot be read
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error("mapping.load_failed", file=str(path), error=str(e))
            raise MappingFileError(f"Could not read mapping file {path}: {e}") from e
        origin = str(path)
    else:
        lines = list(source)
        origin = "<lines>"

    by_new_column = {}
    for line in lines:
        mapping = parse_mapping_line(line)
        if mapping is None:
            continue
        by_new_column[mapping.new_column] = mapping

    mappings = list(by_new_column.values())
    logger.info("mapping.loaded", source=origin, mappings=len(mappings))
    return mappings


def _ignored_set(ignored_old_columns: Iterable[str]) -> set:
    return {normalize_column_name(col) for col in ignored_old_columns or []}


def resolve(mappings: Sequence[ColumnMapping],
            old_schema: SchemaSnapshot,
            new_schema: SchemaSnapshot,
            ignored_old_columns: Iterable[str] = ()
            ) -> Tuple[List[ColumnMapping], MissingColumnReport]:
    """
    Split mappings into valid ones and missing-column diagnostics.

    A mapping is valid only when its old column exists in the old schema and
    its new column exists in the new schema. Mappings whose old column is
    ignored are skipped entirely.

    Args:
        mappings: Loaded mapping set
        old_schema: Snapshot of the legacy table
        new_schema: Snapshot of the new table
        ignored_old_columns: Old-side columns never to compare

    Returns:
        (valid mappings in input order, missing column report)
    """
    ignored = _ignored_set(ignored_old_columns)
    valid: List[ColumnMapping] = []
    missing = MissingColumnReport()

    for mapping in mappings:
        if normalize_column_name(mapping.old_column) in ignored:
            logger.info("mapping.ignored", old=mapping.old_column, new=mapping.new_column)
            continue

        if not mapping.is_complete:
            logger.warning("mapping.incomplete", mapping=mapping.label)

        old_present = old_schema.has(mapping.old_column)
        new_present = new_schema.has(mapping.new_column)

        if old_present and new_present:
            valid.append(mapping)
            continue

        if not old_present:
            logger.warning("mapping.column_missing", side="old",
                           table=old_schema.table_name, column=mapping.old_column)
            missing.old_table.append(ColumnRef(column=mapping.old_column, mapping=mapping.label))
        if not new_present:
            logger.warning("mapping.column_missing", side="new",
                           table=new_schema.table_name, column=mapping.new_column)
            missing.new_table.append(ColumnRef(column=mapping.new_column, mapping=mapping.label))

    return valid, missing


def resolve_common_columns(desired: Iterable[str],
                           old_schema: SchemaSnapshot,
                           new_schema: SchemaSnapshot,
                           ignored_old_columns: Iterable[str] = ()
                           ) -> Tuple[List[str], MissingColumnReport]:
    """
    Check which same-named columns can be compared on both sides.

    Returns:
        (available column names in input order, missing column report)
    """
    ignored = _ignored_set(ignored_old_columns)
    available: List[str] = []
    missing = MissingColumnReport()
    seen = set()

    for column in desired:
        key = normalize_column_name(column)
        if not key or key in seen:
            continue
        seen.add(key)

        if key in ignored:
            logger.info("common_columns.ignored", column=column)
            continue

        old_present = old_schema.has(column)
        new_present = new_schema.has(column)

        if old_present and new_present:
            available.append(column)
            continue

        if not old_present:
            logger.warning("common_columns.missing", side="old",
                           table=old_schema.table_name, column=column)
            missing.old_table.append(ColumnRef(column=column))
        if not new_present:
            logger.warning("common_columns.missing", side="new",
                           table=new_schema.table_name, column=column)
            missing.new_table.append(ColumnRef(column=column))

    return available, missing
