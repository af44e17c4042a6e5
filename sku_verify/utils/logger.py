"""
Structured logging utility.
Single responsibility: provide consistent logging across application.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from rich import box
from rich.console import Console
from rich.table import Table


LEVEL_STYLES = {
    "DEBUG": "dim",
    "INFO": "blue",
    "SUCCESS": "green",
    "WARN": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold red",
}


class StructuredLogger:
    """
    Structured logger for consistent application logging.

    Every entry is a dotted event name plus keyword context. The console gets
    a coloured line per entry (DEBUG only when verbose); the log file, when
    set, gets every entry as one JSON line.
    """

    def __init__(self, name: str = "sku-verify",
                 log_file: Optional[Path] = None,
                 console: Optional[Console] = None,
                 verbose: bool = False):
        """
        Initialize logger.

        Args:
            name: Logger name
            log_file: Optional JSON-lines file
            console: Rich console for human-readable output (defaults to stderr)
            verbose: Also print DEBUG entries on the console
        """
        self.name = name
        self.log_file = log_file
        self.console = console or Console(stderr=True)
        self.verbose = verbose

    def _entry(self, level: str, message: str, context: Dict[str, Any]) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        if context:
            entry["context"] = context
        return entry

    def _log(self, level: str, message: str, **context):
        entry = self._entry(level, message, context)

        if level != "DEBUG" or self.verbose:
            style = LEVEL_STYLES.get(level, "")
            clock = entry["timestamp"].split("T")[1][:8]
            lines = [f"[{clock}] {level:7} | {message}"]
            lines.extend(f"  {key}={value}" for key, value in context.items())
            for line in lines:
                self.console.print(line, style=style, markup=False, highlight=False)

        self._write(entry)

    def _write(self, entry: Dict[str, Any]):
        if not self.log_file:
            return
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def success(self, message: str, **kwargs):
        self._log("SUCCESS", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARN", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log("CRITICAL", message, **kwargs)

    def table(self, records: Iterable[Mapping[str, Any]],
              caption: Optional[str] = None):
        """
        Log a list of uniform records as a table.

        Args:
            records: Records sharing the same keys (taken from the first)
            caption: Optional title logged above the table
        """
        rows: List[Mapping[str, Any]] = list(records)
        if caption:
            self.info(caption)
        if not rows:
            return

        headers = list(rows[0].keys())
        table = Table(box=box.SIMPLE_HEAVY)
        for header in headers:
            table.add_column(str(header), overflow="fold")
        for row in rows:
            table.add_row(*["null" if row.get(h) is None else str(row.get(h))
                            for h in headers])
        self.console.print(table)

        self._write({
            "timestamp": datetime.now().isoformat(),
            "level": "TABLE",
            "logger": self.name,
            "message": caption or "",
            "rows": [dict(row) for row in rows],
        })


# Global logger instance
_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "sku-verify") -> StructuredLogger:
    """
    Get or create logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    global _logger
    if _logger is None:
        _logger = StructuredLogger(name)
    return _logger


def set_log_file(log_file: Optional[Path]) -> StructuredLogger:
    """Point the shared logger at a JSON-lines log file."""
    logger = get_logger()
    logger.log_file = log_file
    return logger


def set_verbose(verbose: bool) -> StructuredLogger:
    logger = get_logger()
    logger.verbose = verbose
    return logger
