"""
Console output — colours, section headers, tables and logging setup.

Components report through named ``logging`` loggers; the CLI installs a
single stdout handler with :class:`ConsoleFormatter` so those records render
as ``[✓]``/``[✗]``/``[!]``/``[i]`` lines.  Direct ``print`` output (tables,
menus, summaries) goes through the helpers below.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, List, Optional

# ---------------------------------------------------------------------------
# ANSI colours
# ---------------------------------------------------------------------------

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_COLOR_ENABLED = not os.environ.get("NO_COLOR") and "--no-color" not in sys.argv

_CODES = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
}

RULE_WIDTH = 67


def disable_color() -> None:
    """Turn off ANSI colours for the rest of the process."""
    global _COLOR_ENABLED
    _COLOR_ENABLED = False


def color(text: str, name: str) -> str:
    """Wrap *text* in the named ANSI colour, if colours are enabled."""
    if not _COLOR_ENABLED:
        return text
    return f"{_CODES[name]}{text}{_CODES['reset']}"


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def echo(msg: str = "", **kwargs: Any) -> None:
    print(msg, **kwargs)


def header(title: str, tint: str = "magenta") -> None:
    """Print a framed section header."""
    rule = "═" * RULE_WIDTH
    echo()
    echo(color(rule, tint))
    echo(color(f"                    {title}", tint))
    echo(color(rule, tint))
    echo()


def table(headers: List[str], rows: List[List[str]],
          widths: Optional[List[int]] = None) -> None:
    """Print a simple aligned table."""
    if not widths:
        widths = []
        for i, h in enumerate(headers):
            col_max = len(h)
            for row in rows:
                if i < len(row):
                    col_max = max(col_max, len(str(row[i])))
            widths.append(min(col_max + 2, 50))

    line = "".join(f"{h:<{widths[i]}}" for i, h in enumerate(headers))
    echo("  " + color(line, "bold"))
    echo("  " + color("-" * sum(widths), "dim"))
    for row in rows:
        echo("  " + "".join(
            f"{str(cell):<{widths[i]}}" for i, cell in enumerate(row) if i < len(widths)
        ))


def human_size(size_bytes: int) -> str:
    """Convert bytes to a human-readable string (e.g. '4.2 MB')."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class ConsoleFormatter(logging.Formatter):
    """Render log records the way the CLI prints status lines."""

    _PREFIXES = {
        logging.DEBUG: ("[.]", "dim"),
        logging.INFO: ("[i]", "blue"),
        SUCCESS: ("[✓]", "green"),
        logging.WARNING: ("[!]", "yellow"),
        logging.ERROR: ("[✗]", "red"),
        logging.CRITICAL: ("[✗]", "red"),
    }

    def __init__(self, verbose: bool = False) -> None:
        super().__init__(datefmt="%H:%M:%S")
        self._verbose = verbose

    def format(self, record: logging.LogRecord) -> str:
        prefix, tint = self._PREFIXES.get(record.levelno, ("[?]", "reset"))
        message = record.getMessage()
        if record.exc_info and self._verbose:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        line = f"{color(prefix, tint)} {message}"
        if self._verbose:
            stamp = self.formatTime(record, self.datefmt)
            line = f"{color(stamp, 'dim')} {color(record.name, 'dim')} {line}"
        return line


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger for CLI use."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_zuppaclaude", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter(verbose=verbose))
    handler._zuppaclaude = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def log_success(logger: logging.Logger, msg: str, *args: Any) -> None:
    """Emit a record at the SUCCESS level."""
    logger.log(SUCCESS, msg, *args)
