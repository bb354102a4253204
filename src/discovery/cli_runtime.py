"""Shared CLI helpers: error type, logging setup and console rendering."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

__all__ = ["CLIAppError", "configure_logging", "render_metas"]


class CLIAppError(RuntimeError):
    """Raised when the CLI cannot complete its work."""

    def __init__(self, message: str, *, code: int = 1, rich_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.rich_message = rich_message if rich_message is not None else escape(message)


def configure_logging(*, verbose: bool, quiet: bool) -> int:
    """Configure the root logger once for CLI runs and return the chosen level."""

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return level


def render_metas(console: Console, title: str, metas: Sequence[Mapping[str, Any]], *, skip: int = 0) -> None:
    """Print catalog previews as a table, numbered from *skip*."""

    table = Table(title=escape(title))
    table.add_column("#", justify="right", style="dim")
    table.add_column("id", style="cyan")
    table.add_column("name")
    table.add_column("year", justify="right")
    for index, meta in enumerate(metas, start=skip):
        table.add_row(
            str(index),
            escape(str(meta.get("id", ""))),
            escape(str(meta.get("name", ""))),
            escape(str(meta.get("releaseInfo", ""))),
        )
    console.print(table)
    if not metas:
        console.print("[yellow]No items in this window.[/yellow]")
