"""
CLI utility helpers: bot loading and output formatting.
"""

from __future__ import annotations

import importlib
from collections.abc import Iterable
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from botsync.core.errors import BotError
from botsync.framework.bot import Bot
from botsync.framework.registry import get_bot

console = Console()
err_console = Console(stderr=True)


# ── Bot loading ──────────────────────────────────────────────────────────


def import_modules(modules: Iterable[str]) -> None:
    """Import bot modules so their ``@register_bot`` factories run."""
    for module in modules:
        try:
            importlib.import_module(module)
        except ImportError as exc:
            err_console.print(f"[bold red]Error[/bold red]: cannot import {module}: {exc}")
            raise typer.Exit(code=1) from exc


def load_bot(name: str, modules: Iterable[str] = (), **kwargs: Any) -> Bot:
    """Import *modules*, then build the bot registered as *name*."""
    import_modules(modules)
    return get_bot(name, **kwargs)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: BotError) -> None:
    """Print *error* in red on stderr and exit 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    context = error.context.to_dict()
    if context:
        err_console.print(f"[dim]{context}[/dim]")
    raise typer.Exit(code=1)


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table (on stderr, stdout is for data)."""
    if not rows:
        err_console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    err_console.print(table)
