"""
Root Typer application for the botsync CLI.

Commands operate on one registered bot. Bots register themselves when
their module is imported, so every command takes ``--module``/``-m`` for
the module(s) defining the bot.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from botsync.cli.utils import console, err_console, fail, import_modules, load_bot, print_table
from botsync.core.errors import BotError
from botsync.core.logging import LogContext, configure_logging
from botsync.core.settings import get_settings
from botsync.framework.lock import InstanceLock
from botsync.framework.registry import list_bots
from botsync.framework.sync import ErrorMode

app = Typer(
    name="botsync",
    help="botsync - refresh, validate and export records for data-collection bots.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from botsync import __version__

        typer.echo(f"botsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """botsync CLI - run, export and test bots."""
    settings = get_settings()
    configure_logging(level=settings.log_level, format=settings.log_format)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def run(
    bot_name: str = typer.Argument(..., help="Registered bot name"),
    module: list[str] = typer.Option([], "--module", "-m", help="Module(s) registering the bot"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Refresh at most N due keys"),
    report_errors: bool = typer.Option(
        False, "--report-errors", help="Write per-key results and errors as JSON lines"
    ),
    strict: bool = typer.Option(False, "--strict", help="Abort on the first failing key"),
) -> None:
    """Fetch new keys and refresh stale records."""
    settings = get_settings()
    mode = ErrorMode.REPORT if report_errors else ErrorMode.RAISE
    try:
        with InstanceLock(settings.pid_dir, f"{bot_name}-run"), LogContext(bot=bot_name, task="run"):
            bot = load_bot(bot_name, module, error_mode=mode, strict=strict)
            try:
                summary = bot.update_data(limit)
            finally:
                bot.close()
    except BotError as exc:
        fail(exc)
        return
    if summary is not None:
        print_table([summary.to_dict()], title=f"{bot_name} sweep")


@app.command()
def export(
    bot_name: str = typer.Argument(..., help="Registered bot name"),
    module: list[str] = typer.Option([], "--module", "-m", help="Module(s) registering the bot"),
    as_array: bool = typer.Option(False, "--array", help="Write one JSON array instead of JSON lines"),
) -> None:
    """Write new or changed publications to stdout."""
    settings = get_settings()
    try:
        with InstanceLock(settings.pid_dir, f"{bot_name}-export"), LogContext(bot=bot_name, task="export"):
            bot = load_bot(bot_name, module)
            try:
                count = bot.export(sys.stdout, as_array=as_array)
            finally:
                bot.close()
    except BotError as exc:
        fail(exc)
        return
    err_console.print(f"[dim]{count} record(s) exported[/dim]")


@app.command()
def test(
    bot_name: str = typer.Argument(..., help="Registered bot name"),
    module: list[str] = typer.Option([], "--module", "-m", help="Module(s) registering the bot"),
) -> None:
    """Validate every exportable publication without advancing export state."""
    try:
        with LogContext(bot=bot_name, task="test"):
            bot = load_bot(bot_name, module)
            try:
                schema = bot.record_type.publish_schema
                for publication in bot.export_data(stamp=False):
                    issues = bot.validator.validate(schema, publication)
                    if issues:
                        err_console.print(f"[bold red]This datum is invalid:[/bold red] {publication!r}")
                        print_table([issue.to_dict() for issue in issues], title="Errors")
                        raise typer.Exit(code=1)
            finally:
                bot.close()
    except BotError as exc:
        fail(exc)
        return
    console.print("[green]Congratulations! This data appears to be valid[/green]")


@app.command("list")
def list_cmd(
    module: list[str] = typer.Option([], "--module", "-m", help="Module(s) registering bots"),
) -> None:
    """List registered bots."""
    import_modules(module)
    names = list_bots()
    if not names:
        console.print("[dim]No bots registered.[/dim]")
        return
    for name in names:
        console.print(name)
