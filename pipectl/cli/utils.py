"""CLI helper utilities for pipectl commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from pipectl.kernel.domain.diagnostics import Diagnostics


class ContextProtocol(Protocol):
    """Protocol for common interface between Click and Typer contexts."""

    @property
    def obj(self) -> dict[str, Any] | None: ...


console = Console()
err_console = Console(stderr=True)


def output_format(ctx: ContextProtocol | None) -> str:
    if ctx is not None and isinstance(ctx.obj, dict):
        return ctx.obj.get("output_format", "pretty")
    return "pretty"


def print_output(data: Any, ctx: ContextProtocol | None = None) -> None:
    """Print ``data`` according to ``ctx.obj['output_format']``.

    Mappings are rendered as a two-column table in pretty mode.
    """
    if output_format(ctx) == "json":
        typer.echo(json.dumps(data, default=str, indent=2))
        return

    if isinstance(data, dict):
        table = Table(show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            if isinstance(value, dict):
                value = json.dumps(value, default=str)
            table.add_row(escape(str(key)), "" if value is None else escape(str(value)))
        console.print(table)
    elif isinstance(data, list):
        for item in data:
            typer.echo(str(item))
    elif isinstance(data, (str, int, float)):
        typer.echo(str(data))
    else:
        console.print(data)


def print_diagnostics(diagnostics: Diagnostics) -> None:
    """Warnings in yellow, errors in red, both on stderr."""
    for diag in diagnostics.warnings:
        err_console.print(f"[yellow]⚠ {escape(diag.summary)}[/yellow]")
        if diag.detail:
            err_console.print(f"  [dim]{escape(diag.detail)}[/dim]")
    for diag in diagnostics.errors:
        err_console.print(f"[red]✗ {escape(diag.summary)}[/red]")
        if diag.detail:
            err_console.print(f"  [dim]{escape(diag.detail)}[/dim]")
