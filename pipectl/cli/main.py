"""pipectl CLI - Main entrypoint."""

from __future__ import annotations

import dataclasses

import typer
from rich.console import Console
from rich.markup import escape

from pipectl import __version__
from pipectl.cli.commands import pipeline_cmd
from pipectl.kernel.config.loader import load_config
from pipectl.kernel.exceptions import PipectlError
from pipectl.kernel.logging import configure_logging

app = typer.Typer(
    name="pipectl",
    help="pipectl - declarative lifecycle management for managed streaming pipelines.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()

# Lifecycle commands live at the top level: `pipectl apply ...`
app.command("apply")(pipeline_cmd.apply_manifest)
app.command("refresh")(pipeline_cmd.refresh_pipeline)
app.command("destroy")(pipeline_cmd.destroy_pipeline)
app.command("import")(pipeline_cmd.import_pipeline)
app.command("show")(pipeline_cmd.show_pipeline)
app.command("list")(pipeline_cmd.list_pipelines)

_LOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold blue]pipectl[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    config_path: str | None = typer.Option(
        None, "--config", "-c", help="Path to a kind: Config YAML or pyproject.toml"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level: debug|info|warn|error"
    ),
    json_out: bool = typer.Option(False, "--json", help="Output machine-readable JSON"),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """pipectl - apply, refresh, destroy and import managed pipelines.

    Global flags are parsed here and stored on `ctx.obj` for subcommands.
    """
    if ctx.obj is None:
        ctx.obj = {}

    try:
        config = load_config(config_path)
    except (PipectlError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    logging_config = config.logging
    if log_level is not None:
        level = _LOG_LEVELS.get(log_level.lower())
        if level is None:
            console.print(f"[red]Error: unknown log level {escape(repr(log_level))}[/red]")
            raise typer.Exit(1)
        logging_config = dataclasses.replace(logging_config, level=level)

    configure_logging(
        level=logging_config.level,
        format=logging_config.format,
        output_file=logging_config.output_file,
        use_color=logging_config.use_color,
        include_timestamp=logging_config.include_timestamp,
    )

    ctx.obj.update({
        "config": config,
        "output_format": "json" if json_out else "pretty",
        "log_level": logging_config.level,
    })


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
