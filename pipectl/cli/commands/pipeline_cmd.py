"""Pipeline lifecycle commands for pipectl CLI."""

from __future__ import annotations

import asyncio
import dataclasses
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.markup import escape

from pipectl.cli.manifest import load_manifest
from pipectl.cli.utils import (
    err_console,
    output_format,
    print_diagnostics,
    print_output,
)
from pipectl.drivers.http_cluster_directory import HttpClusterDirectory
from pipectl.drivers.http_pipeline_api import HttpClientFactory
from pipectl.drivers.state_store import JsonFileStateStore
from pipectl.kernel.config.loader import get_default_config
from pipectl.kernel.domain.diagnostics import OperationResult
from pipectl.kernel.exceptions import PipectlError
from pipectl.kernel.reconcile import BackoffPolicy, PipelineLifecycle, changed_fields

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from pipectl.kernel.config.models import PipectlConfig
    from pipectl.kernel.ports.cluster_directory import ClusterDirectory


def _obj(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def _config(ctx: typer.Context) -> PipectlConfig:
    return _obj(ctx).get("config") or get_default_config()


def _lifecycle(
    ctx: typer.Context, cluster_directory: ClusterDirectory | None = None
) -> PipelineLifecycle:
    config = _config(ctx)
    # Tests may inject a client factory through ctx.obj
    client_factory = _obj(ctx).get("client_factory") or HttpClientFactory(
        timeout=config.connection.request_timeout
    )
    return PipelineLifecycle(
        client_factory,
        auth_token=config.connection.auth_token,
        cluster_directory=cluster_directory,
        backoff=BackoffPolicy(
            base_interval=config.reconciler.poll_interval,
            max_factor=config.reconciler.max_interval_factor,
        ),
        default_timeout=config.reconciler.operation_timeout,
    )


def _store(ctx: typer.Context) -> JsonFileStateStore:
    return JsonFileStateStore(_config(ctx).state_file)


def _run(coro: Coroutine[Any, Any, int]) -> None:
    try:
        exit_code = asyncio.run(coro)
    except PipectlError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    if exit_code:
        raise typer.Exit(exit_code)


async def _apersist(store: JsonFileStateStore, name: str, result: OperationResult) -> int:
    """Write the outcome to the state store; nothing is written on error."""
    print_diagnostics(result.diagnostics)
    if result.diagnostics.has_error:
        return 1
    if result.removed:
        await store.aremove(name)
        err_console.print(f"[yellow]{escape(name)} removed from state[/yellow]")
    elif result.record is not None:
        await store.asave(name, result.record)
    return 0


def apply_manifest(
    ctx: typer.Context,
    manifest_path: Annotated[Path, typer.Argument(help="Path to a kind: Pipeline manifest")],
) -> None:
    """Create the pipeline if it is untracked, otherwise update what changed.

    A tracked pipeline is refreshed first. If it has been removed from state
    it is created again; if the manifest matches the refreshed record no
    remote change is made.
    """
    if not manifest_path.exists():
        err_console.print(f"[red]Error: Manifest not found: {escape(str(manifest_path))}[/red]")
        raise typer.Exit(1)

    async def _apply() -> int:
        manifest = load_manifest(manifest_path)
        name = escape(manifest.name)
        plan = manifest.to_record()
        store = _store(ctx)
        lifecycle = _lifecycle(ctx)

        current = None
        prior = await store.aload(manifest.name)
        if prior is not None:
            refreshed = await lifecycle.aread(prior)
            if refreshed.diagnostics.has_error:
                print_diagnostics(refreshed.diagnostics)
                return 1
            if refreshed.removed:
                err_console.print(f"[yellow]{name} no longer exists remotely[/yellow]")
            else:
                current = refreshed.record

        if current is None:
            err_console.print(f"[cyan]Creating pipeline {name}...[/cyan]")
            result = await lifecycle.acreate(plan)
        else:
            plan.id = current.id
            changed = changed_fields(plan, current)
            if changed:
                err_console.print(
                    f"[cyan]Updating pipeline {name} ({current.id}): {', '.join(changed)}[/cyan]"
                )
                result = await lifecycle.aupdate(plan, current)
                result.diagnostics.items[:0] = refreshed.diagnostics.items
            else:
                err_console.print(f"[dim]{name}: no changes[/dim]")
                # Local-only settings still follow the manifest
                record = dataclasses.replace(
                    current, allow_deletion=plan.allow_deletion, timeouts=plan.timeouts
                )
                result = OperationResult(record=record, diagnostics=refreshed.diagnostics)

        exit_code = await _apersist(store, manifest.name, result)
        if not exit_code and result.record is not None:
            err_console.print(f"[green]✓ {name} is {result.record.state}[/green]")
            print_output(result.record.to_dict(redact=True), ctx)
        return exit_code

    _run(_apply())


def refresh_pipeline(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Tracked pipeline name")],
) -> None:
    """Re-read a tracked pipeline from the cluster and update local state."""

    async def _refresh() -> int:
        store = _store(ctx)
        prior = await store.aload(name)
        if prior is None:
            err_console.print(f"[red]Error: {escape(name)} is not tracked[/red]")
            return 1
        result = await _lifecycle(ctx).aread(prior)
        exit_code = await _apersist(store, name, result)
        if not exit_code and result.record is not None:
            print_output(result.record.to_dict(redact=True), ctx)
        return exit_code

    _run(_refresh())


def destroy_pipeline(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Tracked pipeline name")],
) -> None:
    """Stop and delete a tracked pipeline."""

    async def _destroy() -> int:
        store = _store(ctx)
        prior = await store.aload(name)
        if prior is None:
            err_console.print(f"[red]Error: {escape(name)} is not tracked[/red]")
            return 1
        result = await _lifecycle(ctx).adelete(prior)
        return await _apersist(store, name, result)

    _run(_destroy())


def import_pipeline(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name to track the pipeline under")],
    import_id: Annotated[str, typer.Argument(help="<pipeline_id>,<cluster_id>")],
) -> None:
    """Start tracking an existing pipeline, then refresh it."""

    async def _import() -> int:
        store = _store(ctx)
        if await store.aload(name) is not None:
            err_console.print(f"[red]Error: {escape(name)} is already tracked[/red]")
            return 1

        injected = _obj(ctx).get("cluster_directory")
        directory = injected
        if directory is None:
            connection = _config(ctx).connection
            directory = HttpClusterDirectory(
                connection.control_plane_url,
                auth_token=connection.auth_token,
                timeout=connection.request_timeout,
            )
        try:
            lifecycle = _lifecycle(ctx, cluster_directory=directory)
            seeded = await lifecycle.aimport(import_id)
        finally:
            if injected is None:
                await directory.aclose()

        if seeded.diagnostics.has_error or seeded.record is None:
            print_diagnostics(seeded.diagnostics)
            return 1

        result = await lifecycle.aread(seeded.record)
        result.diagnostics.items[:0] = seeded.diagnostics.items
        exit_code = await _apersist(store, name, result)
        if not exit_code and result.record is not None:
            err_console.print(f"[green]✓ imported {escape(name)}[/green]")
            print_output(result.record.to_dict(redact=True), ctx)
        return exit_code

    _run(_import())


def show_pipeline(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Tracked pipeline name")],
) -> None:
    """Print the tracked record of a pipeline (no remote calls)."""

    async def _show() -> int:
        record = await _store(ctx).aload(name)
        if record is None:
            err_console.print(f"[red]Error: {escape(name)} is not tracked[/red]")
            return 1
        print_output(record.to_dict(redact=True), ctx)
        return 0

    _run(_show())


def list_pipelines(ctx: typer.Context) -> None:
    """List tracked pipeline names."""

    async def _list() -> int:
        names = await _store(ctx).alist()
        if not names and output_format(ctx) != "json":
            err_console.print("[dim]No pipelines tracked[/dim]")
            return 0
        print_output(names, ctx)
        return 0

    _run(_list())
