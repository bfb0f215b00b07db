"""Commands for VM snapshots."""

import typer

from rbkops.cli.common.context import AppContext, build_context
from rbkops.cli.common.exits import handled_errors, warn_exit
from rbkops.cli.common.options import (
    ApiVersionOpt,
    AtOpt,
    ConfirmOpt,
    PollIntervalOpt,
    ProfileOpt,
    ServerOpt,
    TimeoutOpt,
    WatchOpt,
)
from rbkops.cli.common.output import out
from rbkops.cli.common.parsing import parse_at_or_exit
from rbkops.cli.common.progress import wait_for_job_with_progress
from rbkops.core.snapshots import select_snapshot

snapshot_app = typer.Typer(
    help="Get / take VM snapshots.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@snapshot_app.callback()
def _init(
    ctx: typer.Context,
    profile: str | None = ProfileOpt,
    server: str | None = ServerOpt,
    api_version: str | None = ApiVersionOpt,
):
    """Initialize appliance context."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)
    ctx.obj = build_context(profile, server=server, api_version=api_version)
    ctx.call_on_close(ctx.obj.client.close)


@snapshot_app.command("get")
def get(
    ctx: typer.Context,
    vm_name: str = typer.Argument(..., help="Exact VM name"),
    at: str | None = AtOpt,
):
    """List snapshots of a VM, or the one nearest to --at."""
    appctx: AppContext = ctx.obj
    when = parse_at_or_exit(at)

    with handled_errors():
        with out.status("Loading snapshots..."):
            vm = appctx.adapter.get_vm(vm_name)
            snapshots = appctx.adapter.list_snapshots(vm.id)

        if not snapshots:
            warn_exit(f"No snapshots found for {vm.name}", code=0)

        if when:
            snapshots = [select_snapshot(snapshots, when)]

    snapshots = sorted(snapshots, key=lambda s: s.date, reverse=True)
    out.snapshots_table(snapshots, title=f"Snapshots of {vm.name}")


@snapshot_app.command("new")
def new(
    ctx: typer.Context,
    vm_name: str = typer.Argument(..., help="Exact VM name"),
    sla_id: str | None = typer.Option(
        None, "--sla-id", help="SLA domain id for retention (defaults to the VM's SLA)"
    ),
    confirm: bool = ConfirmOpt,
    watch: bool = WatchOpt,
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Take an on-demand snapshot of a VM."""
    appctx: AppContext = ctx.obj
    appctx.require_confirmation(confirm)

    with handled_errors():
        with out.status("Resolving virtual machine..."):
            vm = appctx.adapter.get_vm(vm_name)

        handle = appctx.adapter.take_snapshot(vm.id, sla_id)
        out.success(f"Snapshot of {vm.name} requested (job {handle.id})")

        if watch:
            result = wait_for_job_with_progress(
                appctx.adapter, handle, poll_interval=poll_interval, timeout=timeout
            )
            out.job_result(result)
