"""Commands for live mounts and the mount-and-migrate workflow."""

from pathlib import Path

import typer

from rbkops.cli.common.context import AppContext, build_context
from rbkops.cli.common.exits import exit_from_exc, handled_errors, ok_exit, warn_exit
from rbkops.cli.common.options import (
    ApiVersionOpt,
    AtOpt,
    ConfirmOpt,
    DryRunOpt,
    PollIntervalOpt,
    ProfileOpt,
    ServerOpt,
    TimeoutOpt,
    WatchOpt,
)
from rbkops.cli.common.output import out
from rbkops.cli.common.parsing import parse_at_or_exit
from rbkops.cli.common.progress import job_progress, wait_for_job_with_progress
from rbkops.core.migrate import cleanup_mount_disks, migrate_mount_disks
from rbkops.core.recovery import read_artifact
from rbkops.core.snapshots import select_snapshot

mount_app = typer.Typer(
    help="Get / create / remove live mounts and migrate their disks.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@mount_app.callback()
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


@mount_app.command("get")
def get(
    ctx: typer.Context,
    vm_name: str | None = typer.Option(None, "--vm", help="Only mounts of this VM"),
):
    """List live mounts."""
    appctx: AppContext = ctx.obj

    with handled_errors(), out.status("Loading live mounts..."):
        vm_id = appctx.adapter.get_vm(vm_name).id if vm_name else None
        mounts = appctx.adapter.list_mounts(vm_id)

    if not mounts:
        warn_exit("No live mounts found", code=0)

    out.mounts_table(mounts)


@mount_app.command("new")
def new(
    ctx: typer.Context,
    vm_name: str = typer.Argument(..., help="Exact name of the VM to mount"),
    at: str | None = AtOpt,
    host_id: str | None = typer.Option(None, "--host-id", help="ESXi host id"),
    power_on: bool = typer.Option(False, "--power-on", help="Power on the mounted VM"),
    confirm: bool = ConfirmOpt,
    watch: bool = WatchOpt,
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Live-mount the snapshot nearest to --at (latest by default)."""
    appctx: AppContext = ctx.obj
    appctx.require_confirmation(confirm)
    when = parse_at_or_exit(at)

    with handled_errors():
        with out.status("Resolving snapshot..."):
            vm = appctx.adapter.get_vm(vm_name)
            snapshot = select_snapshot(appctx.adapter.list_snapshots(vm.id), when)

        out.kv({"VM": vm.name, "Snapshot": f"{snapshot.id} ({snapshot.date})"})
        handle = appctx.adapter.create_mount(
            snapshot.id, host_id=host_id, power_on=power_on
        )
        out.success(f"Live mount requested (job {handle.id})")

        if watch:
            result = wait_for_job_with_progress(
                appctx.adapter, handle, poll_interval=poll_interval, timeout=timeout
            )
            out.job_result(result)


@mount_app.command("remove")
def remove(
    ctx: typer.Context,
    mount_id: str = typer.Argument(..., help="Live mount id"),
    force: bool = typer.Option(False, "--force", help="Force unmount"),
    confirm: bool = ConfirmOpt,
    watch: bool = WatchOpt,
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Remove a live mount."""
    appctx: AppContext = ctx.obj
    appctx.require_confirmation(confirm)

    with handled_errors():
        handle = appctx.adapter.delete_mount(mount_id, force=force)
        out.success(f"Unmount requested (job {handle.id})")

        if watch:
            result = wait_for_job_with_progress(
                appctx.adapter, handle, poll_interval=poll_interval, timeout=timeout
            )
            out.job_result(result)


@mount_app.command("migrate")
def migrate(
    ctx: typer.Context,
    source_vm: str = typer.Argument(..., help="VM whose snapshot is mounted"),
    target_vm: str = typer.Argument(..., help="VM that receives the disks"),
    at: str | None = AtOpt,
    host_id: str | None = typer.Option(None, "--host-id", help="ESXi host id"),
    exclude: list[int] = typer.Option(
        [],
        "--exclude",
        help="Zero-based disk index to leave on the mount. This is reusable.",
        show_default=False,
    ),
    online: bool = typer.Option(
        False, "--online", help="Bring the migrated disks online in the guest"
    ),
    confirm: bool = ConfirmOpt,
    dry_run: bool = DryRunOpt,
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Live-mount a snapshot and move its disks to another VM."""
    appctx: AppContext = ctx.obj
    when = parse_at_or_exit(at)

    with handled_errors():
        with out.status("Resolving snapshot..."):
            vm = appctx.adapter.get_vm(source_vm)
            snapshot = select_snapshot(appctx.adapter.list_snapshots(vm.id), when)

        out.header("Mount and migrate")
        out.kv(
            {
                "Source": vm.name,
                "Snapshot": f"{snapshot.id} ({snapshot.date})",
                "Target": target_vm,
                "Excluded disks": ", ".join(map(str, exclude)) or "-",
            }
        )

        if dry_run:
            warn_exit("Dry-run enabled: nothing was mounted", code=0)

        if confirm and not out.confirm(f"Mount {vm.name} and move its disks to {target_vm}?"):
            ok_exit("Cancelled")

        platform = appctx.vsphere()
        ctx.call_on_close(platform.close)

        with job_progress("live mount") as on_poll:
            result = migrate_mount_disks(
                appctx.adapter,
                platform,
                source_vm=vm.name,
                target_vm=target_vm,
                snapshot=snapshot,
                host_id=host_id,
                exclude=exclude,
                bring_online=online,
                poll_interval=poll_interval,
                timeout=timeout,
                on_poll=on_poll,
            )

    out.disks_list(result.migrated, title=f"Disks moved to {result.target_vm}")
    out.success(f"Migrated {len(result.migrated)} disk(s) from mount {result.mount_id}")
    out.kv({"Recovery file": str(result.artifact_path)})
    out.info(f"To undo: {result.cleanup_command}")


@mount_app.command("migrate-cleanup")
def migrate_cleanup(
    ctx: typer.Context,
    artifact: Path = typer.Argument(..., help="Recovery file written by 'mount migrate'"),
    force: bool = typer.Option(False, "--force", help="Force unmount"),
    keep_file: bool = typer.Option(
        False, "--keep-file", help="Keep the recovery file after cleanup"
    ),
    confirm: bool = ConfirmOpt,
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Detach migrated disks from the target VM and remove the live mount."""
    appctx: AppContext = ctx.obj

    with handled_errors():
        try:
            record = read_artifact(artifact)
        except ValueError as exc:
            exit_from_exc(exc, code=2)
        out.header("Migration cleanup")
        out.kv({"Target": record.target, "Mount": record.mount_id})
        out.disks_list(record.paths, title="Recorded disks")

        if confirm and not out.confirm(
            f"Detach these disks from {record.target} and remove mount {record.mount_id}?"
        ):
            ok_exit("Cancelled")

        platform = appctx.vsphere()
        ctx.call_on_close(platform.close)

        with job_progress("unmount") as on_poll:
            result = cleanup_mount_disks(
                appctx.adapter,
                platform,
                artifact,
                force=force,
                poll_interval=poll_interval,
                timeout=timeout,
                keep_artifact=keep_file,
                on_poll=on_poll,
            )

    out.success(
        f"Detached {len(result.detached)} disk(s) from {result.target_vm}, "
        f"removed mount {result.mount_id}"
    )
    if result.skipped:
        out.warn(f"Already detached: {', '.join(result.skipped)}")
