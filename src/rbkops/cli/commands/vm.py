"""Commands for protected VMware virtual machines."""

import typer

from rbkops.cli.common.context import AppContext, build_context
from rbkops.cli.common.exits import handled_errors, warn_exit
from rbkops.cli.common.options import (
    ApiVersionOpt,
    ConfirmOpt,
    DryRunOpt,
    NameOpt,
    ProfileOpt,
    ServerOpt,
)
from rbkops.cli.common.output import out
from rbkops.cli.common.parsing import compile_regex_or_exit

vm_app = typer.Typer(
    help="Get / set protected virtual machines.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@vm_app.callback()
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


@vm_app.command("get")
def get(
    ctx: typer.Context,
    name: str | None = NameOpt,
    sla: str | None = typer.Option(
        None, "--sla", help="Only VMs whose SLA domain has this name"
    ),
):
    """List protected virtual machines."""
    appctx: AppContext = ctx.obj
    name_rx = compile_regex_or_exit(name, option_name="--name")

    with handled_errors(), out.status("Loading virtual machines..."):
        vms = appctx.adapter.list_vms()

    if name_rx:
        vms = [vm for vm in vms if name_rx.search(vm.name)]
    if sla:
        vms = [vm for vm in vms if (vm.sla_domain_name or "").lower() == sla.lower()]

    if not vms:
        warn_exit("No virtual machines found", code=0)

    out.vms_table(vms)


@vm_app.command("set")
def set_(
    ctx: typer.Context,
    vm_name: str = typer.Argument(..., help="Exact VM name"),
    sla_id: str = typer.Option(..., "--sla-id", help="SLA domain id to assign"),
    confirm: bool = ConfirmOpt,
    dry_run: bool = DryRunOpt,
):
    """Assign an SLA domain to a virtual machine."""
    appctx: AppContext = ctx.obj
    appctx.require_confirmation(confirm)

    with handled_errors():
        with out.status("Resolving virtual machine..."):
            vm = appctx.adapter.get_vm(vm_name)

        out.kv({"VM": f"{vm.name} ({vm.id})", "Current SLA": vm.sla_domain_name or "-"})
        if dry_run:
            warn_exit(f"Dry-run enabled: SLA {sla_id} was not assigned", code=0)

        updated = appctx.adapter.set_vm_sla(vm.id, sla_id)

    out.success(f"{updated.name} now uses SLA {updated.sla_domain_name or sla_id}")
