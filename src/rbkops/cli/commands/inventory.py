"""Read-only commands for SLA domains, filesets and SQL Server instances."""

import typer

from rbkops.cli.common.context import AppContext, build_context
from rbkops.cli.common.exits import handled_errors, warn_exit
from rbkops.cli.common.options import ApiVersionOpt, NameOpt, ProfileOpt, ServerOpt
from rbkops.cli.common.output import out
from rbkops.cli.common.parsing import compile_regex_or_exit


def _typer(help_text: str) -> typer.Typer:
    app = typer.Typer(help=help_text, no_args_is_help=False, invoke_without_command=True)

    @app.callback()
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

    return app


sla_app = _typer("Get SLA domains.")
fileset_app = _typer("Get filesets.")
sql_app = _typer("Get SQL Server instances.")


def _filter(items, name: str | None):
    name_rx = compile_regex_or_exit(name, option_name="--name")
    if not name_rx:
        return items
    return [item for item in items if name_rx.search(item.name)]


@sla_app.command("get")
def sla_get(ctx: typer.Context, name: str | None = NameOpt):
    """List SLA domains."""
    appctx: AppContext = ctx.obj

    with handled_errors(), out.status("Loading SLA domains..."):
        slas = appctx.adapter.list_sla_domains()

    slas = _filter(slas, name)
    if not slas:
        warn_exit("No SLA domains found", code=0)

    out.named_table(
        slas,
        {"Name": "name", "ID": "id", "Protected VMs": "protected_vms"},
        title="SLA domains",
    )


@fileset_app.command("get")
def fileset_get(ctx: typer.Context, name: str | None = NameOpt):
    """List filesets."""
    appctx: AppContext = ctx.obj

    with handled_errors(), out.status("Loading filesets..."):
        filesets = appctx.adapter.list_filesets()

    filesets = _filter(filesets, name)
    if not filesets:
        warn_exit("No filesets found", code=0)

    out.named_table(
        filesets,
        {"Name": "name", "ID": "id", "Host": "host_name", "SLA domain": "sla_domain_name"},
        title="Filesets",
    )


@sql_app.command("get")
def sql_get(ctx: typer.Context, name: str | None = NameOpt):
    """List SQL Server instances."""
    appctx: AppContext = ctx.obj

    with handled_errors(), out.status("Loading SQL Server instances..."):
        instances = appctx.adapter.list_sql_instances()

    instances = _filter(instances, name)
    if not instances:
        warn_exit("No SQL Server instances found", code=0)

    out.named_table(
        instances,
        {"Name": "name", "ID": "id", "Host": "root_name", "SLA domain": "sla_domain_name"},
        title="SQL Server instances",
    )
