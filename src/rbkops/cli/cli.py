"""CLI application for backup appliance operations tooling."""

import typer

from rbkops.cli.commands.api import api_app
from rbkops.cli.commands.inventory import fileset_app, sla_app, sql_app
from rbkops.cli.commands.mount import mount_app
from rbkops.cli.commands.snapshot import snapshot_app
from rbkops.cli.commands.vm import vm_app
from rbkops.cli.common.logs import configure_logging

app = typer.Typer(
    help="rbkops - backup appliance operations tooling",
    no_args_is_help=True,
)


@app.callback()
def _main(
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="More log output (-v info, -vv debug)"
    ),
):
    """Configure logging for every command."""
    configure_logging(verbose)


app.add_typer(vm_app, name="vm")
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(mount_app, name="mount", help="Live mounts and disk migration.")
app.add_typer(sla_app, name="sla")
app.add_typer(fileset_app, name="fileset")
app.add_typer(sql_app, name="sql")
app.add_typer(api_app, name="api")


if __name__ == "__main__":
    app()
