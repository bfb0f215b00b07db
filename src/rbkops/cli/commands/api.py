"""Raw REST calls and job monitoring."""

import json

import typer

from rbkops.cli.common.context import AppContext, build_context
from rbkops.cli.common.exits import die, handled_errors
from rbkops.cli.common.options import (
    ApiVersionOpt,
    ConfirmOpt,
    PollIntervalOpt,
    ProfileOpt,
    ServerOpt,
    TimeoutOpt,
)
from rbkops.cli.common.output import console, out
from rbkops.cli.common.parsing import parse_body_or_exit, parse_query_or_exit
from rbkops.cli.common.progress import wait_for_job_with_progress
from rbkops.core.client import METHODS
from rbkops.core.endpoints import resolve_path
from rbkops.core.jobs import JobHandle

api_app = typer.Typer(
    help="Call any appliance endpoint or wait for a job.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@api_app.callback()
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


@api_app.command("call")
def call(
    ctx: typer.Context,
    method: str = typer.Argument(..., help="GET, POST, PATCH or DELETE"),
    path: str = typer.Argument(..., help="Path below /api/<version>, e.g. /cluster/me"),
    body: str | None = typer.Option(None, "--body", help="JSON request body"),
    query: list[str] = typer.Option(
        [],
        "--query",
        "-q",
        help="Query parameter (key=value). This is reusable.",
        show_default=False,
    ),
    confirm: bool = ConfirmOpt,
):
    """Submit one request and print the (unwrapped) JSON response."""
    appctx: AppContext = ctx.obj
    if method.upper() not in METHODS:
        die(f"Unsupported method '{method}' (use {', '.join(sorted(METHODS))})", code=2)
    appctx.require_confirmation(confirm)
    payload = parse_body_or_exit(body)
    params = parse_query_or_exit(query)

    with handled_errors():
        uri = resolve_path(appctx.connection, path, query=params)
        result = appctx.client.submit(uri, method, payload)

    if result is None:
        out.success(f"{method.upper()} {uri}")
        return
    if isinstance(result, str):
        console.print(result)
        return
    console.print_json(json.dumps(result))


@api_app.command("wait")
def wait(
    ctx: typer.Context,
    status_uri: str = typer.Argument(..., help="Status URI ('self' link) of the job"),
    timeout: float | None = TimeoutOpt,
    poll_interval: float = PollIntervalOpt,
):
    """Wait for an asynchronous request to finish."""
    appctx: AppContext = ctx.obj
    handle = JobHandle(id=status_uri.rstrip("/").rsplit("/", 1)[-1], status_uri=status_uri)

    with handled_errors():
        result = wait_for_job_with_progress(
            appctx.client, handle, poll_interval=poll_interval, timeout=timeout
        )

    out.job_result(result)
