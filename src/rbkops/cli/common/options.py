"""Common CLI options for the CLI."""

import typer

ProfileOpt = typer.Option(
    None,
    "--profile",
    "-p",
    help="rbkops profile (from ~/.rbkopscfg)",
)

ServerOpt = typer.Option(
    None,
    "--server",
    help="Appliance address (defaults to the profile's server)",
)

ApiVersionOpt = typer.Option(
    None,
    "--api-version",
    help="API version: v1, v2 or internal (defaults to the profile's api_version)",
)

NameOpt = typer.Option(
    None,
    "--name",
    help="Regex on object name",
)

AtOpt = typer.Option(
    None,
    "--at",
    help="Point in time (ISO 8601); picks the nearest snapshot at or before it",
)

ConfirmOpt = typer.Option(
    True,
    "--confirm/--no-confirm",
    help="Ask for confirmation before changing anything",
)

WatchOpt = typer.Option(
    False,
    "--watch",
    "-w",
    help="Wait until the job is complete",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would happen, but don't change anything",
)

TimeoutOpt = typer.Option(
    None,
    "--timeout",
    help="Give up waiting for a job after this many seconds",
)

PollIntervalOpt = typer.Option(
    1.0,
    "--poll-interval",
    help="Seconds between job status checks",
)
