"""Progress formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from rbkops.core.jobs import JobHandle, JobResult, JobStatus, JobStatusSource, wait_for_job

console = Console()

PollCallback = Callable[[JobStatus, Mapping[str, Any]], None]


def _style_for(status: JobStatus) -> str:
    if status == JobStatus.SUCCEEDED:
        return "green"
    if status.is_failure:
        return "red"
    if status == JobStatus.UNKNOWN:
        return "dim"
    return "yellow"


@contextmanager
def job_progress(label: str) -> Iterator[PollCallback]:
    """
    Show a spinner row with the latest job status and elapsed time.

    Yields a poll callback to hand to the job poller (or to a workflow that
    forwards it); each call refreshes the status column.
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.fields[label]}[/]"),
        TextColumn(
            "status=[{task.fields[style]}]{task.fields[status]}[/{task.fields[style]}]"
        ),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    task_id = progress.add_task(
        "",
        total=None,
        label=label,
        status="PENDING",
        style="yellow",
    )

    def on_poll(status: JobStatus, payload: Mapping[str, Any]) -> None:
        progress.update(task_id, status=status.value, style=_style_for(status))

    with progress:
        yield on_poll


def wait_for_job_with_progress(
    source: JobStatusSource,
    handle: JobHandle,
    *,
    poll_interval: float = 1.0,
    timeout: float | None = None,
) -> JobResult:
    """Poll a job until it is terminal while showing a live status row."""
    with job_progress(f"job {handle.id}") as on_poll:
        return wait_for_job(
            source,
            handle,
            poll_interval=poll_interval,
            timeout=timeout,
            on_poll=on_poll,
        )
