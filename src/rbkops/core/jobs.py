"""Asynchronous job handles and the completion poller.

Mutating appliance calls (mounts, on-demand snapshots, unmounts) return an
asynchronous request object instead of a final result. This module models
those handles and provides a synchronous poller that blocks until the job
reaches a terminal status.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, Sequence

from rbkops.core.errors import JobFailed, JobTimeout, OperationCancelled

log = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """
    Status labels reported for asynchronous requests.

    Only SUCCEEDED counts as success. FAILED and CANCELED are terminal
    failures. Everything else, including labels this client does not know
    (parsed as UNKNOWN), means the job is still in flight.
    """

    QUEUED = "QUEUED"
    ACQUIRING = "ACQUIRING"
    RUNNING = "RUNNING"
    FINISHING = "FINISHING"
    CANCELING = "CANCELING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, label: Any) -> JobStatus:
        if not label:
            return cls.UNKNOWN
        normalized = str(label).strip().upper()
        if normalized == "CANCELLED":
            normalized = "CANCELED"
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_failure(self) -> bool:
        return self in _FAILURE_STATUSES


_FAILURE_STATUSES = frozenset({JobStatus.FAILED, JobStatus.CANCELED})


@dataclass(frozen=True)
class JobHandle:
    """
    Reference to an asynchronous request on the appliance.

    Attributes:
        id: Request identifier.
        status_uri: URI returning the request's current status.
        kind: Optional job family (e.g. "vmware/vm"), used for display.
    """

    id: str
    status_uri: str
    kind: str | None = None

    @classmethod
    def from_response(
        cls,
        payload: Mapping[str, Any],
        *,
        fallback_uri: str | None = None,
        kind: str | None = None,
    ) -> JobHandle:
        """Build a handle from an asynchronous request response body."""
        job_id = payload.get("id")
        if not job_id:
            raise ValueError("Asynchronous request response has no 'id'")
        status_uri = _link_href(payload.get("links"), "self") or fallback_uri
        if not status_uri:
            raise ValueError(f"No status link for asynchronous request {job_id}")
        return cls(id=str(job_id), status_uri=status_uri, kind=kind)


@dataclass(frozen=True)
class JobResult:
    """Terminal outcome of an asynchronous request."""

    handle: JobHandle
    status: JobStatus
    payload: Mapping[str, Any]
    result_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.SUCCEEDED


class JobStatusSource(Protocol):
    """Anything that can fetch the current status payload for a job."""

    def get_job_status(self, handle: JobHandle) -> Mapping[str, Any]:
        """Return the raw status payload for the job."""
        ...


def _link_href(links: Sequence[Mapping[str, Any]] | None, rel: str) -> str | None:
    for link in links or []:
        if link.get("rel") == rel and link.get("href"):
            return str(link["href"])
    return None


def result_id_from_links(links: Sequence[Mapping[str, Any]] | None) -> str | None:
    """
    Extract the created resource id from a job's links.

    Selects the link whose relation is "result" and returns the final
    '/'-delimited segment of its href, or None if there is no such link.
    """
    href = _link_href(links, "result")
    if not href:
        return None
    segment = href.rstrip("/").rsplit("/", 1)[-1]
    return segment or None


def wait_for_job(
    source: JobStatusSource,
    handle: JobHandle,
    *,
    poll_interval: float = 1.0,
    timeout: float | None = None,
    backoff: float = 1.0,
    max_interval: float = 30.0,
    cancel: threading.Event | None = None,
    on_poll: Callable[[JobStatus, Mapping[str, Any]], None] | None = None,
) -> JobResult:
    """
    Block until an asynchronous job reaches a terminal status.

    Args:
        source: Status source (normally the RubrikClient).
        handle: Job to monitor.
        poll_interval: Initial delay in seconds between status checks.
        timeout: Optional overall deadline in seconds.
        backoff: Multiplier applied to the delay after every poll (1.0 keeps
            a fixed interval).
        max_interval: Upper bound for the delay when backing off.
        cancel: Optional event; setting it aborts the wait.
        on_poll: Optional callback receiving each observed status.

    Returns:
        A JobResult with status SUCCEEDED and the extracted result id.

    Raises:
        JobFailed: The job finished FAILED or CANCELED.
        JobTimeout: The deadline passed before a terminal status.
        OperationCancelled: The cancel event was set.
    """
    if poll_interval < 0:
        raise ValueError("poll_interval must be >= 0")
    if backoff < 1.0:
        raise ValueError("backoff must be >= 1.0")

    deadline = time.monotonic() + timeout if timeout is not None else None
    delay = poll_interval

    while True:
        payload = source.get_job_status(handle) or {}
        status = JobStatus.parse(payload.get("status"))
        log.debug("Job %s status %s", handle.id, status.value)
        if on_poll:
            on_poll(status, payload)

        if status == JobStatus.SUCCEEDED:
            return JobResult(
                handle=handle,
                status=status,
                payload=payload,
                result_id=result_id_from_links(payload.get("links")),
            )
        if status.is_failure:
            raise JobFailed(status, handle, payload.get("error"))

        if deadline is not None and time.monotonic() + delay > deadline:
            raise JobTimeout(handle, timeout, status)

        if cancel is not None:
            if cancel.wait(delay):
                raise OperationCancelled(f"Wait for job {handle.id} was cancelled")
        else:
            time.sleep(delay)
        delay = min(delay * backoff, max(max_interval, poll_interval))
