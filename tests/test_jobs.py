import threading

import pytest

from rbkops.core.errors import JobFailed, JobTimeout, OperationCancelled
from rbkops.core.jobs import (
    JobHandle,
    JobStatus,
    result_id_from_links,
    wait_for_job,
)

HANDLE = JobHandle(
    id="MOUNT_SNAPSHOT_1",
    status_uri="https://rbk.example.com/api/v1/vmware/vm/request/MOUNT_SNAPSHOT_1",
)
RESULT_LINKS = [
    {"rel": "self", "href": HANDLE.status_uri},
    {"rel": "result", "href": "https://rbk.example.com/api/v1/vmware/vm/snapshot/mount/m-42"},
]


class _ScriptedSource:
    def __init__(self, *statuses: str):
        self.payloads = [{"status": s} for s in statuses]
        self.polls = 0

    def get_job_status(self, handle):
        assert handle is HANDLE
        payload = self.payloads[self.polls]
        self.polls += 1
        if payload["status"] == "SUCCEEDED":
            payload = {**payload, "links": RESULT_LINKS}
        return payload


@pytest.fixture
def sleeps(monkeypatch):
    calls: list[float] = []
    monkeypatch.setattr("rbkops.core.jobs.time.sleep", calls.append)
    return calls


def test_polls_until_succeeded(sleeps):
    source = _ScriptedSource("QUEUED", "RUNNING", "SUCCEEDED")

    result = wait_for_job(source, HANDLE)

    assert source.polls == 3
    assert result.ok
    assert result.status is JobStatus.SUCCEEDED
    assert result.payload["links"] == RESULT_LINKS
    assert result.result_id == "m-42"
    assert sleeps == [1.0, 1.0]


def test_failed_job_raises_after_one_poll(sleeps):
    source = _ScriptedSource("FAILED", "SUCCEEDED")

    with pytest.raises(JobFailed) as excinfo:
        wait_for_job(source, HANDLE)

    assert source.polls == 1
    assert excinfo.value.status is JobStatus.FAILED
    assert sleeps == []


def test_canceled_job_is_a_failure(sleeps):
    source = _ScriptedSource("RUNNING", "CANCELLED")

    with pytest.raises(JobFailed):
        wait_for_job(source, HANDLE)

    assert source.polls == 2


def test_unknown_status_keeps_polling(sleeps):
    source = _ScriptedSource("TELEPORTING", "SUCCEEDED")

    assert wait_for_job(source, HANDLE).ok
    assert source.polls == 2


def test_backoff_grows_delay_up_to_the_cap(sleeps):
    source = _ScriptedSource("QUEUED", "RUNNING", "RUNNING", "RUNNING", "SUCCEEDED")

    wait_for_job(source, HANDLE, poll_interval=1.0, backoff=2.0, max_interval=5.0)

    assert sleeps == [1.0, 2.0, 4.0, 5.0]


def test_deadline_raises_timeout(sleeps):
    source = _ScriptedSource("RUNNING", "RUNNING")

    with pytest.raises(JobTimeout) as excinfo:
        wait_for_job(source, HANDLE, timeout=0)

    assert source.polls == 1
    assert excinfo.value.last_status is JobStatus.RUNNING


def test_cancel_event_aborts_wait():
    source = _ScriptedSource("RUNNING", "SUCCEEDED")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelled):
        wait_for_job(source, HANDLE, cancel=cancel)

    assert source.polls == 1


def test_on_poll_sees_every_status(sleeps):
    seen: list[JobStatus] = []
    source = _ScriptedSource("QUEUED", "SUCCEEDED")

    wait_for_job(source, HANDLE, on_poll=lambda status, _payload: seen.append(status))

    assert seen == [JobStatus.QUEUED, JobStatus.SUCCEEDED]


def test_rejects_bad_arguments():
    with pytest.raises(ValueError):
        wait_for_job(_ScriptedSource(), HANDLE, poll_interval=-1)
    with pytest.raises(ValueError):
        wait_for_job(_ScriptedSource(), HANDLE, backoff=0.5)


def test_result_id_from_links():
    assert result_id_from_links(RESULT_LINKS) == "m-42"
    assert result_id_from_links([{"rel": "result", "href": "https://x/api/v1/a/b-7/"}]) == "b-7"
    assert result_id_from_links([{"rel": "self", "href": "https://x/a"}]) is None
    assert result_id_from_links(None) is None


def test_job_status_parse():
    assert JobStatus.parse("succeeded") is JobStatus.SUCCEEDED
    assert JobStatus.parse("Cancelled") is JobStatus.CANCELED
    assert JobStatus.parse("SOMETHING_NEW") is JobStatus.UNKNOWN
    assert JobStatus.parse(None) is JobStatus.UNKNOWN
    assert JobStatus.FAILED.is_failure
    assert not JobStatus.CANCELING.is_failure


def test_handle_from_response_prefers_self_link():
    payload = {"id": "req-1", "status": "QUEUED", "links": [{"rel": "self", "href": "https://a/self"}]}

    handle = JobHandle.from_response(payload, fallback_uri="https://a/fallback", kind="vmware/vm")

    assert handle == JobHandle(id="req-1", status_uri="https://a/self", kind="vmware/vm")


def test_handle_from_response_falls_back():
    handle = JobHandle.from_response({"id": "req-2"}, fallback_uri="https://a/fallback")

    assert handle.status_uri == "https://a/fallback"

    with pytest.raises(ValueError):
        JobHandle.from_response({"status": "QUEUED"})
    with pytest.raises(ValueError):
        JobHandle.from_response({"id": "req-3"})
