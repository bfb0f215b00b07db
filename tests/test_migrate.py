from datetime import datetime, timezone

import pytest

from rbkops.core.errors import ArtifactNotFound, JobFailed
from rbkops.core.jobs import JobHandle
from rbkops.core.migrate import (
    cleanup_command,
    cleanup_mount_disks,
    migrate_mount_disks,
    select_disks,
)
from rbkops.core.models import Disk, Mount, Snapshot, VirtualMachine
from rbkops.core.recovery import RecoveryArtifact, read_artifact, write_artifact

MOUNTED_VM = "VM1 03-01 01:00 0"


def _disk(index: int, vm: str = MOUNTED_VM) -> Disk:
    return Disk(key=str(2000 + index), label=f"Hard disk {index + 1}", path=f"[ds] {vm}/{vm}_{index}.vmdk")


class _Appliance:
    def __init__(self, *, job_status: str = "SUCCEEDED"):
        self.job_status = job_status
        self.calls: list[tuple] = []

    def get_vm(self, name):
        return VirtualMachine(id="vm-1", name=name)

    def get_vm_by_id(self, vm_id):
        assert vm_id == "vm-mounted"
        return VirtualMachine(id=vm_id, name=MOUNTED_VM)

    def list_snapshots(self, vm_id):
        return [
            Snapshot(id="snap-1", date=datetime(2024, 3, 1, 1, tzinfo=timezone.utc)),
            Snapshot(id="snap-2", date=datetime(2024, 3, 2, 1, tzinfo=timezone.utc)),
        ]

    def create_mount(self, snapshot_id, *, host_id=None):
        self.calls.append(("create_mount", snapshot_id, host_id))
        return JobHandle(id="MOUNT_1", status_uri="https://rbk/api/v1/vmware/vm/request/MOUNT_1")

    def get_mount(self, mount_id):
        return Mount(id=mount_id, vm_id="vm-1", mounted_vm_id="vm-mounted")

    def delete_mount(self, mount_id, *, force=False):
        self.calls.append(("delete_mount", mount_id, force))
        return JobHandle(id="UNMOUNT_1", status_uri="https://rbk/api/v1/vmware/vm/request/UNMOUNT_1")

    def get_job_status(self, handle):
        return {
            "id": handle.id,
            "status": self.job_status,
            "links": [{"rel": "result", "href": "https://rbk/api/v1/vmware/vm/snapshot/mount/m-42"}],
        }


class _Platform:
    def __init__(self, disks: dict[str, list[Disk]], *, fail_attach_at: int | None = None):
        self.disks = {vm: list(items) for vm, items in disks.items()}
        self.fail_attach_at = fail_attach_at
        self.calls: list[tuple] = []

    def list_disks(self, vm_name):
        return list(self.disks.get(vm_name, []))

    def detach_disk(self, vm_name, disk):
        self.calls.append(("detach", vm_name, disk.path))
        self.disks[vm_name].remove(disk)

    def attach_disk(self, vm_name, path):
        attached = sum(1 for call in self.calls if call[0] == "attach")
        if self.fail_attach_at is not None and attached == self.fail_attach_at:
            raise RuntimeError(f"attach of {path} failed")
        self.calls.append(("attach", vm_name, path))
        disk = Disk(key=str(3000 + attached), label="new", path=path)
        self.disks.setdefault(vm_name, []).append(disk)
        return disk

    def bring_disks_online(self, vm_name):
        self.calls.append(("online", vm_name))


def test_select_disks_skips_excluded_indices(caplog):
    disks = [_disk(0), _disk(1), _disk(2)]

    assert select_disks(disks, [1]) == [disks[0], disks[2]]
    assert select_disks(disks, [7]) == disks
    assert "out of range" in caplog.text


def test_migrate_moves_disks_and_writes_artifact(tmp_path):
    disks = [_disk(0), _disk(1), _disk(2)]
    appliance = _Appliance()
    platform = _Platform({MOUNTED_VM: disks})

    result = migrate_mount_disks(
        appliance,
        platform,
        source_vm="VM1",
        target_vm="VM2",
        exclude=[1],
        artifact_dir=tmp_path,
    )

    assert appliance.calls == [("create_mount", "snap-2", None)]
    assert result.snapshot.id == "snap-2"
    assert result.mount_id == "m-42"
    assert result.mounted_vm == MOUNTED_VM
    assert result.migrated == (disks[0].path, disks[2].path)
    assert [d.path for d in platform.list_disks("VM2")] == [disks[0].path, disks[2].path]
    assert platform.list_disks(MOUNTED_VM) == [disks[1]]
    assert read_artifact(result.artifact_path) == RecoveryArtifact(
        target="VM2", mount_id="m-42", paths=(disks[0].path, disks[2].path)
    )
    assert result.cleanup_command == cleanup_command(result.artifact_path)


def test_migrate_selects_snapshot_before_time(tmp_path):
    appliance = _Appliance()
    platform = _Platform({MOUNTED_VM: []})

    result = migrate_mount_disks(
        appliance,
        platform,
        source_vm="VM1",
        target_vm="VM2",
        at=datetime(2024, 3, 1, 12, tzinfo=timezone.utc),
        host_id="host-7",
        artifact_dir=tmp_path,
    )

    assert appliance.calls == [("create_mount", "snap-1", "host-7")]
    assert result.migrated == ()


def test_migrate_mounts_the_snapshot_it_was_given(tmp_path):
    appliance = _Appliance()
    platform = _Platform({MOUNTED_VM: []})
    chosen = Snapshot(id="snap-1", date=datetime(2024, 3, 1, 1, tzinfo=timezone.utc))

    def _no_listing(vm_id):
        raise AssertionError("snapshots listed again")

    appliance.list_snapshots = _no_listing

    result = migrate_mount_disks(
        appliance,
        platform,
        source_vm="VM1",
        target_vm="VM2",
        snapshot=chosen,
        artifact_dir=tmp_path,
    )

    assert appliance.calls == [("create_mount", "snap-1", None)]
    assert result.snapshot is chosen


def test_migrate_brings_disks_online_when_asked(tmp_path):
    platform = _Platform({MOUNTED_VM: [_disk(0)]})

    migrate_mount_disks(
        _Appliance(),
        platform,
        source_vm="VM1",
        target_vm="VM2",
        bring_online=True,
        artifact_dir=tmp_path,
    )

    assert platform.calls[-1] == ("online", "VM2")


def test_failed_mount_job_aborts_before_disk_changes(tmp_path):
    platform = _Platform({MOUNTED_VM: [_disk(0)]})

    with pytest.raises(JobFailed):
        migrate_mount_disks(
            _Appliance(job_status="FAILED"),
            platform,
            source_vm="VM1",
            target_vm="VM2",
            artifact_dir=tmp_path,
        )

    assert platform.calls == []
    assert list(tmp_path.iterdir()) == []


def test_disk_failure_propagates_and_stops_the_loop(tmp_path):
    disks = [_disk(0), _disk(1), _disk(2)]
    platform = _Platform({MOUNTED_VM: disks}, fail_attach_at=1)

    with pytest.raises(RuntimeError, match="attach"):
        migrate_mount_disks(
            _Appliance(), platform, source_vm="VM1", target_vm="VM2", artifact_dir=tmp_path
        )

    assert [c for c in platform.calls if c[0] == "attach"] == [("attach", "VM2", disks[0].path)]
    assert ("detach", MOUNTED_VM, disks[2].path) not in platform.calls
    assert list(tmp_path.iterdir()) == []


def test_cleanup_detaches_recorded_disks_and_removes_mount(tmp_path):
    recorded = [_disk(0, "VM1-mount"), _disk(2, "VM1-mount")]
    own = _disk(0, "VM2")
    platform = _Platform({"VM2": [own, *recorded]})
    appliance = _Appliance()
    path = write_artifact(
        RecoveryArtifact(target="VM2", mount_id="m-42", paths=tuple(d.path for d in recorded)),
        tmp_path,
    )

    result = cleanup_mount_disks(appliance, platform, path)

    assert result.detached == tuple(d.path for d in recorded)
    assert result.skipped == ()
    assert platform.list_disks("VM2") == [own]
    assert appliance.calls == [("delete_mount", "m-42", False)]
    assert result.artifact_removed
    assert not path.exists()


def test_cleanup_with_nothing_attached_still_removes_mount(tmp_path):
    platform = _Platform({"VM2": [_disk(0, "VM2")]})
    appliance = _Appliance()
    path = write_artifact(
        RecoveryArtifact(target="VM2", mount_id="m-42", paths=("[ds] gone/gone.vmdk",)),
        tmp_path,
    )

    result = cleanup_mount_disks(appliance, platform, path, force=True, keep_artifact=True)

    assert result.detached == ()
    assert result.skipped == ("[ds] gone/gone.vmdk",)
    assert [c for c in platform.calls if c[0] == "detach"] == []
    assert appliance.calls == [("delete_mount", "m-42", True)]
    assert path.exists()


def test_cleanup_reads_legacy_artifacts(tmp_path):
    disk = _disk(1, "VM1-mount")
    platform = _Platform({"VM2": [disk]})
    path = tmp_path / "VM2-cleanup.txt"
    path.write_text(f"VM2\nm-42\n{disk.path}\n\n")

    result = cleanup_mount_disks(_Appliance(), platform, path)

    assert result.detached == (disk.path,)


def test_cleanup_missing_artifact(tmp_path):
    appliance = _Appliance()

    with pytest.raises(ArtifactNotFound):
        cleanup_mount_disks(appliance, _Platform({}), tmp_path / "nope.json")

    assert appliance.calls == []


def test_cleanup_command_quotes_path(tmp_path):
    path = tmp_path / "with space.json"

    assert cleanup_command(path) == f"rbkops mount migrate-cleanup '{path}'"
