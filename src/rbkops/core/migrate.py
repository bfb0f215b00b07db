"""Mount-and-migrate workflow for live-mounted VM disks.

Create mode live-mounts a VM snapshot, moves the mount's disks onto a target
VM and writes a recovery artifact. Cleanup mode reads that artifact back,
detaches the migrated disks from the target and removes the live mount.

The workflow does not catch or downgrade errors from its collaborators:
a failure aborts the run and propagates unchanged. Only what was already
persisted before the failure point survives.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol

from rbkops.core.errors import ArtifactNotFound, ObjectNotFound
from rbkops.core.jobs import JobHandle, JobStatus, wait_for_job
from rbkops.core.models import Disk, Mount, Snapshot, VirtualMachine
from rbkops.core.recovery import (
    RecoveryArtifact,
    delete_artifact,
    read_artifact,
    write_artifact,
)
from rbkops.core.snapshots import select_snapshot

log = logging.getLogger(__name__)

PollCallback = Callable[[JobStatus, Mapping[str, Any]], None]


class ApplianceAdapter(Protocol):
    """Appliance operations used by the workflow."""

    def get_vm(self, name: str) -> VirtualMachine: ...

    def get_vm_by_id(self, vm_id: str) -> VirtualMachine: ...

    def list_snapshots(self, vm_id: str) -> list[Snapshot]: ...

    def create_mount(
        self, snapshot_id: str, *, host_id: str | None = None
    ) -> JobHandle: ...

    def get_mount(self, mount_id: str) -> Mount: ...

    def delete_mount(self, mount_id: str, *, force: bool = False) -> JobHandle: ...

    def get_job_status(self, handle: JobHandle) -> Mapping[str, Any]: ...


class DiskPlatform(Protocol):
    """Hypervisor disk operations used by the workflow."""

    def list_disks(self, vm_name: str) -> list[Disk]: ...

    def detach_disk(self, vm_name: str, disk: Disk) -> None: ...

    def attach_disk(self, vm_name: str, path: str) -> Disk: ...

    def bring_disks_online(self, vm_name: str) -> None: ...


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of a completed create-mode run."""

    source_vm: str
    target_vm: str
    snapshot: Snapshot
    mount_id: str
    mounted_vm: str
    migrated: tuple[str, ...]
    artifact_path: Path
    cleanup_command: str


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of a completed cleanup-mode run."""

    target_vm: str
    mount_id: str
    detached: tuple[str, ...] = field(default_factory=tuple)
    skipped: tuple[str, ...] = field(default_factory=tuple)
    artifact_removed: bool = False


def cleanup_command(artifact_path: Path) -> str:
    """Return the CLI invocation that reverses a migration."""
    return f"rbkops mount migrate-cleanup {shlex.quote(str(artifact_path))}"


def select_disks(disks: list[Disk], exclude: Iterable[int] = ()) -> list[Disk]:
    """Return disks whose zero-based index is not excluded."""
    excluded = set(exclude)
    out_of_range = sorted(i for i in excluded if i < 0 or i >= len(disks))
    if out_of_range:
        log.warning("Ignoring exclude indices out of range: %s", out_of_range)
    return [disk for index, disk in enumerate(disks) if index not in excluded]


def migrate_mount_disks(
    appliance: ApplianceAdapter,
    platform: DiskPlatform,
    *,
    source_vm: str,
    target_vm: str,
    at: datetime | None = None,
    snapshot: Snapshot | None = None,
    host_id: str | None = None,
    exclude: Iterable[int] = (),
    bring_online: bool = False,
    artifact_dir: Path | None = None,
    poll_interval: float = 1.0,
    timeout: float | None = None,
    on_poll: PollCallback | None = None,
) -> MigrationResult:
    """
    Live-mount a snapshot of `source_vm` and move its disks to `target_vm`.

    Steps:
      1) resolve the source VM and the snapshot at or before `at`, unless
         the caller already chose `snapshot`
      2) start the live mount and wait for it
      3) list the mounted VM's disks, minus excluded indices
      4) detach each disk from the mount and attach it to the target
      5) optionally bring the target's disks online
      6) write the recovery artifact

    Returns:
        A MigrationResult including the artifact path and cleanup command.
    """
    vm = appliance.get_vm(source_vm)
    if snapshot is None:
        snapshot = select_snapshot(appliance.list_snapshots(vm.id), at)
    log.info("Mounting snapshot %s (%s) of %s", snapshot.id, snapshot.date, vm.name)

    handle = appliance.create_mount(snapshot.id, host_id=host_id)
    job = wait_for_job(
        appliance, handle, poll_interval=poll_interval, timeout=timeout, on_poll=on_poll
    )
    if not job.result_id:
        raise ObjectNotFound(f"Mount job {handle.id} succeeded without a result link")

    mount = appliance.get_mount(job.result_id)
    if not mount.mounted_vm_id:
        raise ObjectNotFound(f"Mount {mount.id} has no mounted VM")
    mounted_vm = appliance.get_vm_by_id(mount.mounted_vm_id).name

    migrated: list[str] = []
    for disk in select_disks(platform.list_disks(mounted_vm), exclude):
        platform.detach_disk(mounted_vm, disk)
        platform.attach_disk(target_vm, disk.path)
        migrated.append(disk.path)
        log.info("Migrated %s to %s", disk.path, target_vm)

    if bring_online and migrated:
        platform.bring_disks_online(target_vm)

    artifact_path = write_artifact(
        RecoveryArtifact(target=target_vm, mount_id=mount.id, paths=tuple(migrated)),
        artifact_dir,
    )
    return MigrationResult(
        source_vm=vm.name,
        target_vm=target_vm,
        snapshot=snapshot,
        mount_id=mount.id,
        mounted_vm=mounted_vm,
        migrated=tuple(migrated),
        artifact_path=artifact_path,
        cleanup_command=cleanup_command(artifact_path),
    )


def cleanup_mount_disks(
    appliance: ApplianceAdapter,
    platform: DiskPlatform,
    artifact_path: Path | str,
    *,
    force: bool = False,
    poll_interval: float = 1.0,
    timeout: float | None = None,
    keep_artifact: bool = False,
    on_poll: PollCallback | None = None,
) -> CleanupResult:
    """
    Reverse a migration recorded in a recovery artifact.

    Disks are matched by presence: every disk currently attached to the
    target whose path is recorded gets detached; recorded paths that are no
    longer attached are skipped. The live mount is removed afterwards.

    Raises:
        ArtifactNotFound: `artifact_path` does not exist.
    """
    path = Path(artifact_path)
    if not path.exists():
        raise ArtifactNotFound(str(path))
    artifact = read_artifact(path)

    recorded = set(artifact.paths)
    detached: list[str] = []
    for disk in platform.list_disks(artifact.target):
        if disk.path in recorded:
            platform.detach_disk(artifact.target, disk)
            detached.append(disk.path)
    skipped = tuple(p for p in artifact.paths if p not in detached)
    if skipped:
        log.info("Already detached from %s: %s", artifact.target, ", ".join(skipped))

    handle = appliance.delete_mount(artifact.mount_id, force=force)
    wait_for_job(
        appliance, handle, poll_interval=poll_interval, timeout=timeout, on_poll=on_poll
    )

    if not keep_artifact:
        delete_artifact(path)
    return CleanupResult(
        target_vm=artifact.target,
        mount_id=artifact.mount_id,
        detached=tuple(detached),
        skipped=skipped,
        artifact_removed=not keep_artifact,
    )
