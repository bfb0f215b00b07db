"""Core domain models for appliance objects.

These models represent appliance and hypervisor entities in a simple,
immutable form. They are intentionally free of HTTP and UI/CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an appliance ISO-8601 timestamp (e.g. 2024-05-01T10:00:00.000Z)."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class VirtualMachine:
    """Lightweight representation of a protected VMware virtual machine."""

    id: str
    name: str
    sla_domain_id: str | None = None
    sla_domain_name: str | None = None
    power_status: str | None = None


@dataclass(frozen=True)
class Snapshot:
    """A point-in-time snapshot of a protected object."""

    id: str
    date: datetime
    sla_domain_name: str | None = None


@dataclass(frozen=True)
class Mount:
    """A live mount of a VM snapshot."""

    id: str
    vm_id: str | None = None
    mounted_vm_id: str | None = None
    snapshot_date: datetime | None = None
    host_id: str | None = None
    is_ready: bool = False


@dataclass(frozen=True)
class SlaDomain:
    """Lightweight representation of an SLA domain."""

    id: str
    name: str
    protected_vms: int | None = None


@dataclass(frozen=True)
class Fileset:
    id: str
    name: str
    host_name: str | None = None
    sla_domain_name: str | None = None


@dataclass(frozen=True)
class SqlInstance:
    id: str
    name: str
    root_name: str | None = None
    sla_domain_name: str | None = None


@dataclass(frozen=True)
class Disk:
    """
    A virtual disk attached to a VM.

    Attributes:
        key: Hypervisor device key, stable while attached.
        label: Display label (e.g. "Hard disk 2").
        path: Backing file path, the identity used across detach/attach.
        capacity_bytes: Provisioned size, if reported.
    """

    key: str
    label: str
    path: str
    capacity_bytes: int | None = None
