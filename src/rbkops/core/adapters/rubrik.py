from __future__ import annotations

from typing import Any, Mapping

from rbkops.core.client import RubrikClient
from rbkops.core.endpoints import resolve
from rbkops.core.errors import ObjectNotFound
from rbkops.core.jobs import JobHandle
from rbkops.core.models import (
    Fileset,
    Mount,
    SlaDomain,
    Snapshot,
    SqlInstance,
    VirtualMachine,
    parse_timestamp,
)

_VM_JOB_KIND = "vmware/vm"


def _as_list(payload: Any) -> list[Mapping[str, Any]]:
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    return [payload]


def _vm(item: Mapping[str, Any]) -> VirtualMachine:
    return VirtualMachine(
        id=str(item["id"]),
        name=str(item.get("name") or ""),
        sla_domain_id=item.get("effectiveSlaDomainId")
        or item.get("configuredSlaDomainId"),
        sla_domain_name=item.get("effectiveSlaDomainName")
        or item.get("configuredSlaDomainName"),
        power_status=item.get("powerStatus"),
    )


def _mount(item: Mapping[str, Any]) -> Mount:
    return Mount(
        id=str(item["id"]),
        vm_id=item.get("vmId"),
        mounted_vm_id=item.get("mountedVmId"),
        snapshot_date=parse_timestamp(item.get("snapshotDate")),
        host_id=item.get("hostId"),
        is_ready=bool(item.get("isReady", False)),
    )


class RubrikVMwareAdapter:
    """Adapter around the appliance's VMware, SLA, fileset and SQL endpoints."""

    def __init__(self, client: RubrikClient) -> None:
        self.client = client

    def _job(self, payload: Mapping[str, Any] | None) -> JobHandle:
        if not payload:
            raise ValueError("Expected an asynchronous request in the response")
        fallback = resolve(self.client.connection, "vmware_vm_request", id=payload.get("id"))
        return JobHandle.from_response(payload, fallback_uri=fallback, kind=_VM_JOB_KIND)

    def get_job_status(self, handle: JobHandle) -> Mapping[str, Any]:
        return self.client.get_job_status(handle)

    # Virtual machines

    def list_vms(self, name: str | None = None) -> list[VirtualMachine]:
        """List protected VMs, optionally narrowed by a server-side name filter."""
        payload = self.client.request("vmware_vm", query={"name": name, "is_relic": False})
        return [_vm(item) for item in _as_list(payload) if item.get("id")]

    def get_vm(self, name: str) -> VirtualMachine:
        """Resolve a VM by exact name."""
        matches = [vm for vm in self.list_vms(name=name) if vm.name == name]
        if not matches:
            raise ObjectNotFound(f"Virtual machine '{name}' not found")
        if len(matches) > 1:
            ids = ", ".join(vm.id for vm in matches)
            raise ObjectNotFound(f"Virtual machine name '{name}' is ambiguous ({ids})")
        return matches[0]

    def get_vm_by_id(self, vm_id: str) -> VirtualMachine:
        return _vm(self.client.request("vmware_vm_id", id=vm_id))

    def set_vm_sla(self, vm_id: str, sla_id: str) -> VirtualMachine:
        """Assign an SLA domain to a VM."""
        payload = self.client.request(
            "vmware_vm_id",
            "PATCH",
            body={"configuredSlaDomainId": sla_id},
            id=vm_id,
        )
        return _vm(payload)

    # Snapshots

    def list_snapshots(self, vm_id: str) -> list[Snapshot]:
        payload = self.client.request("vmware_vm_snapshots", id=vm_id)
        snapshots: list[Snapshot] = []
        for item in _as_list(payload):
            date = parse_timestamp(item.get("date"))
            if not item.get("id") or date is None:
                continue
            snapshots.append(
                Snapshot(id=str(item["id"]), date=date, sla_domain_name=item.get("slaName"))
            )
        return snapshots

    def take_snapshot(self, vm_id: str, sla_id: str | None = None) -> JobHandle:
        """Start an on-demand snapshot."""
        body = {"slaId": sla_id} if sla_id else {}
        payload = self.client.request("vmware_vm_snapshots", "POST", body=body, id=vm_id)
        return self._job(payload)

    # Live mounts

    def list_mounts(self, vm_id: str | None = None) -> list[Mount]:
        payload = self.client.request("vmware_mount", query={"vm_id": vm_id})
        return [_mount(item) for item in _as_list(payload) if item.get("id")]

    def get_mount(self, mount_id: str) -> Mount:
        return _mount(self.client.request("vmware_mount_id", id=mount_id))

    def create_mount(
        self,
        snapshot_id: str,
        *,
        host_id: str | None = None,
        power_on: bool = False,
        disable_network: bool = True,
    ) -> JobHandle:
        """Start a live mount of a snapshot."""
        body: dict[str, Any] = {"powerOn": power_on, "disableNetwork": disable_network}
        if host_id:
            body["hostId"] = host_id
        payload = self.client.request(
            "vmware_snapshot_mount", "POST", body=body, id=snapshot_id
        )
        return self._job(payload)

    def delete_mount(self, mount_id: str, *, force: bool = False) -> JobHandle:
        """Start removal of a live mount."""
        payload = self.client.request(
            "vmware_mount_id",
            "DELETE",
            query={"force": force},
            id=mount_id,
        )
        return self._job(payload)

    # SLA domains, filesets, SQL instances

    def list_sla_domains(self) -> list[SlaDomain]:
        payload = self.client.request("sla_domain")
        return [
            SlaDomain(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                protected_vms=item.get("numVms"),
            )
            for item in _as_list(payload)
            if item.get("id")
        ]

    def list_filesets(self) -> list[Fileset]:
        payload = self.client.request("fileset", query={"is_relic": False})
        return [
            Fileset(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                host_name=item.get("hostName"),
                sla_domain_name=item.get("effectiveSlaDomainName")
                or item.get("configuredSlaDomainName"),
            )
            for item in _as_list(payload)
            if item.get("id")
        ]

    def list_sql_instances(self) -> list[SqlInstance]:
        payload = self.client.request("mssql_instance")
        return [
            SqlInstance(
                id=str(item["id"]),
                name=str(item.get("name") or ""),
                root_name=(item.get("rootProperties") or {}).get("rootName"),
                sla_domain_name=item.get("effectiveSlaDomainName")
                or item.get("configuredSlaDomainName"),
            )
            for item in _as_list(payload)
            if item.get("id")
        ]
