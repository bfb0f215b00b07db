from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from rbkops.core.auth import Profile, sanitize_host
from rbkops.core.errors import ObjectNotFound, RbkError
from rbkops.core.models import Disk

log = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 60
_POWERSHELL = r"C:\Windows\System32\WindowsPowerShell\v1.0\powershell.exe"
_ONLINE_DISKS_SCRIPT = (
    "Get-Disk | Where-Object IsOffline -eq $true | "
    "Set-Disk -IsOffline $false; "
    "Get-Disk | Where-Object IsReadOnly -eq $true | "
    "Set-Disk -IsReadOnly $false"
)


class VSphereError(RbkError):
    """Raised when a vCenter call fails."""


@dataclass(frozen=True)
class VSphereSettings:
    """vCenter endpoint plus optional guest credentials for in-guest actions."""

    server: str
    username: str
    password: str
    verify_ssl: bool = True
    guest_username: str | None = None
    guest_password: str | None = None

    @classmethod
    def from_profile(cls, profile: Profile) -> VSphereSettings:
        server = sanitize_host(profile.get("vcenter_server"))
        username = profile.get("vcenter_username")
        password = profile.get("vcenter_password")
        if not server or not username or not password:
            raise VSphereError(
                "vCenter is not configured. Set vcenter_server, vcenter_username "
                "and vcenter_password in the profile (or RBKOPS_VCENTER_*)."
            )
        return cls(
            server=server,
            username=username,
            password=password,
            verify_ssl=profile.get_bool("vcenter_verify_ssl", True),
            guest_username=profile.get("guest_username"),
            guest_password=profile.get("guest_password"),
        )


class VSphereDiskAdapter:
    """Disk detach/attach operations through the vCenter REST API."""

    def __init__(
        self, settings: VSphereSettings, session: requests.Session | None = None
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.session.verify = settings.verify_ssl
        self._vm_ids: dict[str, str] = {}
        self._logged_in = False

    @property
    def base_url(self) -> str:
        return f"https://{self.settings.server}/api"

    def _login(self) -> None:
        response = self.session.post(
            f"{self.base_url}/session",
            auth=(self.settings.username, self.settings.password),
            timeout=_TIMEOUT_SECONDS,
        )
        if response.status_code >= 400:
            raise VSphereError(
                f"vCenter login to {self.settings.server} failed (HTTP {response.status_code})"
            )
        self.session.headers["vmware-api-session-id"] = response.json()
        self._logged_in = True

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self._logged_in:
            self._login()
        response = self.session.request(
            method, f"{self.base_url}{path}", timeout=_TIMEOUT_SECONDS, **kwargs
        )
        if response.status_code >= 400:
            raise VSphereError(
                f"vCenter {method} {path} failed (HTTP {response.status_code}): "
                f"{response.text[:200]}"
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _vm_id(self, vm_name: str) -> str:
        if vm_name in self._vm_ids:
            return self._vm_ids[vm_name]
        found = self._call("GET", "/vcenter/vm", params={"names": vm_name}) or []
        if not found:
            raise ObjectNotFound(f"vCenter VM '{vm_name}' not found")
        if len(found) > 1:
            raise ObjectNotFound(f"vCenter VM name '{vm_name}' is ambiguous")
        self._vm_ids[vm_name] = found[0]["vm"]
        return self._vm_ids[vm_name]

    def list_disks(self, vm_name: str) -> list[Disk]:
        """Return the VM's VMDK-backed disks ordered by device key."""
        vm_id = self._vm_id(vm_name)
        disks: list[Disk] = []
        for entry in self._call("GET", f"/vcenter/vm/{vm_id}/hardware/disk") or []:
            key = str(entry["disk"])
            info = self._call("GET", f"/vcenter/vm/{vm_id}/hardware/disk/{key}") or {}
            backing = info.get("backing") or {}
            if backing.get("type") != "VMDK_FILE":
                continue
            disks.append(
                Disk(
                    key=key,
                    label=info.get("label") or key,
                    path=backing["vmdk_file"],
                    capacity_bytes=info.get("capacity"),
                )
            )
        return sorted(disks, key=lambda d: int(d.key) if d.key.isdigit() else d.key)

    def detach_disk(self, vm_name: str, disk: Disk) -> None:
        """Remove a disk from the VM without deleting its backing file."""
        vm_id = self._vm_id(vm_name)
        log.info("Detaching %s from %s", disk.path, vm_name)
        self._call("DELETE", f"/vcenter/vm/{vm_id}/hardware/disk/{disk.key}")

    def attach_disk(self, vm_name: str, path: str) -> Disk:
        """Attach an existing VMDK file to the VM."""
        vm_id = self._vm_id(vm_name)
        log.info("Attaching %s to %s", path, vm_name)
        key = self._call(
            "POST",
            f"/vcenter/vm/{vm_id}/hardware/disk",
            json={"backing": {"type": "VMDK_FILE", "vmdk_file": path}},
        )
        return Disk(key=str(key), label=str(key), path=path)

    def bring_disks_online(self, vm_name: str) -> None:
        """Bring offline disks online inside a Windows guest."""
        if not self.settings.guest_username or not self.settings.guest_password:
            raise VSphereError(
                "Guest credentials are required to bring disks online "
                "(guest_username / guest_password)."
            )
        vm_id = self._vm_id(vm_name)
        self._call(
            "POST",
            f"/vcenter/vm/{vm_id}/guest/processes",
            params={"action": "create"},
            json={
                "credentials": {
                    "type": "USERNAME_PASSWORD",
                    "interactive_session": False,
                    "user_name": self.settings.guest_username,
                    "password": self.settings.guest_password,
                },
                "spec": {
                    "path": _POWERSHELL,
                    "arguments": f'-NoProfile -Command "{_ONLINE_DISKS_SCRIPT}"',
                },
            },
        )

    def close(self) -> None:
        if self._logged_in:
            try:
                self.session.delete(f"{self.base_url}/session", timeout=_TIMEOUT_SECONDS)
            except requests.RequestException as exc:
                log.debug("vCenter logout failed: %s", exc)
        self.session.close()
