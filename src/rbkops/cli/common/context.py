"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from rbkops.cli.common.exits import die
from rbkops.cli.common.output import out
from rbkops.core.adapters.rubrik import RubrikVMwareAdapter
from rbkops.core.adapters.vsphere import VSphereDiskAdapter, VSphereError, VSphereSettings
from rbkops.core.auth import AuthError, Connection, Profile, get_connection, load_profile
from rbkops.core.client import ConfirmFn, RubrikClient
from rbkops.core.errors import UnsupportedVersion


@dataclass
class AppContext:
    """Application context holding the connection, client and appliance adapter."""

    profile: Profile
    connection: Connection
    client: RubrikClient
    adapter: RubrikVMwareAdapter

    def require_confirmation(self, enabled: bool) -> None:
        """Turn the client's confirmation gate on or off for mutating calls."""
        self.client.confirm = confirm_gate if enabled else None

    def vsphere(self) -> VSphereDiskAdapter:
        """Build the vCenter disk adapter from the same profile."""
        try:
            settings = VSphereSettings.from_profile(self.profile)
        except VSphereError as exc:
            die(str(exc), code=1)
        return VSphereDiskAdapter(settings)


def confirm_gate(method: str, uri: str) -> bool:
    """Interactive gate used by the client before POST/PATCH/DELETE calls."""
    return out.confirm(f"{method} {uri} ?")


def build_context(
    profile: str | None,
    *,
    server: str | None = None,
    api_version: str | None = None,
    confirm: ConfirmFn | None = None,
) -> AppContext:
    """Build and return the application context.

    Args:
        profile: Optional profile name to read settings from.
        server: Optional appliance address overriding the profile.
        api_version: Optional API version overriding the profile.
        confirm: Optional confirmation gate for mutating calls.

    Returns:
        AppContext: Application context with configured client and adapter.
    """
    try:
        settings = load_profile(profile)
        connection = get_connection(profile, server=server, api_version=api_version)
    except (AuthError, UnsupportedVersion) as exc:
        die(str(exc), code=1)
    client = RubrikClient(connection, confirm=confirm)
    adapter = RubrikVMwareAdapter(client)
    return AppContext(
        profile=settings, connection=connection, client=client, adapter=adapter
    )
