"""Endpoint resolution for the appliance REST API.

Logical resource names are mapped to per-version path templates. Resolution
is a pure function of the template table, the caller's parameters and the
Connection's server address.
"""

from __future__ import annotations

from string import Formatter
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import quote, urlencode

from rbkops.core.errors import UnsupportedVersion

if TYPE_CHECKING:
    from rbkops.core.auth import Connection

SUPPORTED_VERSIONS = ("v1", "v2", "internal")

_PREFIX = {
    "v1": "/api/v1",
    "v2": "/api/v2",
    "internal": "/api/internal",
}

# resource -> {version: path template relative to the version prefix}
ENDPOINTS: dict[str, dict[str, str]] = {
    "vmware_vm": {"v1": "/vmware/vm"},
    "vmware_vm_id": {"v1": "/vmware/vm/{id}"},
    "vmware_vm_snapshots": {"v1": "/vmware/vm/{id}/snapshot"},
    "vmware_snapshot_mount": {"v1": "/vmware/vm/snapshot/{id}/mount"},
    "vmware_mount": {
        "v1": "/vmware/vm/snapshot/mount",
        "internal": "/vmware/vm/snapshot/mount",
    },
    "vmware_mount_id": {
        "v1": "/vmware/vm/snapshot/mount/{id}",
        "internal": "/vmware/vm/snapshot/mount/{id}",
    },
    "vmware_vm_request": {"v1": "/vmware/vm/request/{id}"},
    "sla_domain": {"v1": "/sla_domain", "v2": "/sla_domain"},
    "fileset": {"v1": "/fileset"},
    "mssql_instance": {"v1": "/mssql/instance"},
}


def check_version(version: str) -> str:
    """Return `version` if supported, else raise UnsupportedVersion."""
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(
            f"Unsupported API version '{version}' "
            f"(supported: {', '.join(SUPPORTED_VERSIONS)})"
        )
    return version


def _query_string(query: Mapping[str, Any] | None) -> str:
    if not query:
        return ""
    pairs = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        pairs.append((key, value))
    return f"?{urlencode(pairs)}" if pairs else ""


def template_for(resource: str, version: str) -> str:
    """Return the full path template for a resource in a given version."""
    check_version(version)
    try:
        versions = ENDPOINTS[resource]
    except KeyError as exc:
        raise ValueError(f"Unknown resource '{resource}'") from exc
    if version not in versions:
        raise UnsupportedVersion(
            f"Resource '{resource}' is not available in API version '{version}' "
            f"(available: {', '.join(versions)})"
        )
    return _PREFIX[version] + versions[version]


def resolve(
    connection: Connection,
    resource: str,
    *,
    version: str | None = None,
    query: Mapping[str, Any] | None = None,
    **params: Any,
) -> str:
    """
    Resolve a logical resource to a fully-qualified request URI.

    Args:
        connection: Connection providing the server address and default version.
        resource: Logical resource name (a key of ENDPOINTS).
        version: API version; defaults to the connection's version.
        query: Optional query parameters; None values are dropped.
        **params: Values substituted into the path template (URL-quoted).

    Raises:
        UnsupportedVersion: The version, or the resource in that version,
            is not supported.
        ValueError: Unknown resource or missing template parameter.
    """
    template = template_for(resource, version or connection.api_version)

    fields = {name for _, name, _, _ in Formatter().parse(template) if name}
    missing = fields - params.keys()
    if missing:
        raise ValueError(
            f"Missing parameter(s) for '{resource}': {', '.join(sorted(missing))}"
        )
    path = template.format(**{k: quote(str(params[k]), safe="") for k in fields})
    return f"{connection.base_url}{path}{_query_string(query)}"


def resolve_path(
    connection: Connection,
    path: str,
    *,
    version: str | None = None,
    query: Mapping[str, Any] | None = None,
) -> str:
    """Resolve a raw API path (relative to the version prefix) to a URI."""
    prefix = _PREFIX[check_version(version or connection.api_version)]
    if not path.startswith("/"):
        path = "/" + path
    return f"{connection.base_url}{prefix}{path}{_query_string(query)}"
