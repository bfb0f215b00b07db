import pytest

from rbkops.core.adapters.rubrik import RubrikVMwareAdapter
from rbkops.core.auth import Connection
from rbkops.core.client import RubrikClient
from rbkops.core.errors import ObjectNotFound, UnsupportedVersion


class _Client:
    def __init__(self, connection, responses):
        self.connection = connection
        self.responses = dict(responses)
        self.calls: list[tuple] = []

    def request(self, resource, method="GET", *, version=None, query=None, body=None, **params):
        self.calls.append((resource, method, query, body, params))
        return self.responses.get((resource, method))

    def get_job_status(self, handle):
        return {"status": "SUCCEEDED"}


VMS = [
    {"id": "vm-1", "name": "web01", "effectiveSlaDomainName": "Gold", "powerStatus": "poweredOn"},
    {"id": "vm-2", "name": "web01-old", "effectiveSlaDomainName": "Unprotected"},
]


def test_get_vm_matches_exact_name(connection):
    client = _Client(connection, {("vmware_vm", "GET"): VMS})

    vm = RubrikVMwareAdapter(client).get_vm("web01")

    assert (vm.id, vm.sla_domain_name, vm.power_status) == ("vm-1", "Gold", "poweredOn")
    assert client.calls[0][2] == {"name": "web01", "is_relic": False}


def test_get_vm_missing_or_ambiguous(connection):
    adapter = RubrikVMwareAdapter(_Client(connection, {("vmware_vm", "GET"): VMS}))
    with pytest.raises(ObjectNotFound, match="not found"):
        adapter.get_vm("db01")

    twins = [VMS[0], {**VMS[0], "id": "vm-3"}]
    adapter = RubrikVMwareAdapter(_Client(connection, {("vmware_vm", "GET"): twins}))
    with pytest.raises(ObjectNotFound, match="ambiguous"):
        adapter.get_vm("web01")


def test_snapshots_skip_entries_without_dates(connection):
    payload = [
        {"id": "s-1", "date": "2024-03-01T01:00:00.000Z", "slaName": "Gold"},
        {"id": "s-2"},
    ]
    adapter = RubrikVMwareAdapter(_Client(connection, {("vmware_vm_snapshots", "GET"): payload}))

    snapshots = adapter.list_snapshots("vm-1")

    assert [s.id for s in snapshots] == ["s-1"]
    assert snapshots[0].sla_domain_name == "Gold"


def test_create_mount_returns_job_handle(connection):
    request = {
        "id": "MOUNT_SNAPSHOT_1",
        "status": "QUEUED",
        "links": [{"rel": "self", "href": "https://rbk/api/v1/vmware/vm/request/MOUNT_SNAPSHOT_1"}],
    }
    client = _Client(connection, {("vmware_snapshot_mount", "POST"): request})

    handle = RubrikVMwareAdapter(client).create_mount("snap-1", host_id="host-1")

    assert handle.id == "MOUNT_SNAPSHOT_1"
    assert handle.status_uri.endswith("/request/MOUNT_SNAPSHOT_1")
    assert handle.kind == "vmware/vm"
    _, method, _, body, params = client.calls[0]
    assert method == "POST"
    assert body == {"powerOn": False, "disableNetwork": True, "hostId": "host-1"}
    assert params == {"id": "snap-1"}


def test_delete_mount_uses_fallback_status_uri(connection):
    client = _Client(connection, {("vmware_mount_id", "DELETE"): {"id": "UNMOUNT_1"}})

    handle = RubrikVMwareAdapter(client).delete_mount("m-42", force=True)

    assert handle.status_uri == "https://rbk.example.com/api/v1/vmware/vm/request/UNMOUNT_1"
    assert client.calls[0][2] == {"force": True}


def test_set_vm_sla(connection):
    client = _Client(connection, {("vmware_vm_id", "PATCH"): {"id": "vm-1", "name": "web01"}})

    RubrikVMwareAdapter(client).set_vm_sla("vm-1", "sla-9")

    assert client.calls[0][3] == {"configuredSlaDomainId": "sla-9"}


def test_inventory_listings(connection):
    client = _Client(
        connection,
        {
            ("sla_domain", "GET"): [{"id": "sla-1", "name": "Gold", "numVms": 4}],
            ("fileset", "GET"): [{"id": "fs-1", "name": "etc", "hostName": "lin01"}],
            ("mssql_instance", "GET"): [
                {"id": "sql-1", "name": "MSSQLSERVER", "rootProperties": {"rootName": "sql01"}}
            ],
        },
    )
    adapter = RubrikVMwareAdapter(client)

    assert adapter.list_sla_domains()[0].protected_vms == 4
    assert adapter.list_filesets()[0].host_name == "lin01"
    assert adapter.list_sql_instances()[0].root_name == "sql01"


class _RecordingSession:
    def __init__(self):
        self.calls: list[tuple] = []
        self.verify = None

    def request(self, method, uri, **kwargs):
        self.calls.append((method, uri))
        raise AssertionError(f"unexpected network call {method} {uri}")

    def close(self):
        return None


@pytest.mark.parametrize("api_version", ["v9", "v2"])
def test_connection_api_version_governs_resolution(api_version):
    session = _RecordingSession()
    connection = Connection(server="rbk.example.com", api_version=api_version, token="t")
    adapter = RubrikVMwareAdapter(RubrikClient(connection, session=session))

    with pytest.raises(UnsupportedVersion):
        adapter.list_vms("web01")
    with pytest.raises(UnsupportedVersion):
        adapter.list_snapshots("vm-1")

    assert session.calls == []
