from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from rbkops.core.auth import Connection  # noqa: E402


@pytest.fixture
def connection() -> Connection:
    return Connection(server="rbk.example.com", api_version="v1", token="tok-123")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep developer profiles and state directories out of the tests."""
    for key in (
        "RBKOPS_SERVER",
        "RBKOPS_TOKEN",
        "RBKOPS_USERNAME",
        "RBKOPS_PASSWORD",
        "RBKOPS_API_VERSION",
        "RBKOPS_VERIFY_SSL",
        "RBKOPS_VCENTER_SERVER",
        "RBKOPS_VCENTER_USERNAME",
        "RBKOPS_VCENTER_PASSWORD",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("RBKOPS_CONFIG_FILE", str(tmp_path / "missing.cfg"))
    monkeypatch.setenv("RBKOPS_STATE_DIR", str(tmp_path / "state"))
