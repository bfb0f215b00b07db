"""Recovery artifacts written by stateful workflows.

A recovery artifact records what a workflow changed (target VM, live mount
id, migrated disk paths) so a later cleanup run can reverse it. Artifacts
are written as a small versioned JSON record; the older positional text
layout (target, mount id, then one path per line) is still readable.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from rbkops.core.errors import ArtifactNotFound

ARTIFACT_VERSION = 1

_STATE_DIR_ENV = "RBKOPS_STATE_DIR"


@dataclass(frozen=True)
class RecoveryArtifact:
    """What a mount-and-migrate run changed."""

    target: str
    mount_id: str
    paths: tuple[str, ...] = field(default_factory=tuple)
    version: int = ARTIFACT_VERSION


def default_artifact_dir() -> Path:
    """Return the per-user directory for recovery artifacts."""
    override = os.getenv(_STATE_DIR_ENV)
    if override:
        return Path(override)
    xdg = os.getenv("XDG_STATE_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "state"
    return base / "rbkops"


def write_artifact(artifact: RecoveryArtifact, directory: Path | None = None) -> Path:
    """Persist an artifact and return its path."""
    now = datetime.now(timezone.utc)
    target_dir = directory or default_artifact_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    safe_target = re.sub(r"[^A-Za-z0-9_.-]+", "_", artifact.target)
    path = target_dir / f"migrate-{safe_target}-{now:%Y%m%d%H%M%S}.json"

    payload = {
        "version": artifact.version,
        "target": artifact.target,
        "mount_id": artifact.mount_id,
        "paths": list(artifact.paths),
        "created": now.isoformat(),
    }
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return path


def _parse_legacy(text: str) -> RecoveryArtifact:
    lines = [line.strip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    if len(lines) < 2 or not lines[0] or not lines[1]:
        raise ValueError("Recovery artifact needs a target and a mount id")
    return RecoveryArtifact(
        target=lines[0],
        mount_id=lines[1],
        paths=tuple(line for line in lines[2:] if line),
    )


def read_artifact(path: Path | str) -> RecoveryArtifact:
    """
    Read an artifact back.

    Raises:
        ArtifactNotFound: The file does not exist.
        ValueError: The content is neither a JSON record nor legacy text.
    """
    path = Path(path)
    if not path.is_file():
        raise ArtifactNotFound(str(path))

    text = path.read_text(encoding="utf-8")
    if not text.lstrip().startswith("{"):
        return _parse_legacy(text)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed recovery artifact {path}: {exc}") from exc

    version = payload.get("version")
    if version != ARTIFACT_VERSION:
        raise ValueError(f"Unsupported recovery artifact version: {version!r}")
    try:
        return RecoveryArtifact(
            target=str(payload["target"]),
            mount_id=str(payload["mount_id"]),
            paths=tuple(str(p) for p in payload.get("paths") or []),
            version=version,
        )
    except KeyError as exc:
        raise ValueError(f"Recovery artifact {path} is missing {exc}") from exc


def delete_artifact(path: Path | str) -> None:
    Path(path).unlink(missing_ok=True)
