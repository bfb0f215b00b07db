"""Snapshot selection logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from rbkops.core.errors import ObjectNotFound
from rbkops.core.models import Snapshot


def _as_aware(value: datetime) -> datetime:
    # Naive timestamps are taken as local time.
    return value if value.tzinfo else value.astimezone()


def select_snapshot(snapshots: Iterable[Snapshot], at: datetime | None = None) -> Snapshot:
    """
    Return the snapshot nearest to, and not after, the requested time.

    Args:
        snapshots: Candidate snapshots in any order.
        at: Point in time; None selects the most recent snapshot.

    Raises:
        ObjectNotFound: No snapshot exists at or before `at`.
    """
    cutoff = _as_aware(at).astimezone(timezone.utc) if at else None
    candidates = [
        s for s in snapshots if cutoff is None or _as_aware(s.date) <= cutoff
    ]
    if not candidates:
        when = f" at or before {cutoff.isoformat()}" if cutoff else ""
        raise ObjectNotFound(f"No snapshot found{when}")
    return max(candidates, key=lambda s: _as_aware(s.date))
