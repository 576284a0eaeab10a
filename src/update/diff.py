"""Compare a new resolution with the previous lock."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .lock import LockSnapshot
from .models import ChangeKind, ChangeRecord, PackageName, ResolutionGraph


def diff(old: Optional[LockSnapshot], new: ResolutionGraph,
         requested: Iterable[PackageName] = ()) -> List[ChangeRecord]:
    """Classify every name present in either snapshot, ordered by name.

    Args:
        old: Previous lock, or None.
        new: Freshly resolved graph.
        requested: Names the caller explicitly asked to update; an unchanged
            one is flagged ``explicitly_requested_no_change``.

    Returns:
        List of ChangeRecord sorted by package name.
    """
    requested = set(requested)
    old_names = set(old.names()) if old is not None else set()
    records: List[ChangeRecord] = []
    for name in sorted(old_names | set(new.specs)):
        before = old.get(name) if old is not None else None
        after = new.specs.get(name)
        if before is None:
            kind = ChangeKind.INSTALLED
        elif after is None:
            kind = ChangeKind.REMOVED
        elif after.version > before.version:
            kind = ChangeKind.UPGRADED
        elif after.version < before.version:
            kind = ChangeKind.DOWNGRADED
        else:
            kind = ChangeKind.UNCHANGED
        records.append(ChangeRecord(
            name=name,
            kind=kind,
            from_version=before.version if before is not None else None,
            to_version=after.version if after is not None else None,
            from_source=before.source if before is not None else None,
            to_source=after.source if after is not None else None,
            explicitly_requested_no_change=kind == ChangeKind.UNCHANGED and name in requested,
        ))
    return records


def changed(records: Iterable[ChangeRecord]) -> List[ChangeRecord]:
    """Records worth reporting by default: anything but a plain unchanged entry.

    Source moves at the same version count as changes.
    """
    return [
        rec for rec in records
        if rec.kind != ChangeKind.UNCHANGED or rec.explicitly_requested_no_change or rec.source_changed
    ]


def warnings_for(records: Iterable[ChangeRecord]) -> List[str]:
    """Names that were explicitly requested but kept their version."""
    return [rec.name for rec in records if rec.explicitly_requested_no_change]


def describe(record: ChangeRecord) -> str:
    """One-line summary such as ``foo 2.0.0 (was 1.0.0)``."""
    if record.kind == ChangeKind.REMOVED:
        return f"{record.name} {record.from_version} (removed)"
    if record.kind in (ChangeKind.UPGRADED, ChangeKind.DOWNGRADED):
        return f"{record.name} {record.to_version} (was {record.from_version})"
    return f"{record.name} {record.to_version}"
