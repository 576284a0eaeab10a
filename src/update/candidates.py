"""Conservative bounds on the versions a free package may move to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import semantic_version

from constants import UpdateLevel
from versioning.version import level_upper_bound

from .errors import ConfigurationError
from .lock import LockSnapshot
from .models import PackageName, UpdatePolicy
from .unlock import UnlockSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionBound:
    """Half-open version window ``[floor, ceiling)``; either side may be open.

    Instances are callable predicates over versions.
    """
    floor: Optional[semantic_version.Version] = None
    ceiling: Optional[semantic_version.Version] = None

    def __call__(self, version: semantic_version.Version) -> bool:
        if self.floor is not None and version < self.floor:
            return False
        if self.ceiling is not None and version >= self.ceiling:
            return False
        return True

    @property
    def is_open(self) -> bool:
        return self.floor is None and self.ceiling is None

    def __str__(self) -> str:
        if self.is_open:
            return "any"
        low = f"[{self.floor}" if self.floor is not None else "(-inf"
        high = f"{self.ceiling})" if self.ceiling is not None else "+inf)"
        return f"{low}, {high}"


UNBOUNDED = VersionBound()


def validate_levels(levels: Iterable[UpdateLevel]) -> UpdateLevel:
    """Collapse caller-selected levels into one, failing on conflicts.

    Raises:
        ConfigurationError: More than one of patch/minor/major is active.
    """
    active = sorted({lvl for lvl in levels if lvl != UpdateLevel.NONE}, key=lambda lvl: lvl.value)
    if len(active) > 1:
        raise ConfigurationError(
            "Provide only one of the following options: " + ", ".join(lvl.value for lvl in active)
        )
    return active[0] if active else UpdateLevel.NONE


def bound_candidates(
    name: PackageName,
    locked_version: Optional[semantic_version.Version],
    policy: UpdatePolicy,
    explicitly_requested: bool = True,
) -> VersionBound:
    """Bound the versions ``name`` may resolve to.

    Args:
        name: Package name (used for tracing only).
        locked_version: Version in the previous lock, if any.
        policy: Update policy.
        explicitly_requested: Whether the loose cap applies to this name.

    Returns:
        VersionBound predicate; unbounded when there is nothing to be
        conservative relative to.
    """
    if locked_version is None:
        return UNBOUNDED
    capped = policy.level != UpdateLevel.NONE and (policy.strict or explicitly_requested)
    if capped:
        bound = VersionBound(floor=locked_version, ceiling=level_upper_bound(locked_version, policy.level))
        logger.debug("Capping %s to %s (%s)", name, bound, policy.level.value)
        return bound
    if policy.only_update_to_newer_versions:
        return VersionBound(floor=locked_version)
    return UNBOUNDED


def build_bounds(unlock: UnlockSet, lock: Optional[LockSnapshot],
                 policy: UpdatePolicy) -> Dict[PackageName, VersionBound]:
    """Bounds for every free name that has a locked version."""
    bounds: Dict[PackageName, VersionBound] = {}
    if lock is None:
        return bounds
    for name in sorted(unlock.free):
        spec = lock.get(name)
        bound = bound_candidates(
            name,
            spec.version if spec is not None else None,
            policy,
            explicitly_requested=name in unlock.capped,
        )
        if not bound.is_open:
            bounds[name] = bound
    return bounds
