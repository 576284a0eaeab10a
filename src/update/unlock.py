"""Decide which locked packages are discarded before a fresh solve."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Set

from common.logging_utils import extra_context, is_debug_enabled
from common.suggest import did_you_mean

from .errors import UnknownPackageError
from .lock import LockSnapshot
from .models import LockedSpec, Manifest, PackageName, ScopeKind, UpdatePolicy, UpdateScope
from .sources import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockSet:
    """Partition of the lock for one update.

    Attributes:
        fixed: Locked specs that must come out of the solve unchanged.
        free: Names allowed to re-resolve.
        capped: Names that receive the conservative level cap in loose mode.
        explicit: Names the caller asked for by name (drive no-op warnings).
    """
    fixed: Dict[PackageName, LockedSpec] = field(default_factory=dict)
    free: FrozenSet[PackageName] = frozenset()
    capped: FrozenSet[PackageName] = frozenset()
    explicit: FrozenSet[PackageName] = frozenset()

    def widen(self, names: Iterable[PackageName]) -> "UnlockSet":
        """Copy with ``names`` moved from fixed to free."""
        extra = {n for n in names if n in self.fixed}
        return UnlockSet(
            fixed={n: s for n, s in self.fixed.items() if n not in extra},
            free=self.free | extra,
            capped=self.capped,
            explicit=self.explicit,
        )


def compute_unlock_set(
    lock: Optional[LockSnapshot],
    manifest: Manifest,
    scope: UpdateScope,
    policy: UpdatePolicy,
    registry: Optional[SourceRegistry] = None,
) -> UnlockSet:
    """Compute the fixed subset and the free set for ``scope``.

    Args:
        lock: Previous resolution, or None for a first resolve.
        manifest: Parsed manifest.
        scope: What the caller asked to update.
        policy: Update policy; only ``eager`` matters here.
        registry: Source registry, used for pins and did-you-mean names.

    Returns:
        UnlockSet

    Raises:
        UnknownPackageError: A named package is neither in the manifest nor
            in the lock.
    """
    if scope.kind == ScopeKind.NAMED:
        _check_known(scope.names, lock, manifest, registry)

    if lock is None:
        free = set(manifest.names()) | set(scope.names)
        return UnlockSet(
            fixed={},
            free=frozenset(free),
            capped=frozenset(_capped_names(scope, manifest, free)),
            explicit=frozenset(scope.names),
        )

    if scope.kind == ScopeKind.ALL:
        free = set(lock.names())
    elif scope.kind == ScopeKind.NAMED:
        free = _named_free(lock, manifest, scope.names, policy)
    elif scope.kind == ScopeKind.GROUP:
        free = _group_free(lock, manifest, scope.group or "", policy, registry)
    else:
        free = _source_free(lock, manifest, scope.source or "", policy)

    converged = converged_names(lock, manifest, registry)
    if converged - free:
        logger.info(
            "Unlocking %s to match the manifest",
            ", ".join(sorted(converged - free)),
        )
    free |= converged

    unlock = UnlockSet(
        fixed=lock.subset(n for n in lock.names() if n not in free),
        free=frozenset(free),
        capped=frozenset(_capped_names(scope, manifest, free)),
        explicit=frozenset(scope.names),
    )
    if is_debug_enabled(logger):
        logger.debug(
            "Unlock set computed",
            extra=extra_context(
                event="unlock_set",
                component="unlock",
                scope=scope.kind.value,
                eager=policy.eager,
                free=",".join(sorted(unlock.free)),
                fixed_count=len(unlock.fixed),
            ),
        )
    return unlock


def _check_known(names: Iterable[PackageName], lock: Optional[LockSnapshot], manifest: Manifest,
                 registry: Optional[SourceRegistry]) -> None:
    for name in names:
        if manifest.requirement_for(name) is not None:
            continue
        if lock is not None and name in lock:
            continue
        known: Set[PackageName] = set(manifest.names())
        if lock is not None:
            known.update(lock.names())
        if registry is not None:
            known.update(registry.known_names())
        raise UnknownPackageError(name, did_you_mean(name, known))


def _capped_names(scope: UpdateScope, manifest: Manifest, free: Set[PackageName]) -> Set[PackageName]:
    if scope.kind == ScopeKind.NAMED:
        return set(scope.names)
    if scope.kind == ScopeKind.ALL:
        return set(manifest.names())
    if scope.kind == ScopeKind.GROUP:
        return {n for n in manifest.names_in_group(scope.group or "") if n in free}
    return set(free)


def _named_free(lock: LockSnapshot, manifest: Manifest, names: Iterable[PackageName],
                policy: UpdatePolicy) -> Set[PackageName]:
    names = set(names)
    if not policy.eager:
        return names | _orphaned_dependencies(lock, manifest, names)
    # Dependencies of a named package come along; dependents are left for
    # the service to widen into only when the solve needs them.
    return names | lock.reachable_from(names)


def _orphaned_dependencies(lock: LockSnapshot, manifest: Manifest, names: Set[PackageName]) -> Set[PackageName]:
    """Dependencies of ``names`` that nothing outside ``names`` still holds.

    A dependency stays held when a locked package outside the closure of
    ``names``, or a manifest requirement not in ``names``, reaches it.
    """
    closure = lock.reachable_from(names)
    dependencies = closure - names
    roots = {n for n in lock.names() if n not in closure}
    roots.update(n for n in manifest.names() if n in dependencies)
    return dependencies - lock.reachable_from(roots)


def _group_free(lock: LockSnapshot, manifest: Manifest, group: str, policy: UpdatePolicy,
                registry: Optional[SourceRegistry]) -> Set[PackageName]:
    members = manifest.names_in_group(group)
    eligible = {n for n in members if not _from_alternate_source(lock, n, registry)}
    if not policy.eager:
        return eligible
    closure = lock.reachable_from(eligible)
    return eligible | {n for n in closure if not _locked_from_authoritative(lock, n, registry)}


def _locked_from_authoritative(lock: LockSnapshot, name: PackageName,
                               registry: Optional[SourceRegistry]) -> bool:
    spec = lock.get(name)
    if spec is None or registry is None:
        return False
    source = registry.source(spec.source)
    return source is not None and source.is_authoritative


def _from_alternate_source(lock: LockSnapshot, name: PackageName,
                           registry: Optional[SourceRegistry]) -> bool:
    """True when ``name`` is locked from a path/git source that does not own it."""
    spec = lock.get(name)
    if spec is None or registry is None:
        return False
    if not _locked_from_authoritative(lock, name, registry):
        return False
    return registry.pinned_source(name) != spec.source


def _source_free(lock: LockSnapshot, manifest: Manifest, identifier: str,
                 policy: UpdatePolicy) -> Set[PackageName]:
    free = set()
    for spec in lock:
        if spec.source != identifier:
            continue
        req = manifest.requirement_for(spec.name)
        if req is not None and req.source and req.source != identifier:
            continue
        free.add(spec.name)
    if policy.unlock_source_unlocks_spec and identifier in lock:
        free.add(identifier)
    if not free:
        logger.warning("No locked package is supplied by source %s; nothing to update", identifier)
    return free


def converged_names(lock: LockSnapshot, manifest: Manifest,
                    registry: Optional[SourceRegistry] = None) -> Set[PackageName]:
    """Locked names the current manifest no longer accepts as locked.

    A name is included when its locked version fails the manifest
    requirement, or it is locked from a source other than its pin.
    """
    stale = set()
    for req in manifest.requirements:
        spec = lock.get(req.name)
        if spec is None:
            continue
        if not req.requirement.matches(spec.version, include_prerelease=True):
            stale.add(req.name)
            continue
        pinned = registry.pinned_source(req.name) if registry is not None else req.source
        if pinned is not None and spec.source != pinned:
            stale.add(req.name)
    return stale
