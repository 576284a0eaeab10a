"""Update orchestration: unlock, bound, resolve, diff and commit."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from common.logging_utils import configure_logging, extra_context
from config import UpdateConfig, load_config
from constants import Constants, UpdateLevel

from .candidates import build_bounds, validate_levels
from .diff import changed, describe, diff, warnings_for
from .errors import ConfigurationError, ResolutionConflict
from .lock import LockSnapshot
from .lockfile import commit
from .models import ChangeRecord, Manifest, PackageName, ResolutionGraph, ScopeKind, UpdatePolicy, UpdateScope
from .resolver import Resolver
from .sources import SourceRegistry
from .unlock import UnlockSet, compute_unlock_set

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of a successful update."""
    graph: ResolutionGraph
    changes: List[ChangeRecord]
    unlock: UnlockSet
    written: Optional[Path] = None
    messages: List[str] = field(default_factory=list)

    @property
    def unchanged_requests(self) -> List[PackageName]:
        return warnings_for(self.changes)


def build_policy(levels: Iterable[UpdateLevel] = (), strict: bool = False, conservative: bool = False,
                 config: Optional[UpdateConfig] = None) -> UpdatePolicy:
    """Combine caller flags and configuration into an UpdatePolicy.

    Raises:
        ConfigurationError: More than one conservative level selected.
    """
    config = config or UpdateConfig()
    return UpdatePolicy(
        level=validate_levels(levels),
        strict=strict,
        conservative=conservative,
        only_update_to_newer_versions=config.only_update_to_newer_versions,
        unlock_source_unlocks_spec=config.unlock_source_unlocks_spec,
    )


class UpdateService:
    """Runs one ``resolve -> diff -> commit`` cycle.

    The caller must hold exclusive access to the lock file for the duration
    of :meth:`update`.
    """

    def __init__(self, provider, config: Optional[UpdateConfig] = None):
        """Initialize the service.

        Args:
            provider: Candidate provider (``candidates(name)`` and ``names()``),
                already materialized for this run.
            config: Update configuration; defaults when omitted.
        """
        self._provider = provider
        self._config = config or UpdateConfig()

    @classmethod
    def from_config(cls, provider, path: Optional[str] = None, env=None) -> "UpdateService":
        """Load configuration, set up logging at its level and build a service.

        Raises:
            ConfigurationError: The configuration cannot be loaded.
        """
        config = load_config(path, env=env)
        configure_logging(config.log_level)
        return cls(provider, config)

    def update(
        self,
        manifest: Manifest,
        lock: Optional[LockSnapshot],
        scope: Optional[UpdateScope] = None,
        policy: Optional[UpdatePolicy] = None,
        lock_path: Optional[Union[str, Path]] = None,
    ) -> UpdateResult:
        """Compute a new lock for ``scope`` and optionally write it.

        Args:
            manifest: Parsed manifest.
            lock: Previous lock, or None for a first resolve.
            scope: What to update; everything when omitted, unless
                ``update_requires_all_flag`` is configured.
            policy: Update policy; built from config when omitted.
            lock_path: When given, the new lock is committed there.

        Returns:
            UpdateResult

        Raises:
            ConfigurationError, UnknownPackageError, ResolutionConflict,
            CorruptLockError, WriteFailure
        """
        if self._config.frozen:
            raise ConfigurationError(
                "The lock is frozen; refusing to update.",
                hint="Unset the `frozen` setting to allow updates.",
            )
        if scope is None:
            scope = UpdateScope.build(requires_all_flag=self._config.update_requires_all_flag)
        policy = self._merge_policy(policy)
        registry = SourceRegistry(manifest, self._provider)

        unlock = compute_unlock_set(lock, manifest, scope, policy, registry)
        graph, unlock = self._solve(manifest, lock, registry, unlock, policy, scope)

        changes = diff(lock, graph, requested=unlock.explicit)
        result = UpdateResult(graph=graph, changes=changes, unlock=unlock)
        self._report(result)

        if lock_path is not None:
            result.written = commit(graph, lock_path)
            logger.info("Lock updated!")
        return result

    def _merge_policy(self, policy: Optional[UpdatePolicy]) -> UpdatePolicy:
        if policy is None:
            return build_policy(config=self._config)
        return dataclasses.replace(
            policy,
            only_update_to_newer_versions=(policy.only_update_to_newer_versions
                                           or self._config.only_update_to_newer_versions),
            unlock_source_unlocks_spec=(policy.unlock_source_unlocks_spec
                                        or self._config.unlock_source_unlocks_spec),
        )

    def _resolver(self, registry: SourceRegistry, lock: Optional[LockSnapshot], unlock: UnlockSet,
                  policy: UpdatePolicy) -> Resolver:
        locked_versions = {}
        if lock is not None:
            locked_versions = {spec.name: spec.version for spec in lock if spec.name in unlock.free}
        return Resolver(
            registry,
            fixed=unlock.fixed,
            bounds=build_bounds(unlock, lock, policy),
            host_name=Constants.HOST_TOOL_NAME,
            host_version=self._config.host_tool_version,
            max_steps=self._config.max_steps,
            locked_versions=locked_versions,
        )

    def _solve(self, manifest: Manifest, lock: Optional[LockSnapshot], registry: SourceRegistry,
               unlock: UnlockSet, policy: UpdatePolicy, scope: UpdateScope):
        try:
            graph = self._resolver(registry, lock, unlock, policy).resolve(manifest.requirements, runtime=manifest.runtime)
            return graph, unlock
        except ResolutionConflict as exc:
            # Only a named update may pull in packages outside its own selection.
            widen = policy.eager and scope.kind == ScopeKind.NAMED
            widened = self._names_to_widen(lock, unlock, exc) if widen else set()
            if not widened:
                raise
            logger.info(
                "Unlocking %s to resolve a conflict on %s",
                ", ".join(sorted(widened)),
                exc.conflict.name,
                extra=extra_context(event="widen", component="update_service", package=exc.conflict.name),
            )
        unlock = unlock.widen(widened)
        graph = self._resolver(registry, lock, unlock, policy).resolve(manifest.requirements, runtime=manifest.runtime)
        return graph, unlock

    @staticmethod
    def _names_to_widen(lock: Optional[LockSnapshot], unlock: UnlockSet,
                        exc: ResolutionConflict) -> Set[PackageName]:
        """Fixed packages adjacent to the conflicting name."""
        if lock is None:
            return set()
        conflict = exc.conflict
        names = set(conflict.dependents)
        if conflict.name in lock:
            names.update(lock.dependents_of(conflict.name))
            names.add(conflict.name)
        return {name for name in names if name in unlock.fixed}

    @staticmethod
    def _report(result: UpdateResult) -> None:
        for warning in result.graph.warnings:
            message = str(warning)
            result.messages.append(message)
            logger.warning(message)
        for name in result.unchanged_requests:
            message = f"Attempted to update {name} but its version stayed the same"
            result.messages.append(message)
            logger.warning(message)
        for record in changed(result.changes):
            logger.info(
                "%s %s",
                record.kind.value.capitalize(),
                describe(record),
                extra=extra_context(event="change", component="update_service", package=record.name,
                                    outcome=record.kind.value),
            )
