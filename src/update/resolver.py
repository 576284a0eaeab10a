"""Backtracking constraint solver over package names.

The search keeps an explicit stack of choice points. Every choice point refers
to the partial state that preceded it in an arena of snapshots; snapshots are
never mutated after they are stored, so undoing a choice is just rebuilding
from the snapshot with the next option.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import semantic_version

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from versioning.requirement import VersionRequirement
from versioning.version import parse_version

from .candidates import VersionBound
from .errors import ConflictDetail, CorruptLockError, ResolutionConflict
from .lock import LockSnapshot
from .models import (
    Candidate,
    LockedDependency,
    LockedSpec,
    PackageName,
    Requirement,
    ResolutionGraph,
    ResolvedSpec,
    SelfDependencyWarning,
)
from .sources import SourceRegistry

logger = logging.getLogger(__name__)

MANIFEST_ORIGIN = "manifest"

# (origin label, requirement, depending package or None for the manifest)
_Constraint = Tuple[str, VersionRequirement, Optional[PackageName]]


class _PartialState:
    """Assignment built so far. Copies share the immutable constraint tuples."""

    __slots__ = ("assigned", "constraints", "open", "warnings")

    def __init__(self):
        self.assigned: Dict[PackageName, Candidate] = {}
        self.constraints: Dict[PackageName, Tuple[_Constraint, ...]] = {}
        self.open: set = set()
        self.warnings: Tuple[SelfDependencyWarning, ...] = ()

    def copy(self) -> "_PartialState":
        clone = _PartialState()
        clone.assigned = dict(self.assigned)
        clone.constraints = dict(self.constraints)
        clone.open = set(self.open)
        clone.warnings = self.warnings
        return clone

    def constrain(self, name: PackageName, entry: _Constraint) -> None:
        self.constraints[name] = self.constraints.get(name, ()) + (entry,)


@dataclass
class _ChoicePoint:
    name: PackageName
    options: List[Candidate]
    base: int  # arena index of the state before the choice
    cursor: int = -1


class Resolver:
    """Resolve manifest requirements against a fixed set and bounded candidates."""

    def __init__(
        self,
        registry: SourceRegistry,
        fixed: Optional[Mapping[PackageName, LockedSpec]] = None,
        bounds: Optional[Mapping[PackageName, VersionBound]] = None,
        host_name: str = Constants.HOST_TOOL_NAME,
        host_version: str = Constants.HOST_TOOL_VERSION,
        max_steps: int = Constants.RESOLVER_MAX_STEPS,
        locked_versions: Optional[Mapping[PackageName, semantic_version.Version]] = None,
    ):
        """Initialize the resolver.

        Args:
            registry: Source registry wrapping the frozen candidate pool.
            fixed: Locked specs that must be kept exactly.
            bounds: Per-name version windows from the candidate filter.
            host_name: Name of the host tool; edges to it are never resolved.
            host_version: Running host tool version.
            max_steps: Search budget before giving up.
            locked_versions: Previous versions of free names; a prerelease
                that is already locked stays acceptable.
        """
        self._registry = registry
        self._fixed: Dict[PackageName, LockedSpec] = dict(fixed or {})
        self._bounds: Dict[PackageName, VersionBound] = dict(bounds or {})
        self._host_name = host_name
        self._host_version = parse_version(host_version)
        self._host_version_text = host_version
        self._max_steps = max_steps
        self._locked_versions = dict(locked_versions or {})
        self._options_cache: Dict[PackageName, List[Candidate]] = {}
        self._conflict: Optional[ConflictDetail] = None
        self._conflict_depth = -1

    # Domains -----------------------------------------------------------------

    def _options(self, name: PackageName) -> List[Candidate]:
        cached = self._options_cache.get(name)
        if cached is not None:
            return cached
        locked = self._fixed.get(name)
        if locked is not None:
            options = [self._fixed_candidate(locked)]
        else:
            bound = self._bounds.get(name)
            options = [
                cand for cand in self._registry.candidates_for(name)
                if bound is None or bound(cand.version)
            ]
        self._options_cache[name] = options
        return options

    def _fixed_candidate(self, locked: LockedSpec) -> Candidate:
        for cand in self._registry.candidates_for(locked.name):
            if cand.version == locked.version and cand.source == locked.source:
                return cand
        # The source no longer lists it; the lock entry still describes it.
        return locked.as_candidate()

    def _prerelease_ok(self, name: PackageName, version: semantic_version.Version) -> bool:
        if name in self._fixed:
            return True
        return self._locked_versions.get(name) == version

    def _accepts(self, state: _PartialState, name: PackageName, cand: Candidate) -> bool:
        pre_ok = self._prerelease_ok(name, cand.version)
        return all(
            req.matches(cand.version, include_prerelease=pre_ok)
            for _, req, _ in state.constraints.get(name, ())
        )

    # Search ------------------------------------------------------------------

    def _assign(self, state: _PartialState, cand: Candidate) -> Optional[PackageName]:
        """Record ``cand`` and its edges; return the clashing name, if any."""
        state.assigned[cand.name] = cand
        state.open.discard(cand.name)
        origin = str(cand)
        for dep_name, req in cand.dependencies:
            if dep_name == self._host_name:
                if not req.matches(self._host_version, include_prerelease=True):
                    state.warnings += (SelfDependencyWarning(
                        package=cand.name,
                        version=cand.version,
                        requirement=req,
                        host_version=self._host_version_text,
                    ),)
                continue
            state.constrain(dep_name, (origin, req, cand.name))
            existing = state.assigned.get(dep_name)
            if existing is None:
                state.open.add(dep_name)
            elif not req.matches(existing.version, include_prerelease=self._prerelease_ok(dep_name, existing.version)):
                return dep_name
        return None

    def _next_name(self, state: _PartialState) -> Tuple[Optional[PackageName], List[Candidate]]:
        best: Optional[Tuple[int, int, PackageName]] = None
        best_options: List[Candidate] = []
        for name in state.open:
            options = [c for c in self._options(name) if self._accepts(state, name, c)]
            key = (0 if name in self._fixed else 1, len(options), name)
            if best is None or key < best:
                best, best_options = key, options
        if best is None:
            return None, []
        return best[2], best_options

    def _advance(self, frame: _ChoicePoint, arena: List[_PartialState]) -> Optional[_PartialState]:
        while frame.cursor + 1 < len(frame.options):
            frame.cursor += 1
            trial = arena[frame.base].copy()
            clash = self._assign(trial, frame.options[frame.cursor])
            if clash is None:
                return trial
            self._record_conflict(clash, trial)
        return None

    def _record_conflict(self, name: PackageName, state: _PartialState) -> None:
        depth = len(state.assigned)
        if depth <= self._conflict_depth:
            return
        constraints = state.constraints.get(name, ())
        locked = self._fixed.get(name)
        self._conflict_depth = depth
        self._conflict = ConflictDetail(
            name=name,
            requirements=tuple((origin, str(req)) for origin, req, _ in constraints),
            fixed_version=str(locked.version) if locked is not None else None,
            available=tuple(str(c.version) for c in self._options(name)),
            dependents=tuple(sorted({parent for _, _, parent in constraints if parent})),
        )

    def resolve(self, requirements: Iterable[Requirement], runtime: Optional[str] = None) -> ResolutionGraph:
        """Search for a complete, consistent graph.

        Raises:
            ResolutionConflict: The search space is exhausted or the step
                budget is spent.
        """
        root = _PartialState()
        for req in requirements:
            if req.name == self._host_name:
                continue
            root.constrain(req.name, (MANIFEST_ORIGIN, req.requirement, None))
            root.open.add(req.name)

        arena: List[_PartialState] = [root]
        stack: List[_ChoicePoint] = []
        state: Optional[_PartialState] = root
        steps = 0
        logger.info("Resolving dependencies...")
        with Timer() as timer:
            while True:
                steps += 1
                if steps > self._max_steps:
                    raise ResolutionConflict(
                        self._conflict or ConflictDetail(name="<search>"),
                        message=f"Resolution gave up after {self._max_steps} steps",
                    )
                name, options = self._next_name(state)
                if name is None:
                    break
                arena.append(state)
                frame = _ChoicePoint(name=name, options=options, base=len(arena) - 1)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Choice point",
                        extra=extra_context(
                            event="choice",
                            component="resolver",
                            package=name,
                            options=len(options),
                            depth=len(stack),
                        ),
                    )
                state = self._advance(frame, arena)
                if state is not None:
                    stack.append(frame)
                    continue
                if not options:
                    self._record_conflict(name, arena[frame.base])
                del arena[frame.base:]
                while stack:
                    state = self._advance(stack[-1], arena)
                    if state is not None:
                        break
                    popped = stack.pop()
                    del arena[popped.base:]
                if state is None:
                    conflict = self._conflict or ConflictDetail(name=name)
                    logger.debug(
                        "Resolution failed",
                        extra=extra_context(event="resolve", component="resolver", outcome="conflict",
                                            package=conflict.name, steps=steps),
                    )
                    raise ResolutionConflict(conflict)

        graph = self._build_graph(state, runtime)
        logger.debug(
            "Resolution finished",
            extra=extra_context(event="resolve", component="resolver", outcome="success",
                                steps=steps, packages=len(graph.specs), duration_ms=timer.duration_ms()),
        )
        return graph

    def _build_graph(self, state: _PartialState, runtime: Optional[str]) -> ResolutionGraph:
        specs: Dict[PackageName, ResolvedSpec] = {}
        for name in sorted(state.assigned):
            cand = state.assigned[name]
            specs[name] = ResolvedSpec(
                name=name,
                version=cand.version,
                source=cand.source,
                dependencies=tuple(
                    LockedDependency(dep_name, req)
                    for dep_name, req in cand.dependencies
                    if dep_name != self._host_name
                ),
            )
        try:
            LockSnapshot(spec.to_locked() for spec in specs.values())
        except CorruptLockError as exc:
            raise ResolutionConflict(ConflictDetail(name=exc.context.get("name", "<graph>")),
                                     message=exc.message) from exc
        warnings = []
        for warning in state.warnings:
            if warning not in warnings:
                warnings.append(warning)
        return ResolutionGraph(specs=specs, runtime=runtime, warnings=warnings)


def resolve(
    requirements: Iterable[Requirement],
    registry: SourceRegistry,
    fixed: Optional[Mapping[PackageName, LockedSpec]] = None,
    bounds: Optional[Mapping[PackageName, VersionBound]] = None,
    runtime: Optional[str] = None,
    **kwargs,
) -> ResolutionGraph:
    """Functional entry point; see :class:`Resolver` for the other arguments."""
    return Resolver(registry, fixed=fixed, bounds=bounds, **kwargs).resolve(requirements, runtime=runtime)
