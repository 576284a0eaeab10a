"""Data models for selective update resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

import semantic_version

from constants import Constants, SourceKind, UpdateLevel
from versioning.requirement import VersionRequirement

from .errors import ConfigurationError

# Package names are plain case-sensitive strings.
PackageName = str


@dataclass(frozen=True)
class Source:
    """A place packages can be fetched from.

    Path and git sources are authoritative for the names they declare.
    """
    identifier: str
    kind: SourceKind = SourceKind.REMOTE
    priority: int = 0
    declared_names: FrozenSet[str] = frozenset()

    @property
    def is_authoritative(self) -> bool:
        return self.kind in (SourceKind.PATH, SourceKind.GIT)


@dataclass(frozen=True)
class Requirement:
    """A manifest entry."""
    name: PackageName
    requirement: VersionRequirement = field(default_factory=VersionRequirement)
    groups: Tuple[str, ...] = (Constants.DEFAULT_GROUP,)
    source: Optional[str] = None  # explicit source pin


@dataclass(frozen=True)
class Manifest:
    """Parsed manifest: requirements and declared sources."""
    requirements: Tuple[Requirement, ...]
    sources: Tuple[Source, ...] = ()
    runtime: Optional[str] = None  # opaque, carried to the lock untouched

    def requirement_for(self, name: PackageName) -> Optional[Requirement]:
        for req in self.requirements:
            if req.name == name:
                return req
        return None

    def names(self) -> List[PackageName]:
        return [req.name for req in self.requirements]

    def names_in_group(self, group: str) -> List[PackageName]:
        return [req.name for req in self.requirements if group in req.groups]


@dataclass(frozen=True)
class Candidate:
    """A (version, source) pair offered for a name, with its dependency edges."""
    name: PackageName
    version: semantic_version.Version
    source: str
    dependencies: Tuple[Tuple[PackageName, VersionRequirement], ...] = ()

    def __str__(self) -> str:
        return f"{self.name} ({self.version})"


@dataclass(frozen=True)
class LockedDependency:
    name: PackageName
    requirement: VersionRequirement = field(default_factory=VersionRequirement)


@dataclass(frozen=True)
class LockedSpec:
    """One entry of a previous resolution."""
    name: PackageName
    version: semantic_version.Version
    source: str
    dependencies: Tuple[LockedDependency, ...] = ()

    @property
    def dependency_names(self) -> List[PackageName]:
        return [dep.name for dep in self.dependencies]

    def as_candidate(self) -> Candidate:
        return Candidate(
            name=self.name,
            version=self.version,
            source=self.source,
            dependencies=tuple((dep.name, dep.requirement) for dep in self.dependencies),
        )


@dataclass(frozen=True)
class ResolvedSpec:
    """The solver's choice for a name, with the edges that justify it."""
    name: PackageName
    version: semantic_version.Version
    source: str
    dependencies: Tuple[LockedDependency, ...] = ()

    def to_locked(self) -> LockedSpec:
        return LockedSpec(self.name, self.version, self.source, self.dependencies)


@dataclass(frozen=True)
class SelfDependencyWarning:
    """A package depends on a host tool version that is not running."""
    package: PackageName
    version: semantic_version.Version
    requirement: VersionRequirement
    host_version: str

    def __str__(self) -> str:
        return (
            f"{self.package} ({self.version}) has dependency {Constants.HOST_TOOL_NAME} "
            f"({self.requirement}), which is unsatisfied by the current {Constants.HOST_TOOL_NAME} "
            f"version {self.host_version}, so the dependency is being ignored"
        )


@dataclass
class ResolutionGraph:
    """Output of the solver."""
    specs: Dict[PackageName, ResolvedSpec]
    runtime: Optional[str] = None
    warnings: List[SelfDependencyWarning] = field(default_factory=list)

    def __contains__(self, name: object) -> bool:
        return name in self.specs

    def __getitem__(self, name: PackageName) -> ResolvedSpec:
        return self.specs[name]

    def names(self) -> List[PackageName]:
        return sorted(self.specs)

    def versions(self) -> Dict[PackageName, str]:
        """Name -> version string, handy for summaries and assertions."""
        return {name: str(spec.version) for name, spec in sorted(self.specs.items())}


class ChangeKind(Enum):
    UNCHANGED = "unchanged"
    INSTALLED = "installed"
    UPGRADED = "upgraded"
    DOWNGRADED = "downgraded"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeRecord:
    """Per-name classification of an update."""
    name: PackageName
    kind: ChangeKind
    from_version: Optional[semantic_version.Version] = None
    to_version: Optional[semantic_version.Version] = None
    from_source: Optional[str] = None
    to_source: Optional[str] = None
    explicitly_requested_no_change: bool = False

    @property
    def source_changed(self) -> bool:
        return (self.from_source is not None and self.to_source is not None
                and self.from_source != self.to_source)


class ScopeKind(Enum):
    ALL = "all"
    NAMED = "named"
    GROUP = "group"
    SOURCE = "source"


@dataclass(frozen=True)
class UpdateScope:
    """What the caller asked to update."""
    kind: ScopeKind
    names: Tuple[PackageName, ...] = ()
    group: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def all(cls) -> "UpdateScope":
        return cls(ScopeKind.ALL)

    @classmethod
    def named(cls, *names: PackageName) -> "UpdateScope":
        return cls(ScopeKind.NAMED, names=tuple(names))

    @classmethod
    def for_group(cls, group: str) -> "UpdateScope":
        return cls(ScopeKind.GROUP, group=group)

    @classmethod
    def for_source(cls, source: str) -> "UpdateScope":
        return cls(ScopeKind.SOURCE, source=source)

    @classmethod
    def build(cls, all_: bool = False, names: Tuple[PackageName, ...] = (), group: Optional[str] = None,
              source: Optional[str] = None, requires_all_flag: bool = False) -> "UpdateScope":
        """Normalize caller flags into a scope.

        Raises:
            ConfigurationError: When ``--all`` is mixed with other options,
                more than one selector is given, or nothing was requested
                while the all flag is required.
        """
        names = tuple(names or ())
        selectors = [bool(names), group is not None, source is not None]
        if all_ and any(selectors):
            raise ConfigurationError("Cannot specify --all along with specific options.")
        if sum(selectors) > 1:
            raise ConfigurationError("Provide only one of the following options: names, group, source")
        if names:
            return cls.named(*names)
        if group is not None:
            return cls.for_group(group)
        if source is not None:
            return cls.for_source(source)
        if not all_ and requires_all_flag:
            raise ConfigurationError("To update everything, pass the `--all` flag.")
        return cls.all()


@dataclass(frozen=True)
class UpdatePolicy:
    """How far free packages may move.

    ``conservative`` disables eager unlocking; ``strict`` applies the level
    cap to every free name instead of only the requested ones.
    ``only_update_to_newer_versions`` floors every free name at its locked
    version; ``unlock_source_unlocks_spec`` lets a source update free the
    package named like the source.
    """
    level: UpdateLevel = UpdateLevel.NONE
    strict: bool = False
    conservative: bool = False
    only_update_to_newer_versions: bool = False
    unlock_source_unlocks_spec: bool = False

    @property
    def eager(self) -> bool:
        return not self.conservative
