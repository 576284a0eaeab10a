"""Candidate pool and source registry.

The pool is materialized before a solve and frozen; the registry decides which
sources may supply a name (pins and authoritative path/git sources win).
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from versioning.requirement import VersionRequirement
from versioning.version import parse_version

from .models import Candidate, Manifest, PackageName, Source

logger = logging.getLogger(__name__)


class CandidateIndex:
    """Immutable snapshot of every known (version, source) pair per name.

    Any object exposing ``candidates(name)`` and ``names()`` can stand in for
    it as the candidate provider.
    """

    def __init__(self, candidates: Iterable[Candidate]):
        grouped: Dict[PackageName, List[Candidate]] = {}
        seen = set()
        for cand in candidates:
            key = (cand.name, cand.version, cand.source)
            if key in seen:
                continue
            seen.add(key)
            grouped.setdefault(cand.name, []).append(cand)
        self._by_name: Mapping[PackageName, Tuple[Candidate, ...]] = MappingProxyType({
            name: tuple(sorted(items, key=lambda c: (c.version, c.source), reverse=True))
            for name, items in grouped.items()
        })

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "CandidateIndex":
        """Build an index from plain dicts.

        Each record has ``name``, ``version``, ``source`` and optionally
        ``dependencies`` mapping dependency name to a requirement string or list.
        """
        built = []
        for record in records:
            deps = record.get("dependencies") or {}
            built.append(Candidate(
                name=record["name"],
                version=parse_version(record["version"]),
                source=record["source"],
                dependencies=tuple(
                    (dep_name, VersionRequirement.parse(dep_req))
                    for dep_name, dep_req in deps.items()
                ),
            ))
        return cls(built)

    def candidates(self, name: PackageName) -> Tuple[Candidate, ...]:
        return self._by_name.get(name, ())

    def names(self) -> List[PackageName]:
        return sorted(self._by_name)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_name.values())


class SourceRegistry:
    """Resolves which sources may supply a given package name."""

    def __init__(self, manifest: Manifest, provider):
        """Initialize the registry.

        Args:
            manifest: Parsed manifest (declared sources and pins).
            provider: Candidate provider, usually a CandidateIndex.
        """
        self._manifest = manifest
        self._provider = provider
        self._sources: Dict[str, Source] = {s.identifier: s for s in manifest.sources}
        self._authoritative: Dict[PackageName, str] = {}
        for source in manifest.sources:
            if source.is_authoritative:
                for name in source.declared_names:
                    self._authoritative.setdefault(name, source.identifier)

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    def source(self, identifier: str) -> Optional[Source]:
        return self._sources.get(identifier)

    def priority(self, identifier: str) -> int:
        source = self._sources.get(identifier)
        return source.priority if source is not None else 0

    def pinned_source(self, name: PackageName) -> Optional[str]:
        """Exclusive source for ``name`` (a manifest pin or an authoritative source)."""
        req = self._manifest.requirement_for(name)
        if req is not None and req.source:
            return req.source
        return self._authoritative.get(name)

    def allowed_sources(self, name: PackageName) -> Optional[Sequence[str]]:
        """Source identifiers allowed to supply ``name``; None means any source."""
        pinned = self.pinned_source(name)
        if pinned is not None:
            return [pinned]
        if not self._sources:
            return None
        return [s.identifier for s in self._manifest.sources if not s.is_authoritative]

    def candidates_for(self, name: PackageName) -> List[Candidate]:
        """Candidates for ``name`` from allowed sources, best first.

        Order: highest version, then lower source priority, then identifier.
        """
        allowed = self.allowed_sources(name)
        offered = [
            cand for cand in self._provider.candidates(name)
            if allowed is None or cand.source in allowed
        ]
        offered.sort(key=lambda c: (c.version, -self.priority(c.source), c.source), reverse=True)
        if is_debug_enabled(logger):
            logger.debug(
                "Candidates collected",
                extra=extra_context(
                    event="candidates",
                    component="source_registry",
                    package=name,
                    count=len(offered),
                    allowed_sources=",".join(allowed) if allowed is not None else None,
                ),
            )
        return offered

    def known_names(self) -> List[PackageName]:
        """Every name any source offers."""
        return list(self._provider.names())
