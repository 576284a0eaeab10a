"""Version requirement model: comparison operators and the pessimistic range."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

import semantic_version

from .version import parse_version, segment_count

OPERATORS = ("=", "!=", ">", ">=", "<", "<=", "~>")

_CONSTRAINT_RE = re.compile(r"^\s*(~>|>=|<=|!=|==|=|>|<)?\s*(\S+)\s*$")


@dataclass(frozen=True)
class VersionConstraint:
    """A single ``operator version`` clause."""

    operator: str
    version: semantic_version.Version
    segments: int = 3

    def matches(self, candidate: semantic_version.Version) -> bool:
        """Check ``candidate`` against this clause, ignoring prerelease policy."""
        op = self.operator
        if op == "=":
            return candidate == self.version
        if op == "!=":
            return candidate != self.version
        if op == ">":
            return candidate > self.version
        if op == ">=":
            return candidate >= self.version
        if op == "<":
            return candidate < self.version
        if op == "<=":
            return candidate <= self.version
        # "~>": at least the version, below the next release of the
        # second-to-last written segment.
        if candidate < self.version:
            return False
        return candidate < self.pessimistic_ceiling()

    def pessimistic_ceiling(self) -> semantic_version.Version:
        """Exclusive ceiling of a ``~>`` clause."""
        v = self.version
        if self.segments <= 2:
            return semantic_version.Version(major=v.major + 1, minor=0, patch=0)
        if self.segments >= 4:
            # Fourth segment is dropped on parse; the clause still pins the patch.
            return semantic_version.Version(major=v.major, minor=v.minor, patch=v.patch + 1)
        return semantic_version.Version(major=v.major, minor=v.minor + 1, patch=0)

    def __str__(self) -> str:
        return f"{self.operator} {_format_segments(self.version, self.segments)}"


def _format_segments(version: semantic_version.Version, segments: int) -> str:
    if version.prerelease or segments >= 3:
        return str(version)
    parts = [version.major, version.minor, version.patch][:max(segments, 1)]
    return ".".join(str(p) for p in parts)


def parse_constraint(text: str) -> VersionConstraint:
    """Parse a single clause such as ``"~> 2.1"`` or ``"1.0"``.

    Raises:
        ValueError: On an unknown operator or an invalid version.
    """
    match = _CONSTRAINT_RE.match(text)
    if not match:
        raise ValueError(f"Invalid version constraint: {text!r}")
    operator = match.group(1) or "="
    if operator == "==":
        operator = "="
    version_text = match.group(2)
    return VersionConstraint(
        operator=operator,
        version=parse_version(version_text),
        segments=segment_count(version_text),
    )


@dataclass(frozen=True)
class VersionRequirement:
    """A conjunction of constraints; empty means any release."""

    constraints: Tuple[VersionConstraint, ...] = ()

    @classmethod
    def parse(cls, spec: Union[None, str, Iterable[str], "VersionRequirement"]) -> "VersionRequirement":
        """Build a requirement from a string, a list of strings or None.

        Comma separated clauses in a single string are split.
        """
        if spec is None:
            return cls()
        if isinstance(spec, VersionRequirement):
            return spec
        if isinstance(spec, str):
            pieces = [spec]
        else:
            pieces = list(spec)
        clauses = []
        for piece in pieces:
            for chunk in str(piece).split(","):
                if chunk.strip() and chunk.strip() not in (">= 0", ">=0"):
                    clauses.append(parse_constraint(chunk))
        return cls(constraints=tuple(clauses))

    @property
    def is_any(self) -> bool:
        return not self.constraints

    @property
    def allows_prerelease(self) -> bool:
        """True when one of the clauses names a prerelease version."""
        return any(c.version.prerelease for c in self.constraints)

    def matches(self, candidate: semantic_version.Version, include_prerelease: bool = False) -> bool:
        """Check every clause; prereleases need an explicit opt-in.

        Args:
            candidate: Version to test.
            include_prerelease: Accept prerelease candidates even when no
                clause mentions one (used for already-locked versions).
        """
        if candidate.prerelease and not (include_prerelease or self.allows_prerelease):
            return False
        return all(c.matches(candidate) for c in self.constraints)

    def __str__(self) -> str:
        if not self.constraints:
            return ">= 0"
        return ", ".join(str(c) for c in self.constraints)
