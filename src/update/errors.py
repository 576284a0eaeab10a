"""Error taxonomy for the update core.

Each failure mode is its own class so callers can render messages from the
structured payload instead of parsing text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple


class UpdateError(Exception):
    """Base error carrying an optional hint and context mapping."""

    def __init__(self, message: str, *, hint: Optional[str] = None,
                 context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ConfigurationError(UpdateError):
    """Mutually exclusive options or invalid configuration; raised before any search."""


class UnknownPackageError(UpdateError):
    """A requested name is not in the manifest, the lock or any source."""

    def __init__(self, name: str, suggestion: Optional[str] = None) -> None:
        hint = f"Did you mean {suggestion}?" if suggestion else None
        super().__init__(
            f"Could not find package '{name}'.",
            hint=hint,
            context={"name": name, "suggestion": suggestion},
        )
        self.name = name
        self.suggestion = suggestion


class CorruptLockError(UpdateError):
    """The lock snapshot is not a closed acyclic graph or cannot be parsed."""


class WriteFailure(UpdateError):
    """Serializing or replacing the lock failed; the previous lock is intact."""

    def __init__(self, message: str, *, path: str, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint, context={"path": path})
        self.path = path


@dataclass(frozen=True)
class ConflictDetail:
    """The requirements that could not be satisfied together for one name.

    ``requirements`` holds ``(origin, requirement text)`` pairs where origin is
    either ``"manifest"`` or ``"name (version)"`` of the depending package.
    """
    name: str
    requirements: Tuple[Tuple[str, str], ...] = ()
    fixed_version: Optional[str] = None
    available: Tuple[str, ...] = ()
    dependents: Tuple[str, ...] = ()

    def describe(self) -> str:
        if self.fixed_version is not None:
            lines = [
                f"{origin} has dependency {self.name} ({req}), but {self.name} is fixed at "
                f"version {self.fixed_version}"
                for origin, req in self.requirements if origin != "manifest"
            ]
            manifest_reqs = [req for origin, req in self.requirements if origin == "manifest"]
            lines.extend(
                f"manifest requires {self.name} ({req}), but {self.name} is fixed at version "
                f"{self.fixed_version}"
                for req in manifest_reqs
            )
            if lines:
                return "\n".join(lines)
        if not self.available:
            return f"Could not find package '{self.name}' in any of the sources"
        reqs: List[str] = [f"  {origin} requires {self.name} ({req})" for origin, req in self.requirements]
        return "\n".join([f"Could not find compatible versions for {self.name}:"] + reqs)


class ResolutionConflict(UpdateError):
    """The free set cannot be resolved against the fixed set and requirements."""

    def __init__(self, conflict: ConflictDetail, message: Optional[str] = None) -> None:
        super().__init__(message or conflict.describe(), context={"name": conflict.name})
        self.conflict = conflict
