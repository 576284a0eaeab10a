"""Version parsing and increment-class helpers built on semantic_version."""

from __future__ import annotations

from typing import Optional

import semantic_version

from constants import UpdateLevel


def parse_version(text: str) -> semantic_version.Version:
    """Parse a package version string.

    Short versions are coerced ("1.0" -> 1.0.0) and build metadata is dropped,
    so versions differing only in build metadata compare and hash equal.

    Args:
        text: Raw version string.

    Returns:
        semantic_version.Version

    Raises:
        ValueError: If the string is not a version.
    """
    if isinstance(text, semantic_version.Version):
        return _strip_build(text)
    raw = str(text).strip()
    if raw.startswith(("v", "V")):
        raw = raw[1:]
    if not raw or not raw[0].isdigit():
        raise ValueError(f"Invalid version string: {text!r}")
    return _strip_build(semantic_version.Version.coerce(raw))


def _strip_build(version: semantic_version.Version) -> semantic_version.Version:
    if not version.build:
        return version
    return semantic_version.Version(
        major=version.major,
        minor=version.minor,
        patch=version.patch,
        prerelease=version.prerelease,
        build=(),
    )


def segment_count(text: str) -> int:
    """Number of dotted numeric segments written in ``text`` ("2.1" -> 2)."""
    head = str(text).strip().lstrip("vV").split("-", 1)[0].split("+", 1)[0]
    count = 0
    for part in head.split("."):
        if not part.isdigit():
            break
        count += 1
    return max(count, 1)


def level_upper_bound(locked: semantic_version.Version, level: UpdateLevel) -> Optional[semantic_version.Version]:
    """Exclusive upper bound for ``level`` relative to ``locked``.

    Returns None when the level imposes no ceiling.
    """
    if level == UpdateLevel.PATCH:
        return semantic_version.Version(major=locked.major, minor=locked.minor + 1, patch=0)
    if level == UpdateLevel.MINOR:
        return semantic_version.Version(major=locked.major + 1, minor=0, patch=0)
    return None

