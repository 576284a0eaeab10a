"""Lock serialization, parsing and atomic commit.

Format (JSON, keys sorted, packages ordered by name)::

    {
      "version": 1,
      "runtime": "~> 3.2",
      "packages": [
        {"name": "foo", "version": "1.4.5", "source": "https://gems.example",
         "dependencies": [{"name": "bar", "requirement": "~> 2.1"}]}
      ]
    }
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from common.logging_utils import Timer, extra_context
from constants import Constants
from versioning.requirement import VersionRequirement
from versioning.version import parse_version

from .errors import CorruptLockError, WriteFailure
from .lock import LockSnapshot
from .models import LockedDependency, LockedSpec, ResolutionGraph

logger = logging.getLogger(__name__)


def dump_graph(graph: ResolutionGraph) -> Dict[str, Any]:
    """Plain-data form of a graph."""
    packages = []
    for name in graph.names():
        spec = graph.specs[name]
        packages.append({
            "name": spec.name,
            "version": str(spec.version),
            "source": spec.source,
            "dependencies": [
                {"name": dep.name, "requirement": str(dep.requirement)}
                for dep in sorted(spec.dependencies, key=lambda d: d.name)
            ],
        })
    payload: Dict[str, Any] = {
        "version": Constants.LOCKFILE_FORMAT_VERSION,
        "packages": packages,
    }
    if graph.runtime:
        payload["runtime"] = graph.runtime
    return payload


def serialize_graph(graph: ResolutionGraph) -> str:
    return json.dumps(dump_graph(graph), indent=2, sort_keys=True) + "\n"


def parse_lock(raw: str) -> LockSnapshot:
    """Parse serialized lock text.

    Raises:
        CorruptLockError: Invalid JSON, unexpected shape, bad versions, or a
            graph that is not closed and acyclic.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptLockError("Invalid lock JSON.", hint=str(exc)) from exc
    if not isinstance(payload, dict):
        raise CorruptLockError("Invalid lock payload type.")
    packages = payload.get("packages", [])
    if not isinstance(packages, list):
        raise CorruptLockError("Invalid lock `packages` value.")
    specs: List[LockedSpec] = [_parse_spec(item) for item in packages]
    runtime = payload.get("runtime")
    return LockSnapshot(specs, runtime=runtime if isinstance(runtime, str) else None)


def _parse_spec(item: Any) -> LockedSpec:
    if not isinstance(item, dict):
        raise CorruptLockError("Invalid package entry in lock.")
    try:
        name = str(item["name"])
        version = parse_version(item["version"])
        source = str(item["source"])
        deps = [
            LockedDependency(str(dep["name"]), VersionRequirement.parse(dep.get("requirement")))
            for dep in item.get("dependencies", [])
        ]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise CorruptLockError(
            "Invalid package entry in lock.",
            hint=str(exc),
            context={"entry": json.dumps(item, sort_keys=True, default=str)},
        ) from exc
    return LockedSpec(name=name, version=version, source=source, dependencies=tuple(deps))


def read_lock(path: Union[str, Path]) -> Optional[LockSnapshot]:
    """Read a lock from disk; None when the file does not exist."""
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return parse_lock(raw)


def commit(graph: ResolutionGraph, path: Union[str, Path]) -> Path:
    """Atomically replace the lock at ``path`` with ``graph``.

    The new content goes to a temporary file in the same directory and is
    renamed over the target only once fully written, so the previous lock is
    untouched on any failure.

    Raises:
        WriteFailure: Serialization, writing or the rename failed.
    """
    target = Path(path)
    try:
        payload = serialize_graph(graph)
    except (TypeError, ValueError) as exc:
        raise WriteFailure(f"Could not serialize lock: {exc}", path=str(target)) from exc

    with Timer() as timer:
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
        except OSError as exc:
            raise WriteFailure(f"Could not create temporary lock: {exc}", path=str(target)) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except OSError as exc:
            _discard(tmp_name)
            raise WriteFailure(
                f"Could not write lock: {exc}",
                path=str(target),
                hint="The previous lock was left unchanged.",
            ) from exc
        except BaseException:
            _discard(tmp_name)
            raise

    logger.debug(
        "Lock written",
        extra=extra_context(event="lock_write", component="lockfile", outcome="success",
                            target=str(target), packages=len(graph.specs), duration_ms=timer.duration_ms()),
    )
    return target


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temporary lock %s: %s", tmp_name, exc)
