"""Shared builders for manifests, locks and candidate pools."""

from typing import Dict, Iterable, Optional, Tuple

import pytest

from constants import SourceKind
from update.lock import LockSnapshot
from update.models import LockedDependency, LockedSpec, Manifest, Requirement, Source
from update.sources import CandidateIndex
from versioning.requirement import VersionRequirement
from versioning.version import parse_version

REPO = "https://gems.example/repo"


def make_lock(entries: Dict[str, Tuple], source: str = REPO) -> LockSnapshot:
    """entries: name -> (version, {dep: requirement}) or (version, deps, source)."""
    specs = []
    for name, entry in entries.items():
        version, deps = entry[0], entry[1] if len(entry) > 1 else {}
        spec_source = entry[2] if len(entry) > 2 else source
        specs.append(LockedSpec(
            name=name,
            version=parse_version(version),
            source=spec_source,
            dependencies=tuple(LockedDependency(d, VersionRequirement.parse(r)) for d, r in deps.items()),
        ))
    return LockSnapshot(specs)


def make_index(gems: Iterable[Tuple], source: str = REPO) -> CandidateIndex:
    """gems: (name, versions, {dep: requirement}) or (name, versions, deps, source)."""
    records = []
    for gem in gems:
        name, versions = gem[0], gem[1]
        deps = gem[2] if len(gem) > 2 else {}
        gem_source = gem[3] if len(gem) > 3 else source
        if isinstance(versions, str):
            versions = [versions]
        for version in versions:
            records.append({"name": name, "version": version, "source": gem_source, "dependencies": deps})
    return CandidateIndex.from_records(records)


def make_manifest(*reqs, sources: Optional[Iterable[Source]] = None, runtime: Optional[str] = None) -> Manifest:
    """reqs: name, or (name, requirement), or (name, requirement, {"groups": ..., "source": ...})."""
    requirements = []
    for req in reqs:
        if isinstance(req, str):
            req = (req,)
        name = req[0]
        spec = req[1] if len(req) > 1 else None
        opts = req[2] if len(req) > 2 else {}
        kwargs = {}
        if "groups" in opts:
            kwargs["groups"] = tuple(opts["groups"])
        requirements.append(Requirement(
            name=name,
            requirement=VersionRequirement.parse(spec),
            source=opts.get("source"),
            **kwargs,
        ))
    if sources is None:
        sources = (Source(REPO, SourceKind.REMOTE),)
    sources = tuple(sources)
    return Manifest(requirements=tuple(requirements), sources=sources, runtime=runtime)


@pytest.fixture
def build_lock():
    return make_lock


@pytest.fixture
def build_index():
    return make_index


@pytest.fixture
def build_manifest():
    return make_manifest


@pytest.fixture
def conservative_repo():
    """foo/bar/qux pool used by the patch/minor/strict scenarios."""
    return make_index([
        ("foo", ["1.4.3", "1.4.4"], {"bar": "~> 2.0"}),
        ("foo", ["1.4.5", "1.5.0"], {"bar": "~> 2.1"}),
        ("foo", ["1.5.1"], {"bar": "~> 3.0"}),
        ("bar", ["2.0.3", "2.0.4", "2.0.5", "2.1.0", "2.1.1", "3.0.0"]),
        ("qux", ["1.0.0", "1.0.1", "1.1.0", "2.0.0"]),
    ])


@pytest.fixture
def conservative_lock():
    return make_lock({
        "foo": ("1.4.3", {"bar": "~> 2.0"}),
        "bar": ("2.0.3",),
        "qux": ("1.0.0",),
    })


@pytest.fixture
def eager_repo():
    return make_index([
        ("isolated_owner", ["1.0.1", "1.0.2"], {"isolated_dep": "~> 2.0"}),
        ("isolated_dep", ["2.0.1", "2.0.2"]),
        ("shared_owner_a", ["3.0.1", "3.0.2"], {"shared_dep": "~> 5.0"}),
        ("shared_owner_b", ["4.0.1", "4.0.2"], {"shared_dep": "~> 5.0"}),
        ("shared_dep", ["5.0.1", "5.0.2"]),
    ])


@pytest.fixture
def eager_lock():
    return make_lock({
        "isolated_dep": ("2.0.1",),
        "isolated_owner": ("1.0.1", {"isolated_dep": "~> 2.0"}),
        "shared_dep": ("5.0.1",),
        "shared_owner_a": ("3.0.1", {"shared_dep": "~> 5.0"}),
        "shared_owner_b": ("4.0.1", {"shared_dep": "~> 5.0"}),
    })


@pytest.fixture
def eager_manifest():
    return make_manifest("isolated_owner", "shared_owner_a", "shared_owner_b")
