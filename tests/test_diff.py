"""Tests for change classification."""

from update.diff import changed, describe, diff, warnings_for
from update.models import ChangeKind, ResolutionGraph, ResolvedSpec
from versioning.version import parse_version

REPO = "https://gems.example/repo"


def graph(**versions):
    specs = {}
    for name, version in versions.items():
        source = REPO
        if isinstance(version, tuple):
            version, source = version
        specs[name] = ResolvedSpec(name=name, version=parse_version(version), source=source)
    return ResolutionGraph(specs=specs)


class TestDiff:
    """Test per-name classification."""

    def test_every_kind(self, build_lock):
        lock = build_lock({"up": ("1.0",), "down": ("2.0",), "same": ("1.0",), "gone": ("1.0",)})
        records = diff(lock, graph(up="1.1", down="1.0", same="1.0", new="0.1"))
        assert [(r.name, r.kind) for r in records] == [
            ("down", ChangeKind.DOWNGRADED),
            ("gone", ChangeKind.REMOVED),
            ("new", ChangeKind.INSTALLED),
            ("same", ChangeKind.UNCHANGED),
            ("up", ChangeKind.UPGRADED),
        ]

    def test_no_previous_lock(self):
        records = diff(None, graph(rack="1.0"))
        assert records[0].kind == ChangeKind.INSTALLED
        assert records[0].from_version is None

    def test_requested_but_unchanged(self, build_lock):
        lock = build_lock({"thin": ("1.0",), "rack": ("1.0",)})
        records = diff(lock, graph(thin="1.0", rack="1.2"), requested=["thin", "rack"])
        assert warnings_for(records) == ["thin"]

    def test_source_move_counts_as_change(self, build_lock):
        lock = build_lock({"foo": ("1.0",)})
        records = diff(lock, graph(foo=("1.0", "git:///foo")))
        assert records[0].kind == ChangeKind.UNCHANGED
        assert records[0].source_changed
        assert changed(records) == records

    def test_plain_unchanged_is_quiet(self, build_lock):
        lock = build_lock({"foo": ("1.0",)})
        assert changed(diff(lock, graph(foo="1.0"))) == []


class TestDescribe:
    """Test one-line summaries."""

    def test_upgrade(self, build_lock):
        record = diff(build_lock({"foo": ("1.0",)}), graph(foo="2.0"))[0]
        assert describe(record) == "foo 2.0.0 (was 1.0.0)"

    def test_removed(self, build_lock):
        record = diff(build_lock({"foo": ("1.0",)}), graph())[0]
        assert describe(record) == "foo 1.0.0 (removed)"

    def test_installed(self):
        assert describe(diff(None, graph(foo="1.0"))[0]) == "foo 1.0.0"
