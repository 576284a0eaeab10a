"""Tests for the unlock set calculator."""

import pytest

from constants import SourceKind
from update.errors import UnknownPackageError
from update.models import Source, UpdatePolicy, UpdateScope
from update.sources import SourceRegistry
from update.unlock import compute_unlock_set, converged_names

GIT = "git:///src/activesupport"


class TestUnlockScopes:
    """Test unlock behaviour per scope."""

    def test_all_frees_everything(self, eager_lock, eager_manifest):
        unlock = compute_unlock_set(eager_lock, eager_manifest, UpdateScope.all(), UpdatePolicy())
        assert unlock.free == frozenset(eager_lock.names())
        assert unlock.fixed == {}
        assert unlock.capped == frozenset(eager_manifest.names())

    def test_named_eager_unlocks_dependencies(self, eager_lock, eager_manifest):
        unlock = compute_unlock_set(eager_lock, eager_manifest, UpdateScope.named("shared_owner_a"), UpdatePolicy())
        assert unlock.free == {"shared_owner_a", "shared_dep"}
        assert set(unlock.fixed) == {"shared_owner_b", "isolated_owner", "isolated_dep"}
        assert unlock.explicit == {"shared_owner_a"}

    def test_named_eager_leaves_disjoint_island(self, eager_lock, eager_manifest):
        unlock = compute_unlock_set(eager_lock, eager_manifest, UpdateScope.named("isolated_owner"), UpdatePolicy())
        assert unlock.free == {"isolated_owner", "isolated_dep"}
        assert not unlock.free & {"shared_owner_a", "shared_owner_b", "shared_dep"}

    def test_named_conservative_keeps_dependencies_still_held(self, eager_lock, eager_manifest):
        unlock = compute_unlock_set(
            eager_lock, eager_manifest,
            UpdateScope.named("shared_owner_a", "isolated_owner"),
            UpdatePolicy(conservative=True),
        )
        assert unlock.free == {"shared_owner_a", "isolated_owner", "isolated_dep"}
        assert "shared_dep" in unlock.fixed

    def test_named_conservative_keeps_dependency_required_by_manifest(self, build_lock, build_manifest):
        lock = build_lock({"a": ("1.0", {"b": ""}), "b": ("1.0",)})
        unlock = compute_unlock_set(lock, build_manifest("a", "b"), UpdateScope.named("a"),
                                    UpdatePolicy(conservative=True))
        assert unlock.free == {"a"}
        assert "b" in unlock.fixed

    def test_child_dependency_can_be_named(self, eager_lock, eager_manifest):
        unlock = compute_unlock_set(eager_lock, eager_manifest, UpdateScope.named("shared_dep"), UpdatePolicy())
        assert unlock.free == {"shared_dep"}

    def test_unknown_name_suggests_alternative(self, build_lock, build_manifest, build_index):
        manifest = build_manifest("activesupport", "rack-obama")
        lock = build_lock({"activesupport": ("2.3.5",), "rack-obama": ("1.0", {"rack": ""}), "rack": ("1.0.0",)})
        registry = SourceRegistry(manifest, build_index([("activesupport", "2.3.5")]))
        with pytest.raises(UnknownPackageError) as excinfo:
            compute_unlock_set(lock, manifest, UpdateScope.named("active-support"), UpdatePolicy(), registry)
        assert excinfo.value.suggestion == "activesupport"
        assert "Did you mean activesupport?" in str(excinfo.value)

    def test_unknown_name_without_near_match(self, build_lock, build_manifest):
        manifest = build_manifest("activesupport")
        lock = build_lock({"activesupport": ("2.3.5",)})
        with pytest.raises(UnknownPackageError) as excinfo:
            compute_unlock_set(lock, manifest, UpdateScope.named("halting-problem-solver"), UpdatePolicy())
        assert excinfo.value.suggestion is None
        assert "Could not find package 'halting-problem-solver'" in str(excinfo.value)

    def test_no_lock_frees_manifest(self, build_manifest):
        manifest = build_manifest("rack")
        unlock = compute_unlock_set(None, manifest, UpdateScope.all(), UpdatePolicy())
        assert unlock.fixed == {}
        assert unlock.free == {"rack"}


class TestGroupScope:
    """Test group updates."""

    def test_only_group_members_and_their_dependencies(self, build_lock, build_manifest):
        manifest = build_manifest(("activesupport", None, {"groups": ["development"]}), "rack")
        lock = build_lock({"activesupport": ("2.3.5",), "rack": ("1.0.0",)})
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_group("development"), UpdatePolicy())
        assert unlock.free == {"activesupport"}
        assert "rack" in unlock.fixed

    def test_git_source_sharing_a_name_is_not_updated(self, build_lock, build_manifest, build_index):
        sources = [
            Source("https://gems.example/repo", SourceKind.REMOTE),
            Source(GIT, SourceKind.GIT, declared_names=frozenset({"foo"})),
        ]
        manifest = build_manifest(
            ("activesupport", None, {"groups": ["development"]}),
            ("foo", None, {"source": GIT}),
            sources=sources,
        )
        lock = build_lock({"activesupport": ("2.3.5",), "foo": ("1.0", {}, GIT)})
        registry = SourceRegistry(manifest, build_index([("foo", "1.0", {}, GIT)]))
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_group("development"), UpdatePolicy(), registry)
        assert unlock.free == {"activesupport"}
        assert "foo" in unlock.fixed

    def test_group_member_locked_from_foreign_git_source_is_excluded(self, build_lock, build_manifest):
        sources = [
            Source("https://gems.example/repo", SourceKind.REMOTE),
            Source(GIT, SourceKind.GIT, declared_names=frozenset({"foo"})),
        ]
        manifest = build_manifest(("helper", None, {"groups": ["development"]}), "foo", sources=sources)
        lock = build_lock({"helper": ("1.0", {}, GIT), "foo": ("1.0", {}, GIT)})
        registry = SourceRegistry(manifest, None)
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_group("development"), UpdatePolicy(), registry)
        assert "helper" not in unlock.free


class TestSourceScope:
    """Test source updates."""

    def test_unknown_source_frees_nothing(self, build_lock, build_manifest):
        manifest = build_manifest("harry", "fred")
        lock = build_lock({"harry": ("1.0", {"fred": ""}), "fred": ("1.0",)})
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_source("harry"), UpdatePolicy())
        assert unlock.free == frozenset()
        assert set(unlock.fixed) == {"harry", "fred"}

    def test_source_named_spec_is_freed_when_configured(self, build_lock, build_manifest):
        manifest = build_manifest("harry", "fred")
        lock = build_lock({"harry": ("1.0", {"fred": ""}), "fred": ("1.0",)})
        policy = UpdatePolicy(unlock_source_unlocks_spec=True)
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_source("harry"), policy)
        assert unlock.free == {"harry"}
        assert "fred" in unlock.fixed

    def test_only_names_supplied_by_the_source(self, build_lock, build_manifest):
        other = "https://mirror.example/repo"
        sources = [Source("https://gems.example/repo"), Source(other, priority=1)]
        manifest = build_manifest("a", "b", sources=sources)
        lock = build_lock({"a": ("1.0", {"shared": ""}), "b": ("1.0", {"shared": ""}, other), "shared": ("1.0",)})
        unlock = compute_unlock_set(lock, manifest, UpdateScope.for_source(other), UpdatePolicy())
        assert unlock.free == {"b"}
        assert "shared" in unlock.fixed


class TestConvergence:
    """Test unlocking names the manifest no longer accepts."""

    def test_changed_requirement_unlocks_name(self, build_lock, build_manifest):
        manifest = build_manifest(("rack", ">= 2.0"), "thin")
        lock = build_lock({"rack": ("1.0",), "thin": ("1.0",)})
        assert converged_names(lock, manifest) == {"rack"}
        unlock = compute_unlock_set(lock, manifest, UpdateScope.named("thin"), UpdatePolicy())
        assert unlock.free == {"rack", "thin"}

    def test_new_pin_unlocks_name(self, build_lock, build_manifest):
        pinned = "https://other.example"
        manifest = build_manifest(("thin", None, {"source": pinned}),
                                  sources=[Source("https://gems.example/repo"), Source(pinned)])
        lock = build_lock({"thin": ("1.0",)})
        assert converged_names(lock, manifest) == {"thin"}
