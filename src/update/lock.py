"""Typed view of a previous resolution.

Names are interned to integer ids and the dependency graph is stored as
adjacency lists over those ids, so reachability and diffing stay cheap.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Set

from .errors import CorruptLockError
from .models import LockedSpec, PackageName


class LockSnapshot:
    """A closed, acyclic set of LockedSpecs.

    Raises:
        CorruptLockError: When a dependency points at a missing entry, a name
            appears twice, or the graph has a cycle.
    """

    def __init__(self, specs: Iterable[LockedSpec], runtime: Optional[str] = None):
        self.runtime = runtime
        self._specs: Dict[PackageName, LockedSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise CorruptLockError(
                    f"Lock lists {spec.name} more than once.",
                    context={"name": spec.name},
                )
            self._specs[spec.name] = spec

        self._names: List[PackageName] = sorted(self._specs)
        self._ids: Dict[PackageName, int] = {name: i for i, name in enumerate(self._names)}
        self._forward: List[List[int]] = [[] for _ in self._names]
        self._backward: List[List[int]] = [[] for _ in self._names]
        for name in self._names:
            src = self._ids[name]
            for dep in self._specs[name].dependency_names:
                if dep not in self._ids:
                    raise CorruptLockError(
                        f"Lock entry {name} depends on {dep}, which is not locked.",
                        hint="Regenerate the lock from scratch.",
                        context={"name": name, "dependency": dep},
                    )
                dst = self._ids[dep]
                self._forward[src].append(dst)
                self._backward[dst].append(src)
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        # Iterative three-color DFS.
        state = [0] * len(self._names)
        for root in range(len(self._names)):
            if state[root]:
                continue
            stack = [(root, iter(self._forward[root]))]
            state[root] = 1
            while stack:
                node, children = stack[-1]
                advanced = False
                for child in children:
                    if state[child] == 1:
                        raise CorruptLockError(
                            f"Lock has a dependency cycle through {self._names[child]}.",
                            context={"name": self._names[child]},
                        )
                    if state[child] == 0:
                        state[child] = 1
                        stack.append((child, iter(self._forward[child])))
                        advanced = True
                        break
                if not advanced:
                    state[node] = 2
                    stack.pop()

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[LockedSpec]:
        return (self._specs[name] for name in self._names)

    def __len__(self) -> int:
        return len(self._names)

    def get(self, name: PackageName) -> Optional[LockedSpec]:
        return self._specs.get(name)

    def __getitem__(self, name: PackageName) -> LockedSpec:
        return self._specs[name]

    def names(self) -> List[PackageName]:
        return list(self._names)

    def dependencies_of(self, name: PackageName) -> List[PackageName]:
        return [self._names[i] for i in self._forward[self._ids[name]]]

    def dependents_of(self, name: PackageName) -> List[PackageName]:
        return sorted(self._names[i] for i in self._backward[self._ids[name]])

    def reachable_from(self, names: Iterable[PackageName]) -> Set[PackageName]:
        """Forward closure over dependency edges, including the start names
        that are locked."""
        seen: Set[int] = set()
        pending = [self._ids[n] for n in names if n in self._ids]
        while pending:
            node = pending.pop()
            if node in seen:
                continue
            seen.add(node)
            pending.extend(self._forward[node])
        return {self._names[i] for i in seen}

    def subset(self, names: Iterable[PackageName]) -> Dict[PackageName, LockedSpec]:
        """Plain mapping of the given names to their locked specs."""
        return {name: self._specs[name] for name in names if name in self._specs}
