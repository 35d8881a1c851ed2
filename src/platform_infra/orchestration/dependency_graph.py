"""
Stack dependency graph
Explicit nodes and edges with cycle detection and a topological order query
"""
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from platform_infra.errors import DependencyCycleError, DuplicateStackError, UnknownStackError


class DependencyGraph:
    """
    Directed acyclic graph of stacks.

    An edge ``dependent -> dependency`` means the dependent needs the
    dependency's outputs (or existence) before it can be provisioned.
    Orders are deterministic: ties are broken by declaration order.
    """

    def __init__(self, nodes: Optional[Iterable[str]] = None):
        self._nodes: List[str] = []
        self._edges: Dict[str, Set[str]] = {}
        for node in nodes or ():
            self.add_node(node)

    def add_node(self, name: str) -> None:
        if name in self._edges:
            raise DuplicateStackError(f"Stack '{name}' is already declared")
        self._nodes.append(name)
        self._edges[name] = set()

    def _require(self, name: str) -> None:
        if name not in self._edges:
            raise UnknownStackError(f"Stack '{name}' is not declared")

    def add_dependency(self, dependent: str, dependency: str) -> None:
        """
        Record that ``dependent`` requires ``dependency``

        Raises:
            UnknownStackError: if either stack is undeclared
            DependencyCycleError: if the edge would close a cycle; the graph
                is left unchanged
        """
        self._require(dependent)
        self._require(dependency)

        path = self._path(dependency, dependent)
        if path is not None:
            raise DependencyCycleError([dependent] + path)

        self._edges[dependent].add(dependency)

    def _path(self, start: str, goal: str) -> Optional[List[str]]:
        """Depth-first search for a path start -> ... -> goal along edges"""
        stack = [(start, [start])]
        seen: Set[str] = set()
        while stack:
            node, path = stack.pop()
            if node == goal:
                return path
            if node in seen:
                continue
            seen.add(node)
            for nxt in self._edges[node]:
                stack.append((nxt, path + [nxt]))
        return None

    def has_edge(self, dependent: str, dependency: str) -> bool:
        return dependency in self._edges.get(dependent, ())

    def dependencies_of(self, name: str) -> FrozenSet[str]:
        self._require(name)
        return frozenset(self._edges[name])

    def dependents_of(self, name: str) -> FrozenSet[str]:
        self._require(name)
        return frozenset(node for node, deps in self._edges.items() if name in deps)

    @property
    def nodes(self) -> List[str]:
        return list(self._nodes)

    def edges(self) -> List[tuple]:
        return [
            (node, dep)
            for node in self._nodes
            for dep in sorted(self._edges[node], key=self._nodes.index)
        ]

    def build_order(self) -> List[str]:
        """Provisioning order: every stack after all of its dependencies"""
        order: List[str] = []
        placed: Set[str] = set()
        remaining = list(self._nodes)
        while remaining:
            ready = [n for n in remaining if self._edges[n] <= placed]
            # add_dependency rejects cycles, so something is always ready
            node = ready[0]
            order.append(node)
            placed.add(node)
            remaining.remove(node)
        return order

    def teardown_order(self) -> List[str]:
        """Reverse of the provisioning order: dependents before dependencies"""
        return list(reversed(self.build_order()))

    def __contains__(self, name: str) -> bool:
        return name in self._edges

    def __len__(self) -> int:
        return len(self._nodes)
