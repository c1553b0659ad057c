"""The default graph of dependencies between migrations."""

from __future__ import annotations

import itertools
import json
import threading
from collections.abc import Iterable, Mapping, Sequence

from anser.model.networker import DependencyNetworker


class NetworkValidationError(ValueError):
    """The dependency graph names undefined tasks or contains cycles."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def _strongly_connected(graph: Mapping[str, Sequence[str]]) -> list[list[str]]:
    """Return the strongly connected components of a graph."""
    counter = itertools.count()
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    groups: list[list[str]] = []

    def visit(node: str) -> None:
        index[node] = low[node] = next(counter)
        stack.append(node)
        on_stack.add(node)
        for edge in graph.get(node, ()):
            if edge not in index:
                visit(edge)
                low[node] = min(low[node], low[edge])
            elif edge in on_stack:
                low[node] = min(low[node], index[edge])
        if low[node] == index[node]:
            group = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                group.append(member)
                if member == node:
                    break
            groups.append(group)

    for node in graph:
        if node not in index:
            visit(node)
    return groups


class DependencyNetwork(DependencyNetworker):
    """A thread-safe, in-memory dependency graph with named task groups."""

    def __init__(self) -> None:
        self._network: dict[str, dict[str, None]] = {}
        self._group: dict[str, dict[str, None]] = {}
        self._lock = threading.RLock()

    def add(self, name: str, deps: Iterable[str]) -> None:
        with self._lock:
            edges = self._network.setdefault(name, {})
            edges.update(dict.fromkeys(deps))

    def resolve(self, name: str) -> list[str]:
        with self._lock:
            return list(self._network.get(name, ()))

    def all(self) -> list[str]:
        with self._lock:
            return list(self._network)

    def network(self) -> dict[str, list[str]]:
        with self._lock:
            return {node: list(edges) for node, edges in self._network.items()}

    def validate(self) -> None:
        problems = []
        with self._lock:
            graph = self.network()
        dependencies = dict.fromkeys(dep for edges in graph.values() for dep in edges)
        for dep in dependencies:
            if dep not in graph:
                problems.append(f"dependency '{dep}' is not defined")
        for group in _strongly_connected(graph):
            if len(group) > 1:
                problems.append(f"cycle detected between nodes: [{', '.join(group)}]")
        if problems:
            raise NetworkValidationError(problems)

    def add_group(self, name: str, group: Iterable[str]) -> None:
        with self._lock:
            members = self._group.setdefault(name, {})
            members.update(dict.fromkeys(group))

    def get_group(self, name: str) -> list[str]:
        with self._lock:
            return list(self._group.get(name, ()))

    def to_json(self) -> str:
        """Return the graph as a JSON object of task ids to dependencies."""
        return json.dumps(self.network())

    def __str__(self) -> str:
        return str(self.network())