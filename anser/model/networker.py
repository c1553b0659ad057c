"""The interface to the graph of dependencies between migrations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable


class DependencyNetworker(ABC):
    """Answers questions about the dependencies of tasks.

    Implementations are mutable and thread-safe.
    """

    @abstractmethod
    def add(self, name: str, deps: Iterable[str]) -> None:
        """Record dependencies for a task, without any validation."""

    @abstractmethod
    def resolve(self, name: str) -> list[str]:
        """Return all dependencies of a task."""

    @abstractmethod
    def all(self) -> list[str]:
        """Return every task that has registered dependencies."""

    @abstractmethod
    def network(self) -> dict[str, list[str]]:
        """Return the whole graph as task ids mapped to their dependencies."""

    @abstractmethod
    def validate(self) -> None:
        """Raise if a dependency is undefined or the graph has a cycle."""

    @abstractmethod
    def add_group(self, name: str, group: Iterable[str]) -> None:
        """Add tasks to a named group."""

    @abstractmethod
    def get_group(self, name: str) -> list[str]:
        """Return the tasks of a named group."""