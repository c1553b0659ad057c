"""Definitions of single migration operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from anser.model.namespace import Namespace


@dataclass
class Simple:
    """A single-document update on one collection."""

    id: Any = None
    update: dict[str, Any] = field(default_factory=dict)
    migration: str = ""
    namespace: Namespace = field(default_factory=Namespace)


@dataclass
class Manual:
    """A registered operation run against a single input document."""

    id: Any = None
    operation_name: str = ""
    migration: str = ""
    namespace: Namespace = field(default_factory=Namespace)


@dataclass
class Stream:
    """A registered processor run over a stream of documents."""

    query: dict[str, Any] = field(default_factory=dict)
    processor_name: str = ""
    migration: str = ""
    namespace: Namespace = field(default_factory=Namespace)