"""Results and options of database write operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ChangeInfo:
    """Counts reported by update, upsert and remove operations."""

    updated: int = 0
    removed: int = 0
    upserted_id: Any = None


@dataclass
class Change:
    """Options for a find-and-modify operation."""

    update: Any = None
    upsert: bool = False
    remove: bool = False
    return_new: bool = False


@dataclass
class BulkResult:
    """Counts reported by a bulk write."""

    matched: int = 0
    modified: int = 0