"""Records of completed migrations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass
class MigrationMetadata:
    """Data about a migration operation that has run."""

    id: str = ""
    migration: str = ""
    has_errors: bool = False
    completed: bool = False

    def satisfied(self) -> bool:
        """Report whether the migration completed without errors."""
        return self.completed and not self.has_errors

    def to_document(self) -> dict[str, Any]:
        """Return the database document form of this record."""
        return {
            "_id": self.id,
            "migration": self.migration,
            "has_errors": self.has_errors,
            "completed": self.completed,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> MigrationMetadata:
        """Build a record from its database document form."""
        return cls(
            id=doc.get("_id", ""),
            migration=doc.get("migration", ""),
            has_errors=bool(doc.get("has_errors", False)),
            completed=bool(doc.get("completed", False)),
        )