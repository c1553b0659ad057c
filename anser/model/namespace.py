"""Database and collection name pairs."""

from __future__ import annotations

from dataclasses import dataclass

MAX_DB_NAME_LENGTH = 64


@dataclass
class Namespace:
    """A MongoDB database name and collection name pair."""

    db: str = ""
    collection: str = ""

    def __str__(self) -> str:
        return f"{self.db}.{self.collection}"

    def is_valid(self) -> bool:
        """Report whether both names are set and the database name is not too long.

        This does not check for restricted characters or for overly long
        collection names.
        """
        if not self.db or not self.collection:
            return False
        return len(self.db) <= MAX_DB_NAME_LENGTH