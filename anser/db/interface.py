"""Abstract database session, query and processing interfaces."""

from __future__ import annotations

import collections.abc
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from anser.db.data import BulkResult, Change, ChangeInfo
from anser.model.namespace import Namespace


class Iterator(collections.abc.Iterator):
    """An iterator over documents that holds resources until closed.

    Errors met while iterating are raised from ``__next__``.
    """

    @abstractmethod
    def __next__(self) -> Any:
        """Return the next document."""

    @abstractmethod
    def close(self) -> None:
        """Release the resources behind the iterator."""

    def __enter__(self) -> Iterator:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class Results(ABC):
    """The output of a database read."""

    @abstractmethod
    def all(self) -> list[Any]:
        """Return every matching document."""

    @abstractmethod
    def one(self) -> Any:
        """Return the first matching document, raising NotFoundError if none."""

    @abstractmethod
    def iter(self) -> Iterator:
        """Return an iterator over the matching documents."""


class Query(Results):
    """A find query built up by chained calls."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of matching documents."""

    @abstractmethod
    def limit(self, n: int) -> Query:
        """Limit the number of results."""

    @abstractmethod
    def select(self, projection: Any) -> Query:
        """Set the projection."""

    @abstractmethod
    def skip(self, n: int) -> Query:
        """Skip a number of results."""

    @abstractmethod
    def sort(self, *args: str) -> Query:
        """Add sort keys; a leading '-' sorts descending."""

    @abstractmethod
    def hint(self, hint: Any) -> Query:
        """Name the index to use, by name or specification."""

    @abstractmethod
    def apply(self, change: Change) -> tuple[ChangeInfo, Any]:
        """Run a find-and-modify, returning its counts and the document."""

    @abstractmethod
    def max_time(self, seconds: float) -> Query:
        """Limit the server-side running time."""


class Aggregation(Results):
    """An aggregation pipeline."""

    @abstractmethod
    def hint(self, hint: Any) -> Aggregation:
        """Name the index to use."""

    @abstractmethod
    def max_time(self, seconds: float) -> Aggregation:
        """Limit the server-side running time."""


class Bulk(ABC):
    """A batch of write operations run together."""

    @abstractmethod
    def insert(self, *args: Any) -> None:
        """Queue documents for insertion."""

    @abstractmethod
    def remove(self, *args: Any) -> None:
        """Queue single-document removals by selector."""

    @abstractmethod
    def remove_all(self, *args: Any) -> None:
        """Queue multi-document removals by selector."""

    @abstractmethod
    def update(self, *args: Any) -> None:
        """Queue single-document updates as selector, update pairs."""

    @abstractmethod
    def update_all(self, *args: Any) -> None:
        """Queue multi-document updates as selector, update pairs."""

    @abstractmethod
    def upsert(self, *args: Any) -> None:
        """Queue upserts as selector, update pairs."""

    @abstractmethod
    def unordered(self) -> None:
        """Let the operations run in any order."""

    @abstractmethod
    def run(self) -> BulkResult:
        """Run the queued operations."""


class Collection(ABC):
    """Common operations on a collection."""

    @abstractmethod
    def drop_collection(self) -> None:
        """Drop the collection."""

    @abstractmethod
    def pipe(self, pipeline: Any) -> Aggregation:
        """Start an aggregation."""

    @abstractmethod
    def find(self, query: Any) -> Query:
        """Start a query."""

    @abstractmethod
    def find_id(self, doc_id: Any) -> Query:
        """Start a query for one _id."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of documents."""

    @abstractmethod
    def insert(self, *args: Any) -> None:
        """Insert documents."""

    @abstractmethod
    def upsert(self, query: Any, update: Any) -> ChangeInfo:
        """Update or insert the document matching a query."""

    @abstractmethod
    def upsert_id(self, doc_id: Any, update: Any) -> ChangeInfo:
        """Update or insert the document with an _id."""

    @abstractmethod
    def update(self, query: Any, update: Any) -> None:
        """Update one document, raising NotFoundError if none matched."""

    @abstractmethod
    def update_id(self, doc_id: Any, update: Any) -> None:
        """Update the document with an _id, raising NotFoundError if none matched."""

    @abstractmethod
    def update_all(self, query: Any, update: Any) -> ChangeInfo:
        """Update every matching document."""

    @abstractmethod
    def remove(self, query: Any) -> None:
        """Remove one matching document."""

    @abstractmethod
    def remove_id(self, doc_id: Any) -> None:
        """Remove the document with an _id."""

    @abstractmethod
    def remove_all(self, query: Any) -> ChangeInfo:
        """Remove every matching document."""

    @abstractmethod
    def bulk(self) -> Bulk:
        """Start a bulk write."""


class Database(ABC):
    """A database within a session."""

    @abstractmethod
    def name(self) -> str:
        """Return the database name."""

    @abstractmethod
    def collection(self, name: str) -> Collection:
        """Return a collection by name."""

    @abstractmethod
    def create_collection(self, name: str) -> Collection:
        """Create a collection and return it."""

    @abstractmethod
    def drop_database(self) -> None:
        """Drop the database."""


class Session(ABC):
    """A connection to the database server."""

    @abstractmethod
    def clone(self) -> Session:
        """Return a session sharing this connection."""

    @abstractmethod
    def copy(self) -> Session:
        """Return a session sharing this connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the session."""

    @abstractmethod
    def db(self, name: str) -> Database:
        """Return a database by name."""

    @abstractmethod
    def error(self) -> Exception | None:
        """Return the errors collected by the session, if any."""


class Processor(ABC):
    """Processes a stream of documents."""

    @abstractmethod
    def load(self, session: Session, ns: Namespace, query: Mapping[str, Any]) -> Iterator | None:
        """Return an iterator over the documents to process."""

    @abstractmethod
    def migrate(self, iterator: Iterator) -> None:
        """Process the documents, raising on failure."""


MigrationOperation = Callable[[Session, Mapping[str, Any]], None]
"""An idempotent operation that migrates one document."""