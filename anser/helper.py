"""Helpers that record and query the state of migrations in the database."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from anser.db.interface import Iterator
from anser.db.iterator import new_combined_iterator
from anser.job import Job
from anser.model.metadata import MigrationMetadata
from anser.model.namespace import Namespace

logger = logging.getLogger(__name__)


class ErrorMigrationIterator(Iterator):
    """An iterator with no items that raises its error, if it has one."""

    def __init__(self, err: Exception | None = None) -> None:
        self.err = err

    def __next__(self) -> MigrationMetadata:
        if self.err is not None:
            raise self.err
        raise StopIteration

    def close(self) -> None:
        """Nothing is held, so nothing is released."""


class CursorMigrationMetadataIterator(Iterator):
    """Decodes migration records from a driver cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    def __next__(self) -> MigrationMetadata:
        return MigrationMetadata.from_document(next(self._cursor))

    def close(self) -> None:
        self._cursor.close()


class LegacyMigrationMetadataIterator(Iterator):
    """Decodes migration records from a session iterator."""

    def __init__(self, iterator: Iterator) -> None:
        self._iterator = iterator

    def __next__(self) -> MigrationMetadata:
        item = next(self._iterator)
        if isinstance(item, MigrationMetadata):
            return item
        return MigrationMetadata.from_document(item)

    def close(self) -> None:
        self._iterator.close()


class MigrationHelper(ABC):
    """Gives migrations access to their environment and their recorded state."""

    _kind = "base"

    def __init__(self, env: Any = None) -> None:
        self._env = env
        self._lock = threading.Lock()

    def env(self) -> Any:
        """Return the environment, falling back to the global one."""
        with self._lock:
            if self._env is None:
                from anser.environment import get_environment

                self._env = get_environment()
            return self._env

    @abstractmethod
    def save_migration_event(self, meta: MigrationMetadata) -> None:
        """Store a migration record, raising on failure."""

    def finish_migration(self, name: str, job: Job) -> None:
        """Mark a job complete and record its outcome."""
        job.mark_complete()
        meta = MigrationMetadata(
            id=job.id, migration=name, has_errors=job.has_errors(), completed=True
        )
        try:
            self.save_migration_event(meta)
        except Exception as err:  # noqa: BLE001 - recorded on the job
            job.add_error(err)
            logger.warning(
                "encountered problem saving migration event for '%s' (%s, %s helper): %s",
                job.id,
                name,
                self._kind,
                err,
            )
            return
        logger.debug("completed migration '%s' (%s): %s", job.id, name, meta)

    @abstractmethod
    def pending_migration_operations(self, ns: Namespace, query: Mapping[str, Any]) -> int:
        """Return the number of documents still to migrate, or -1 on failure."""

    @abstractmethod
    def get_migration_events(self, query: Mapping[str, Any]) -> Iterator:
        """Return an iterator over the migration records matching a query."""


class ClientMigrationHelper(MigrationHelper):
    """A helper that uses the environment's database client."""

    _kind = "client"

    def save_migration_event(self, meta: MigrationMetadata) -> None:
        env = self.env()
        client = env.get_client()
        ns = env.metadata_namespace()
        res = client[ns.db][ns.collection].replace_one(
            {"_id": meta.id}, meta.to_document(), upsert=True
        )
        upserted = 0 if res.upserted_id is None else 1
        if res.matched_count + upserted + res.modified_count < 1:
            raise RuntimeError(f"migration event was not saved for '{meta.id}'")

    def pending_migration_operations(self, ns: Namespace, query: Mapping[str, Any]) -> int:
        return 0

    def get_migration_events(self, query: Mapping[str, Any]) -> Iterator:
        env = self.env()
        try:
            client = env.get_client()
            ns = env.metadata_namespace()
            cursor = client[ns.db][ns.collection].find(query)
        except Exception as err:  # noqa: BLE001 - raised from the iterator
            return ErrorMigrationIterator(err)
        if cursor is None:
            return ErrorMigrationIterator()
        return CursorMigrationMetadataIterator(cursor)


class LegacyMigrationHelper(MigrationHelper):
    """A helper that uses the environment's session interface."""

    _kind = "legacy"

    def save_migration_event(self, meta: MigrationMetadata) -> None:
        env = self.env()
        session = env.get_session()
        try:
            ns = env.metadata_namespace()
            coll = session.db(ns.db).collection(ns.collection)
            try:
                coll.upsert_id(meta.id, meta.to_document())
            except Exception as err:
                raise RuntimeError(f"inserting migration metadata: {err}") from err
        finally:
            session.close()

    def pending_migration_operations(self, ns: Namespace, query: Mapping[str, Any]) -> int:
        env = self.env()
        try:
            session = env.get_session()
        except Exception as err:  # noqa: BLE001 - reported as -1
            logger.error("getting session: %s", err)
            return -1
        try:
            return session.db(ns.db).collection(ns.collection).find(query).count()
        except Exception as err:  # noqa: BLE001 - reported as -1
            logger.warning("counting pending migrations: %s", err)
            return -1
        finally:
            session.close()

    def get_migration_events(self, query: Mapping[str, Any]) -> Iterator:
        env = self.env()
        try:
            session = env.get_session()
        except Exception as err:  # noqa: BLE001 - raised from the iterator
            return ErrorMigrationIterator(err)
        ns = env.metadata_namespace()
        iterator = session.db(ns.db).collection(ns.collection).find(query).iter()
        return LegacyMigrationMetadataIterator(new_combined_iterator(session, iterator))


def new_client_migration_helper(env: Any) -> ClientMigrationHelper:
    """Build a helper that uses the environment's database client."""
    return ClientMigrationHelper(env)


def new_legacy_migration_helper(env: Any) -> LegacyMigrationHelper:
    """Build a helper that uses the environment's session interface."""
    return LegacyMigrationHelper(env)


def new_migration_helper(env: Any) -> MigrationHelper:
    """Build the default migration helper for an environment."""
    return new_client_migration_helper(env)