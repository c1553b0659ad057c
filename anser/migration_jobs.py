"""Jobs that run single migration operations: simple, manual and stream."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import bson

from anser.db.errors import NoDocumentsError
from anser.helper import MigrationHelper, new_client_migration_helper, new_migration_helper
from anser.job import Job, JobType, register_job_type
from anser.model.migrations import Manual, Simple, Stream

logger = logging.getLogger(__name__)

MANUAL_MIGRATION_TYPE = JobType("manual-migration", 0)
SIMPLE_MIGRATION_TYPE = JobType("simple-migration", 0)
STREAM_MIGRATION_TYPE = JobType("stream-migration", 0)


def _get_client(env: Any) -> Any:
    try:
        return env.get_client()
    except Exception as err:
        raise RuntimeError(f"getting database client: {err}") from err


def _as_document(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bson.decode(bytes(payload))
    if isinstance(payload, Mapping):
        return payload
    raise TypeError(f"cannot read a document from {type(payload).__name__}")


class _MigrationJob(Job):
    """A job that records its outcome through a migration helper when it ends."""

    def __init__(
        self,
        job_type: JobType,
        definition: Any,
        migration_helper: MigrationHelper | None = None,
    ) -> None:
        super().__init__(job_type)
        self.definition = definition
        self.migration_helper = (
            migration_helper
            if migration_helper is not None
            else new_client_migration_helper(None)
        )

    def env(self) -> Any:
        """Return the environment the job runs in."""
        return self.migration_helper.env()

    def run(self) -> None:
        try:
            self._migrate()
        except Exception as err:  # noqa: BLE001 - recorded on the job
            self.add_error(err)
        finally:
            self.migration_helper.finish_migration(self.definition.migration, self)

    def _migrate(self) -> None:
        raise NotImplementedError


class ManualMigrationJob(_MigrationJob):
    """Runs a registered operation on a single document."""

    def __init__(
        self, definition: Manual | None = None, migration_helper: MigrationHelper | None = None
    ) -> None:
        super().__init__(
            MANUAL_MIGRATION_TYPE,
            definition if definition is not None else Manual(),
            migration_helper,
        )

    def run(self) -> None:
        """Load the target document and pass it to the registered operation."""
        logger.info(
            "starting migration: operation=manual migration=%s target=%s id=%s ns=%s name=%s",
            self.definition.migration,
            self.definition.id,
            self.id,
            self.definition.namespace,
            self.definition.operation_name,
        )
        super().run()

    def _migrate(self) -> None:
        env = self.env()
        name = self.definition.operation_name
        operation = env.get_manual_migration_operation(name)
        if operation is None:
            raise LookupError(f"could not find migration named '{name}'")

        client = _get_client(env)
        ns = self.definition.namespace
        payload = client[ns.db][ns.collection].find_one({"_id": self.definition.id})
        if payload is None:
            raise NoDocumentsError()

        operation(client, _as_document(payload))


class SimpleMigrationJob(_MigrationJob):
    """Applies an update document to a single document."""

    def __init__(
        self, definition: Simple | None = None, migration_helper: MigrationHelper | None = None
    ) -> None:
        super().__init__(
            SIMPLE_MIGRATION_TYPE,
            definition if definition is not None else Simple(),
            migration_helper,
        )

    def run(self) -> None:
        """Update the target document, failing unless exactly one was modified."""
        logger.info(
            "starting migration: operation=simple migration=%s target=%s id=%s ns=%s",
            self.definition.migration,
            self.definition.id,
            self.id,
            self.definition.namespace,
        )
        super().run()

    def _migrate(self) -> None:
        env = self.env()
        client = _get_client(env)
        ns = self.definition.namespace
        modified = 0
        try:
            res = client[ns.db][ns.collection].update_one(
                {"_id": self.definition.id}, self.definition.update
            )
            modified = res.modified_count
        except Exception as err:  # noqa: BLE001 - recorded on the job
            self.add_error(err)
        if modified != 1:
            self.add_error(
                RuntimeError(f"could not update '{self.definition.id}' for '{self.id}'")
            )


class StreamMigrationJob(_MigrationJob):
    """Runs a registered document processor over a stream of documents."""

    def __init__(
        self, definition: Stream | None = None, migration_helper: MigrationHelper | None = None
    ) -> None:
        super().__init__(
            STREAM_MIGRATION_TYPE,
            definition if definition is not None else Stream(),
            migration_helper,
        )

    def run(self) -> None:
        """Load the documents with the processor and migrate them."""
        logger.info(
            "starting migration: operation=stream migration=%s id=%s ns=%s name=%s",
            self.definition.migration,
            self.id,
            self.definition.namespace,
            self.definition.processor_name,
        )
        super().run()

    def _migrate(self) -> None:
        env = self.env()
        name = self.definition.processor_name
        processor = env.get_document_processor(name)
        if processor is None:
            raise LookupError(f"producer named '{name}' is not defined")

        client = _get_client(env)
        iterator = processor.load(client, self.definition.namespace, self.definition.query)
        if iterator is None:
            raise RuntimeError(
                f"document processor for {self.definition.migration} could not return iterator"
            )

        processor.migrate(iterator)


def new_manual_migration(env: Any, definition: Manual) -> ManualMigrationJob:
    """Build a manual migration job bound to an environment."""
    return ManualMigrationJob(definition, new_migration_helper(env))


def new_simple_migration(env: Any, definition: Simple) -> SimpleMigrationJob:
    """Build a simple migration job bound to an environment."""
    return SimpleMigrationJob(definition, new_migration_helper(env))


def new_stream_migration(env: Any, definition: Stream) -> StreamMigrationJob:
    """Build a stream migration job bound to an environment."""
    return StreamMigrationJob(definition, new_migration_helper(env))


register_job_type(MANUAL_MIGRATION_TYPE.name, ManualMigrationJob)
register_job_type(SIMPLE_MIGRATION_TYPE.name, SimpleMigrationJob)
register_job_type(STREAM_MIGRATION_TYPE.name, StreamMigrationJob)