"""Generators that turn a query into manual, simple or stream migration jobs."""

from __future__ import annotations

import logging
import threading
from abc import abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from anser.generator import Generator, generator_dependency, wrap_generated_jobs
from anser.helper import MigrationHelper, new_client_migration_helper, new_migration_helper
from anser.job import Job, JobType, register_job_type
from anser.migration_jobs import (
    new_manual_migration,
    new_simple_migration,
    new_stream_migration,
)
from anser.model.migrations import Manual, Simple, Stream
from anser.model.namespace import Namespace
from anser.model.options import GeneratorOptions

logger = logging.getLogger(__name__)

MANUAL_GENERATOR_TYPE = JobType("manual-migration-generator", 0)
SIMPLE_GENERATOR_TYPE = JobType("simple-migration-generator", 0)
STREAM_GENERATOR_TYPE = JobType("stream-migration-generator", 0)


class _MigrationGenerator(Generator):
    """Queries a collection for document ids and builds one job per document."""

    _type: JobType

    def __init__(self, migration_helper: MigrationHelper | None = None) -> None:
        super().__init__(self._type)
        self.ns = Namespace()
        self.query: dict[str, Any] = {}
        self.limit = 0
        self.migrations: list[Job] = []
        self.migration_helper = (
            migration_helper
            if migration_helper is not None
            else new_client_migration_helper(None)
        )
        self._migrations_lock = threading.Lock()

    def env(self) -> Any:
        """Return the environment the generator runs in."""
        return self.migration_helper.env()

    @abstractmethod
    def _make_job(self, env: Any, doc_id: Any) -> Job:
        """Build the migration job for one document."""

    def run(self) -> None:
        """Query the ids of the target documents and generate their jobs."""
        try:
            env = self.env()
            network = env.get_dependency_network()
            client = env.get_client()
            options: dict[str, Any] = {"projection": {"_id": 1}}
            if self.limit > 0:
                options["limit"] = self.limit
            cursor = client[self.ns.db][self.ns.collection].find(self.query or {}, **options)
            network.add_group(self.id, self.generate_jobs(env, cursor))
        except Exception as err:  # noqa: BLE001 - recorded on the job
            self.add_error(err)
        finally:
            self.migration_helper.finish_migration(self.id, self)

    def generate_jobs(self, env: Any, cursor: Iterable[Any]) -> list[str]:
        """Build a job for each document of the cursor; return the job ids."""
        ids: list[str] = []
        count = 0
        with self._migrations_lock:
            documents = iter(cursor)
            while True:
                try:
                    doc = next(documents)
                except StopIteration:
                    break
                except Exception as err:  # noqa: BLE001 - ends generation
                    logger.error("decoding generator results: %s", err)
                    break
                count += 1
                if not isinstance(doc, Mapping):
                    logger.error(
                        "decoding generator results: cannot read %s", type(doc).__name__
                    )
                    break

                doc_id = doc.get("_id")
                job = self._make_job(env, doc_id)
                job.dependency = env.new_dependency_manager(self.id)
                job.id = f"{self.id}.{doc_id}.{len(ids)}"
                ids.append(job.id)
                self.migrations.append(job)
                logger.debug("generated %s for %s in %s (%d)", job.id, doc_id, self.ns, count)

                if self.limit > 0 and count >= self.limit:
                    break
        return ids

    def jobs(self) -> Iterator[Job]:
        """Yield the generated jobs with group edges attached, then forget them."""
        env = self.env()
        with self._migrations_lock:
            migrations, self.migrations = self.migrations, []
        logger.info("produced %d tasks for migration %s", len(migrations), self.id)
        try:
            return wrap_generated_jobs(env, self.id, migrations)
        except Exception as err:  # noqa: BLE001 - nothing can be produced
            logger.error("producing jobs for %s: %s", self.id, err)
            return iter(())


class ManualMigrationGenerator(_MigrationGenerator):
    """Generates manual migration jobs for a registered operation."""

    _type = MANUAL_GENERATOR_TYPE

    def __init__(self, migration_helper: MigrationHelper | None = None) -> None:
        super().__init__(migration_helper)
        self.operation_name = ""

    def _make_job(self, env: Any, doc_id: Any) -> Job:
        return new_manual_migration(
            env,
            Manual(
                id=doc_id,
                operation_name=self.operation_name,
                migration=self.id,
                namespace=self.ns,
            ),
        )

    def run(self) -> None:
        super().run()

    def generate_jobs(self, env: Any, cursor: Iterable[Any]) -> list[str]:
        return super().generate_jobs(env, cursor)

    def jobs(self) -> Iterator[Job]:
        return super().jobs()


class SimpleMigrationGenerator(_MigrationGenerator):
    """Generates simple migration jobs applying one update document."""

    _type = SIMPLE_GENERATOR_TYPE

    def __init__(self, migration_helper: MigrationHelper | None = None) -> None:
        super().__init__(migration_helper)
        self.update: dict[str, Any] = {}

    def _make_job(self, env: Any, doc_id: Any) -> Job:
        return new_simple_migration(
            env,
            Simple(id=doc_id, update=self.update, migration=self.id, namespace=self.ns),
        )

    def run(self) -> None:
        super().run()

    def generate_jobs(self, env: Any, cursor: Iterable[Any]) -> list[str]:
        return super().generate_jobs(env, cursor)

    def jobs(self) -> Iterator[Job]:
        return super().jobs()


class StreamMigrationGenerator(_MigrationGenerator):
    """Generates stream migration jobs for a registered document processor."""

    _type = STREAM_GENERATOR_TYPE

    def __init__(self, migration_helper: MigrationHelper | None = None) -> None:
        super().__init__(migration_helper)
        self.processor_name = ""

    def _make_job(self, env: Any, doc_id: Any) -> Job:
        return new_stream_migration(
            env,
            Stream(
                query=self.query,
                processor_name=self.processor_name,
                migration=self.id,
                namespace=self.ns,
            ),
        )

    def run(self) -> None:
        super().run()

    def generate_jobs(self, env: Any, cursor: Iterable[Any]) -> list[str]:
        return super().generate_jobs(env, cursor)

    def jobs(self) -> Iterator[Job]:
        return super().jobs()


def _configure(job: _MigrationGenerator, env: Any, options: GeneratorOptions) -> None:
    job.dependency = generator_dependency(env, options)
    job.id = options.job_id
    job.migration_helper = new_migration_helper(env)
    job.ns = options.ns
    job.query = options.query
    job.limit = options.limit


def new_manual_migration_generator(
    env: Any, options: GeneratorOptions, operation_name: str
) -> ManualMigrationGenerator:
    """Build a generator of manual migrations for a registered operation."""
    job = ManualMigrationGenerator()
    _configure(job, env, options)
    job.operation_name = operation_name
    return job


def new_simple_migration_generator(
    env: Any, options: GeneratorOptions, update: Mapping[str, Any] | None
) -> SimpleMigrationGenerator:
    """Build a generator of simple migrations applying an update document."""
    job = SimpleMigrationGenerator()
    _configure(job, env, options)
    job.update = dict(update) if update is not None else {}
    return job


def new_stream_migration_generator(
    env: Any, options: GeneratorOptions, processor_name: str
) -> StreamMigrationGenerator:
    """Build a generator of stream migrations for a registered processor."""
    job = StreamMigrationGenerator()
    _configure(job, env, options)
    job.processor_name = processor_name
    return job


register_job_type(MANUAL_GENERATOR_TYPE.name, ManualMigrationGenerator)
register_job_type(SIMPLE_GENERATOR_TYPE.name, SimpleMigrationGenerator)
register_job_type(STREAM_GENERATOR_TYPE.name, StreamMigrationGenerator)