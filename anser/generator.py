"""Generators: jobs that produce the migration jobs of a migration."""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import Iterable, Iterator
from typing import Any

from anser.job import Job, Queue
from anser.model.options import GeneratorOptions

logger = logging.getLogger(__name__)


class Generator(Job):
    """A job that, once run, holds the jobs it generated."""

    @abstractmethod
    def jobs(self) -> Iterator[Job]:
        """Yield the generated jobs with their dependencies set."""


def generator_dependency(env: Any, options: GeneratorOptions) -> Any:
    """Build the dependency of a generator from its options."""
    dep = env.new_dependency_manager(options.job_id)
    for edge in options.depends_on:
        try:
            dep.add_edge(edge)
        except ValueError as err:
            logger.warning("%s", err)
    return dep


def add_migration_jobs(queue: Queue, dry_run: bool, limit: int) -> int:
    """Put the jobs of every completed generator into the queue.

    Returns the number of jobs added, stopping at a positive limit. Raises
    RuntimeError if any job could not be added.
    """
    errors: list[Exception] = []
    count = 0

    def finish() -> int:
        if errors:
            raise RuntimeError(
                f"added {count} migration operations with {len(errors)} errors: "
                + "; ".join(str(err) for err in errors)
            ) from errors[0]
        return count

    for job in queue.results():
        if not isinstance(job, Generator):
            continue
        logger.info("adding operations for %s", job.id)
        for generated in job.jobs():
            if dry_run:
                logger.info("dry-run: would have added %s", generated.id)
                continue
            if limit > 0 and count >= limit:
                return finish()
            try:
                queue.put(generated)
            except Exception as err:  # noqa: BLE001 - collected and raised below
                errors.append(err)
            count += 1

    logger.info("added %d migration operations", count)
    return finish()


def _attach_group_edges(network: Any, group_id: str, jobs: Iterable[Job]) -> Iterator[Job]:
    for migration in jobs:
        dep = migration.dependency
        for group in network.resolve(group_id):
            for edge in network.get_group(group):
                try:
                    dep.add_edge(edge)
                except ValueError as err:
                    logger.info("%s", err)
        migration.dependency = dep
        yield migration


def wrap_generated_jobs(env: Any, group_id: str, jobs: Iterable[Job]) -> Iterator[Job]:
    """Yield jobs with edges to every member of the groups their generator depends on.

    The dependency network is fetched at once, so a missing network raises here.
    """
    network = env.get_dependency_network()
    return _attach_group_edges(network, group_id, jobs)