"""A dependency that waits for other migrations to finish successfully."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from anser.helper import MigrationHelper, new_migration_helper
from anser.job import JobEdges, JobType, State, register_dependency_type

logger = logging.getLogger(__name__)


def get_dependency_state_query(ids: Iterable[str]) -> dict[str, Any]:
    """Return the query selecting the records of the given migration ids."""
    return {"_id": {"$in": list(ids)}}


def _close_quietly(iterator: Any) -> None:
    try:
        iterator.close()
    except Exception as err:  # noqa: BLE001 - the state is already decided
        logger.warning("closing migration events: %s", err)


def process_edges(num_edges: int, iterator: Any) -> State:
    """Decide readiness from the migration records of the dependency edges.

    Blocked if any record is unsatisfied, if reading or closing fails, or if
    fewer records were seen than there are edges.
    """
    count = 0
    try:
        for meta in iterator:
            if not meta.satisfied():
                _close_quietly(iterator)
                return State.BLOCKED
            count += 1
    except Exception as err:  # noqa: BLE001 - reported as blocked
        logger.warning("reading migration events: %s", err)
        _close_quietly(iterator)
        return State.BLOCKED

    try:
        iterator.close()
    except Exception as err:  # noqa: BLE001 - reported as blocked
        logger.warning("closing migration events: %s", err)
        return State.BLOCKED

    if count < num_edges:
        return State.BLOCKED
    return State.READY


class MigrationDependency(JobEdges):
    """Ready only once every migration named as an edge has succeeded."""

    type = JobType("anser-migration", 0)

    def __init__(
        self, migration_id: str = "", migration_helper: MigrationHelper | None = None
    ) -> None:
        super().__init__()
        self.migration_id = migration_id
        self.migration_helper = migration_helper

    def state(self) -> State:
        """Report whether the dependent migration may run."""
        edges = self.edges()
        if not edges:
            return State.READY
        helper = self.migration_helper
        if helper is None:
            helper = self.migration_helper = new_migration_helper(None)
        events = helper.get_migration_events(get_dependency_state_query(edges))
        return process_edges(len(edges), events)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MigrationDependency):
            return NotImplemented
        return (
            self.migration_id == other.migration_id
            and self.edges() == other.edges()
            and self.migration_helper is other.migration_helper
        )

    __hash__ = None  # type: ignore[assignment]


register_dependency_type("anser-migration", MigrationDependency)