"""The execution environment shared by migrations and generators."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from anser.db.interface import MigrationOperation, Processor
from anser.dependency_manager import MigrationDependency
from anser.helper import new_migration_helper
from anser.model.namespace import Namespace
from anser.network import DependencyNetwork

logger = logging.getLogger(__name__)

DEFAULT_METADATA_COLLECTION = "migrations.metadata"
DEFAULT_ANSER_DB = "anser"


class SetupError(RuntimeError):
    """The environment could not be configured."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class EnvState:
    """Runtime state: database access, the queue and registered operations.

    Thread-safe; it can be configured only once.
    """

    def __init__(self) -> None:
        self._queue: Any = None
        self._metadata_ns = Namespace()
        self._session: Any = None
        self._client: Any = None
        self._deps: DependencyNetwork | None = None
        self._migrations: dict[str, MigrationOperation] = {}
        self._processors: dict[str, Processor] = {}
        self._closers: list[Callable[[], None]] = []
        self._is_setup = False
        self._lock = threading.RLock()

    def setup(self, queue: Any, client: Any, session: Any) -> None:
        """Configure the environment, raising SetupError if anything is unusable."""
        problems = []
        if session is None:
            problems.append("cannot use a nil session")
        if client is None:
            problems.append("cannot use a nil client")
        with self._lock:
            if self._is_setup:
                problems.append("reconfiguring the environment is not supported")
            if queue is None or not getattr(queue, "started", False):
                problems.append("cannot set up Anser environment with a non-running queue")
            if problems:
                raise SetupError(problems)

            self._closers.append(session.close)
            self._queue = queue
            self._session = session
            self._client = client
            self._metadata_ns = Namespace(
                db=DEFAULT_ANSER_DB, collection=DEFAULT_METADATA_COLLECTION
            )
            self._is_setup = True
            self._deps = DependencyNetwork()

    def get_session(self) -> Any:
        """Return a copy of the configured session."""
        with self._lock:
            if self._session is None:
                raise RuntimeError("no session defined")
            return self._session.copy()

    def get_client(self) -> Any:
        """Return the configured database client."""
        with self._lock:
            if self._client is None:
                raise RuntimeError("no client defined")
            return self._client

    def get_queue(self) -> Any:
        """Return the configured queue."""
        with self._lock:
            if self._queue is None:
                raise RuntimeError("no queue defined")
            return self._queue

    def get_dependency_network(self) -> DependencyNetwork:
        """Return the dependency network created at setup."""
        with self._lock:
            if self._deps is None:
                raise RuntimeError("no dependency networker specified")
            return self._deps

    def metadata_namespace(self) -> Namespace:
        """Return where migration records are stored."""
        with self._lock:
            return self._metadata_ns

    def register_manual_migration_operation(
        self, name: str, operation: MigrationOperation
    ) -> None:
        """Register a manual migration operation under a unique name."""
        with self._lock:
            if name in self._migrations:
                raise ValueError(f"migration operation '{name}' already exists")
            self._migrations[name] = operation

    def get_manual_migration_operation(self, name: str) -> MigrationOperation | None:
        """Return a registered manual migration operation, or None."""
        with self._lock:
            return self._migrations.get(name)

    def register_document_processor(self, name: str, processor: Processor) -> None:
        """Register a document processor under a unique name."""
        with self._lock:
            if name in self._processors:
                raise ValueError(f"document processor named '{name}' already registered")
            self._processors[name] = processor

    def get_document_processor(self, name: str) -> Processor | None:
        """Return a registered document processor, or None."""
        with self._lock:
            return self._processors.get(name)

    def new_dependency_manager(self, migration_id: str) -> MigrationDependency:
        """Build a dependency manager bound to this environment."""
        return MigrationDependency(migration_id, new_migration_helper(self))

    def register_closer(self, closer: Callable[[], None] | None) -> None:
        """Add a function to call when the environment closes; None is ignored."""
        if closer is None:
            return
        with self._lock:
            self._closers.append(closer)

    def close(self) -> None:
        """Call every registered closer, raising if any of them failed."""
        with self._lock:
            logger.info(
                "closing %d resources registered in the anser environment", len(self._closers)
            )
            errors: list[Exception] = []
            for closer in self._closers:
                try:
                    closer()
                except Exception as err:  # noqa: BLE001 - collected and raised below
                    errors.append(err)
            if errors:
                logger.warning(
                    "encountered %d errors closing anser resources, out of %d",
                    len(errors),
                    len(self._closers),
                )
                raise RuntimeError("; ".join(str(err) for err in errors)) from errors[0]


_global_env = EnvState()


def get_environment() -> EnvState:
    """Return the global environment."""
    return _global_env


def reset_environment() -> None:
    """Replace the global environment with a fresh one; meant for tests."""
    global _global_env
    _global_env = EnvState()