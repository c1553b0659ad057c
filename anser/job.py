"""Jobs, their dependencies, a local queue and the registries of job types."""

from __future__ import annotations

import enum
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any


class State(enum.Enum):
    """The readiness of a job as reported by its dependency."""

    READY = "ready"
    PASSED = "passed"
    BLOCKED = "blocked"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class JobType:
    """The registered name and version of a job or dependency kind."""

    name: str
    version: int = 0


@dataclass
class JobStatus:
    """The progress of a job."""

    completed: bool = False
    in_progress: bool = False
    error_count: int = 0


class JobEdges:
    """An ordered set of ids of the jobs that a job depends on."""

    def __init__(self) -> None:
        self._edges: dict[str, None] = {}
        self._edges_lock = threading.Lock()

    def add_edge(self, name: str) -> None:
        """Add an edge, raising ValueError if it is already present."""
        with self._edges_lock:
            if name in self._edges:
                raise ValueError(f"edge '{name}' already exists")
            self._edges[name] = None

    def edges(self) -> list[str]:
        """Return the edges in the order they were added."""
        with self._edges_lock:
            return list(self._edges)


class _AlwaysDependency(JobEdges):
    """A dependency that is always ready."""

    type = JobType("always")

    def state(self) -> State:
        return State.READY


class Job(ABC):
    """A unit of work with an id, a dependency and collected errors."""

    def __init__(self, job_type: JobType, job_id: str = "", dependency: Any = None) -> None:
        self.job_type = job_type
        self.id = job_id
        self.dependency = dependency if dependency is not None else _AlwaysDependency()
        self.status = JobStatus()
        self._errors: list[Exception] = []
        self._lock = threading.Lock()

    def add_error(self, err: Exception | None) -> None:
        """Record an error; None is ignored."""
        if err is None:
            return
        with self._lock:
            self._errors.append(err)
            self.status.error_count = len(self._errors)

    def has_errors(self) -> bool:
        """Report whether any error was recorded."""
        with self._lock:
            return bool(self._errors)

    def error(self) -> Exception | None:
        """Return the recorded error, a combination of several, or None."""
        with self._lock:
            if not self._errors:
                return None
            if len(self._errors) == 1:
                return self._errors[0]
            return RuntimeError("; ".join(str(err) for err in self._errors))

    def mark_complete(self) -> None:
        """Mark the job as finished."""
        with self._lock:
            self.status.completed = True
            self.status.in_progress = False

    @abstractmethod
    def run(self) -> None:
        """Do the work of the job, recording errors with add_error."""


Migration = Job


class Queue(ABC):
    """Holds jobs and reports the ones that have completed."""

    started: bool = False

    @abstractmethod
    def put(self, job: Job) -> None:
        """Add a job to the queue."""

    @abstractmethod
    def results(self) -> Iterator[Job]:
        """Yield the completed jobs."""


class LocalQueue(Queue):
    """An in-process queue that runs jobs once their dependencies allow."""

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity
        self.started = False
        self._ids: set[str] = set()
        self._pending: dict[str, Job] = {}
        self._completed: list[Job] = []
        self._lock = threading.RLock()

    def start(self) -> None:
        """Allow jobs to be added and run."""
        with self._lock:
            self.started = True

    def put(self, job: Job) -> None:
        with self._lock:
            if not self.started:
                raise RuntimeError("cannot put a job into a queue that has not started")
            if job.id in self._ids:
                raise ValueError(f"job '{job.id}' already exists")
            if self.capacity is not None and len(self._pending) >= self.capacity:
                raise RuntimeError("queue is full")
            self._ids.add(job.id)
            self._pending[job.id] = job

    @staticmethod
    def _execute(job: Job) -> None:
        job.status.in_progress = True
        try:
            job.run()
        except Exception as err:  # noqa: BLE001 - recorded on the job
            job.add_error(err)
        finally:
            job.mark_complete()

    def run(self) -> int:
        """Run every job whose dependency allows it; return how many ran."""
        if not self.started:
            raise RuntimeError("cannot run a queue that has not started")
        count = 0
        progress = True
        while progress:
            progress = False
            with self._lock:
                pending = list(self._pending.values())
            for job in pending:
                state = job.dependency.state()
                if state in (State.BLOCKED, State.UNRESOLVED):
                    continue
                with self._lock:
                    del self._pending[job.id]
                if state is State.READY:
                    self._execute(job)
                    count += 1
                else:
                    job.mark_complete()
                with self._lock:
                    self._completed.append(job)
                progress = True
        return count

    def results(self) -> Iterator[Job]:
        with self._lock:
            done = list(self._completed)
        yield from done


_registry_lock = threading.Lock()
_job_types: dict[str, Callable[[], Job]] = {}
_dependency_types: dict[str, Callable[[], Any]] = {}


def register_job_type(name: str, factory: Callable[[], Job]) -> None:
    """Register a factory for a job type name."""
    with _registry_lock:
        _job_types[name] = factory


def get_job_factory(name: str) -> Callable[[], Job]:
    """Return the factory of a job type, raising KeyError if unknown."""
    with _registry_lock:
        try:
            return _job_types[name]
        except KeyError:
            raise KeyError(f"no job type named '{name}' is registered") from None


def register_dependency_type(name: str, factory: Callable[[], Any]) -> None:
    """Register a factory for a dependency type name."""
    with _registry_lock:
        _dependency_types[name] = factory


def get_dependency_factory(name: str) -> Callable[[], Any]:
    """Return the factory of a dependency type, raising KeyError if unknown."""
    with _registry_lock:
        try:
            return _dependency_types[name]
        except KeyError:
            raise KeyError(f"no dependency type named '{name}' is registered") from None