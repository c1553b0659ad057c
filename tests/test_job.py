import pytest

from anser.job import (
    Job,
    JobEdges,
    JobType,
    LocalQueue,
    State,
    get_dependency_factory,
    get_job_factory,
    register_dependency_type,
    register_job_type,
)


class RecordingJob(Job):
    def __init__(self, job_id, log, fail=None, dependency=None, job_type=None):
        super().__init__(job_type or JobType("recording"), job_id, dependency)
        self.log = log
        self.fail = fail

    def run(self):
        self.log.append(self.id)
        if self.fail is not None:
            raise self.fail
        self.mark_complete()


class AfterDependency(JobEdges):
    def __init__(self, upstream):
        super().__init__()
        self.upstream = upstream

    def state(self):
        return State.READY if self.upstream.status.completed else State.BLOCKED


class FixedDependency(JobEdges):
    def __init__(self, state):
        super().__init__()
        self._state = state

    def state(self):
        return self._state


def test_edges_keep_order_and_reject_duplicates():
    edges = JobEdges()
    edges.add_edge("b")
    edges.add_edge("a")
    assert edges.edges() == ["b", "a"]
    with pytest.raises(ValueError, match="already exists"):
        edges.add_edge("b")
    assert edges.edges() == ["b", "a"]


def test_job_errors():
    job = RecordingJob("one", [], job_type=JobType("errors"))
    assert job.job_type.name == "errors"
    job.add_error(None)
    assert not job.has_errors()
    assert job.error() is None

    first = RuntimeError("first problem")
    job.add_error(first)
    assert job.has_errors()
    assert job.error() is first

    job.add_error(ValueError("second problem"))
    combined = str(job.error())
    assert "first problem" in combined
    assert "second problem" in combined
    assert job.status.error_count == 2


def test_mark_complete_and_default_dependency():
    job = RecordingJob("one", [], job_type=JobType("completing"))
    assert job.job_type.name == "completing"
    assert not job.status.completed
    assert job.dependency.state() is State.READY
    assert job.dependency.edges() == JobEdges().edges()
    job.mark_complete()
    assert job.status.completed
    assert not job.status.in_progress


def test_put_requires_started_queue():
    queue = LocalQueue()
    with pytest.raises(RuntimeError):
        queue.put(RecordingJob("one", []))
    queue.start()
    queue.put(RecordingJob("one", []))
    with pytest.raises(ValueError, match="'one'"):
        queue.put(RecordingJob("one", []))


def test_capacity_limit():
    queue = LocalQueue(capacity=1)
    queue.start()
    queue.put(RecordingJob("one", []))
    with pytest.raises(RuntimeError):
        queue.put(RecordingJob("two", []))


def test_run_respects_dependencies():
    log = []
    upstream = RecordingJob("upstream", log)
    downstream = RecordingJob("downstream", log, dependency=AfterDependency(upstream))
    queue = LocalQueue()
    queue.start()
    queue.put(downstream)
    queue.put(upstream)

    assert queue.run() == 2
    assert log == ["upstream", "downstream"]
    assert [job.id for job in queue.results()] == ["upstream", "downstream"]
    assert downstream.status.completed


def test_blocked_jobs_do_not_run():
    log = []
    job = RecordingJob("stuck", log, dependency=FixedDependency(State.BLOCKED))
    queue = LocalQueue()
    queue.start()
    queue.put(job)
    assert queue.run() == 0
    assert log == []
    assert list(queue.results()) == []
    assert not job.status.completed


def test_passed_jobs_complete_without_running():
    log = []
    job = RecordingJob("skip", log, dependency=FixedDependency(State.PASSED))
    queue = LocalQueue()
    queue.start()
    queue.put(job)
    assert queue.run() == 0
    assert log == []
    assert job.status.completed
    assert list(queue.results()) == [job]


def test_run_records_raised_errors():
    failure = RuntimeError("boom")
    job = RecordingJob("fails", [], fail=failure)
    queue = LocalQueue()
    queue.start()
    queue.put(job)
    assert queue.run() == 1
    assert job.status.completed
    assert job.error() is failure


def test_job_registry_round_trip():
    register_job_type("test-recording-job", lambda: RecordingJob("made", []))
    factory = get_job_factory("test-recording-job")
    made = factory()
    assert made.id == "made"
    assert made.job_type.name == "recording"
    with pytest.raises(KeyError):
        get_job_factory("test-unknown-job")


def test_dependency_registry_round_trip():
    register_dependency_type("test-fixed-dependency", lambda: FixedDependency(State.BLOCKED))
    dependency = get_dependency_factory("test-fixed-dependency")()
    assert dependency.state() is State.BLOCKED
    with pytest.raises(KeyError):
        get_dependency_factory("test-unknown-dependency")