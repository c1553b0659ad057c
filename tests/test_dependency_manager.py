import pytest

from anser.db.interface import Iterator
from anser.dependency_manager import (
    MigrationDependency,
    get_dependency_state_query,
    process_edges,
)
from anser.helper import (
    ErrorMigrationIterator,
    LegacyMigrationMetadataIterator,
    MigrationHelper,
)
from anser.job import State, get_dependency_factory
from anser.model.metadata import MigrationMetadata


class _ListIterator(Iterator):
    def __init__(self, items=(), close_error=None):
        self._items = list(items)
        self._close_error = close_error
        self.closed = False

    def __next__(self):
        if not self._items:
            raise StopIteration
        return self._items.pop(0)

    def close(self):
        self.closed = True
        if self._close_error is not None:
            raise self._close_error


class _FailingIterator(_ListIterator):
    def __next__(self):
        raise RuntimeError("problem")


class _HelperMock(MigrationHelper):
    def __init__(self):
        super().__init__(None)
        self.events = None
        self.queries = []

    def save_migration_event(self, meta):
        return None

    def pending_migration_operations(self, ns, query):
        return 2

    def get_migration_events(self, query):
        self.queries.append(query)
        if self.events is None:
            return ErrorMigrationIterator()
        return self.events


@pytest.fixture
def helper():
    return _HelperMock()


@pytest.fixture
def dep(helper):
    return MigrationDependency(migration_helper=helper)


def test_factory(dep, helper):
    factory = get_dependency_factory("anser-migration")
    made = factory()
    assert isinstance(made, MigrationDependency)
    made.migration_helper = helper
    assert made == dep


def test_default_type_info(dep):
    assert dep.migration_id == ""
    assert dep.type.name == "anser-migration"
    assert dep.type.version == 0


def test_no_edges_reported(dep, helper):
    assert dep.state() is State.READY
    assert helper.queries == []


def test_edge_query_returns_error(dep, helper):
    helper.events = LegacyMigrationMetadataIterator(_FailingIterator())
    dep.add_edge("foo")
    assert dep.state() is State.BLOCKED


def test_edge_query_returns_no_results(dep, helper):
    helper.events = LegacyMigrationMetadataIterator(_ListIterator())
    dep.add_edge("foo")
    assert dep.state() is State.BLOCKED
    assert helper.queries == [{"_id": {"$in": ["foo"]}}]


def test_edge_satisfied_is_ready(dep, helper):
    helper.events = LegacyMigrationMetadataIterator(
        _ListIterator([MigrationMetadata(id="foo", completed=True)])
    )
    dep.add_edge("foo")
    assert dep.state() is State.READY


def test_duplicate_edge_rejected(dep):
    dep.add_edge("foo")
    with pytest.raises(ValueError):
        dep.add_edge("foo")
    assert dep.edges() == ["foo"]


def test_dependency_state_query():
    query = get_dependency_state_query(["foo", "bar"])
    assert len(query) == 1
    id_clause = query["_id"]
    assert len(id_clause) == 1
    assert id_clause["$in"] == ["foo", "bar"]


def test_dependency_edge_processing():
    assert process_edges(1, LegacyMigrationMetadataIterator(_ListIterator())) is State.BLOCKED
    assert process_edges(-1, LegacyMigrationMetadataIterator(_ListIterator())) is State.READY
    failing_close = _ListIterator(close_error=RuntimeError("blocked"))
    assert process_edges(-1, LegacyMigrationMetadataIterator(failing_close)) is State.BLOCKED

    assert MigrationMetadata(completed=True, has_errors=False).satisfied() is True
    assert MigrationMetadata().satisfied() is False

    items = [
        MigrationMetadata(id="four", completed=True),
        MigrationMetadata(id="five", completed=True),
        MigrationMetadata(id="six", completed=True),
        MigrationMetadata(id="seven"),
    ]
    assert process_edges(1, LegacyMigrationMetadataIterator(_ListIterator(items))) is State.BLOCKED


def test_unsatisfied_edge_closes_iterator():
    source = _ListIterator([MigrationMetadata(id="seven")])
    assert process_edges(1, LegacyMigrationMetadataIterator(source)) is State.BLOCKED
    assert source.closed is True