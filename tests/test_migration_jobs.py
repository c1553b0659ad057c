from dataclasses import dataclass
from typing import Any

import pytest
from bson.errors import InvalidBSON

from anser.db.errors import NoDocumentsError, results_not_found
from anser.helper import ErrorMigrationIterator, MigrationHelper
from anser.job import get_job_factory
from anser.migration_jobs import (
    ManualMigrationJob,
    SimpleMigrationJob,
    StreamMigrationJob,
    new_manual_migration,
    new_simple_migration,
    new_stream_migration,
)
from anser.model.migrations import Manual, Simple, Stream
from anser.model.namespace import Namespace


@dataclass
class _UpdateResult:
    modified_count: int = 0


class _FakeCollection:
    def __init__(self, find_result=None, find_error=None, modified=0):
        self.find_result = {"_id": None} if find_result is None else find_result
        self.find_none = False
        self.find_error = find_error
        self.modified = modified
        self.updates = []

    def find_one(self, query):
        if self.find_error is not None:
            raise self.find_error
        if self.find_none:
            return None
        return self.find_result

    def update_one(self, query, update):
        self.updates.append((query, update))
        return _UpdateResult(self.modified)


class _FakeDatabase(dict):
    def __missing__(self, key):
        coll = self[key] = _FakeCollection()
        return coll


class _FakeClient(dict):
    def __missing__(self, key):
        db = self[key] = _FakeDatabase()
        return db


class _FakeEnv:
    def __init__(self):
        self.client = _FakeClient()
        self.client_error = None
        self.migrations = {}
        self.processors = {}

    def get_client(self):
        if self.client_error is not None:
            raise self.client_error
        return self.client

    def register_manual_migration_operation(self, name, op):
        if name in self.migrations:
            raise ValueError(name)
        self.migrations[name] = op

    def get_manual_migration_operation(self, name):
        return self.migrations.get(name)

    def get_document_processor(self, name):
        return self.processors.get(name)


class _RecordingHelper(MigrationHelper):
    def __init__(self, env):
        super().__init__(env)
        self.saved = []

    def save_migration_event(self, meta):
        self.saved.append(meta)

    def pending_migration_operations(self, ns, query):
        return 0

    def get_migration_events(self, query):
        return ErrorMigrationIterator()


class _FakeProcessor:
    def __init__(self):
        self.cursor: Any = None
        self.migrate_error = None
        self.migrated = []

    def load(self, session, ns, query):
        return self.cursor

    def migrate(self, iterator):
        self.migrated.append(iterator)
        if self.migrate_error is not None:
            raise self.migrate_error


@pytest.fixture
def env():
    return _FakeEnv()


@pytest.fixture
def helper(env):
    return _RecordingHelper(env)


@pytest.mark.parametrize(
    "name,cls",
    [
        ("manual-migration", ManualMigrationJob),
        ("simple-migration", SimpleMigrationJob),
        ("stream-migration", StreamMigrationJob),
    ],
)
def test_factory_registered_without_shared_state(name, cls):
    factory = get_job_factory(name)
    one = factory()
    two = factory()
    assert isinstance(one, cls)
    assert one.job_type.name == name
    one.id = "foo"
    two.id = "bar"
    assert one is not two
    assert one.definition is not two.definition
    assert two.id == "bar"


def test_constructors_return_correct_types(env):
    assert new_manual_migration(env, Manual()).job_type.name == "manual-migration"
    assert new_simple_migration(env, Simple()).job_type.name == "simple-migration"
    assert new_stream_migration(env, Stream()).job_type.name == "stream-migration"
    assert new_simple_migration(env, Simple()).env() is env


def test_manual_unregistered_operation(helper):
    job = ManualMigrationJob(migration_helper=helper)
    job.run()
    assert job.status.completed
    assert job.has_errors()
    assert "could not find migration named" in str(job.error())
    assert helper.saved[0].has_errors is True


def test_manual_no_client(env, helper):
    env.register_manual_migration_operation("passing", lambda client, doc: None)
    env.client_error = RuntimeError("no client, sorry")
    job = ManualMigrationJob(Manual(operation_name="passing"), helper)
    job.run()
    assert job.status.completed
    assert job.has_errors()
    assert "no client, sorry" in str(job.error())


def test_manual_passing(env, helper):
    seen = []
    env.register_manual_migration_operation("passing", lambda client, doc: seen.append(doc))
    env.client["foo"]["bar"] = _FakeCollection(find_result={"_id": 7, "x": 1})
    job = ManualMigrationJob(
        Manual(id=7, operation_name="passing", migration="m1",
               namespace=Namespace("foo", "bar")),
        helper,
    )
    job.run()
    assert job.status.completed
    assert not job.has_errors()
    assert seen == [{"_id": 7, "x": 1}]
    assert helper.saved[0].migration == "m1"
    assert helper.saved[0].satisfied()


def test_manual_failing(env, helper):
    def failing(client, doc):
        raise RuntimeError("manual fail")

    env.register_manual_migration_operation("failing", failing)
    job = ManualMigrationJob(Manual(operation_name="failing"), helper)
    job.run()
    assert job.status.completed
    assert job.has_errors()
    assert "manual fail" in str(job.error())


def test_manual_find_error(env, helper):
    env.register_manual_migration_operation("passing", lambda client, doc: None)
    env.client["foo"]["bar"] = _FakeCollection(find_error=RuntimeError("not found"))
    job = ManualMigrationJob(
        Manual(operation_name="passing", namespace=Namespace("foo", "bar")), helper
    )
    job.run()
    assert job.status.completed
    assert "not found" in str(job.error())


def test_manual_missing_document(env, helper):
    env.register_manual_migration_operation("passing", lambda client, doc: None)
    coll = _FakeCollection()
    coll.find_none = True
    env.client["foo"]["bar"] = coll
    job = ManualMigrationJob(
        Manual(operation_name="passing", namespace=Namespace("foo", "bar")), helper
    )
    job.run()
    assert isinstance(job.error(), NoDocumentsError)
    assert results_not_found(job.error())


def test_manual_invalid_bson(env, helper):
    env.register_manual_migration_operation("passing", lambda client, doc: None)
    env.client["foo"]["bar"] = _FakeCollection(find_result=b"")
    job = ManualMigrationJob(
        Manual(operation_name="passing", namespace=Namespace("foo", "bar")), helper
    )
    job.run()
    assert job.status.completed
    assert isinstance(job.error(), InvalidBSON)


def test_simple_successful_operation(env, helper):
    coll = env.client["foo"]["bar"] = _FakeCollection(modified=1)
    job = SimpleMigrationJob(
        Simple(id="a", update={"$set": {"x": 1}}, namespace=Namespace("foo", "bar")), helper
    )
    job.run()
    assert job.status.completed
    assert job.error() is None
    assert coll.updates == [({"_id": "a"}, {"$set": {"x": 1}})]


def test_simple_failed_operation(env, helper):
    env.client["foo"]["bar"] = _FakeCollection(modified=0)
    job = SimpleMigrationJob(Simple(namespace=Namespace("foo", "bar")), helper)
    job.run()
    assert job.status.completed
    assert "could not update" in str(job.error())


def test_simple_no_client(env, helper):
    env.client_error = RuntimeError("no client")
    job = SimpleMigrationJob(migration_helper=helper)
    job.run()
    assert job.status.completed
    assert job.has_errors()
    assert "no client" in str(job.error())


def test_stream_processor_not_defined(helper):
    job = StreamMigrationJob(Stream(processor_name="processor-name"), helper)
    job.run()
    assert job.status.completed
    assert job.has_errors()
    assert "processor-name" in str(job.error())


def test_stream_bad_iterator(env, helper):
    env.processors["processor-name"] = _FakeProcessor()
    job = StreamMigrationJob(Stream(processor_name="processor-name"), helper)
    job.run()
    assert job.status.completed
    assert "could not return iterator" in str(job.error())


def test_stream_good_iterator(env, helper):
    processor = _FakeProcessor()
    processor.cursor = iter([])
    env.processors["processor-name"] = processor
    job = StreamMigrationJob(Stream(processor_name="processor-name"), helper)
    job.run()
    assert not job.has_errors()
    assert job.status.completed
    assert processor.migrated == [processor.cursor]


def test_stream_iterator_error(env, helper):
    processor = _FakeProcessor()
    processor.cursor = iter([])
    processor.migrate_error = RuntimeError("has error 123")
    env.processors["processor-name"] = processor
    job = StreamMigrationJob(Stream(processor_name="processor-name"), helper)
    job.run()
    assert job.status.completed
    assert "has error 123" in str(job.error())


def test_stream_no_client(env, helper):
    env.processors["processor-name"] = _FakeProcessor()
    env.client_error = RuntimeError("no client")
    job = StreamMigrationJob(Stream(processor_name="processor-name"), helper)
    job.run()
    assert job.status.completed
    assert "no client" in str(job.error())