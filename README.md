# anser

A library for describing MongoDB data migrations and running them as
dependency-aware jobs.

Three kinds of migration are supported:

- **Simple** migrations (`anser.migration_jobs.SimpleMigrationJob`) apply
  one MongoDB update document to a single document, selected by its
  `_id`. The job records an error unless exactly one document was
  modified.
- **Manual** migrations (`ManualMigrationJob`) load one document and call
  a registered operation as `operation(client, document)`.
- **Stream** migrations (`StreamMigrationJob`) look up a registered
  document processor, call its `load(client, namespace, query)` and pass
  the iterator it returns to its `migrate(iterator)`.

Migrations are produced by *generators* (`anser.generators`). A generator
queries a namespace for the `_id` of every matching document (up to its
limit), builds one migration job per document, and records the ids of
those jobs as a group in the dependency network. When the generated jobs
are handed out through `jobs()`, each receives an edge to every member of
the groups its generator depends on, so a migration only runs once the
migrations it depends on have finished without errors.

When a migration or generator finishes, a record
(`anser.model.metadata.MigrationMetadata`) is upserted into the metadata
namespace, `anser.migrations.metadata` by default. The dependency
`anser.dependency_manager.MigrationDependency` reads these records to
decide whether a job is ready or blocked.

## Installation

```
pip install anser
```

The only runtime dependency is `pymongo`. To run the tests:

```
pip install "anser[test]"
pytest
```

## Modules

- `anser.model.namespace.Namespace` – a database/collection pair with
  `is_valid()`.
- `anser.model.options.GeneratorOptions` – job id, dependencies,
  namespace, query and limit shared by every generator; `from_dict`
  reads the configuration form (`id`, `dependencies`, `namespace`
  with `db_name`/`collection`, `query`, `limit`).
- `anser.model.config.Configuration` – application options plus simple,
  manual and stream migrations, loaded from a mapping with
  `Configuration.from_dict`.
- `anser.model.migrations` – the `Simple`, `Manual` and `Stream`
  definitions carried by migration jobs.
- `anser.network.DependencyNetwork` – a thread-safe dependency graph with
  named groups; `validate()` raises `NetworkValidationError` for
  undefined dependencies and cycles; `to_json()` serialises the graph.
- `anser.job` – `Job`, `JobEdges`, `State`, an in-process `LocalQueue`,
  and registries of job and dependency types
  (`register_job_type`, `get_job_factory`, `register_dependency_type`,
  `get_dependency_factory`). The migration jobs and generators register
  themselves under names such as `simple-migration` and
  `manual-migration-generator`.
- `anser.environment` – `EnvState` holds the queue, the `pymongo` client,
  a session, the dependency network and the registries of manual
  operations and document processors. `get_environment()` returns the
  shared instance and `reset_environment()` replaces it.
- `anser.helper` – migration helpers that save and read migration
  records: `ClientMigrationHelper` (the default) uses the client,
  `LegacyMigrationHelper` uses the session interface.
- `anser.generator` – the `Generator` base class, `generator_dependency`,
  `wrap_generated_jobs` and `add_migration_jobs`, which puts the jobs of
  every finished generator in a queue's results back into that queue.
- `anser.db` – an abstract session/database/collection/query interface
  (`anser.db.interface`), its implementation over a `pymongo.MongoClient`
  (`anser.db.wrapper.wrap_client`), and `results_not_found` for
  recognising "no document" errors.

## Example

```python
from pymongo import MongoClient

from anser.db.wrapper import wrap_client
from anser.environment import get_environment
from anser.generator import add_migration_jobs
from anser.generators import new_simple_migration_generator
from anser.job import LocalQueue
from anser.model.namespace import Namespace
from anser.model.options import GeneratorOptions

client = MongoClient("mongodb://localhost:27017")
queue = LocalQueue()
queue.start()

env = get_environment()
env.setup(queue, client, wrap_client(client))

opts = GeneratorOptions(
    job_id="rename-field",
    ns=Namespace(db="app", collection="users"),
    query={"old_name": {"$exists": True}},
)
gen = new_simple_migration_generator(
    env, opts, {"$rename": {"old_name": "new_name"}}
)

queue.put(gen)
queue.run()                          # runs the generator
add_migration_jobs(queue, False, 0)  # queues the generated migrations
queue.run()                          # runs them
env.close()
```

Manual operations and processors are registered on the environment
before their migrations run:

```python
def set_flag(client, document):
    client["app"]["users"].update_one(
        {"_id": document["_id"]}, {"$set": {"flag": True}}
    )

env.register_manual_migration_operation("set-flag", set_flag)
```

## What this package does not do

- It has no command-line program; migrations are defined and run from
  Python code.
- `LocalQueue` runs jobs one after another in the calling process. There
  is no persistent or distributed queue; jobs are not serialised.
- `Configuration.from_dict` only reads a configuration mapping; turning a
  configuration into generators is left to the caller.