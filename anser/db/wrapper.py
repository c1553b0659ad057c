"""Session, query and write interfaces on top of a pymongo client."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pymongo import ReturnDocument
from pymongo.operations import DeleteMany, DeleteOne, InsertOne, UpdateMany, UpdateOne

from anser.db.data import BulkResult, Change, ChangeInfo
from anser.db.errors import NoDocumentsError, NotFoundError
from anser.db.interface import (
    Aggregation,
    Bulk,
    Collection,
    Database,
    Iterator,
    Query,
    Session,
)


def _to_document(value: Any) -> Mapping[str, Any]:
    if value is None:
        raise ValueError("document is nil")
    to_document = getattr(value, "to_document", None)
    if callable(to_document):
        return to_document()
    if isinstance(value, Mapping):
        return value
    raise TypeError(f"cannot use {type(value).__name__} as a document")


def _combine(errors: list[Exception]) -> Exception | None:
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return RuntimeError("; ".join(str(err) for err in errors))


def has_dollar_key(doc: Mapping[str, Any]) -> bool:
    """Report whether the first key of a document is an update operator."""
    first = next(iter(doc), None)
    return first is not None and str(first).startswith("$")


def get_sort(keys: list[str]) -> list[tuple[str, int]] | None:
    """Turn sort keys with optional '-' or '+' prefixes into a sort spec."""
    if not keys:
        return None
    spec = []
    for key in keys:
        if key.startswith("-"):
            spec.append((key[1:], -1))
        elif key.startswith("+"):
            spec.append((key[1:], 1))
        else:
            spec.append((key, 1))
    return spec


def _return_document(return_new: bool) -> ReturnDocument:
    return ReturnDocument.AFTER if return_new else ReturnDocument.BEFORE


def resolve_cursor_one(cursor: Any) -> Any:
    """Return the first document of a cursor and close it."""
    if cursor is None:
        raise ValueError("cannot resolve result from cursor")
    try:
        try:
            return next(cursor)
        except StopIteration:
            raise NotFoundError() from None
    finally:
        cursor.close()


def wrap_client(client: Any) -> SessionWrapper:
    """Provide the session interface over a pymongo client."""
    return SessionWrapper(client)


class SessionWrapper(Session):
    """A session backed by a pymongo client."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self._errors: list[Exception] = []
        self._is_clone = False

    def clone(self) -> SessionWrapper:
        self._is_clone = True
        return self

    def copy(self) -> SessionWrapper:
        self._is_clone = True
        return self

    def error(self) -> Exception | None:
        return _combine(self._errors)

    def db(self, name: str) -> DatabaseWrapper:
        return DatabaseWrapper(self._client[name])

    def close(self) -> None:
        if self._is_clone:
            return
        try:
            self._client.close()
        except Exception as err:  # noqa: BLE001 - collected for error()
            self._errors.append(err)


class DatabaseWrapper(Database):
    """A database backed by a pymongo database."""

    def __init__(self, database: Any) -> None:
        self._database = database

    def name(self) -> str:
        return self._database.name

    def drop_database(self) -> None:
        self._database.client.drop_database(self._database.name)

    def create_collection(self, name: str) -> CollectionWrapper:
        self._database.create_collection(name)
        return CollectionWrapper(self._database[name])

    def collection(self, name: str) -> CollectionWrapper:
        return CollectionWrapper(self._database[name])


class CollectionWrapper(Collection):
    """A collection backed by a pymongo collection."""

    def __init__(self, collection: Any) -> None:
        self._coll = collection

    def drop_collection(self) -> None:
        self._coll.drop()

    def pipe(self, pipeline: Any) -> AggregationWrapper:
        return AggregationWrapper(self._coll, pipeline)

    def find(self, query: Any) -> QueryWrapper:
        return QueryWrapper(self._coll, query)

    def find_id(self, doc_id: Any) -> QueryWrapper:
        return QueryWrapper(self._coll, {"_id": doc_id})

    def count(self) -> int:
        return int(self._coll.count_documents({}))

    def insert(self, *args: Any) -> None:
        if len(args) == 1:
            self._coll.insert_one(args[0])
        else:
            self._coll.insert_many(list(args))

    def remove(self, query: Any) -> None:
        self._coll.delete_one(query)

    def remove_id(self, doc_id: Any) -> None:
        self._coll.delete_one({"_id": doc_id})

    def remove_all(self, query: Any) -> ChangeInfo:
        res = self._coll.delete_many(query)
        return ChangeInfo(removed=int(res.deleted_count))

    def _write_one(self, query: Any, update: Any, upsert: bool) -> Any:
        doc = _to_document(update)
        if has_dollar_key(doc):
            return self._coll.update_one(query, doc, upsert=upsert)
        return self._coll.replace_one(query, doc, upsert=upsert)

    @staticmethod
    def _upsert_info(res: Any) -> ChangeInfo:
        upserted = 1 if res.upserted_id is not None else 0
        return ChangeInfo(
            updated=upserted + int(res.modified_count), upserted_id=res.upserted_id
        )

    def upsert(self, query: Any, update: Any) -> ChangeInfo:
        return self._upsert_info(self._write_one(query, update, upsert=True))

    def upsert_id(self, doc_id: Any, update: Any) -> ChangeInfo:
        return self._upsert_info(self._write_one({"_id": doc_id}, update, upsert=True))

    def update(self, query: Any, update: Any) -> None:
        if self._write_one(query, update, upsert=False).matched_count == 0:
            raise NotFoundError()

    def update_id(self, doc_id: Any, update: Any) -> None:
        self.update({"_id": doc_id}, update)

    def update_all(self, query: Any, update: Any) -> ChangeInfo:
        res = self._coll.update_many(query, update)
        return ChangeInfo(updated=int(res.modified_count))

    def bulk(self) -> BulkWrapper:
        return BulkWrapper(self._coll)


def _pairs(args: tuple[Any, ...]) -> list[tuple[Any, Any]]:
    if len(args) % 2 != 0:
        raise ValueError("bulk update requires an even number of parameters")
    return [
        ({} if selector is None else selector, update)
        for selector, update in zip(args[::2], args[1::2])
    ]


class BulkWrapper(Bulk):
    """Write operations gathered for one bulk write."""

    def __init__(self, collection: Any) -> None:
        self._coll = collection
        self.models: list[Any] = []
        self._unordered = False

    def insert(self, *args: Any) -> None:
        self.models.extend(InsertOne(doc) for doc in args)

    def remove(self, *args: Any) -> None:
        self.models.extend(DeleteOne(doc) for doc in args)

    def remove_all(self, *args: Any) -> None:
        self.models.extend(DeleteMany(doc) for doc in args)

    def update(self, *args: Any) -> None:
        self.models.extend(UpdateOne(sel, upd) for sel, upd in _pairs(args))

    def update_all(self, *args: Any) -> None:
        self.models.extend(UpdateMany(sel, upd) for sel, upd in _pairs(args))

    def upsert(self, *args: Any) -> None:
        self.models.extend(UpdateOne(sel, upd, upsert=True) for sel, upd in _pairs(args))

    def unordered(self) -> None:
        self._unordered = True

    def run(self) -> BulkResult:
        res = self._coll.bulk_write(self.models, ordered=not self._unordered)
        return BulkResult(matched=int(res.matched_count), modified=int(res.modified_count))


class IteratorWrapper(Iterator):
    """Iterates a cursor, raising any error met while opening it first."""

    def __init__(self, cursor: Any, error: Exception | None = None) -> None:
        self._cursor = cursor
        self._error = error

    def __next__(self) -> Any:
        if self._error is not None:
            err, self._error = self._error, None
            raise err
        if self._cursor is None:
            raise StopIteration
        return next(self._cursor)

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()


class QueryWrapper(Query):
    """A find query run lazily against a pymongo collection."""

    def __init__(self, collection: Any, query: Any) -> None:
        self._coll = collection
        self._filter = query
        self._cursor: Any = None
        self._projection: Any = None
        self._limit = 0
        self._skip = 0
        self._sort: list[str] = []
        self._hint: Any = None
        self._max_time = 0.0

    def limit(self, n: int) -> QueryWrapper:
        self._limit = n
        return self

    def select(self, projection: Any) -> QueryWrapper:
        self._projection = projection
        return self

    def sort(self, *args: str) -> QueryWrapper:
        self._sort.extend(args)
        return self

    def skip(self, n: int) -> QueryWrapper:
        self._skip = n
        return self

    def hint(self, hint: Any) -> QueryWrapper:
        self._hint = hint
        return self

    def max_time(self, seconds: float) -> QueryWrapper:
        self._max_time = seconds
        return self

    def count(self) -> int:
        return int(self._coll.count_documents(self._filter or {}))

    def _modify_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"projection": self._projection}
        sort = get_sort(self._sort)
        if sort is not None:
            options["sort"] = sort
        return options

    def apply(self, change: Change) -> tuple[ChangeInfo, Any]:
        if change.remove and change.update is not None:
            raise ValueError("cannot delete and update in a findAndUpdate")
        info = ChangeInfo()
        options = self._modify_options()
        if change.remove:
            if change.return_new:
                raise ValueError("cannot return new with a delete operation")
            result = self._coll.find_one_and_delete(self._filter, **options)
            info.removed += 1
        elif change.update is not None:
            doc = _to_document(change.update)
            options["upsert"] = change.upsert
            options["return_document"] = _return_document(change.return_new)
            if has_dollar_key(doc):
                result = self._coll.find_one_and_update(self._filter, doc, **options)
            else:
                result = self._coll.find_one_and_replace(self._filter, doc, **options)
            info.updated += 1
        else:
            raise ValueError("invalid change defined")
        if result is None:
            raise NoDocumentsError()
        return info, result

    def _exec(self) -> None:
        if self._cursor is not None:
            return
        if self._filter is None:
            self._filter = {}
        options: dict[str, Any] = {}
        if self._hint is not None:
            options["hint"] = self._hint
        if self._projection is not None:
            options["projection"] = self._projection
        sort = get_sort(self._sort)
        if sort is not None:
            options["sort"] = sort
        if self._limit > 0:
            options["limit"] = self._limit
        if self._skip > 0:
            options["skip"] = self._skip
        if self._max_time > 0:
            options["max_time_ms"] = int(self._max_time * 1000)
        self._cursor = self._coll.find(self._filter, **options)

    def all(self) -> list[Any]:
        self._exec()
        return list(self._cursor)

    def one(self) -> Any:
        self._limit = 1
        self._exec()
        return resolve_cursor_one(self._cursor)

    def iter(self) -> IteratorWrapper:
        if self._cursor is not None:
            return IteratorWrapper(self._cursor)
        try:
            self._exec()
        except Exception as err:  # noqa: BLE001 - raised from the iterator
            return IteratorWrapper(None, err)
        return IteratorWrapper(self._cursor)


class AggregationWrapper(Aggregation):
    """An aggregation pipeline run lazily against a pymongo collection."""

    def __init__(self, collection: Any, pipeline: Any) -> None:
        self._coll = collection
        self._pipeline = pipeline
        self._cursor: Any = None
        self._hint: Any = None
        self._max_time = 0.0

    def hint(self, hint: Any) -> AggregationWrapper:
        self._hint = hint
        return self

    def max_time(self, seconds: float) -> AggregationWrapper:
        self._max_time = seconds
        return self

    def _exec(self) -> None:
        if self._cursor is not None:
            return
        options: dict[str, Any] = {"allowDiskUse": True}
        if self._hint is not None:
            options["hint"] = self._hint
        if self._max_time > 0:
            options["maxTimeMS"] = int(self._max_time * 1000)
        self._cursor = self._coll.aggregate(self._pipeline, **options)

    def all(self) -> list[Any]:
        self._exec()
        return list(self._cursor)

    def one(self) -> Any:
        self._exec()
        return resolve_cursor_one(self._cursor)

    def iter(self) -> IteratorWrapper:
        try:
            self._exec()
        except Exception as err:  # noqa: BLE001 - raised from the iterator
            return IteratorWrapper(None, err)
        return IteratorWrapper(self._cursor)