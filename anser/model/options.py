"""Options shared by all migration generators."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from anser.model.namespace import Namespace


def _expect(value: Any, kind: type | tuple[type, ...], name: str) -> Any:
    if isinstance(value, bool) and kind is int:
        raise TypeError(f"field '{name}' must be an integer")
    if not isinstance(value, kind):
        raise TypeError(f"field '{name}' has invalid type {type(value).__name__}")
    return value


def _namespace_from_dict(data: Any) -> Namespace:
    if data is None:
        return Namespace()
    _expect(data, Mapping, "namespace")
    return Namespace(
        db=_expect(data.get("db_name", ""), str, "db_name"),
        collection=_expect(data.get("collection", ""), str, "collection"),
    )


@dataclass
class GeneratorOptions:
    """Options that configure a generator and its dependencies."""

    job_id: str = ""
    depends_on: list[str] = field(default_factory=list)
    ns: Namespace = field(default_factory=Namespace)
    query: dict[str, Any] = field(default_factory=dict)
    limit: int = 0

    def is_valid(self) -> bool:
        """Report whether the namespace, id and limit are usable."""
        return self.ns.is_valid() and bool(self.job_id) and self.limit >= 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GeneratorOptions:
        """Build options from their configuration-file form."""
        _expect(data, Mapping, "options")
        deps = data.get("dependencies") or []
        _expect(deps, list, "dependencies")
        for dep in deps:
            _expect(dep, str, "dependencies")
        query = data.get("query") or {}
        _expect(query, Mapping, "query")
        return cls(
            job_id=_expect(data.get("id", ""), str, "id"),
            depends_on=list(deps),
            ns=_namespace_from_dict(data.get("namespace")),
            query=dict(query),
            limit=_expect(data.get("limit", 0), int, "limit"),
        )