"""Migrations described in a configuration file."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from anser.model.options import GeneratorOptions


def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"field '{name}' must be a mapping")
    return value


def _sequence(value: Any, name: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"field '{name}' must be a list")
    return value


@dataclass
class ApplicationOptions:
    """Behaviour of the application as a whole."""

    dry_run: bool = False
    limit: int = 0


@dataclass
class ConfigurationSimpleMigration:
    """A migration given as a single-document update."""

    options: GeneratorOptions = field(default_factory=GeneratorOptions)
    update: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConfigurationManualMigration:
    """A manual or stream migration referring to a registered implementation."""

    options: GeneratorOptions = field(default_factory=GeneratorOptions)
    name: str = ""
    params: dict[str, str] = field(default_factory=dict)


def _manual_from_dict(data: Any) -> ConfigurationManualMigration:
    data = _mapping(data, "migration")
    name = data.get("name", "")
    if not isinstance(name, str):
        raise TypeError("field 'name' must be a string")
    params = _mapping(data.get("params"), "params")
    for key, value in params.items():
        if not isinstance(value, str):
            raise TypeError(f"param '{key}' must be a string")
    return ConfigurationManualMigration(
        options=GeneratorOptions.from_dict(_mapping(data.get("options"), "options")),
        name=name,
        params=dict(params),
    )


@dataclass
class Configuration:
    """A complete set of migrations read from a configuration file."""

    options: ApplicationOptions = field(default_factory=ApplicationOptions)
    simple_migrations: list[ConfigurationSimpleMigration] = field(default_factory=list)
    manual_migrations: list[ConfigurationManualMigration] = field(default_factory=list)
    stream_migrations: list[ConfigurationManualMigration] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Configuration:
        """Build a configuration from parsed file contents."""
        data = _mapping(data, "configuration")
        app = _mapping(data.get("options"), "options")
        dry_run = app.get("dry_run", False)
        limit = app.get("limit", 0)
        if not isinstance(dry_run, bool):
            raise TypeError("field 'dry_run' must be a boolean")
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise TypeError("field 'limit' must be an integer")

        simple = []
        for item in _sequence(data.get("simple_migrations"), "simple_migrations"):
            item = _mapping(item, "simple_migrations")
            simple.append(
                ConfigurationSimpleMigration(
                    options=GeneratorOptions.from_dict(_mapping(item.get("options"), "options")),
                    update=dict(_mapping(item.get("update"), "update")),
                )
            )

        return cls(
            options=ApplicationOptions(dry_run=dry_run, limit=limit),
            simple_migrations=simple,
            manual_migrations=[
                _manual_from_dict(item)
                for item in _sequence(data.get("manual_migrations"), "manual_migrations")
            ],
            stream_migrations=[
                _manual_from_dict(item)
                for item in _sequence(data.get("stream_migrations"), "stream_migrations")
            ],
        )