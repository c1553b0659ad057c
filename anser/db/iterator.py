"""Iterators that close extra resources along with their cursor."""

from __future__ import annotations

from typing import Any

from anser.db.interface import Iterator, Session


class CombinedCloser(Iterator):
    """Wraps an iterator, delegating iteration and closing to it."""

    def __init__(self, iterator: Iterator) -> None:
        self._iterator = iterator

    def __next__(self) -> Any:
        return next(self._iterator)

    def close(self) -> None:
        self._iterator.close()


def new_combined_iterator(session: Session | None, iterator: Iterator) -> Iterator:
    """Wrap an iterator obtained from a session."""
    return CombinedCloser(iterator)