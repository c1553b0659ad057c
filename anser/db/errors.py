"""Errors raised by database operations."""

from __future__ import annotations


class NotFoundError(LookupError):
    """No document matched the query."""

    def __init__(self, message: str = "document not found") -> None:
        super().__init__(message)


class NoDocumentsError(LookupError):
    """The driver returned no documents for a single-result query."""

    def __init__(self, message: str = "mongo: no documents in result") -> None:
        super().__init__(message)


def _root_cause(err: BaseException) -> BaseException:
    seen = set()
    while err.__cause__ is not None and id(err) not in seen:
        seen.add(id(err))
        err = err.__cause__
    return err


def results_not_found(err: BaseException | None) -> bool:
    """Report whether an error, or the error it was raised from, means no results."""
    if err is None:
        return False
    return isinstance(_root_cause(err), (NotFoundError, NoDocumentsError))