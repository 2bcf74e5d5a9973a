"""
Exceptions raised while compiling dashboard filters, and the table that
turns any exception reaching the API boundary into an HTTP status and body.

Compilation errors are all `InvalidRequest`s and are raised before a query
is sent. ClickHouse errors are not wrapped here; they keep their
`clickhouse_connect` type and are only classified when rendered.
"""

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

ErrorBody = dict[str, Any]
BodyFormatter = Callable[[Exception], ErrorBody]


class Error(Exception):
    """Base class for dashboard server errors."""


class InvalidRequest(Error):
    """The caller's metric request cannot be compiled."""


class UnknownFieldError(InvalidRequest):
    """A filter names a column that the catalog does not define."""

    def __init__(self, message: str, column: str):
        super().__init__(message)
        self.column = column


class UnsupportedOperatorError(InvalidRequest):
    """A filter uses an operator its column type does not allow."""

    def __init__(self, message: str, column: str, operator: str):
        super().__init__(message)
        self.column = column
        self.operator = operator


class UnsupportedJoinError(InvalidRequest):
    """A filter's table has no join path onto the metric's base table."""


def _reason_body(exc: Exception, **fields: Any) -> ErrorBody:
    # Messages that are already JSON objects are passed through as the body
    text = str(exc)
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        decoded = None
    body: ErrorBody = decoded if isinstance(decoded, dict) else {"reason": text}
    body.update(fields)
    return body


def _unknown_field_body(exc: Exception) -> ErrorBody:
    return _reason_body(exc, column=getattr(exc, "column", None))


def _unsupported_operator_body(exc: Exception) -> ErrorBody:
    return _reason_body(
        exc,
        column=getattr(exc, "column", None),
        operator=getattr(exc, "operator", None),
    )


def _fixed_body(reason: str) -> BodyFormatter:
    return lambda exc: {"reason": reason}


@dataclass(frozen=True)
class ErrorWithStatus:
    status_code: int
    message: ErrorBody


@dataclass(frozen=True)
class ErrorMapping:
    exception_class: type
    status_code: int
    formatter: BodyFormatter


class ErrorRegistry:
    """Maps exception classes to HTTP responses.

    Lookup follows the exception's MRO, so a subclass without its own entry
    is rendered like its nearest registered base.
    """

    def __init__(self) -> None:
        self._mappings: dict[type, ErrorMapping] = {}
        self._register_defaults()

    def register(
        self,
        exception_class: type,
        status_code: int,
        formatter: BodyFormatter = _reason_body,
    ) -> None:
        self._mappings[exception_class] = ErrorMapping(
            exception_class, status_code, formatter
        )

    def lookup(self, exception_class: type) -> Optional[ErrorMapping]:
        return next(
            (self._mappings[k] for k in exception_class.__mro__ if k in self._mappings),
            None,
        )

    def __iter__(self) -> Iterator[type]:
        return iter(self._mappings)

    def render(self, exc: Exception) -> ErrorWithStatus:
        mapping = self.lookup(type(exc))
        if mapping is None:
            return ErrorWithStatus(500, {"reason": "Internal server error"})
        return ErrorWithStatus(mapping.status_code, mapping.formatter(exc))

    def _register_defaults(self) -> None:
        self.register(InvalidRequest, 400)
        self.register(UnknownFieldError, 400, _unknown_field_body)
        self.register(UnsupportedOperatorError, 400, _unsupported_operator_body)
        self.register(UnsupportedJoinError, 400)

        # Bad granularities surface as ValueError from the query templates
        self.register(ValueError, 400)
        # A missing result column means the query and row models disagree
        self.register(KeyError, 500, _fixed_body("Internal backend error"))

        from clickhouse_connect.driver.exceptions import (
            DatabaseError,
            OperationalError,
        )

        for store_error in (DatabaseError, OperationalError):
            self.register(store_error, 502, _fixed_body("Temporary backend error"))


_registry: Optional[ErrorRegistry] = None


def error_registry() -> ErrorRegistry:
    global _registry
    if _registry is None:
        _registry = ErrorRegistry()
    return _registry


def handle_server_exception(exc: Exception) -> ErrorWithStatus:
    """Status code and JSON body for an exception raised by a metric call."""
    return error_registry().render(exc)


def get_registered_error_classes() -> list[type]:
    return list(error_registry())
