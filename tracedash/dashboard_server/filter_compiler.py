import logging
from typing import Any, Optional

from pydantic import ValidationError

from tracedash.dashboard_server.column_definitions import (
    ColumnCatalog,
    ColumnDefinition,
    ColumnType,
)
from tracedash.dashboard_server.errors import (
    InvalidRequest,
    UnknownFieldError,
    UnsupportedOperatorError,
)
from tracedash.dashboard_server.filter_interface import FilterCondition, FilterState
from tracedash.dashboard_server.filters import (
    COMPARISON_OPERATORS,
    NULL_OPERATORS,
    RANGE_OPERATORS,
    STRING_OPERATORS,
    AppliedFilter,
    ArrayOptionsFilter,
    BooleanFilter,
    DateTimeFilter,
    Filter,
    FilterList,
    NullFilter,
    NumberFilter,
    NumberObjectFilter,
    Operator,
    StringFilter,
    StringObjectFilter,
    StringOptionsFilter,
)
from tracedash.dashboard_server.orm import ParamBuilder

logger = logging.getLogger(__name__)


SUPPORTED_OPERATORS: dict[ColumnType, frozenset[Operator]] = {
    ColumnType.STRING: STRING_OPERATORS,
    ColumnType.NUMBER: COMPARISON_OPERATORS,
    ColumnType.DATETIME: RANGE_OPERATORS,
    ColumnType.BOOLEAN: frozenset({Operator.EQ, Operator.NEQ}),
    ColumnType.STRING_OPTIONS: frozenset({Operator.IN, Operator.NOT_IN}),
    ColumnType.ARRAY_OPTIONS: frozenset(
        {Operator.IN, Operator.NOT_IN, Operator.ALL_OF}
    ),
    ColumnType.STRING_OBJECT: STRING_OPERATORS,
    ColumnType.NUMBER_OBJECT: COMPARISON_OPERATORS,
}

_FILTER_CLASSES: dict[ColumnType, type[Filter]] = {
    ColumnType.STRING: StringFilter,
    ColumnType.NUMBER: NumberFilter,
    ColumnType.DATETIME: DateTimeFilter,
    ColumnType.BOOLEAN: BooleanFilter,
    ColumnType.STRING_OPTIONS: StringOptionsFilter,
    ColumnType.ARRAY_OPTIONS: ArrayOptionsFilter,
    ColumnType.STRING_OBJECT: StringObjectFilter,
    ColumnType.NUMBER_OBJECT: NumberObjectFilter,
}

_OBJECT_TYPES = (ColumnType.STRING_OBJECT, ColumnType.NUMBER_OBJECT)


class FilterCompiler:
    """Turns a caller supplied `FilterState` into SQL against a column catalog.

    The catalog is injected once and only read, so a single compiler can be
    shared by every request.
    """

    def __init__(self, catalog: ColumnCatalog):
        self._catalog = catalog

    @property
    def catalog(self) -> ColumnCatalog:
        return self._catalog

    def build_filter_list(self, filter_state: FilterState) -> FilterList:
        return FilterList(self._build_filter(cond) for cond in filter_state)

    def compile(
        self, filter_state: FilterState, pb: Optional[ParamBuilder] = None
    ) -> AppliedFilter:
        return self.build_filter_list(filter_state).apply(pb)

    def _build_filter(self, cond: FilterCondition) -> Filter:
        definition = self._catalog.get(cond.column)
        if definition is None:
            raise UnknownFieldError(
                f"Unknown filter column: {cond.column}", column=cond.column
            )
        operator = _resolve_operator(cond, definition)

        base: dict[str, Any] = {
            "table": definition.table,
            "field": definition.column,
            "operator": operator,
        }
        if operator in NULL_OPERATORS:
            return NullFilter(**base)

        filter_cls = _FILTER_CLASSES[definition.type]
        kwargs = {**base, "value": cond.value}
        if definition.type in _OBJECT_TYPES:
            if not cond.key:
                raise InvalidRequest(
                    f"Filter on {cond.column} requires a key",
                )
            kwargs["key"] = cond.key
        if definition.type in (ColumnType.NUMBER, ColumnType.NUMBER_OBJECT):
            if isinstance(cond.value, bool):
                raise InvalidRequest(
                    f"Invalid value for numeric column {cond.column}: {cond.value!r}"
                )

        try:
            return filter_cls(**kwargs)
        except ValidationError as e:
            logger.debug(
                "filter_validation_error",
                extra={"column": cond.column, "error_str": str(e)},
            )
            raise InvalidRequest(
                f"Invalid value for {definition.type.value} column {cond.column}: {cond.value!r}"
            ) from e


def _resolve_operator(cond: FilterCondition, definition: ColumnDefinition) -> Operator:
    try:
        operator = Operator(cond.operator)
    except ValueError:
        raise UnsupportedOperatorError(
            f"Unknown operator '{cond.operator}' for column {cond.column}",
            column=cond.column,
            operator=cond.operator,
        ) from None

    if operator in NULL_OPERATORS:
        return operator
    if operator not in SUPPORTED_OPERATORS[definition.type]:
        raise UnsupportedOperatorError(
            f"Operator '{operator.value}' is not supported for {definition.type.value} column {cond.column}",
            column=cond.column,
            operator=cond.operator,
        )
    return operator
