"""
Parameter binding shared by every dashboard query template.

All caller supplied values, including map keys and the join time tolerance,
reach ClickHouse as bound parameters. Placeholder names are unique within a
builder, so fragments rendered against the same builder can be pasted into
one statement.
"""

import datetime
import itertools
import typing

_builder_ids = itertools.count(1)


class ParamBuilder:
    """Allocates ClickHouse query parameters for one statement.

    ```
    pb = ParamBuilder()
    query = f"SELECT count() FROM traces t WHERE t.project_id = {pb.add(project_id)}"
    ch_client.query(query, parameters=pb.get_params())
    ```

    Without a `prefix`, each builder gets a process-unique one, so statements
    built by different builders never share parameter names either.
    """

    def __init__(self, prefix: typing.Optional[str] = None):
        self._prefix = f"{prefix or f'pb_{next(_builder_ids)}'}_"
        self._params: dict[str, typing.Any] = {}

    def _next_name(self) -> str:
        return f"{self._prefix}{len(self._params)}"

    def add(
        self,
        param_value: typing.Any,
        param_name: typing.Optional[str] = None,
        param_type: typing.Optional[str] = None,
    ) -> str:
        """Binds `param_value` under a new name and returns its `{name:Type}` slot."""
        name = param_name or self._next_name()
        self._params[name] = param_value
        return _param_slot(name, param_type or python_value_to_ch_type(param_value))

    def get_params(self) -> dict[str, typing.Any]:
        return dict(self._params)

    def param_names(self) -> list[str]:
        return list(self._params)


def _param_slot(param_name: str, param_type: str) -> str:
    return "{" + param_name + ":" + param_type + "}"


def combine_conditions(conditions: list[str], operator: str) -> str:
    """Parenthesized AND/OR of the non-empty conditions; "" when there are none."""
    if operator not in ("AND", "OR"):
        raise ValueError(f"Invalid operator: {operator}")
    parts = [c for c in conditions if c]
    if len(parts) <= 1:
        return parts[0] if parts else ""
    return "(" + f" {operator} ".join(f"({c})" for c in parts) + ")"


# bool before int: bool is an int subclass
_SCALAR_CH_TYPES: tuple[tuple[type, str], ...] = (
    (str, "String"),
    (bool, "Bool"),
    (int, "Int64"),
    (float, "Float64"),
    (datetime.datetime, "DateTime64(3)"),
)


def python_value_to_ch_type(value: typing.Any) -> str:
    if value is None:
        return "Nullable(String)"
    for py_type, ch_type in _SCALAR_CH_TYPES:
        if isinstance(value, py_type):
            return ch_type
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return "Array(String)"
    raise ValueError(f"Unknown value type: {value}")
