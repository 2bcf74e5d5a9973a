import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import TypeAlias


class BaseModelStrict(BaseModel):
    """Base model with strict validation that forbids extra fields."""

    model_config = ConfigDict(extra="forbid")


class FilterCondition(BaseModelStrict):
    """A single, caller supplied dashboard filter.

    The column's type (and therefore how `value` is interpreted) comes from
    the column catalog, not from the condition itself.
    """

    column: str = Field(
        description="UI name or id of a column in the catalog",
        examples=["Trace Name", "user"],
    )
    operator: str = Field(examples=["=", ">=", "any of", "is null"])
    value: Optional[Union[datetime.datetime, bool, float, str, list[str]]] = Field(
        default=None,
        description="Compared value; its expected shape depends on the column type",
        examples=["2024-01-01T00:00:00Z", 0.5, True, ["gpt-4"]],
    )
    key: Optional[str] = Field(
        default=None,
        description="Map key for object columns such as trace metadata",
    )


# Ordered; all conditions are conjoined.
FilterState: TypeAlias = list[FilterCondition]
