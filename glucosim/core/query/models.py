"""Typed representation of a translated find query.

All models are frozen: a ParsedQuery is built once per request and only
read afterwards.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

FilterValue = str | int | float | bool


class LogicalOperator(StrEnum):
    """Boolean combinator at the root of a query."""

    AND = "$and"
    OR = "$or"


class RangeCondition(BaseModel):
    """Numeric bounds on one field. A missing bound is open."""

    model_config = ConfigDict(frozen=True)

    field: str
    min_value: float | None = None
    max_value: float | None = None
    min_inclusive: bool = False
    max_inclusive: bool = False


class DateRange(BaseModel):
    """Time window in epoch milliseconds, both ends inclusive."""

    model_config = ConfigDict(frozen=True)

    start_mills: int | None = None
    end_mills: int | None = None


class SetCondition(BaseModel):
    """Membership test; values keep their original order and JSON type."""

    model_config = ConfigDict(frozen=True)

    field: str
    values: list[FilterValue] = Field(default_factory=list)


class LogicalGroup(BaseModel):
    """A ``$and`` / ``$or`` clause.

    ``conditions`` holds each operand as compact JSON text;
    ``parsed_conditions`` holds the same operands translated.
    """

    model_config = ConfigDict(frozen=True)

    operator: LogicalOperator
    conditions: list[str] = Field(default_factory=list)
    parsed_conditions: list["ParsedQuery"] = Field(default_factory=list)


class ParsedQuery(BaseModel):
    """Structured form of a JSON find expression."""

    model_config = ConfigDict(frozen=True)

    simple_conditions: dict[str, FilterValue] = Field(default_factory=dict)
    date_range: DateRange | None = None
    range_conditions: dict[str, RangeCondition] = Field(default_factory=dict)
    set_conditions: dict[str, SetCondition] = Field(default_factory=dict)
    logical_group: LogicalGroup | None = None
    unsupported_operators: frozenset[str] = Field(default_factory=frozenset)
    is_empty: bool = False

    @property
    def has_logical_operators(self) -> bool:
        return self.logical_group is not None

    @property
    def has_range_queries(self) -> bool:
        """True when any level of the query bounds a field or the time window."""
        if self.date_range is not None or self.range_conditions:
            return True
        if self.logical_group is None:
            return False
        return any(sub.has_range_queries for sub in self.logical_group.parsed_conditions)

    @property
    def has_unsupported_operators(self) -> bool:
        return bool(self.unsupported_operators)


LogicalGroup.model_rebuild()
