"""Execute a ParsedQuery against SQLAlchemy models.

Turns the translated conditions into boolean clauses for ``select().where``.
Query field names are matched against the model's mapped columns, with an
optional ``field_map`` for names that differ (``dateString`` ->
``date_string``). The time window always applies to the model's epoch
milliseconds column.
"""

import enum
import math
from collections.abc import Mapping
from typing import Any

from sqlalchemy import and_, false, inspect, or_, true
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql.elements import ColumnElement

from glucosim.core.query.models import (
    FilterValue,
    LogicalOperator,
    ParsedQuery,
    RangeCondition,
)
from glucosim.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DATE_COLUMN = "mills"


class UnsupportedQueryError(Exception):
    """Raised in strict mode when a query cannot be executed faithfully."""

    def __init__(
        self,
        message: str,
        operators: set[str] | frozenset[str] | None = None,
        fields: set[str] | None = None,
    ):
        super().__init__(message)
        self.operators = sorted(operators or ())
        self.fields = sorted(fields or ())


class _FilterBuilder:
    def __init__(
        self,
        model: type[Any],
        field_map: Mapping[str, str] | None,
        strict: bool,
        date_column: str,
    ):
        self.model = model
        self.field_map = dict(field_map or {})
        self.strict = strict
        self.date_column = date_column
        self.columns = set(inspect(model).columns.keys())
        self.unknown_fields: set[str] = set()

    def column(self, field: str) -> InstrumentedAttribute[Any] | None:
        name = self.field_map.get(field, field)
        if name not in self.columns:
            self.unknown_fields.add(field)
            return None
        return getattr(self.model, name)

    def python_type(self, column: InstrumentedAttribute[Any]) -> type | None:
        """The column's Python type; the enum class for enum columns."""
        column_type = column.type
        enum_class = getattr(column_type, "enum_class", None)
        if enum_class is not None and issubclass(enum_class, enum.Enum):
            return enum_class
        try:
            return column_type.python_type
        except NotImplementedError:
            return None

    def coerce(self, column: InstrumentedAttribute[Any], value: FilterValue) -> Any:
        """Convert a JSON literal to the column's Python type.

        Raises:
            ValueError: If the value has no exact equivalent in that type
                (fractional or non-finite numbers for integer columns)
        """
        python_type = self.python_type(column)
        if python_type is None:
            return value
        if issubclass(python_type, enum.Enum):
            return python_type(value)
        if python_type is int and not isinstance(value, bool):
            number = float(value)
            if not math.isfinite(number) or not number.is_integer():
                msg = f"{value!r} is not an integer"
                raise ValueError(msg)
            return int(value) if isinstance(value, int) else int(number)
        if python_type is float and not isinstance(value, bool):
            number = float(value)
            if not math.isfinite(number):
                msg = f"{value!r} is not a finite number"
                raise ValueError(msg)
            return number
        if python_type is str and not isinstance(value, str):
            return str(value)
        return value

    def _coerced(self, field: str, column: InstrumentedAttribute[Any], value: FilterValue) -> Any:
        try:
            return self.coerce(column, value)
        except (TypeError, ValueError, OverflowError) as e:
            return self._does_not_fit(field, value, e)

    def _does_not_fit(self, field: str, value: Any, cause: Exception | None = None) -> None:
        if self.strict:
            raise UnsupportedQueryError(
                f"Value {value!r} does not fit field '{field}'", fields={field}
            ) from cause
        logger.warning("Skipping value that does not fit its column", field=field)

    def range_clauses(
        self, field: str, column: InstrumentedAttribute[Any], condition: RangeCondition
    ) -> list[ColumnElement[bool]]:
        """Comparisons for a numeric range; only numeric columns can take one."""
        python_type = self.python_type(column)
        if python_type not in (int, float):
            bound = condition.min_value if condition.min_value is not None else condition.max_value
            self._does_not_fit(field, bound)
            return []

        clauses: list[ColumnElement[bool]] = []
        if condition.min_value is not None:
            clauses.append(
                column >= condition.min_value
                if condition.min_inclusive
                else column > condition.min_value
            )
        if condition.max_value is not None:
            clauses.append(
                column <= condition.max_value
                if condition.max_inclusive
                else column < condition.max_value
            )
        return clauses

    def build(self, parsed: ParsedQuery) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []

        for field, value in parsed.simple_conditions.items():
            column = self.column(field)
            if column is None:
                continue
            coerced = self._coerced(field, column, value)
            if coerced is not None:
                clauses.append(column == coerced)

        if parsed.date_range is not None:
            column = self.column(self.date_column)
            if column is not None:
                if parsed.date_range.start_mills is not None:
                    clauses.append(column >= parsed.date_range.start_mills)
                if parsed.date_range.end_mills is not None:
                    clauses.append(column <= parsed.date_range.end_mills)

        for field, condition in parsed.range_conditions.items():
            column = self.column(field)
            if column is None:
                continue
            clauses.extend(self.range_clauses(field, column, condition))

        for field, condition in parsed.set_conditions.items():
            column = self.column(field)
            if column is None:
                continue
            values = [self._coerced(field, column, v) for v in condition.values]
            values = [v for v in values if v is not None]
            clauses.append(column.in_(values) if values else false())

        group = parsed.logical_group
        if group is not None and group.parsed_conditions:
            operands = [and_(true(), *self.build(sub)) for sub in group.parsed_conditions]
            combine = and_ if group.operator == LogicalOperator.AND else or_
            clauses.append(combine(*operands))

        return clauses


def build_filters(
    parsed: ParsedQuery,
    model: type[Any],
    field_map: Mapping[str, str] | None = None,
    strict: bool = False,
    date_column: str = DEFAULT_DATE_COLUMN,
) -> list[ColumnElement[bool]]:
    """Translate a parsed query into WHERE clauses for ``model``.

    Args:
        parsed: Output of ``parse_query``
        model: SQLAlchemy ORM class to filter
        field_map: Query field name -> model attribute name overrides
        strict: Raise instead of skipping unsupported operators and unknown fields
        date_column: Attribute holding epoch milliseconds for the time window

    Returns:
        Clauses to AND together (empty for an empty query)

    Raises:
        UnsupportedQueryError: In strict mode, if the query uses operators or
            fields that cannot be executed
    """
    if parsed.unsupported_operators:
        if strict:
            raise UnsupportedQueryError(
                "Query uses unsupported operators", operators=parsed.unsupported_operators
            )
        logger.warning(
            "Ignoring unsupported query operators",
            operators=sorted(parsed.unsupported_operators),
        )

    builder = _FilterBuilder(model, field_map, strict, date_column)
    clauses = builder.build(parsed)

    if builder.unknown_fields:
        if strict:
            raise UnsupportedQueryError(
                "Query references unknown fields", fields=builder.unknown_fields
            )
        logger.warning("Ignoring unknown query fields", fields=sorted(builder.unknown_fields))

    return clauses
