"""Translate MongoDB-style JSON find expressions into ParsedQuery.

Supported grammar:

* ``{"field": literal}``: equality
* ``{"field": {"$gte"|"$gt"|"$lte"|"$lt": number}}``: numeric range
* the same operators on a timestamp field: time window
* ``{"field": {"$in": [..]}}``: set membership
* ``{"$and"|"$or": [{..}, ..]}``: boolean combinator, operands translated
  recursively

Anything else starting with ``$`` is reported in
``ParsedQuery.unsupported_operators``. Translation never raises: blank,
``null``/``undefined`` or malformed input yields an empty query, and the
caller decides what to do with unsupported operators.
"""

import json
import math
from datetime import UTC, datetime
from typing import Any, Final

from glucosim.core.query.models import (
    DateRange,
    FilterValue,
    LogicalGroup,
    LogicalOperator,
    ParsedQuery,
    RangeCondition,
    SetCondition,
)
from glucosim.logging_config import get_logger

logger = get_logger(__name__)

RANGE_OPERATORS: Final[frozenset[str]] = frozenset({"$gte", "$gt", "$lte", "$lt"})
SET_OPERATOR: Final[str] = "$in"
LOGICAL_OPERATORS: Final[frozenset[str]] = frozenset(op.value for op in LogicalOperator)

# Operators recognised but not translatable
KNOWN_UNSUPPORTED_OPERATORS: Final[frozenset[str]] = frozenset(
    {"$regex", "$exists", "$size", "$elemMatch", "$type"}
)

# Timestamp fields, in the order they are consulted for the time window
EPOCH_DATE_FIELDS: Final[tuple[str, ...]] = ("mills", "date")
ISO_DATE_FIELDS: Final[tuple[str, ...]] = ("dateString", "created_at", "sysTime")
DATE_FIELDS: Final[tuple[str, ...]] = EPOCH_DATE_FIELDS + ISO_DATE_FIELDS

BLANK_QUERIES: Final[frozenset[str]] = frozenset({"", "null", "undefined"})

EMPTY_QUERY: Final[ParsedQuery] = ParsedQuery(is_empty=True)


def _load(text: str | None) -> dict[str, Any] | None:
    """Decode a find expression; None when it is blank or not a JSON object."""
    if text is None or text.strip() in BLANK_QUERIES:
        return None
    try:
        document = json.loads(text)
    except (ValueError, RecursionError) as e:
        logger.debug("Ignoring malformed find query", error=str(e))
        return None
    if not isinstance(document, dict):
        return None
    return document


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_number(value: Any) -> float | None:
    """Numbers pass through; numeric strings (common in URL queries) are converted.

    Infinity and NaN (which `json` and `float` both accept) count as non-numeric.
    """
    if _is_number(value):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_mills(value: Any, iso: bool) -> int | None:
    if not iso or _is_number(value):
        number = _as_number(value)
        return int(number) if number is not None else None
    if not isinstance(value, str):
        return None
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


def _is_operator_object(value: Any) -> bool:
    return isinstance(value, dict) and any(str(key).startswith("$") for key in value)


def _range_from_operators(field: str, operators: dict[str, Any]) -> RangeCondition | None:
    bounds: dict[str, Any] = {}
    for op, raw in operators.items():
        if op not in RANGE_OPERATORS:
            continue
        number = _as_number(raw)
        if number is None:
            continue
        if op in ("$gte", "$gt"):
            bounds["min_value"] = number
            bounds["min_inclusive"] = op == "$gte"
        else:
            bounds["max_value"] = number
            bounds["max_inclusive"] = op == "$lte"
    if not bounds:
        return None
    return RangeCondition(field=field, **bounds)


def _date_range_from_operators(field: str, operators: dict[str, Any]) -> DateRange | None:
    iso = field in ISO_DATE_FIELDS
    start: int | None = None
    end: int | None = None
    for op, raw in operators.items():
        if op not in RANGE_OPERATORS:
            continue
        mills = _as_mills(raw, iso)
        if mills is None:
            continue
        # Millisecond resolution turns exclusive bounds into inclusive ones
        if op == "$gte":
            start = mills
        elif op == "$gt":
            start = mills + 1
        elif op == "$lte":
            end = mills
        else:
            end = mills - 1
    if start is None and end is None:
        return None
    return DateRange(start_mills=start, end_mills=end)


def _intersect(current: DateRange | None, new: DateRange) -> DateRange:
    if current is None:
        return new
    starts = [s for s in (current.start_mills, new.start_mills) if s is not None]
    ends = [e for e in (current.end_mills, new.end_mills) if e is not None]
    return DateRange(
        start_mills=max(starts) if starts else None,
        end_mills=min(ends) if ends else None,
    )


def _set_values(items: list[Any]) -> list[FilterValue]:
    return [item for item in items if isinstance(item, str | int | float)]


def _compact(fragment: Any) -> str:
    return json.dumps(fragment, separators=(",", ":"))


def _scan_unsupported(value: Any, found: set[str]) -> None:
    """Collect unknown operators anywhere below a field value."""
    if isinstance(value, dict):
        for key, nested in value.items():
            if key.startswith("$") and key not in RANGE_OPERATORS and key != SET_OPERATOR:
                found.add(key)
            _scan_unsupported(nested, found)
    elif isinstance(value, list):
        for item in value:
            _scan_unsupported(item, found)


def _translate(document: dict[str, Any]) -> ParsedQuery:
    simple: dict[str, FilterValue] = {}
    ranges: dict[str, RangeCondition] = {}
    sets: dict[str, SetCondition] = {}
    date_range: DateRange | None = None
    group: LogicalGroup | None = None
    unsupported: set[str] = set()

    for key, value in document.items():
        if key in LOGICAL_OPERATORS:
            if group is not None or not isinstance(value, list):
                # Only one combinator per level can be represented
                unsupported.add(key)
                continue
            parsed = [
                _translate(item) if isinstance(item, dict) else EMPTY_QUERY for item in value
            ]
            group = LogicalGroup(
                operator=LogicalOperator(key),
                conditions=[_compact(item) for item in value],
                parsed_conditions=parsed,
            )
            unsupported.update(op for sub in parsed for op in sub.unsupported_operators)
            continue

        if key.startswith("$"):
            unsupported.add(key)
            continue

        if isinstance(value, str | int | float):
            simple[key] = value
            continue

        if not _is_operator_object(value):
            # Embedded documents and arrays have no relational equivalent
            _scan_unsupported(value, unsupported)
            continue

        _scan_unsupported(value, unsupported)

        if key in DATE_FIELDS:
            window = _date_range_from_operators(key, value)
            if window is not None:
                date_range = _intersect(date_range, window)
        else:
            condition = _range_from_operators(key, value)
            if condition is not None:
                ranges[key] = condition

        members = value.get(SET_OPERATOR)
        if isinstance(members, list):
            sets[key] = SetCondition(field=key, values=_set_values(members))

    is_empty = not (simple or ranges or sets or date_range or group or unsupported)
    return ParsedQuery(
        simple_conditions=simple,
        date_range=date_range,
        range_conditions=ranges,
        set_conditions=sets,
        logical_group=group,
        unsupported_operators=frozenset(unsupported),
        is_empty=is_empty,
    )


def parse_query(text: str | None) -> ParsedQuery:
    """Translate a JSON find expression.

    Args:
        text: Raw ``find`` parameter (already URL-decoded)

    Returns:
        ParsedQuery; ``is_empty`` is set when nothing could be extracted
    """
    document = _load(text)
    if document is None:
        return EMPTY_QUERY
    try:
        return _translate(document)
    except RecursionError:
        logger.debug("Ignoring find query nested too deeply")
        return EMPTY_QUERY


def parse_simple_query(text: str | None) -> dict[str, FilterValue]:
    """Equality conditions at the root of the query."""
    return dict(parse_query(text).simple_conditions)


def parse_range_query(text: str | None, field: str) -> RangeCondition | None:
    """Numeric bounds on ``field``, including timestamp fields."""
    document = _load(text)
    if document is None or not isinstance(document.get(field), dict):
        return None
    return _range_from_operators(field, document[field])


def parse_date_range_query(text: str | None) -> DateRange | None:
    """Time window from the first timestamp field carrying range operators."""
    document = _load(text)
    if document is None:
        return None
    for field in DATE_FIELDS:
        operators = document.get(field)
        if isinstance(operators, dict):
            window = _date_range_from_operators(field, operators)
            if window is not None:
                return window
    return None


def parse_in_query(text: str | None, field: str) -> SetCondition | None:
    """``$in`` membership on ``field``."""
    document = _load(text)
    if document is None or not isinstance(document.get(field), dict):
        return None
    members = document[field].get(SET_OPERATOR)
    if not isinstance(members, list):
        return None
    return SetCondition(field=field, values=_set_values(members))


def parse_logical_query(text: str | None) -> LogicalGroup | None:
    """The root ``$and`` / ``$or`` clause, if any."""
    return parse_query(text).logical_group
