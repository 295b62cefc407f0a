"""MongoDB-style find query translation.

Stored-data reads accept the ``find`` filters that Nightscout clients
send. ``parse_query`` turns the JSON expression into a ParsedQuery, and
``build_filters`` (in ``glucosim.core.query.sql``) turns that into
SQLAlchemy clauses.
"""

from glucosim.core.query.models import (
    DateRange,
    LogicalGroup,
    LogicalOperator,
    ParsedQuery,
    RangeCondition,
    SetCondition,
)
from glucosim.core.query.translator import (
    parse_date_range_query,
    parse_in_query,
    parse_logical_query,
    parse_query,
    parse_range_query,
    parse_simple_query,
)

__all__ = [
    "DateRange",
    "LogicalGroup",
    "LogicalOperator",
    "ParsedQuery",
    "RangeCondition",
    "SetCondition",
    "parse_date_range_query",
    "parse_in_query",
    "parse_logical_query",
    "parse_query",
    "parse_range_query",
    "parse_simple_query",
]
