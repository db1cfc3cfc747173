"""
Query package for the resource store.

Re-exports the condition builder and the list request/response value objects
so repositories can import from `resource_store.query` directly.
"""

from resource_store.query.conditions import (
    SelectQuery,
    and_in,
    and_like,
    and_range,
    and_where,
    filter_by_exact_match,
    is_filled,
    or_in,
    or_like,
    or_where,
)
from resource_store.query.criteria import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PaginatedResult,
    SearchCriteria,
)

__all__ = [
    # Condition builder
    "SelectQuery",
    "and_in",
    "and_like",
    "and_range",
    "and_where",
    "filter_by_exact_match",
    "is_filled",
    "or_in",
    "or_like",
    "or_where",
    # Value objects
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "PaginatedResult",
    "SearchCriteria",
]
