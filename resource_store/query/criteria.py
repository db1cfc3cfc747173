"""
Immutable request/response value objects for list queries.

`SearchCriteria` carries filter, pagination and sort for one list request;
`PaginatedResult` echoes them back with the page of rows and the
pagination-independent total. A new instance is built per request.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel, Field, field_validator

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 200


def _normalize_direction(value: Any) -> str:
    return "desc" if str(value or "").lower() == "desc" else "asc"


class SearchCriteria(BaseModel):
    """
    Filter + pagination + sort for one list request.
    """

    filter: Dict[str, Any] = Field(default_factory=dict, description="column -> value")
    page: int = Field(1, description="1-based page number.")
    page_size: int = Field(DEFAULT_PAGE_SIZE, description="Rows per page.")
    sort_by: str = Field("id", description="Requested sort key (whitelisted on use).")
    sort_dir: str = Field("asc", description="asc or desc.")

    model_config = {"frozen": True}

    @field_validator("filter", mode="before")
    @classmethod
    def _copy_filter(cls, value: Any) -> Dict[str, Any]:
        # Detached from the caller's mapping.
        return dict(value or {})

    @field_validator("page", mode="before")
    @classmethod
    def _coerce_page(cls, value: Any) -> int:
        page = int(value) if value is not None else 1
        return max(page, 1)

    @field_validator("page_size", mode="before")
    @classmethod
    def _coerce_page_size(cls, value: Any) -> int:
        size = int(value) if value is not None else DEFAULT_PAGE_SIZE
        if size <= 0:
            return DEFAULT_PAGE_SIZE
        return min(size, MAX_PAGE_SIZE)

    @field_validator("sort_dir", mode="before")
    @classmethod
    def _coerce_sort_dir(cls, value: Any) -> str:
        return _normalize_direction(value)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def order_by(self, allowed_sort: Mapping[str, str]) -> Tuple[str, str]:
        """
        Resolve (column, DIRECTION) through a whitelist of sort keys.

        Unknown keys fall back to the first allowed column.
        """
        if not allowed_sort:
            raise ValueError("allowed_sort must name at least one column")
        column = allowed_sort.get(self.sort_by) or next(iter(allowed_sort.values()))
        return column, self.sort_dir.upper()


class PaginatedResult(BaseModel):
    """
    One page of projected rows plus pagination metadata.
    """

    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = Field(0, ge=0, description="Rows matching the filter, across all pages.")
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    filter: Dict[str, Any] = Field(default_factory=dict)
    sort: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("page_size", mode="before")
    @classmethod
    def _coerce_page_size(cls, value: Any) -> int:
        size = int(value) if value is not None else DEFAULT_PAGE_SIZE
        return size if size > 0 else DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 1
        return math.ceil(self.total / self.page_size)

    def meta(self) -> Dict[str, Any]:
        return {
            "filter": self.filter,
            "sort": self.sort,
            "pagination": {
                "total": self.total,
                "display": len(self.data),
                "page": self.page,
                "page_size": self.page_size,
            },
        }


__all__ = ["DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE", "PaginatedResult", "SearchCriteria"]
