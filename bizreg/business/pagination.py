"""
Pagination & Sort Engine

Applies a ``RecordFilter`` with an allow-listed sort, an offset window and
page metadata. ``total`` is the count of all matching records, independent
of the window, and ties in the sort order fall back to insertion order.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from bizreg.business.models import PageInfo
from bizreg.data.predicates import RecordFilter
from bizreg.data.store import RecordStore, SortSpec
from bizreg.monitoring.metrics import track_query

SORTABLE_FIELDS = ("createdAt", "businessName", "controlNumber", "lastname")
DEFAULT_SORT_FIELD = "createdAt"


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> SortSpec:
    """Unknown fields fall back to ``createdAt``; any order but ``asc`` is descending."""
    field = sort_by if sort_by in SORTABLE_FIELDS else DEFAULT_SORT_FIELD
    descending = (sort_order or "desc").strip().lower() != "asc"
    return SortSpec(field=field, descending=descending)


@dataclass(frozen=True)
class PageRequest:
    sort: SortSpec = SortSpec()
    page: int = 1
    limit: int = 20

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def normalized(
        cls,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        default_limit: int = 20,
        max_limit: int = 100,
    ) -> "PageRequest":
        """
        Build a request from already-typed values.

        ``page`` below 1 clamps to 1; ``limit`` defaults to ``default_limit``
        and clamps to ``max_limit``. A ``limit`` below 1 is rejected by the
        request schema before this point.
        """
        page = max(1, page or 1)
        limit = default_limit if limit is None else limit
        limit = min(max(1, limit), max_limit)
        return cls(sort=resolve_sort(sort_by, sort_order), page=page, limit=limit)


def build_page_info(page: int, limit: int, total: int) -> PageInfo:
    total_pages = math.ceil(total / limit) if total else 0
    return PageInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


class PaginationEngine:
    """Runs paged queries against a ``RecordStore``."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def query(
        self,
        predicate: RecordFilter,
        page_request: Optional[PageRequest] = None,
    ) -> Tuple[List[Dict[str, Any]], PageInfo]:
        page_request = page_request or PageRequest()
        with track_query("paged_list"):
            total = self.store.count(predicate)
            # Pages past the end are answered without a store read.
            if page_request.skip >= total:
                records = []
            else:
                records = self.store.find(
                    predicate,
                    sort=page_request.sort,
                    skip=page_request.skip,
                    limit=page_request.limit,
                )

        return records, build_page_info(page_request.page, page_request.limit, total)


__all__ = [
    "SORTABLE_FIELDS",
    "PageRequest",
    "resolve_sort",
    "build_page_info",
    "PaginationEngine",
]
