"""
Unit tests for the pagination and sort engine.
"""

import pytest

from bizreg.business.pagination import PageRequest, PaginationEngine, build_page_info, resolve_sort
from bizreg.data.predicates import OPEN_FILTER, RecordFilter, StatusClause
from bizreg.data.store import SortSpec

pytestmark = pytest.mark.unit


def seed(store, clock, count, **fields):
    for index in range(count):
        document = {
            "firstname": "F",
            "lastname": "L",
            "businessName": f"Business {index:03d}",
            "address": "A",
            "status": "complete",
            "controlNumber": f"2025-{index + 1:04d}",
        }
        document.update(fields)
        store.insert(document)
        clock.advance(minutes=1)


class TestPageInfo:

    @pytest.mark.parametrize(
        "page, limit, total, expected",
        [
            (1, 20, 45, (3, True, False)),
            (3, 20, 45, (3, False, True)),
            (2, 20, 40, (2, False, True)),
            (1, 20, 0, (0, False, False)),
            (5, 20, 45, (3, False, True)),
        ],
    )
    def test_page_arithmetic(self, page, limit, total, expected):
        info = build_page_info(page, limit, total)
        assert (info.total_pages, info.has_next_page, info.has_prev_page) == expected

    def test_wire_keys(self):
        assert build_page_info(1, 20, 45).to_api() == {
            "page": 1,
            "limit": 20,
            "total": 45,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPrevPage": False,
        }


class TestResolveSort:

    def test_allow_listed_fields(self):
        for field in ("createdAt", "businessName", "controlNumber", "lastname"):
            assert resolve_sort(field, "asc") == SortSpec(field=field, descending=False)

    def test_fallbacks(self):
        assert resolve_sort("address", None) == SortSpec("createdAt", True)
        assert resolve_sort(None, "DESC") == SortSpec("createdAt", True)
        assert resolve_sort("lastname", "ASC") == SortSpec("lastname", False)


class TestPaginationEngine:

    def test_windows_and_totals(self, memory_store, fixed_clock):
        seed(memory_store, fixed_clock, 45)
        engine = PaginationEngine(memory_store)

        first, info = engine.query(OPEN_FILTER, PageRequest(page=1, limit=20))
        last, last_info = engine.query(OPEN_FILTER, PageRequest(page=3, limit=20))

        assert len(first) == 20 and info.total == 45 and info.total_pages == 3
        assert len(last) == 5 and last_info.has_next_page is False and last_info.has_prev_page is True
        # Newest first by default.
        assert first[0]["businessName"] == "Business 044"

    def test_page_beyond_end_is_empty_with_real_total(self, memory_store, fixed_clock):
        seed(memory_store, fixed_clock, 3)

        records, info = PaginationEngine(memory_store).query(OPEN_FILTER, PageRequest(page=9, limit=2))

        assert records == []
        assert info.total == 3

    def test_total_counts_filtered_records(self, memory_store, fixed_clock):
        seed(memory_store, fixed_clock, 4)
        seed(memory_store, fixed_clock, 3, status="step1", controlNumber=None)
        predicate = RecordFilter((StatusClause("step1"),))

        records, info = PaginationEngine(memory_store).query(predicate, PageRequest(limit=2))

        assert info.total == 3
        assert all(record["status"] == "step1" for record in records)

    def test_ties_fall_back_to_insertion_order_in_sort_direction(self, memory_store, fixed_clock):
        for name in ("first", "second", "third"):
            memory_store.insert({"businessName": name, "lastname": "Same", "controlNumber": f"2025-000{len(memory_store) + 1}"})

        engine = PaginationEngine(memory_store)
        ascending, _ = engine.query(OPEN_FILTER, PageRequest(sort=SortSpec("lastname", False)))
        descending, _ = engine.query(OPEN_FILTER, PageRequest(sort=SortSpec("lastname", True)))

        assert [r["businessName"] for r in ascending] == ["first", "second", "third"]
        assert [r["businessName"] for r in descending] == ["third", "second", "first"]

    def test_control_number_sort_is_numeric(self, memory_store):
        for control_number in ("2025-10000", "2025-9999", "2025-0002"):
            memory_store.insert({"businessName": control_number, "controlNumber": control_number})

        records, _ = PaginationEngine(memory_store).query(
            OPEN_FILTER, PageRequest(sort=SortSpec("controlNumber", False))
        )

        assert [r["controlNumber"] for r in records] == ["2025-0002", "2025-9999", "2025-10000"]

    def test_normalized_request(self):
        request = PageRequest.normalized(sort_by="businessName", page=0, limit=1000, max_limit=100)

        assert request.page == 1
        assert request.limit == 100
        assert request.sort == SortSpec("businessName", True)
