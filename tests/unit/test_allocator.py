"""
Unit tests for the per-year sequence allocator.

Covers first-of-year allocation, year independence, concurrent uniqueness
against the in-process store, and failure propagation when the counter
cannot be updated.
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from bizreg.business.allocator import SequenceAllocator, counter_key
from bizreg.business.control_number import ControlNumber
from bizreg.business.exceptions import DataValidationError
from bizreg.data.exceptions import DatabaseException, StorageUnavailable
from bizreg.data.memory import InMemoryRecordStore
from bizreg.data.store import RecordStore

pytestmark = pytest.mark.unit


class TestCounterKeys:

    def test_counter_key_is_year_scoped(self):
        assert counter_key(2025) == "controlNumber:2025"
        assert counter_key(42) == "controlNumber:0042"


class TestSequenceAllocator:

    def test_first_allocation_of_a_year_is_one(self, memory_store):
        allocator = SequenceAllocator(memory_store)

        assert allocator.allocate(2025) == 1
        assert allocator.allocate(2025) == 2
        assert memory_store.counter_value(counter_key(2025)) == 2

    def test_years_are_independent(self, memory_store):
        allocator = SequenceAllocator(memory_store)
        allocator.allocate(2024)
        allocator.allocate(2024)

        assert allocator.allocate(2025) == 1
        assert allocator.allocate(2024) == 3

    def test_allocate_control_number(self, memory_store):
        allocator = SequenceAllocator(memory_store)

        control_number = allocator.allocate_control_number(2025)

        assert control_number == ControlNumber(2025, 1)
        assert str(control_number) == "2025-0001"

    @pytest.mark.parametrize("year", [0, 10000, -3, "2025"])
    def test_rejects_year_out_of_range(self, memory_store, year):
        with pytest.raises(DataValidationError):
            SequenceAllocator(memory_store).allocate(year)

    def test_concurrent_allocations_are_distinct_and_gapless(self, memory_store):
        allocator = SequenceAllocator(memory_store)

        with ThreadPoolExecutor(max_workers=16) as executor:
            results = list(executor.map(lambda _: allocator.allocate(2025), range(200)))

        assert len(set(results)) == 200, "Every concurrent caller must receive a distinct sequence"
        assert sorted(results) == list(range(1, 201))

    def test_counter_failure_propagates_as_storage_unavailable(self):
        store = Mock(spec=RecordStore)
        store.increment_counter.side_effect = StorageUnavailable("connection refused", operation="counter")

        with pytest.raises(StorageUnavailable):
            SequenceAllocator(store).allocate(2025)

    def test_other_store_errors_are_wrapped(self):
        store = Mock(spec=RecordStore)
        store.increment_counter.side_effect = DatabaseException("boom", operation="counter")

        with pytest.raises(StorageUnavailable) as exc_info:
            SequenceAllocator(store).allocate(2025)
        assert exc_info.value.retryable is True

    def test_non_positive_counter_value_is_rejected(self):
        store = Mock(spec=RecordStore)
        store.increment_counter.return_value = 0

        with pytest.raises(StorageUnavailable):
            SequenceAllocator(store).allocate(2025)

    def test_allocation_reads_nothing_but_the_counter(self):
        store = Mock(spec=InMemoryRecordStore)
        store.increment_counter.return_value = 7

        assert SequenceAllocator(store).allocate(2025) == 7
        store.increment_counter.assert_called_once_with("controlNumber:2025")
        store.find.assert_not_called()
        store.count.assert_not_called()
