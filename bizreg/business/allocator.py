"""
Sequence Allocator

Hands out per-year sequence numbers for control numbers. Each allocation is
a single atomic increment-and-read on the year's counter in the record
store; nothing is derived from existing records and no counter value is held
in process memory between calls. Concurrent callers, in this process or any
other sharing the store, always receive distinct values.

A failed allocation never yields a number. A number whose record then fails
to insert is simply consumed: gaps are acceptable, duplicates are not.
"""

import structlog
from prometheus_client import Counter

from bizreg.business.control_number import MAX_YEAR, MIN_YEAR, ControlNumber, format_control_number
from bizreg.business.exceptions import DataValidationError
from bizreg.data.exceptions import DatabaseException, StorageUnavailable
from bizreg.data.store import RecordStore

logger = structlog.get_logger(__name__)

control_numbers_allocated = Counter(
    "bizreg_control_numbers_allocated_total",
    "Control-number sequences allocated",
    ["year"],
)
allocation_failures = Counter(
    "bizreg_allocation_failures_total",
    "Failed sequence allocations",
    ["reason"],
)

COUNTER_KEY_PREFIX = "controlNumber"


def counter_key(year: int) -> str:
    """Store key of the counter for ``year``, e.g. ``controlNumber:2025``."""
    return f"{COUNTER_KEY_PREFIX}:{year:04d}"


class SequenceAllocator:
    """
    Allocates strictly unique sequence numbers per year.

    Args:
        store: Record store providing ``increment_counter``
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def allocate(self, year: int) -> int:
        """
        Return the next sequence for ``year`` (1 for the first of the year).

        Raises:
            DataValidationError: ``year`` outside 1..9999
            StorageUnavailable: The counter update could not be committed
        """
        if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
            raise DataValidationError(f"Year out of range: {year!r}", field="year")

        try:
            sequence = self.store.increment_counter(counter_key(year))
        except StorageUnavailable as e:
            allocation_failures.labels(reason="storage_unavailable").inc()
            logger.error("control_number_allocation_failed", year=year, error=str(e))
            raise
        except DatabaseException as e:
            allocation_failures.labels(reason=type(e).__name__).inc()
            logger.error("control_number_allocation_failed", year=year, error=str(e))
            raise StorageUnavailable(
                f"Could not allocate a sequence for {year}: {e}",
                operation="counter",
                original_error=e,
            ) from e

        if sequence < 1:
            allocation_failures.labels(reason="invalid_counter").inc()
            raise StorageUnavailable(f"Counter for {year} returned invalid value {sequence}", operation="counter")

        control_numbers_allocated.labels(year=str(year)).inc()
        return sequence

    def allocate_control_number(self, year: int) -> ControlNumber:
        sequence = self.allocate(year)
        control_number = ControlNumber(year, sequence)
        logger.info(
            "control_number_allocated",
            year=year,
            sequence=sequence,
            control_number=format_control_number(year, sequence),
        )
        return control_number


__all__ = [
    "COUNTER_KEY_PREFIX",
    "counter_key",
    "SequenceAllocator",
]
