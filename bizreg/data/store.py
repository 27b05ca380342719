"""
Record Store contract.

The registration core depends on storage only through this interface:

    (a) atomic increment-and-return on a keyed counter
    (b) insert with a unique constraint on ``controlNumber``
    (c) predicate-based find with sort/skip/limit
    (d) predicate-based count
    (e) grouped counts by a derived key

plus the lookup/update/delete and maintenance calls the service needs.
Records cross this boundary as plain dicts keyed by their wire names
(``id``, ``firstname``, ``businessName``, ``controlNumber``, ``createdAt``...).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from bizreg.data.predicates import RecordFilter

# Fields the store owns; callers never supply them on insert/update.
STORE_MANAGED_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


class GroupKey(Enum):
    """Derived keys supported by ``RecordStore.group_count``."""
    STATUS = "status"
    CONTROL_YEAR = "controlYear"      # first four characters of controlNumber
    CREATED_MONTH = "createdMonth"    # 1-12, month of createdAt in the store timezone


@dataclass(frozen=True)
class SortSpec:
    """Primary sort key; ties always fall back to insertion order in the same direction."""
    field: str = "createdAt"
    descending: bool = True

    @property
    def direction(self) -> int:
        return -1 if self.descending else 1


class RecordStore(ABC):
    """Durable storage of business records and per-year counters."""

    backend_name = "abstract"

    # -- counters -----------------------------------------------------------

    @abstractmethod
    def increment_counter(self, key: str) -> int:
        """
        Atomically increment counter ``key`` (created at 0 when absent) and
        return the post-increment value. All-or-nothing: on failure the
        counter is unchanged or the error is raised after a committed
        increment, never partially updated.
        """

    @abstractmethod
    def raise_counter_floor(self, key: str, value: int) -> int:
        """Atomically set counter ``key`` to ``max(current, value)``; return the result."""

    # -- records ------------------------------------------------------------

    @abstractmethod
    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a new record, stamping ``id``, ``createdAt`` and ``updatedAt``.

        Raises:
            UniqueConstraintViolation: ``controlNumber`` already exists
            StorageUnavailable: The write could not be committed
        """

    @abstractmethod
    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the record or ``None``; malformed identifiers are a miss."""

    @abstractmethod
    def find_one(self, predicate: RecordFilter) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def find(
        self,
        predicate: RecordFilter,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Matching records in ``sort`` order (insertion order when ``sort`` is None)."""

    @abstractmethod
    def count(self, predicate: RecordFilter) -> int:
        ...

    @abstractmethod
    def group_count(self, predicate: RecordFilter, key: GroupKey) -> Dict[Any, int]:
        """Count matching records per derived ``key`` value."""

    @abstractmethod
    def update_fields(self, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Set ``fields`` and refresh ``updatedAt``; return the updated record or ``None``."""

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        ...

    # -- maintenance --------------------------------------------------------

    def ensure_indexes(self) -> None:
        """Create the unique ``controlNumber`` index and query indexes."""

    @abstractmethod
    def ping(self) -> bool:
        ...

    def close(self) -> None:
        """Release connections held by the store."""


def strip_managed_fields(fields: Dict[str, Any], extra: Sequence[str] = ()) -> Dict[str, Any]:
    blocked = STORE_MANAGED_FIELDS.union(extra)
    return {key: value for key, value in fields.items() if key not in blocked}


__all__ = [
    "STORE_MANAGED_FIELDS",
    "GroupKey",
    "SortSpec",
    "RecordStore",
    "strip_managed_fields",
]
