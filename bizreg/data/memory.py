"""
In-process Record Store.

Implements the full ``RecordStore`` contract inside one process for local
development and the test suite. A single re-entrant lock serialises every
operation, so ``increment_counter`` is a genuine atomic read-modify-write for
all threads of the process. It offers no cross-process guarantee; deployments
with more than one worker use the MongoDB store.
"""

import copy
import itertools
import threading
import uuid
from collections import Counter as Tally
from typing import Any, Dict, List, Optional

from bizreg.business.control_number import control_number_sort_key
from bizreg.data.exceptions import UniqueConstraintViolation
from bizreg.data.predicates import RecordFilter
from bizreg.data.store import GroupKey, RecordStore, SortSpec, strip_managed_fields
from bizreg.utils.datetime_utils import Clock

_SEQ = "_seq"


class InMemoryRecordStore(RecordStore):
    """Thread-safe dict-backed store."""

    backend_name = "memory"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or Clock()
        self._lock = threading.RLock()
        self._records: Dict[str, Dict[str, Any]] = {}
        self._by_control_number: Dict[str, str] = {}
        self._counters: Dict[str, int] = {}
        self._insert_order = itertools.count(1)

    # -- counters -----------------------------------------------------------

    def increment_counter(self, key: str) -> int:
        with self._lock:
            value = self._counters.get(key, 0) + 1
            self._counters[key] = value
            return value

    def raise_counter_floor(self, key: str, value: int) -> int:
        with self._lock:
            current = max(self._counters.get(key, 0), value)
            self._counters[key] = current
            return current

    def counter_value(self, key: str) -> int:
        """Current counter value without incrementing (diagnostics and tests)."""
        with self._lock:
            return self._counters.get(key, 0)

    # -- records ------------------------------------------------------------

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        document = strip_managed_fields(dict(fields))
        control_number = document.get("controlNumber")
        with self._lock:
            if control_number is not None and control_number in self._by_control_number:
                raise UniqueConstraintViolation(
                    f"Duplicate key on controlNumber: {control_number}",
                    key="controlNumber",
                    value=control_number,
                    operation="insert",
                    collection="businesses",
                )
            now = self.clock.now()
            record_id = uuid.uuid4().hex
            document.update(id=record_id, createdAt=now, updatedAt=now)
            document[_SEQ] = next(self._insert_order)
            self._records[record_id] = document
            if control_number is not None:
                self._by_control_number[control_number] = record_id
            return self._export(document)

    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._records.get(record_id) if isinstance(record_id, str) else None
            return self._export(document) if document is not None else None

    def find_one(self, predicate: RecordFilter) -> Optional[Dict[str, Any]]:
        results = self.find(predicate, limit=1)
        return results[0] if results else None

    def find(
        self,
        predicate: RecordFilter,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            matched = [doc for doc in self._records.values() if predicate.matches(doc)]
            if sort is None:
                matched.sort(key=lambda doc: doc[_SEQ])
            else:
                matched.sort(
                    key=lambda doc: (self._sort_value(doc, sort.field), doc[_SEQ]),
                    reverse=sort.descending,
                )
            window = matched[skip:] if skip else matched
            if limit:
                window = window[:limit]
            return [self._export(doc) for doc in window]

    def count(self, predicate: RecordFilter) -> int:
        with self._lock:
            return sum(1 for doc in self._records.values() if predicate.matches(doc))

    def group_count(self, predicate: RecordFilter, key: GroupKey) -> Dict[Any, int]:
        with self._lock:
            tally: Tally = Tally()
            for doc in self._records.values():
                if predicate.matches(doc):
                    tally[self._group_value(doc, key)] += 1
            return dict(tally)

    def update_fields(self, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        changes = strip_managed_fields(dict(fields), extra=("controlNumber",))
        with self._lock:
            document = self._records.get(record_id) if isinstance(record_id, str) else None
            if document is None:
                return None
            document.update(changes)
            document["updatedAt"] = self.clock.now()
            return self._export(document)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            document = self._records.pop(record_id, None) if isinstance(record_id, str) else None
            if document is None:
                return False
            self._by_control_number.pop(document.get("controlNumber"), None)
            return True

    def ping(self) -> bool:
        return True

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _export(document: Dict[str, Any]) -> Dict[str, Any]:
        exported = copy.deepcopy(document)
        exported.pop(_SEQ, None)
        return exported

    @staticmethod
    def _sort_value(document: Dict[str, Any], field: str):
        value = document.get(field)
        if field == "controlNumber":
            return (value is not None, control_number_sort_key(value) if value is not None else ())
        return (value is not None, value if value is not None else "")

    def _group_value(self, document: Dict[str, Any], key: GroupKey):
        if key is GroupKey.STATUS:
            return document.get("status")
        if key is GroupKey.CONTROL_YEAR:
            return (document.get("controlNumber") or "")[:4]
        if key is GroupKey.CREATED_MONTH:
            created_at = document.get("createdAt")
            return self.clock.localize(created_at).month if created_at is not None else None
        raise ValueError(f"Unsupported group key: {key}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["InMemoryRecordStore"]
