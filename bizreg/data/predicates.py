"""
Canonical record predicates.

A ``RecordFilter`` is an AND of clauses; each clause constrains one dimension
of a business record. Clauses know how to evaluate themselves against a
plain record dict (in-process store) and how to render themselves as a
MongoDB query fragment (PyMongo store), so the same filter object can be
handed to the pagination engine and the aggregation engine without
re-parsing request parameters.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

SEARCH_FIELDS = ("firstname", "middlename", "lastname", "businessName", "address", "controlNumber")
NAME_FIELDS = ("firstname", "middlename", "lastname", "businessName")
ADDRESS_FIELDS = ("address",)


class Clause(ABC):
    """One constraint of a ``RecordFilter``."""

    kind = "clause"

    @abstractmethod
    def matches(self, record: Mapping[str, Any]) -> bool:
        """Evaluate the clause against a record dict."""

    @abstractmethod
    def to_mongo(self) -> Dict[str, Any]:
        """Render as a MongoDB query document."""


@dataclass(frozen=True)
class TextClause(Clause):
    """
    Text match over several fields, OR-combined.

    Substring mode is case-insensitive and literal (no pattern syntax);
    exact mode is case-sensitive whole-field equality. Both render as
    regular expressions, which MongoDB evaluates without the collation used
    for control-number sorting, so ``2025-7`` never equals ``2025-0007``.
    """

    fields: Tuple[str, ...]
    value: str
    exact: bool = False

    kind = "text"

    def matches(self, record: Mapping[str, Any]) -> bool:
        needle = self.value if self.exact else self.value.casefold()
        for field in self.fields:
            candidate = record.get(field)
            if not isinstance(candidate, str):
                continue
            if self.exact:
                if candidate == needle:
                    return True
            elif needle in candidate.casefold():
                return True
        return False

    def to_mongo(self) -> Dict[str, Any]:
        if self.exact:
            pattern = f"^{re.escape(self.value)}\\z"
            conditions = [{field: {"$regex": pattern}} for field in self.fields]
        else:
            pattern = re.escape(self.value)
            conditions = [{field: {"$regex": pattern, "$options": "i"}} for field in self.fields]
        if len(conditions) == 1:
            return conditions[0]
        return {"$or": conditions}


@dataclass(frozen=True)
class ControlYearClause(Clause):
    """Records whose control number starts with ``"YYYY-"``."""

    year: int

    kind = "year"

    @property
    def prefix(self) -> str:
        return f"{self.year:04d}-"

    def matches(self, record: Mapping[str, Any]) -> bool:
        control_number = record.get("controlNumber")
        return isinstance(control_number, str) and control_number.startswith(self.prefix)

    def to_mongo(self) -> Dict[str, Any]:
        return {"controlNumber": {"$regex": f"^{re.escape(self.prefix)}"}}


@dataclass(frozen=True)
class StatusClause(Clause):
    status: str

    kind = "status"

    def matches(self, record: Mapping[str, Any]) -> bool:
        return record.get("status") == self.status

    def to_mongo(self) -> Dict[str, Any]:
        return {"status": self.status}


@dataclass(frozen=True)
class CreatedRangeClause(Clause):
    """Inclusive bounds on ``createdAt``; either side may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    kind = "createdAt"

    def matches(self, record: Mapping[str, Any]) -> bool:
        created_at = record.get("createdAt")
        if not isinstance(created_at, datetime):
            return False
        if self.start is not None and created_at < self.start:
            return False
        if self.end is not None and created_at > self.end:
            return False
        return True

    def to_mongo(self) -> Dict[str, Any]:
        bounds: Dict[str, Any] = {}
        if self.start is not None:
            bounds["$gte"] = self.start
        if self.end is not None:
            bounds["$lte"] = self.end
        return {"createdAt": bounds}


@dataclass(frozen=True)
class RecordFilter:
    """
    AND-combination of clauses. An empty filter matches every record.

    Filters are immutable; ``with_clause`` returns a new filter, so a filter
    built once can be shared between a paged query and an aggregation.
    """

    clauses: Tuple[Clause, ...] = ()

    @property
    def is_open(self) -> bool:
        return not self.clauses

    def with_clause(self, clause: Clause) -> "RecordFilter":
        return RecordFilter(self.clauses + (clause,))

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(clause.matches(record) for clause in self.clauses)

    def to_mongo(self) -> Dict[str, Any]:
        if not self.clauses:
            return {}
        if len(self.clauses) == 1:
            return self.clauses[0].to_mongo()
        return {"$and": [clause.to_mongo() for clause in self.clauses]}

    def describe(self) -> Tuple[str, ...]:
        """Clause kinds, for logging without leaking search text."""
        return tuple(clause.kind for clause in self.clauses)


OPEN_FILTER = RecordFilter()


__all__ = [
    "SEARCH_FIELDS",
    "NAME_FIELDS",
    "ADDRESS_FIELDS",
    "Clause",
    "TextClause",
    "ControlYearClause",
    "StatusClause",
    "CreatedRangeClause",
    "RecordFilter",
    "OPEN_FILTER",
]
