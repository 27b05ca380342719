"""
Filter Builder

Translates a fixed, explicitly enumerated set of query options into the
canonical ``RecordFilter`` predicate understood by every record store.

Semantics:
- Absent options impose no constraint.
- ``search`` is a case-insensitive, literal substring match OR-combined over
  first/middle/last name, business name, address and control number;
  ``exact_match`` switches it to case-sensitive whole-field equality.
- ``year`` matches the control-number prefix ``"YYYY-"``, never ``createdAt``.
- ``start_date``/``end_date`` bound ``createdAt`` inclusively from
  00:00:00.000 of the start day to 23:59:59.999 of the end day, in the
  application timezone.
- Dimensions are AND-combined.
"""

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Optional

from bizreg.business.control_number import parse_control_number
from bizreg.business.exceptions import DataValidationError
from bizreg.business.models import STATUS_VALUES
from bizreg.data.predicates import (
    ADDRESS_FIELDS,
    NAME_FIELDS,
    OPEN_FILTER,
    SEARCH_FIELDS,
    ControlYearClause,
    CreatedRangeClause,
    RecordFilter,
    StatusClause,
    TextClause,
)
from bizreg.utils.datetime_utils import day_bounds, resolve_timezone


@dataclass(frozen=True)
class QueryOptions:
    """Recognised filter options; anything else in a request is ignored."""

    search: Optional[str] = None
    year: Optional[int] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    exact_match: bool = False

    def __post_init__(self):
        if self.year is not None and not 1 <= self.year <= 9999:
            raise DataValidationError("Year must be a 4-digit year", field="year")
        if self.status is not None and self.status not in STATUS_VALUES:
            raise DataValidationError(
                f"Status must be one of: {', '.join(STATUS_VALUES)}", field="status"
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise DataValidationError("startDate must not be after endDate", field="startDate")


class FilterBuilder:
    """
    Builds predicates for the list, search and by-year views.

    Args:
        zone: Timezone used for date bounds (defaults to UTC)
    """

    def __init__(self, zone: Optional[tzinfo] = None) -> None:
        self.zone = zone or resolve_timezone("UTC")

    def build(self, options: QueryOptions) -> RecordFilter:
        predicate = OPEN_FILTER

        search = (options.search or "").strip()
        if search:
            predicate = predicate.with_clause(
                TextClause(SEARCH_FIELDS, search, exact=options.exact_match)
            )
        if options.year is not None:
            predicate = predicate.with_clause(ControlYearClause(options.year))
        if options.status:
            predicate = predicate.with_clause(StatusClause(options.status))
        if options.start_date is not None or options.end_date is not None:
            start, end = day_bounds(options.start_date, options.end_date, self.zone)
            predicate = predicate.with_clause(CreatedRangeClause(start, end))

        return predicate

    def for_name(self, name: str, exact_match: bool = False) -> RecordFilter:
        """Name search over first/middle/last name and business name."""
        return self._text_search("name", name, NAME_FIELDS, exact_match)

    def for_address(self, address: str, exact_match: bool = False) -> RecordFilter:
        return self._text_search("address", address, ADDRESS_FIELDS, exact_match)

    def for_year(self, year: int, status: Optional[str] = None) -> RecordFilter:
        return self.build(QueryOptions(year=year, status=status or None))

    def for_control_number(self, control_number: str) -> RecordFilter:
        parse_control_number(control_number)
        return RecordFilter((TextClause(("controlNumber",), control_number, exact=True),))

    @staticmethod
    def _text_search(field: str, value: Optional[str], fields, exact_match: bool) -> RecordFilter:
        if value is None or not value.strip():
            raise DataValidationError(f"{field.capitalize()} parameter is required", field=field)
        # Exact matching compares against the value as sent.
        term = value if exact_match else value.strip()
        return RecordFilter((TextClause(tuple(fields), term, exact=exact_match),))


__all__ = ["QueryOptions", "FilterBuilder"]
