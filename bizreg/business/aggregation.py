"""
Aggregation Engine

Read-only statistical summaries over the record set: totals, status
histogram, per-year counts (from the control-number prefix), a zero-filled
trailing-year trend, the monthly histogram of one year (from ``createdAt``),
and the most recent registrations. Grouping is delegated to the record
store's ``group_count`` so MongoDB computes it server-side.

The "year" of a record is its control-number prefix everywhere except the
monthly histogram, which buckets by the month of ``createdAt`` in the
application timezone. The two can diverge for records created around a year
boundary; both are reported as stored.
"""

from typing import Any, Dict, List, Optional

from bizreg.business.models import (
    STATUS_VALUES,
    BusinessSummary,
    DashboardStatistics,
    StatusCount,
    YearCount,
    YearStatistics,
)
from bizreg.data.predicates import OPEN_FILTER, ControlYearClause, RecordFilter
from bizreg.data.store import GroupKey, RecordStore, SortSpec
from bizreg.monitoring.metrics import track_query
from bizreg.utils.datetime_utils import Clock, year_window

MONTHS = range(1, 13)


def _status_rank(status: Any) -> tuple:
    if status in STATUS_VALUES:
        return (0, STATUS_VALUES.index(status), "")
    return (1, len(STATUS_VALUES), str(status))


def order_status_counts(counts: Dict[Any, int]) -> List[StatusCount]:
    """Descending by count; equal counts in workflow order."""
    rows = [(status, count) for status, count in counts.items() if status is not None]
    rows.sort(key=lambda row: (-row[1],) + _status_rank(row[0]))
    return [StatusCount(status=str(status), count=count) for status, count in rows]


def order_year_counts(counts: Dict[Any, int]) -> List[YearCount]:
    """Descending by year; prefixes that are not four digits are skipped."""
    years = [
        (int(prefix), count)
        for prefix, count in counts.items()
        if isinstance(prefix, str) and len(prefix) == 4 and prefix.isdigit()
    ]
    years.sort(reverse=True)
    return [YearCount(year=year, count=count) for year, count in years]


def fill_year_window(distribution: List[YearCount], end_year: int, size: int) -> List[YearCount]:
    """Trailing ``size`` years ending at ``end_year``, ascending, missing years as 0."""
    counts = {entry.year: entry.count for entry in distribution}
    return [YearCount(year=year, count=counts.get(year, 0)) for year in year_window(end_year, size)]


class AggregationEngine:
    """
    Computes dashboard and by-year statistics.

    Args:
        store: Record store to aggregate over
        clock: Application clock; defines the current year
        recent_limit: Records in the recent-registrations panel
        trend_window: Trailing years in the zero-filled trend
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Clock] = None,
        recent_limit: int = 5,
        trend_window: int = 6,
    ) -> None:
        self.store = store
        self.clock = clock or Clock()
        self.recent_limit = recent_limit
        self.trend_window = trend_window

    def total(self, predicate: RecordFilter = OPEN_FILTER) -> int:
        return self.store.count(predicate)

    def current_year_total(self) -> int:
        return self.store.count(RecordFilter((ControlYearClause(self.clock.current_year()),)))

    def status_distribution(self, predicate: RecordFilter = OPEN_FILTER) -> List[StatusCount]:
        return order_status_counts(self.store.group_count(predicate, GroupKey.STATUS))

    def yearly_distribution(self, predicate: RecordFilter = OPEN_FILTER) -> List[YearCount]:
        return order_year_counts(self.store.group_count(predicate, GroupKey.CONTROL_YEAR))

    def yearly_trend(self, distribution: Optional[List[YearCount]] = None) -> List[YearCount]:
        if distribution is None:
            distribution = self.yearly_distribution()
        return fill_year_window(distribution, self.clock.current_year(), self.trend_window)

    def monthly_distribution(self, predicate: RecordFilter) -> Dict[int, int]:
        """Records per month (1-12) of ``createdAt``; every month present, zero when empty."""
        counts = self.store.group_count(predicate, GroupKey.CREATED_MONTH)
        return {month: int(counts.get(month, 0)) for month in MONTHS}

    def recent(self, limit: Optional[int] = None) -> List[BusinessSummary]:
        records = self.store.find(
            OPEN_FILTER,
            sort=SortSpec(field="createdAt", descending=True),
            limit=limit or self.recent_limit,
        )
        return [BusinessSummary.from_document(record) for record in records]

    def statistics(self, predicate: RecordFilter) -> YearStatistics:
        """
        ``{total, statusCounts, monthlyData}`` for the records matching
        ``predicate``. Every status and every month is present so the
        counts always sum to ``total``.
        """
        with track_query("year_statistics"):
            total = self.store.count(predicate)
            by_status = self.store.group_count(predicate, GroupKey.STATUS)
            monthly = self.monthly_distribution(predicate)

        status_counts = {status: 0 for status in STATUS_VALUES}
        for status, count in by_status.items():
            if status is not None:
                status_counts[str(status)] = int(count)
        return YearStatistics(total=total, status_counts=status_counts, monthly_data=monthly)

    def dashboard(self) -> DashboardStatistics:
        with track_query("dashboard"):
            distribution = self.yearly_distribution()
            return DashboardStatistics(
                total_businesses=self.total(),
                current_year_businesses=self.current_year_total(),
                status_distribution=self.status_distribution(),
                yearly_distribution=distribution,
                yearly_trend=self.yearly_trend(distribution),
                recent_businesses=self.recent(),
            )


__all__ = [
    "order_status_counts",
    "order_year_counts",
    "fill_year_window",
    "AggregationEngine",
]
