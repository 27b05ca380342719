"""
Business Registration Service

Orchestrates the registration workflow and the read views on top of the
record store:

- Registration validates the payload, allocates the next sequence for the
  current year (application timezone), formats the control number and
  inserts the record. Allocation and insert form one logical unit with no
  retry: if the insert fails the allocated sequence is left as a gap, and a
  unique-key collision on ``controlNumber`` is reported as a fatal
  allocator fault rather than papered over with a fresh number.
- Lookups return ``None`` on a miss; the HTTP layer turns that into a 404.
- Query views (paged list, name/address search, by-year report, dashboard)
  are built from ``FilterBuilder`` predicates and executed by the
  pagination and aggregation engines.
- ``sync_counters`` raises every year counter to at least the highest
  sequence already present in stored control numbers, for data that
  predates the counters.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

import structlog
from prometheus_client import Counter
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from bizreg.business.aggregation import AggregationEngine
from bizreg.business.allocator import SequenceAllocator, counter_key
from bizreg.business.control_number import is_valid_control_number, parse_control_number
from bizreg.business.exceptions import DataValidationError, ImmutableFieldError
from bizreg.business.filters import FilterBuilder, QueryOptions
from bizreg.business.models import (
    SERVER_MANAGED_FIELDS,
    BusinessCreate,
    BusinessRecord,
    BusinessUpdate,
    DashboardStatistics,
    PageInfo,
    YearReport,
)
from bizreg.business.pagination import PageRequest, PaginationEngine
from bizreg.data.exceptions import StorageUnavailable, UniqueConstraintViolation
from bizreg.data.predicates import OPEN_FILTER, RecordFilter
from bizreg.data.store import RecordStore, SortSpec
from bizreg.monitoring.metrics import track_query
from bizreg.utils.datetime_utils import Clock

logger = structlog.get_logger(__name__)

control_number_conflicts = Counter(
    "bizreg_control_number_conflicts_total",
    "Inserts rejected by the unique controlNumber index",
)

NEWEST_FIRST = SortSpec(field="createdAt", descending=True)
CONTROL_NUMBER_ASCENDING = SortSpec(field="controlNumber", descending=False)

ModelT = TypeVar("ModelT", bound=BaseModel)


def pydantic_errors(error: PydanticValidationError) -> List[Dict[str, str]]:
    """Field/message pairs from a pydantic ``ValidationError``."""
    errors = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "_schema"
        errors.append({"field": location, "message": detail.get("msg", "Invalid value")})
    return errors


class BusinessService:
    """
    Registration and query operations for business records.

    Args:
        store: Record store holding records and year counters
        clock: Application clock; defines the allocation year
        default_page_limit: Page size when a request gives none
        max_page_limit: Upper bound on the page size
        recent_limit: Size of the dashboard's recent-registrations panel
        trend_window: Trailing years in the dashboard trend
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Clock] = None,
        default_page_limit: int = 20,
        max_page_limit: int = 100,
        recent_limit: int = 5,
        trend_window: int = 6,
    ) -> None:
        self.store = store
        self.clock = clock or Clock()
        self.default_page_limit = default_page_limit
        self.max_page_limit = max_page_limit
        self.allocator = SequenceAllocator(store)
        self.filters = FilterBuilder(self.clock.tzinfo)
        self.pagination = PaginationEngine(store)
        self.aggregation = AggregationEngine(
            store, clock=self.clock, recent_limit=recent_limit, trend_window=trend_window
        )

    # -- validation ---------------------------------------------------------

    @staticmethod
    def _validate(model: Type[ModelT], payload: Any) -> ModelT:
        if not isinstance(payload, Mapping):
            raise DataValidationError("Request body must be a JSON object", field="_schema")

        managed = sorted(SERVER_MANAGED_FIELDS.intersection(payload))
        if managed:
            raise ImmutableFieldError(
                f"Field(s) cannot be set by clients: {', '.join(managed)}",
                errors=[{"field": name, "message": "Field is managed by the server"} for name in managed],
            )

        try:
            return model.model_validate(dict(payload))
        except PydanticValidationError as e:
            errors = pydantic_errors(e)
            raise DataValidationError("Validation failed", errors=errors) from e

    # -- registration -------------------------------------------------------

    def create_business(self, payload: Mapping[str, Any]) -> BusinessRecord:
        """
        Register a business and assign its control number.

        Raises:
            DataValidationError: Invalid payload or server-managed fields present
            StorageUnavailable: Counter or insert could not be committed
            UniqueConstraintViolation: Allocated number already exists (allocator fault)
        """
        business = self._validate(BusinessCreate, payload)

        year = self.clock.current_year()
        control_number = str(self.allocator.allocate_control_number(year))

        document = business.to_document()
        document["controlNumber"] = control_number
        try:
            record = self.store.insert(document)
        except UniqueConstraintViolation as e:
            control_number_conflicts.inc()
            logger.critical(
                "control_number_conflict",
                control_number=control_number,
                year=year,
                error=str(e),
            )
            raise
        except StorageUnavailable as e:
            logger.error(
                "Business insert failed; control number left unused",
                control_number=control_number,
                error=str(e),
            )
            raise

        logger.info("business_created", business_id=record["id"], control_number=control_number)
        return BusinessRecord.from_document(record)

    # -- plain record access ------------------------------------------------

    def list_businesses(self) -> List[BusinessRecord]:
        return [BusinessRecord.from_document(record) for record in self.store.find(OPEN_FILTER)]

    def get_business(self, business_id: str) -> Optional[BusinessRecord]:
        record = self.store.find_by_id(business_id)
        return BusinessRecord.from_document(record) if record is not None else None

    def update_business(self, business_id: str, payload: Mapping[str, Any]) -> Optional[BusinessRecord]:
        """
        Apply a partial update. The control number is never touched.

        Returns:
            The updated record, or ``None`` when no record has ``business_id``
        """
        changes = self._validate(BusinessUpdate, payload).to_changes()
        if not changes:
            return self.get_business(business_id)

        record = self.store.update_fields(business_id, changes)
        if record is None:
            return None
        logger.info("business_updated", business_id=business_id, fields=sorted(changes))
        return BusinessRecord.from_document(record)

    def delete_business(self, business_id: str) -> bool:
        deleted = self.store.delete(business_id)
        if deleted:
            logger.info("business_deleted", business_id=business_id)
        return deleted

    # -- query views --------------------------------------------------------

    def get_by_control_number(self, control_number: str) -> Optional[BusinessRecord]:
        """
        Raises:
            MalformedControlNumber: ``control_number`` is not ``YYYY-NNNN``
        """
        predicate = self.filters.for_control_number(control_number)
        with track_query("control_number"):
            record = self.store.find_one(predicate)
        return BusinessRecord.from_document(record) if record is not None else None

    def search_by_name(self, name: str, exact_match: bool = False) -> List[BusinessRecord]:
        return self._search("search_name", self.filters.for_name(name, exact_match))

    def search_by_address(self, address: str, exact_match: bool = False) -> List[BusinessRecord]:
        return self._search("search_address", self.filters.for_address(address, exact_match))

    def _search(self, kind: str, predicate: RecordFilter) -> List[BusinessRecord]:
        with track_query(kind):
            records = self.store.find(predicate, sort=NEWEST_FIRST)
        return [BusinessRecord.from_document(record) for record in records]

    def list_with_filters(
        self,
        options: Optional[QueryOptions] = None,
        page_request: Optional[PageRequest] = None,
    ) -> Tuple[List[BusinessRecord], PageInfo]:
        predicate = self.filters.build(options or QueryOptions())
        if page_request is None:
            page_request = PageRequest.normalized(
                default_limit=self.default_page_limit, max_limit=self.max_page_limit
            )
        records, page_info = self.pagination.query(predicate, page_request)
        return [BusinessRecord.from_document(record) for record in records], page_info

    def businesses_by_year(self, year: int, status: Optional[str] = None) -> YearReport:
        """
        Records whose control number carries ``year`` (optionally one status),
        in numeric control-number order, with their statistics.
        """
        predicate = self.filters.for_year(year, status)
        with track_query("by_year"):
            records = self.store.find(predicate, sort=CONTROL_NUMBER_ASCENDING)
        return YearReport(
            year=year,
            records=[BusinessRecord.from_document(record) for record in records],
            statistics=self.aggregation.statistics(predicate),
        )

    def dashboard(self) -> DashboardStatistics:
        return self.aggregation.dashboard()

    # -- maintenance --------------------------------------------------------

    def sync_counters(self) -> Dict[int, int]:
        """
        Raise each year counter to the highest stored sequence of that year.

        Counters are only ever raised (atomic max), so running this against a
        live system cannot cause a number to be issued twice.

        Returns:
            ``{year: counter value after the update}`` for every year seen
        """
        highest: Dict[int, int] = {}
        for record in self.store.find(OPEN_FILTER):
            value = record.get("controlNumber")
            if not is_valid_control_number(value):
                continue
            parsed = parse_control_number(value)
            highest[parsed.year] = max(highest.get(parsed.year, 0), parsed.sequence)

        floors = {
            year: self.store.raise_counter_floor(counter_key(year), sequence)
            for year, sequence in sorted(highest.items())
        }
        logger.info("counters_synchronised", floors=floors)
        return floors


__all__ = ["BusinessService", "pydantic_errors"]
