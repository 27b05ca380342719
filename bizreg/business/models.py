"""
Business Data Models

Pydantic models for business registration records and the shapes the query
and aggregation engines return. Python attributes are snake_case; the wire
format (JSON bodies and store documents) is camelCase via an alias generator,
so ``business_name`` travels as ``businessName``.

Model Categories:
    Input Models:
        BusinessCreate: Registration payload (trimmed, required fields, status enum)
        BusinessUpdate: Partial update payload; control number is not updatable
    Record Models:
        BusinessRecord: Persisted record with control number and timestamps
        BusinessSummary: Projection used by the "recent businesses" panel
    Query/Aggregation Models:
        PageInfo, StatusCount, YearCount, YearStatistics, YearReport,
        DashboardStatistics
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class BusinessStatus(str, Enum):
    """Registration workflow status."""
    STEP1 = "step1"
    STEP2 = "step2"
    STEP3 = "step3"
    COMPLETE = "complete"


STATUS_VALUES = tuple(status.value for status in BusinessStatus)

# Fields the service assigns; clients may never set them.
SERVER_MANAGED_FIELDS = frozenset({
    "id", "_id", "controlNumber", "control_number",
    "createdAt", "created_at", "updatedAt", "updated_at",
})


class BaseBusinessModel(BaseModel):
    """Shared configuration for business models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        extra="ignore",
    )

    def to_api(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class BusinessFields(BaseBusinessModel):
    firstname: str = Field(min_length=1, max_length=200)
    middlename: Optional[str] = Field(default=None, max_length=200)
    lastname: str = Field(min_length=1, max_length=200)
    business_name: str = Field(min_length=1, max_length=300)
    address: str = Field(min_length=1, max_length=500)

    @field_validator("middlename")
    @classmethod
    def blank_middlename_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class BusinessCreate(BusinessFields):
    """Payload for registering a business."""

    status: BusinessStatus = Field(default=BusinessStatus.COMPLETE, validate_default=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class BusinessUpdate(BaseBusinessModel):
    """
    Partial update. Only supplied fields are validated and written; explicit
    nulls are rejected for required fields.
    """

    firstname: Optional[str] = Field(default=None, min_length=1, max_length=200)
    middlename: Optional[str] = Field(default=None, max_length=200)
    lastname: Optional[str] = Field(default=None, min_length=1, max_length=200)
    business_name: Optional[str] = Field(default=None, min_length=1, max_length=300)
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    status: Optional[BusinessStatus] = None

    @field_validator("firstname", "lastname", "business_name", "address", "status", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator("middlename")
    @classmethod
    def blank_middlename_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def to_changes(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class BusinessRecord(BusinessFields):
    """A persisted business registration."""

    id: str
    status: BusinessStatus = Field(default=BusinessStatus.COMPLETE, validate_default=True)
    control_number: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BusinessRecord":
        return cls.model_validate(document)


class BusinessSummary(BaseBusinessModel):
    id: str
    firstname: str
    lastname: str
    business_name: str
    control_number: str
    created_at: datetime
    status: BusinessStatus

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BusinessSummary":
        return cls.model_validate(document)


class PageInfo(BaseBusinessModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class StatusCount(BaseBusinessModel):
    status: str
    count: int


class YearCount(BaseBusinessModel):
    year: int
    count: int


class YearStatistics(BaseBusinessModel):
    total: int
    status_counts: Dict[str, int]
    monthly_data: Dict[int, int]


class YearReport(BaseBusinessModel):
    year: int
    records: List[BusinessRecord]
    statistics: YearStatistics


class DashboardStatistics(BaseBusinessModel):
    total_businesses: int
    current_year_businesses: int
    status_distribution: List[StatusCount]
    yearly_distribution: List[YearCount]
    yearly_trend: List[YearCount]
    recent_businesses: List[BusinessSummary]


__all__ = [
    "BusinessStatus",
    "STATUS_VALUES",
    "SERVER_MANAGED_FIELDS",
    "BaseBusinessModel",
    "BusinessCreate",
    "BusinessUpdate",
    "BusinessRecord",
    "BusinessSummary",
    "PageInfo",
    "StatusCount",
    "YearCount",
    "YearStatistics",
    "YearReport",
    "DashboardStatistics",
]
