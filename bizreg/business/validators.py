"""
Request Parameter Validation

marshmallow schemas turning loosely-typed request arguments (query strings
arrive as text) into the typed option objects used by the query engine.
Unknown arguments are excluded; blank values count as absent; structurally
invalid values (non-numeric year or page, unknown status, unparsable date,
limit below 1) raise ``DataValidationError`` before anything touches the
store.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    pre_load,
    validate,
    validates_schema,
)

from bizreg.business.exceptions import DataValidationError
from bizreg.business.filters import QueryOptions
from bizreg.business.models import STATUS_VALUES
from bizreg.business.pagination import PageRequest

YEAR_PATTERN = r"^[0-9]{4}$"


def _drop_blank(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: value
        for key, value in dict(data).items()
        if not (value is None or (isinstance(value, str) and not value.strip()))
    }


class BaseQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def drop_blank_values(self, data, **kwargs):
        return _drop_blank(data)


class QueryOptionsSchema(BaseQuerySchema):
    """Filter options: search, year, status, date range, exactMatch."""

    search = fields.String(validate=validate.Length(max=200))
    year = fields.String(validate=validate.Regexp(YEAR_PATTERN, error="Year must be a 4-digit year"))
    status = fields.String(validate=validate.OneOf(STATUS_VALUES))
    start_date = fields.Date(data_key="startDate")
    end_date = fields.Date(data_key="endDate")
    exact_match = fields.Boolean(data_key="exactMatch", load_default=False)

    @validates_schema
    def validate_date_range(self, data, **kwargs):
        start, end = data.get("start_date"), data.get("end_date")
        if start and end and start > end:
            raise ValidationError("startDate must not be after endDate", field_name="startDate")

    @post_load
    def make_options(self, data, **kwargs) -> QueryOptions:
        if "year" in data:
            data["year"] = int(data["year"])
        return QueryOptions(**data)


class PageRequestSchema(BaseQuerySchema):
    """Sorting and paging: sortBy, sortOrder, page, limit."""

    sort_by = fields.String(data_key="sortBy", load_default=None)
    sort_order = fields.String(data_key="sortOrder", load_default=None)
    page = fields.Integer(load_default=1)
    limit = fields.Integer(load_default=None, validate=validate.Range(min=1, error="Limit must be at least 1"))

    @post_load
    def make_page_request(self, data, **kwargs) -> PageRequest:
        return PageRequest.normalized(
            sort_by=data.get("sort_by"),
            sort_order=data.get("sort_order"),
            page=data.get("page"),
            limit=data.get("limit"),
            default_limit=self.context_defaults["default_limit"],
            max_limit=self.context_defaults["max_limit"],
        )

    def __init__(self, default_limit: int = 20, max_limit: int = 100, **kwargs):
        super().__init__(**kwargs)
        self.context_defaults = {"default_limit": default_limit, "max_limit": max_limit}


class TextSearchSchema(BaseQuerySchema):
    """Arguments of the name/address search endpoints."""

    exact_match = fields.Boolean(data_key="exactMatch", load_default=False)


def validation_errors_from_messages(messages: Any) -> List[Dict[str, str]]:
    """Flatten marshmallow's ``{field: [message, ...]}`` into field/message pairs."""
    errors: List[Dict[str, str]] = []
    if isinstance(messages, dict):
        for field_name, field_messages in messages.items():
            if isinstance(field_messages, dict):
                for nested in validation_errors_from_messages(field_messages):
                    errors.append({"field": f"{field_name}.{nested['field']}", "message": nested["message"]})
                continue
            if not isinstance(field_messages, (list, tuple)):
                field_messages = [field_messages]
            for message in field_messages:
                errors.append({"field": str(field_name), "message": str(message)})
    elif isinstance(messages, (list, tuple)):
        errors.extend({"field": "_schema", "message": str(message)} for message in messages)
    else:
        errors.append({"field": "_schema", "message": str(messages)})
    return errors


def _load(schema: Schema, params: Mapping[str, Any]):
    try:
        return schema.load(dict(params))
    except ValidationError as e:
        errors = validation_errors_from_messages(e.messages)
        raise DataValidationError("Invalid query parameters", errors=errors) from e


def load_query_options(params: Mapping[str, Any]) -> QueryOptions:
    return _load(QueryOptionsSchema(), params)


def load_page_request(params: Mapping[str, Any], default_limit: int = 20, max_limit: int = 100) -> PageRequest:
    return _load(PageRequestSchema(default_limit=default_limit, max_limit=max_limit), params)


def load_listing_params(
    params: Mapping[str, Any],
    default_limit: int = 20,
    max_limit: int = 100,
) -> Tuple[QueryOptions, PageRequest]:
    """Parse the combined filter + paging arguments of the list endpoint."""
    return (
        load_query_options(params),
        load_page_request(params, default_limit=default_limit, max_limit=max_limit),
    )


def load_exact_match(params: Mapping[str, Any]) -> bool:
    return _load(TextSearchSchema(), params)["exact_match"]


def parse_year(value: Optional[str]) -> int:
    """Validate a 4-digit year path segment."""
    errors = validate.Regexp(YEAR_PATTERN, error="Year must be a 4-digit year")
    try:
        errors(value or "")
    except ValidationError as e:
        raise DataValidationError("Year must be a 4-digit year", field="year") from e
    year = int(value)
    if year < 1:
        raise DataValidationError("Year must be a 4-digit year", field="year")
    return year


__all__ = [
    "QueryOptionsSchema",
    "PageRequestSchema",
    "TextSearchSchema",
    "validation_errors_from_messages",
    "load_query_options",
    "load_page_request",
    "load_listing_params",
    "load_exact_match",
    "parse_year",
]
