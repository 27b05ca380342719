"""
Unit tests for request parameter schemas.
"""

from datetime import date

import pytest

from bizreg.business.exceptions import DataValidationError
from bizreg.business.filters import QueryOptions
from bizreg.business.validators import (
    load_exact_match,
    load_listing_params,
    load_page_request,
    load_query_options,
    parse_year,
    validation_errors_from_messages,
)

pytestmark = pytest.mark.unit


class TestQueryOptionsSchema:

    def test_loads_typed_options(self):
        options = load_query_options({
            "search": "juan",
            "year": "2025",
            "status": "step2",
            "startDate": "2025-01-01",
            "endDate": "2025-01-31",
            "exactMatch": "true",
        })

        assert options == QueryOptions(
            search="juan",
            year=2025,
            status="step2",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
            exact_match=True,
        )

    def test_unknown_and_blank_arguments_are_ignored(self):
        options = load_query_options({"year": "", "status": "  ", "color": "blue"})
        assert options == QueryOptions()

    @pytest.mark.parametrize("year", ["25", "20255", "abcd", "-202"])
    def test_year_must_be_four_digits(self, year):
        with pytest.raises(DataValidationError) as exc_info:
            load_query_options({"year": year})
        assert exc_info.value.errors[0]["field"] == "year"

    def test_unknown_status_rejected(self):
        with pytest.raises(DataValidationError) as exc_info:
            load_query_options({"status": "archived"})
        assert exc_info.value.field == "status"

    def test_unparsable_date_rejected(self):
        with pytest.raises(DataValidationError) as exc_info:
            load_query_options({"startDate": "yesterday"})
        assert exc_info.value.field == "startDate"

    def test_start_after_end_rejected(self):
        with pytest.raises(DataValidationError) as exc_info:
            load_query_options({"startDate": "2025-02-01", "endDate": "2025-01-01"})
        assert exc_info.value.message == "Invalid query parameters"
        assert exc_info.value.errors[0]["field"] == "startDate"


class TestPageRequestSchema:

    def test_defaults(self):
        page_request = load_page_request({})

        assert page_request.page == 1
        assert page_request.limit == 20
        assert page_request.sort.field == "createdAt"
        assert page_request.sort.descending is True

    def test_sort_and_window(self):
        page_request = load_page_request({"sortBy": "businessName", "sortOrder": "asc", "page": "3", "limit": "10"})

        assert page_request.sort.field == "businessName"
        assert page_request.sort.descending is False
        assert page_request.skip == 20

    def test_unknown_sort_field_falls_back(self):
        page_request = load_page_request({"sortBy": "password", "sortOrder": "sideways"})

        assert page_request.sort.field == "createdAt"
        assert page_request.sort.descending is True

    def test_page_below_one_clamps(self):
        assert load_page_request({"page": "0"}).page == 1
        assert load_page_request({"page": "-4"}).page == 1

    def test_limit_clamps_to_maximum(self):
        assert load_page_request({"limit": "500"}, max_limit=100).limit == 100

    @pytest.mark.parametrize("limit", ["0", "-1", "ten"])
    def test_invalid_limit_rejected(self, limit):
        with pytest.raises(DataValidationError) as exc_info:
            load_page_request({"limit": limit})
        assert exc_info.value.field == "limit"

    def test_non_numeric_page_rejected(self):
        with pytest.raises(DataValidationError):
            load_page_request({"page": "two"})

    def test_listing_params_split_filters_and_paging(self):
        options, page_request = load_listing_params(
            {"status": "complete", "page": "2", "limit": "5"}, default_limit=20, max_limit=50
        )

        assert options.status == "complete"
        assert (page_request.page, page_request.limit) == (2, 5)


class TestHelpers:

    def test_exact_match_flag(self):
        assert load_exact_match({}) is False
        assert load_exact_match({"exactMatch": "true", "name": "x"}) is True
        with pytest.raises(DataValidationError):
            load_exact_match({"exactMatch": "perhaps"})

    def test_parse_year(self):
        assert parse_year("2025") == 2025
        for value in ("0000", "25", "year", None):
            with pytest.raises(DataValidationError):
                parse_year(value)

    def test_flattens_marshmallow_messages(self):
        errors = validation_errors_from_messages({"year": ["bad"], "_schema": ["whole"]})
        assert errors == [
            {"field": "year", "message": "bad"},
            {"field": "_schema", "message": "whole"},
        ]
