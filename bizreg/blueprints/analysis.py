"""
Administrative analysis endpoints.

Read-only views over the registration records for the admin dashboard:
filtered and paged listing, by-year report, control-number lookup, name and
address search, and the dashboard summary. Query arguments are validated
by the marshmallow schemas in ``bizreg.business.validators`` before any
store access; unknown arguments are ignored.
"""

import structlog
from flask import Blueprint, current_app, request

from bizreg.business import get_business_service
from bizreg.business.exceptions import ResourceNotFoundError
from bizreg.business.validators import load_exact_match, load_listing_params, parse_year
from bizreg.utils.response import success_response

logger = structlog.get_logger(__name__)

analysis_bp = Blueprint("analysis", __name__, url_prefix="/api/admin/analysis")


@analysis_bp.route("/businesses", methods=["GET"])
def list_businesses():
    """
    Filtered, sorted and paged listing.

    Query Parameters:
        search, year, status, startDate, endDate, exactMatch,
        sortBy, sortOrder, page, limit
    """
    options, page_request = load_listing_params(
        request.args.to_dict(),
        default_limit=current_app.config["DEFAULT_PAGE_LIMIT"],
        max_limit=current_app.config["MAX_PAGE_LIMIT"],
    )
    businesses, page_info = get_business_service().list_with_filters(options, page_request)
    return success_response(businesses, pagination=page_info)


@analysis_bp.route("/by-year/<year>", methods=["GET"])
def businesses_by_year(year: str):
    report = get_business_service().businesses_by_year(
        parse_year(year), status=request.args.get("status") or None
    )
    return success_response(report.records, year=report.year, statistics=report.statistics)


@analysis_bp.route("/control-number/<control_number>", methods=["GET"])
def business_by_control_number(control_number: str):
    business = get_business_service().get_by_control_number(control_number)
    if business is None:
        raise ResourceNotFoundError(identifier=control_number)
    return success_response(business)


@analysis_bp.route("/search/name", methods=["GET"])
def search_by_name():
    businesses = get_business_service().search_by_name(
        request.args.get("name", ""), exact_match=load_exact_match(request.args.to_dict())
    )
    return success_response(businesses, count=len(businesses))


@analysis_bp.route("/search/address", methods=["GET"])
def search_by_address():
    businesses = get_business_service().search_by_address(
        request.args.get("address", ""), exact_match=load_exact_match(request.args.to_dict())
    )
    return success_response(businesses, count=len(businesses))


@analysis_bp.route("/dashboard", methods=["GET"])
def dashboard():
    statistics = get_business_service().dashboard()
    logger.debug(
        "Dashboard computed",
        total_businesses=statistics.total_businesses,
        current_year_businesses=statistics.current_year_businesses,
    )
    return success_response(statistics)
