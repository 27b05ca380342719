"""
Business registration endpoints.

    POST   /api/businesses          register (control number assigned)
    GET    /api/businesses          all records, registration order
    GET    /api/businesses/<id>
    PUT    /api/businesses/<id>     partial update
    DELETE /api/businesses/<id>
"""

from typing import Any, Dict

from flask import Blueprint, request

from bizreg.business import get_business_service
from bizreg.business.exceptions import DataValidationError, ResourceNotFoundError
from bizreg.utils.response import created_response, success_response

businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise DataValidationError("Request body must be a JSON object", field="_schema")
    return payload


@businesses_bp.route("", methods=["POST"])
def create_business():
    business = get_business_service().create_business(_json_body())
    return created_response(business)


@businesses_bp.route("", methods=["GET"])
def list_businesses():
    businesses = get_business_service().list_businesses()
    return success_response(businesses, count=len(businesses))


@businesses_bp.route("/<business_id>", methods=["GET"])
def get_business(business_id: str):
    business = get_business_service().get_business(business_id)
    if business is None:
        raise ResourceNotFoundError(identifier=business_id)
    return success_response(business)


@businesses_bp.route("/<business_id>", methods=["PUT"])
def update_business(business_id: str):
    business = get_business_service().update_business(business_id, _json_body())
    if business is None:
        raise ResourceNotFoundError(identifier=business_id)
    return success_response(business)


@businesses_bp.route("/<business_id>", methods=["DELETE"])
def delete_business(business_id: str):
    if not get_business_service().delete_business(business_id):
        raise ResourceNotFoundError(identifier=business_id)
    return success_response(message="Business deleted successfully")
