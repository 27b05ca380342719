"""
Business registration core: control-number allocation, query building,
pagination and aggregation, orchestrated by ``BusinessService``.
"""

from flask import Flask, current_app

from bizreg.business.control_number import (
    ControlNumber,
    format_control_number,
    is_valid_control_number,
    parse_control_number,
)
from bizreg.business.exceptions import (
    BaseBusinessException,
    DataValidationError,
    ImmutableFieldError,
    MalformedControlNumber,
    ResourceNotFoundError,
)
from bizreg.business.models import BusinessRecord, BusinessStatus
from bizreg.business.services import BusinessService

SERVICE_EXTENSION_KEY = "business_service"


def init_business_service(app: Flask, service: BusinessService) -> BusinessService:
    app.extensions[SERVICE_EXTENSION_KEY] = service
    return service


def get_business_service(app: Flask = None) -> BusinessService:
    app = app or current_app
    try:
        return app.extensions[SERVICE_EXTENSION_KEY]
    except KeyError:
        raise RuntimeError("Business service not initialised for this application") from None


__all__ = [
    "ControlNumber",
    "format_control_number",
    "parse_control_number",
    "is_valid_control_number",
    "BaseBusinessException",
    "DataValidationError",
    "ImmutableFieldError",
    "MalformedControlNumber",
    "ResourceNotFoundError",
    "BusinessRecord",
    "BusinessStatus",
    "BusinessService",
    "init_business_service",
    "get_business_service",
]
