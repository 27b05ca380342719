"""
Blueprint registration and application-wide error handling.

Error bodies share one shape: ``{"success": false, "message", "error_code",
"errors"?}``. Status codes come from the exception itself, so handlers
never branch on concrete types beyond the base classes below.
"""

from typing import List

import structlog
from flask import Flask
from marshmallow import ValidationError as MarshmallowValidationError
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from bizreg.blueprints.analysis import analysis_bp
from bizreg.blueprints.businesses import businesses_bp
from bizreg.blueprints.health import health_bp
from bizreg.business.exceptions import BaseBusinessException, ErrorSeverity
from bizreg.business.services import pydantic_errors
from bizreg.business.validators import validation_errors_from_messages
from bizreg.data.exceptions import DatabaseException, UniqueConstraintViolation
from bizreg.utils.response import error_response

logger = structlog.get_logger(__name__)

BLUEPRINTS = (businesses_bp, analysis_bp, health_bp)


def register_blueprints(app: Flask) -> List[str]:
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    names = [blueprint.name for blueprint in BLUEPRINTS]
    logger.debug("Blueprints registered", blueprints=names)
    return names


def handle_business_exception(error: BaseBusinessException):
    log = logger.warning if error.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL) else logger.info
    log("Request rejected", error_code=error.error_code, error=error.message)
    return error_response(status_code=error.http_status_code, **error.to_dict())


def handle_database_exception(error: DatabaseException):
    # Unique-key conflicts were already logged at critical by the service.
    if not isinstance(error, UniqueConstraintViolation):
        logger.error("Store error during request", error_code=error.error_code, operation=error.operation)
    return error_response(status_code=error.http_status_code, **error.to_dict())


def handle_marshmallow_error(error: MarshmallowValidationError):
    return error_response(
        "Invalid request parameters",
        error_code="VALIDATION_ERROR",
        status_code=400,
        errors=validation_errors_from_messages(error.messages),
    )


def handle_pydantic_error(error: PydanticValidationError):
    return error_response(
        "Validation failed",
        error_code="VALIDATION_ERROR",
        status_code=400,
        errors=pydantic_errors(error),
    )


def handle_http_exception(error: HTTPException):
    return error_response(
        error.description or error.name,
        error_code=error.name.upper().replace(" ", "_"),
        status_code=error.code or 500,
    )


def handle_unexpected_exception(error: Exception):
    logger.exception("Unhandled exception", exception_type=type(error).__name__)
    return error_response("Internal server error", error_code="INTERNAL_ERROR", status_code=500)


def register_error_handlers(app: Flask) -> None:
    app.register_error_handler(BaseBusinessException, handle_business_exception)
    app.register_error_handler(DatabaseException, handle_database_exception)
    app.register_error_handler(MarshmallowValidationError, handle_marshmallow_error)
    app.register_error_handler(PydanticValidationError, handle_pydantic_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected_exception)


__all__ = [
    "BLUEPRINTS",
    "register_blueprints",
    "register_error_handlers",
]
