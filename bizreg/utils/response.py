"""
API response formatting.

Every endpoint answers with a JSON object carrying ``success``. Successful
responses put their payload under ``data`` (plus view-specific siblings such
as ``pagination`` or ``statistics``); errors carry ``message`` and
``error_code`` and, for validation failures, ``errors``.

Helpers return ``(body, status_code)`` tuples that Flask serialises
directly. Pydantic models are rendered with camelCase keys and ISO 8601
timestamps.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from bizreg.utils.datetime_utils import to_iso

ResponseTuple = Tuple[Dict[str, Any], int]


def to_json_compatible(value: Any) -> Any:
    """Convert models, timestamps and containers into JSON-ready values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(item) for item in value]
    return value


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = 200,
    **extra: Any,
) -> ResponseTuple:
    body: Dict[str, Any] = {"success": True}
    for key, value in extra.items():
        body[key] = to_json_compatible(value)
    if data is not None:
        body["data"] = to_json_compatible(data)
    if message:
        body["message"] = message
    return body, status_code


def created_response(data: Any = None, message: Optional[str] = None) -> ResponseTuple:
    return success_response(data, message=message, status_code=201)


def error_response(
    message: str,
    error_code: str = "INTERNAL_ERROR",
    status_code: int = 500,
    errors: Optional[List[Dict[str, str]]] = None,
    **extra: Any,
) -> ResponseTuple:
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "error_code": error_code,
    }
    if errors:
        body["errors"] = errors
    body.update({key: value for key, value in extra.items() if value is not None})
    return body, status_code


__all__ = [
    "ResponseTuple",
    "to_json_compatible",
    "success_response",
    "created_response",
    "error_response",
]
