"""
Shared utilities: timezone-aware clock and date helpers, response formatting.
"""

from bizreg.utils.datetime_utils import Clock, resolve_timezone, to_iso
from bizreg.utils.response import error_response, success_response, to_json_compatible

__all__ = [
    "Clock",
    "resolve_timezone",
    "to_iso",
    "error_response",
    "success_response",
    "to_json_compatible",
]
