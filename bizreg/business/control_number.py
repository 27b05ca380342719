"""
Control Number Codec

Pure formatting and parsing of business control numbers. A control number is
``YYYY-NNNN``: the 4-digit creation year, a literal hyphen, and the sequence
within that year zero-padded to at least four digits. Sequences of 10000 and
above are rendered with as many digits as they need, never truncated.

    >>> format_control_number(2025, 7)
    '2025-0007'
    >>> format_control_number(2025, 10234)
    '2025-10234'
    >>> parse_control_number('2025-0007')
    ControlNumber(year=2025, sequence=7)
"""

import re
from typing import NamedTuple, Tuple

from bizreg.business.exceptions import MalformedControlNumber

CONTROL_NUMBER_PATTERN = re.compile(r"^([0-9]{4})-([0-9]{4,})$", re.ASCII)

MIN_YEAR = 1
MAX_YEAR = 9999
SEQUENCE_WIDTH = 4


class ControlNumber(NamedTuple):
    """Parsed control number."""
    year: int
    sequence: int

    def __str__(self) -> str:
        return format_control_number(self.year, self.sequence)


def _check_year(year: int) -> None:
    if isinstance(year, bool) or not isinstance(year, int):
        raise MalformedControlNumber(f"Year must be an integer, got {year!r}")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise MalformedControlNumber(
            f"Year must be between {MIN_YEAR} and {MAX_YEAR}, got {year}"
        )


def format_control_number(year: int, sequence: int) -> str:
    """
    Render ``(year, sequence)`` as a control number string.

    Args:
        year: Calendar year, 1-9999
        sequence: Sequence within the year, >= 1

    Returns:
        Control number such as ``2025-0007``

    Raises:
        MalformedControlNumber: If year or sequence is out of range
    """
    _check_year(year)
    if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 1:
        raise MalformedControlNumber(f"Sequence must be a positive integer, got {sequence!r}")
    return f"{year:04d}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_control_number(value: str) -> ControlNumber:
    """
    Parse a control number string into its year and sequence.

    Raises:
        MalformedControlNumber: If the value is not ``YYYY-`` followed by four
            or more digits, or encodes year 0000 or sequence 0
    """
    if not isinstance(value, str):
        raise MalformedControlNumber(f"Control number must be a string, got {type(value).__name__}")

    match = CONTROL_NUMBER_PATTERN.match(value)
    if match is None:
        raise MalformedControlNumber(f"Malformed control number: {value!r}", value=value)

    year, sequence = int(match.group(1)), int(match.group(2))
    if year < MIN_YEAR or sequence < 1:
        raise MalformedControlNumber(f"Malformed control number: {value!r}", value=value)
    return ControlNumber(year, sequence)


def is_valid_control_number(value: str) -> bool:
    try:
        parse_control_number(value)
    except MalformedControlNumber:
        return False
    return True


def control_number_sort_key(value: str) -> Tuple[int, int, str]:
    """
    Sort key ordering control numbers by year, then numeric sequence.

    Plain string ordering would put ``2025-10000`` before ``2025-9999``.
    Values that do not parse sort after all valid ones, by their raw text.
    """
    try:
        parsed = parse_control_number(value)
    except MalformedControlNumber:
        return (MAX_YEAR + 1, 0, value if isinstance(value, str) else "")
    return (parsed.year, parsed.sequence, "")
