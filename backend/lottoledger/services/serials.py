# Overview: Ticket serial parsing and range checks shared by the box and pack ledgers.

"""
Serial number utilities.

Serials travel as digit strings ("000", "0042") so leading zeros survive
storage, but every comparison is numeric: "0042" and "42" are the same
ticket.
"""

from __future__ import annotations

import re

from ..errors import ValidationError


DISPLAY_WIDTH = 8

_DIGITS = re.compile(r"^\d+$")
_BARCODE = re.compile(r"^(\d{3,5})-(\d{5,9})-(\d{3})$")
_BARCODE_COMPACT_LENGTH = 14  # GGGG PPPPPPP TTT


def parse_serial(value, *, field: str = "serial") -> int:
    """
    Parse a serial (int or digit string) into its numeric value.

    Raises:
        ValidationError: if the value is not a non-negative whole number
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required and must be numeric")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f"{field} cannot be negative")
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not _DIGITS.match(stripped):
            raise ValidationError(f"{field} must contain digits only")
        return int(stripped)
    raise ValidationError(f"{field} must be numeric")


def normalize_serial(value, *, field: str = "serial") -> str:
    """Validated serial as a stripped string, keeping its leading zeros."""
    parse_serial(value, field=field)
    return str(value).strip()


def format_serial(value, width: int = DISPLAY_WIDTH) -> str:
    """Zero-padded display form of a serial."""
    return str(parse_serial(value)).zfill(width)


def serial_in_range(serial, start, end) -> bool:
    """Inclusive numeric range check."""
    return parse_serial(start) <= parse_serial(serial) <= parse_serial(end)


def require_serial_in_range(serial, start, end) -> int:
    """
    Validate a scanned serial against a pack's range.

    Returns the numeric serial.

    Raises:
        ValidationError: if outside [start, end]
    """
    number = parse_serial(serial, field="scanned_serial")
    low = parse_serial(start, field="start_serial")
    high = parse_serial(end, field="end_serial")
    if not low <= number <= high:
        raise ValidationError(
            f"Serial {serial} is outside pack range {start}-{end}",
            details={"scanned_serial": str(serial), "start_serial": start, "end_serial": end},
        )
    return number


def split_ticket_barcode(code: str) -> tuple[str, str, str]:
    """
    Split a scanned ticket barcode into (game_number, pack_number, ticket_number).

    Accepts "GGGG-PPPPPPP-TTT" or the same 14 digits without dashes.
    """
    if not isinstance(code, str):
        raise ValidationError("barcode must be a string")
    stripped = code.strip()

    match = _BARCODE.match(stripped)
    if match:
        return match.group(1), match.group(2), match.group(3)

    if _DIGITS.match(stripped) and len(stripped) == _BARCODE_COMPACT_LENGTH:
        return stripped[:4], stripped[4:11], stripped[11:]

    raise ValidationError(f"Unrecognized ticket barcode: {code!r}")
