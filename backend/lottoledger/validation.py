from __future__ import annotations
from datetime import datetime
from lottoledger.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .services.serials import parse_serial


# Maximum ticket price: $9,999.99 (999,999 cents)
MAX_TICKET_PRICE_CENTS = 999_999

# A pack never holds more than this many tickets
MAX_PACK_TICKETS = 10_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


BOX_POLICY = ModelValidationPolicy(
    writable_fields={"box_number", "game_number", "ticket_serial", "ticket_cost_cents"},
    required_on_create={"box_number", "game_number", "ticket_serial", "ticket_cost_cents"},
)

BOX_LOAD_POLICY = ModelValidationPolicy(
    writable_fields={"game_number", "ticket_serial", "ticket_cost_cents"},
    required_on_create={"game_number", "ticket_serial"},
)

BOX_DISPLAY_POLICY = ModelValidationPolicy(
    writable_fields={
        "show_sequence",
        "show_box_number",
        "show_game_number",
        "show_ticket_serial",
        "show_opening_number",
        "show_closing_number",
        "show_sales",
    },
)

TICKET_PACK_POLICY = ModelValidationPolicy(
    writable_fields={
        "game_number",
        "game_name",
        "game_image",
        "start_serial",
        "end_serial",
        "ticket_price_cents",
        "total_tickets",
    },
    required_on_create={
        "game_number",
        "game_name",
        "start_serial",
        "end_serial",
        "ticket_price_cents",
        "total_tickets",
    },
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Booleans must be real JSON booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text (numbers are accepted for identifiers like game numbers)
    if isinstance(coltype, (String, Text)):
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _enforce_price(key: str, patch: dict) -> None:
    if key in patch and patch[key] is not None:
        price = patch[key]
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_TICKET_PRICE_CENTS:
            raise ValidationError(
                f"{key} cannot exceed {MAX_TICKET_PRICE_CENTS} (${MAX_TICKET_PRICE_CENTS / 100:,.2f})"
            )


def enforce_rules_box(patch: dict) -> None:
    """Business rules for box creation and pack loads."""
    _enforce_price("ticket_cost_cents", patch)


def enforce_rules_ticket_pack(patch: dict) -> None:
    """
    Business rules for registering a ticket pack.

    The serial range must be well formed and large enough to hold
    total_tickets distinct serials.
    """
    _enforce_price("ticket_price_cents", patch)

    start = parse_serial(patch["start_serial"], field="start_serial")
    end = parse_serial(patch["end_serial"], field="end_serial")
    if start > end:
        raise ValidationError("start_serial must be <= end_serial")

    total = patch["total_tickets"]
    if total <= 0:
        raise ValidationError("total_tickets must be > 0")
    if total > MAX_PACK_TICKETS:
        raise ValidationError(f"total_tickets cannot exceed {MAX_PACK_TICKETS}")
    if total > end - start + 1:
        raise ValidationError("total_tickets exceeds the number of serials in range")
