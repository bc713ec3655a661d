# Overview: Flask API routes for box ledger operations; parses input and returns JSON responses.

# backend/lottoledger/routes/boxes.py
"""
Box Ledger API Routes

WHY: Clerks scan tickets out of dispenser boxes all day; the board shows
each box's opening/closing numbers and sales.

DESIGN:
- Every route runs inside the caller's store context (X-Store-Id)
- Scan / manual entry roll the box over to a new day first when needed
- Errors are JSON {"error": ...} with the ledger error's status
"""

from flask import Blueprint, request, jsonify, g

from ..services import box_service
from ..time_utils import parse_iso_datetime
from ..validation import (
    BOX_DISPLAY_POLICY,
    BOX_LOAD_POLICY,
    BOX_POLICY,
    enforce_rules_box,
    validate_payload,
    ValidationError,
)
from ..models import Box
from ..decorators import ledger_errors, require_store_context


boxes_bp = Blueprint("boxes", __name__, url_prefix="/api/boxes")


def _box_response(box, status: int = 200, **extra):
    body = {"box": box.to_dict()}
    body.update(extra)
    return jsonify(body), status


# =============================================================================
# BOX LISTING / SETUP
# =============================================================================

@boxes_bp.get("/active")
@require_store_context
@ledger_errors("list active boxes")
def list_active_boxes_route():
    """List active boxes for the display board, most recently updated first."""
    boxes = box_service.list_active_boxes(g.store_id)
    return jsonify({"boxes": [b.to_dict() for b in boxes]}), 200


@boxes_bp.get("/")
@boxes_bp.get("")
@require_store_context
@ledger_errors("list boxes")
def list_boxes_route():
    """
    List boxes of the store ordered by box number.

    Query params:
    - include_inactive: "true" to include deactivated boxes
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    boxes = box_service.list_boxes(g.store_id, include_inactive=include_inactive)
    return jsonify({"boxes": [b.to_dict() for b in boxes]}), 200


@boxes_bp.get("/summary")
@require_store_context
@ledger_errors("summarize box sales")
def sales_summary_route():
    """Today's sales across the store's active boxes."""
    return jsonify(box_service.store_sales_summary(g.store_id)), 200


@boxes_bp.post("/")
@boxes_bp.post("")
@require_store_context
@ledger_errors("create box")
def create_box_route():
    """
    Create a box loaded with a fresh game pack.

    Request body:
    {
        "box_number": "12",
        "game_number": "1234",
        "ticket_serial": "1234-0567890",
        "ticket_cost_cents": 500
    }
    """
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Box, payload=payload, policy=BOX_POLICY, partial=False)
    enforce_rules_box(patch)

    box = box_service.create_box(g.store_id, patch)
    return _box_response(box, 201)


@boxes_bp.get("/<int:box_id>")
@require_store_context
@ledger_errors("load box")
def get_box_route(box_id: int):
    box = box_service.get_box(box_id, g.store_context)
    return _box_response(box)


@boxes_bp.get("/<int:box_id>/next-ticket")
@require_store_context
@ledger_errors("suggest next ticket")
def next_ticket_route(box_id: int):
    box = box_service.get_box(box_id, g.store_context)
    return jsonify(box_service.next_suggested_ticket(box)), 200


@boxes_bp.post("/<int:box_id>/load")
@require_store_context
@ledger_errors("load new pack")
def load_new_pack_route(box_id: int):
    """
    Reload a box with a new game pack. Counters restart at zero.

    Request body:
    {
        "game_number": "5678",
        "ticket_serial": "5678-0001112",
        "ticket_cost_cents": 1000  (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Box, payload=payload, policy=BOX_LOAD_POLICY, partial=False)
    enforce_rules_box(patch)

    box = box_service.load_new_pack(box_id, patch, g.store_context)
    return _box_response(box)


@boxes_bp.post("/<int:box_id>/deactivate")
@require_store_context
@ledger_errors("deactivate box")
def deactivate_box_route(box_id: int):
    box = box_service.deactivate_box(box_id, g.store_context)
    return _box_response(box)


@boxes_bp.post("/<int:box_id>/activate")
@require_store_context
@ledger_errors("activate box")
def activate_box_route(box_id: int):
    """Put a deactivated box back in service."""
    box = box_service.activate_box(box_id, g.store_context)
    return _box_response(box)


@boxes_bp.patch("/<int:box_id>/display-settings")
@require_store_context
@ledger_errors("update display settings")
def update_display_settings_route(box_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Box, payload=payload, policy=BOX_DISPLAY_POLICY, partial=True)
    box = box_service.update_display_settings(box_id, patch, g.store_context)
    return _box_response(box)


# =============================================================================
# SCAN / MANUAL ENTRY / RESET
# =============================================================================

@boxes_bp.post("/<int:box_id>/scan")
@require_store_context
@ledger_errors("scan ticket")
def scan_box_route(box_id: int):
    """Record one ticket sold from the box (closing_number += 1)."""
    box = box_service.record_scan(box_id, g.store_context)
    return _box_response(box)


@boxes_bp.post("/<int:box_id>/manual-entry")
@require_store_context
@ledger_errors("add manual entry")
def manual_entry_route(box_id: int):
    """
    Set the closing number from a clerk-entered ticket number.

    Request body:
    {
        "ticket_number": 42   // "ticketNumber" also accepted
    }

    Returns 400 if the number is below the opening or current closing number.
    """
    data = request.get_json(silent=True) or {}
    ticket_number = data.get("ticket_number", data.get("ticketNumber"))
    if ticket_number is None:
        raise ValidationError("ticket_number is required")

    box = box_service.record_manual_entry(box_id, ticket_number, g.store_context)
    return _box_response(box)


@boxes_bp.post("/<int:box_id>/reset-day")
@require_store_context
@ledger_errors("reset box for new day")
def reset_day_route(box_id: int):
    """
    Carry the closing number into the opening number and zero closing.

    Idempotent within a calendar day; "reset_applied" tells whether this
    call changed the box.
    """
    box, applied = box_service.reset_for_new_day(box_id, g.store_context)
    return _box_response(box, reset_applied=applied)


# =============================================================================
# DEVICE METRICS
# =============================================================================

@boxes_bp.put("/<int:box_id>/metrics")
@require_store_context
@ledger_errors("update box metrics")
def update_metrics_route(box_id: int):
    """
    Report device metrics for a box.

    Request body:
    {
        "temperature": 31.5,
        "battery_level": 80
    }
    """
    data = request.get_json(silent=True) or {}
    box, alerts = box_service.record_metrics(
        box_id,
        temperature=data.get("temperature"),
        battery_level=data.get("battery_level", data.get("batteryLevel")),
        ctx=g.store_context,
    )
    return _box_response(box, alerts=alerts)


@boxes_bp.get("/<int:box_id>/metrics-history")
@require_store_context
@ledger_errors("load box metrics history")
def metrics_history_route(box_id: int):
    """
    Query params:
    - start, end: ISO-8601 bounds (inclusive, optional)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")

    samples = box_service.get_metrics_history(box_id, g.store_context, start=start, end=end)
    return jsonify({"samples": [s.to_dict() for s in samples]}), 200
