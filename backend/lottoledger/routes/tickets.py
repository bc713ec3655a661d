# Overview: Flask API routes for ticket pack operations; parses input and returns JSON responses.

# backend/lottoledger/routes/tickets.py
"""
Ticket Pack API Routes

DESIGN:
- Reading active packs runs the store's daily reset first
- PATCH handles both scans ("scannedSerial") and status changes
- Serial range, depletion and status rules live in ticket_service
"""

from flask import Blueprint, request, jsonify, g

from ..services import ticket_service
from ..models import TicketPack
from ..validation import (
    TICKET_PACK_POLICY,
    enforce_rules_ticket_pack,
    validate_payload,
)
from ..decorators import ledger_errors, require_store_context


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


@tickets_bp.get("/active/<int:store_id>")
@require_store_context
@ledger_errors("list active tickets")
def list_active_route(store_id: int):
    """Apply any due daily reset, then list the store's active packs."""
    ticket_service.reset_daily_numbers_for_store(store_id)
    packs = ticket_service.list_active_packs(store_id)
    return jsonify({"tickets": [p.to_dict() for p in packs]}), 200


@tickets_bp.get("/inactive/<int:store_id>")
@require_store_context
@ledger_errors("list inactive tickets")
def list_inactive_route(store_id: int):
    packs = ticket_service.list_inactive_packs(store_id)
    return jsonify({"tickets": [p.to_dict() for p in packs]}), 200


@tickets_bp.get("/history/<int:store_id>")
@require_store_context
@ledger_errors("list ticket history")
def history_route(store_id: int):
    packs = ticket_service.list_pack_history(store_id)
    return jsonify({"tickets": [p.to_dict() for p in packs]}), 200


@tickets_bp.post("/reset/<int:store_id>")
@require_store_context
@ledger_errors("reset daily numbers")
def reset_store_route(store_id: int):
    """Explicitly run the daily reset for every active pack of a store."""
    count = ticket_service.reset_daily_numbers_for_store(store_id)
    return jsonify({"message": "Daily numbers reset successfully", "reset_count": count}), 200


@tickets_bp.post("/")
@tickets_bp.post("")
@require_store_context
@ledger_errors("register ticket pack")
def register_pack_route():
    """
    Register a new ticket pack in the caller's store.

    Request body:
    {
        "game_number": "1234",
        "game_name": "Lucky 7s",
        "start_serial": "000",
        "end_serial": "299",
        "ticket_price_cents": 200,
        "total_tickets": 300,
        "game_image": "https://..."  (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=TicketPack, payload=payload, policy=TICKET_PACK_POLICY, partial=False)
    enforce_rules_ticket_pack(patch)

    pack = ticket_service.register_pack(g.store_id, patch)
    return jsonify({"ticket": pack.to_dict()}), 201


@tickets_bp.get("/<int:ticket_id>")
@require_store_context
@ledger_errors("load ticket pack")
def get_pack_route(ticket_id: int):
    pack = ticket_service.get_pack(ticket_id, g.store_context)
    body = pack.to_dict()
    body["sales"] = ticket_service.pack_sales(pack)
    return jsonify({"ticket": body}), 200


@tickets_bp.patch("/<int:ticket_id>")
@require_store_context
@ledger_errors("update ticket pack")
def update_pack_route(ticket_id: int):
    """
    Scan a ticket and/or change the pack status.

    Request body:
    {
        "scannedSerial": "042",   // "scanned_serial" also accepted
        "status": "inactive"      // optional: inactive | returned
    }

    Returns:
    - 400 for an out-of-range serial, inactive pack or invalid status
      (nothing is recorded)
    - 409 for a depleted pack
    """
    data = request.get_json(silent=True) or {}
    scanned_serial = data.get("scannedSerial", data.get("scanned_serial"))
    status = data.get("status")

    pack = ticket_service.update_pack(ticket_id, scanned_serial, status, g.store_context)

    return jsonify({"ticket": pack.to_dict()}), 200
