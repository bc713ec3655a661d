# backend/lottoledger/services/ticket_service.py
"""
Ticket Pack Tracker Service

WHY: A ticket pack is inventory with a bounded serial range. Every scan
depletes it by one ticket, and the day's opening serial is carried over
from the previous day's last scan.

LIFECYCLE:
1. active: registered, accepting scans (remaining = total)
2. inactive: taken out of play (terminal, deactivation_date stamped)
3. returned: sent back to the lottery (terminal, return_date stamped)

DAILY RESET:
- needs_daily_reset: last_reset_date unset or on another calendar day
- perform_daily_reset: today_open_number := last_closing_number
- At most one reset per calendar day; repeating it is a no-op
- The reset runs before a scan is applied, so today's opening is
  yesterday's closing, never today's first scan
"""
from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from lottoledger.errors import DepletedError, NotFoundError, ValidationError
from lottoledger.extensions import db
from lottoledger.models import TicketPack
from lottoledger.models.tickets import (
    PACK_STATUS_ACTIVE,
    PACK_STATUS_INACTIVE,
    PACK_STATUS_RETURNED,
    PACK_STATUSES,
)
from lottoledger.services import notification_service
from lottoledger.services.concurrency import lock_for_update, run_with_retry
from lottoledger.services.rollover import already_reset_today, is_new_day
from lottoledger.services.serials import normalize_serial, parse_serial, require_serial_in_range
from lottoledger.services.store_service import StoreContext, ensure_same_store, get_store_context, require_store
from lottoledger.time_utils import resolve_timezone, utcnow


logger = logging.getLogger(__name__)


# =============================================================================
# DAILY RESET RULES
# =============================================================================

def needs_daily_reset(ticket: TicketPack, now: datetime, tz: tzinfo) -> bool:
    """True if the pack has never been reset or was last reset on another day."""
    return is_new_day(ticket.last_reset_date, now, tz)


def perform_daily_reset(ticket: TicketPack, now: datetime, tz: tzinfo) -> bool:
    """
    Carry last_closing_number into today_open_number and stamp the reset.

    In-memory only; the caller commits. No-op when there is no closing
    number yet or when the pack was already reset on now's calendar day.

    Returns:
        True if the pack was changed
    """
    if not ticket.last_closing_number:
        return False
    if already_reset_today(ticket.last_reset_date, now, tz):
        return False
    ticket.today_open_number = ticket.last_closing_number
    ticket.last_reset_date = now
    return True


def pack_sales(ticket: TicketPack) -> dict:
    """
    Tickets sold today (today_open_number -> last_closing_number) and their value.

    Before the first daily reset every scan belongs to the first selling day.
    """
    if not ticket.last_closing_number:
        sold = 0
    elif not ticket.today_open_number:
        sold = ticket.scanned_count
    else:
        sold = max(0, parse_serial(ticket.last_closing_number) - parse_serial(ticket.today_open_number))
    return {
        "ticket_id": ticket.id,
        "game_number": ticket.game_number,
        "today_open_number": ticket.today_open_number,
        "last_closing_number": ticket.last_closing_number,
        "tickets_sold": sold,
        "sales_cents": sold * ticket.ticket_price_cents,
    }


# =============================================================================
# LOOKUPS
# =============================================================================

def _load_pack(ticket_id: int, ctx: StoreContext | None, *, for_update: bool = True) -> TicketPack:
    query = db.session.query(TicketPack).filter_by(id=ticket_id)
    if for_update:
        query = lock_for_update(query)
    ticket = query.first()
    if not ticket:
        raise NotFoundError(f"Ticket pack {ticket_id} not found")
    ensure_same_store(ticket.store_id, ctx)
    return ticket


def _timezone_for(ticket: TicketPack, ctx: StoreContext | None) -> tzinfo:
    if ctx is not None:
        return ctx.timezone
    return resolve_timezone(ticket.store.timezone)


def get_pack(ticket_id: int, ctx: StoreContext | None = None) -> TicketPack:
    return _load_pack(ticket_id, ctx, for_update=False)


def list_active_packs(store_id: int) -> list[TicketPack]:
    return db.session.query(TicketPack).filter_by(
        store_id=store_id,
        status=PACK_STATUS_ACTIVE
    ).order_by(TicketPack.game_number, TicketPack.id).all()


def list_inactive_packs(store_id: int) -> list[TicketPack]:
    return db.session.query(TicketPack).filter_by(
        store_id=store_id,
        status=PACK_STATUS_INACTIVE
    ).order_by(TicketPack.deactivation_date.desc(), TicketPack.id).all()


def list_pack_history(store_id: int) -> list[TicketPack]:
    """All packs of a store, most recently updated first."""
    return db.session.query(TicketPack).filter_by(
        store_id=store_id
    ).order_by(TicketPack.updated_at.desc(), TicketPack.id.desc()).all()


# =============================================================================
# COMMANDS
# =============================================================================

def register_pack(store_id: int, patch: dict, *, now: datetime | None = None) -> TicketPack:
    """
    Register a fresh ticket pack (status: active, remaining = total).

    patch is a validated payload (see TICKET_PACK_POLICY).
    """
    now = now or utcnow()

    def _op():
        require_store(store_id)
        ticket = TicketPack(
            store_id=store_id,
            game_number=patch["game_number"],
            game_name=patch["game_name"],
            game_image=patch.get("game_image"),
            start_serial=patch["start_serial"],
            end_serial=patch["end_serial"],
            ticket_price_cents=patch["ticket_price_cents"],
            total_tickets=patch["total_tickets"],
            remaining_tickets=patch["total_tickets"],
            scanned_count=0,
            status=PACK_STATUS_ACTIVE,
            activation_date=now,
        )
        db.session.add(ticket)
        db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    logger.info("Registered pack %s game %s (store %s)", ticket.id, ticket.game_number, store_id)
    return ticket


def _validate_status(status) -> None:
    if status not in PACK_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of: {', '.join(PACK_STATUSES)}")


def _apply_scan(ticket: TicketPack, serial: str, now: datetime, tz: tzinfo) -> bool:
    """
    Check and apply one scan in memory; the caller commits.

    Returns:
        True if the daily reset ran first
    """
    if ticket.status != PACK_STATUS_ACTIVE:
        raise ValidationError(f"Ticket pack {ticket.id} is {ticket.status}")

    require_serial_in_range(serial, ticket.start_serial, ticket.end_serial)

    if ticket.remaining_tickets <= 0:
        raise DepletedError(
            f"Ticket pack {ticket.id} has no remaining tickets",
            details={"total_tickets": ticket.total_tickets, "scanned_count": ticket.scanned_count},
        )

    reset_applied = False
    if needs_daily_reset(ticket, now, tz):
        reset_applied = perform_daily_reset(ticket, now, tz)
        if not reset_applied and ticket.last_reset_date is None:
            # First selling day: nothing to carry over, but the day is claimed
            ticket.last_reset_date = now

    ticket.scanned_count = ticket.scanned_count + 1
    ticket.remaining_tickets = max(0, ticket.remaining_tickets - 1)
    ticket.current_serial = serial
    ticket.last_closing_number = serial
    return reset_applied


def _apply_status(ticket: TicketPack, status: str, now: datetime) -> bool:
    """Returns True if the status changed; repeating the current status is a no-op."""
    if ticket.status == status:
        return False
    if ticket.status != PACK_STATUS_ACTIVE:
        raise ValidationError(f"Ticket pack {ticket.id} is {ticket.status} and cannot change status")

    ticket.status = status
    if status == PACK_STATUS_INACTIVE:
        ticket.deactivation_date = now
    elif status == PACK_STATUS_RETURNED:
        ticket.return_date = now
    return True


def update_pack(
    ticket_id: int,
    scanned_serial=None,
    status: str | None = None,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> TicketPack:
    """
    Scan a ticket and/or change the pack status in one update.

    The scan is applied first (it needs an active pack), then the status.
    Both are checked before anything is committed: an invalid status
    leaves the scan unrecorded.

    Order of checks:
    1. pack exists and belongs to the store
    2. pack is active
    3. serial lies within [start_serial, end_serial]
    4. pack is not depleted
    5. status transition is allowed
    Then the daily reset runs if due, and the scan is applied.

    Raises:
        NotFoundError, ValidationError, DepletedError
    """
    if scanned_serial is None and status is None:
        raise ValidationError("scannedSerial or status is required")
    serial = None
    if scanned_serial is not None:
        serial = normalize_serial(scanned_serial, field="scanned_serial")
    if status is not None:
        _validate_status(status)
    now = now or utcnow()
    reset_applied = False
    changed = False

    def _op():
        nonlocal reset_applied, changed
        ticket = _load_pack(ticket_id, ctx)
        reset_applied = False
        changed = False

        if serial is not None:
            reset_applied = _apply_scan(ticket, serial, now, _timezone_for(ticket, ctx))
        if status is not None:
            changed = _apply_status(ticket, status, now)

        if serial is not None or changed:
            db.session.commit()
        return ticket

    ticket = run_with_retry(_op)
    if reset_applied:
        notification_service.publish(notification_service.TOPIC_TICKET_RESET, ticket.to_dict())
    if serial is not None:
        notification_service.publish(notification_service.TOPIC_TICKET_SCAN, ticket.to_dict())
    if changed:
        logger.info("Ticket pack %s marked %s", ticket.id, status)
        notification_service.publish(notification_service.TOPIC_TICKET_STATUS, ticket.to_dict())
    return ticket


def scan(
    ticket_id: int,
    scanned_serial,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> TicketPack:
    """Record one scanned ticket from a pack (see update_pack for the checks)."""
    normalize_serial(scanned_serial, field="scanned_serial")
    return update_pack(ticket_id, scanned_serial=scanned_serial, ctx=ctx, now=now)


def change_status(
    ticket_id: int,
    status: str,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> TicketPack:
    """
    Move an active pack to inactive or returned.

    Both target states are terminal; repeating the current status is a no-op.
    """
    _validate_status(status)
    return update_pack(ticket_id, status=status, ctx=ctx, now=now)


def reset_daily_numbers_for_store(store_id: int, *, now: datetime | None = None) -> int:
    """
    Apply the daily reset to every active pack of a store.

    Safe to call redundantly (scheduled job and before serving reads):
    each pack is re-read and re-checked inside its own optimistic update,
    so a concurrent reset or scan never double-advances today_open_number.

    Returns:
        Number of packs reset
    """
    ctx = get_store_context(store_id)
    now = now or utcnow()

    pack_ids = [
        row.id for row in db.session.query(TicketPack.id).filter_by(
            store_id=store_id,
            status=PACK_STATUS_ACTIVE
        ).order_by(TicketPack.id).all()
    ]

    reset_ids = []
    for pack_id in pack_ids:
        def _op(pack_id=pack_id):
            ticket = _load_pack(pack_id, ctx)
            if ticket.status != PACK_STATUS_ACTIVE:
                return False
            if not needs_daily_reset(ticket, now, ctx.timezone):
                return False
            if not perform_daily_reset(ticket, now, ctx.timezone):
                return False
            db.session.commit()
            return True

        if run_with_retry(_op):
            reset_ids.append(pack_id)

    if reset_ids:
        logger.info("Daily reset applied to %d pack(s) in store %s", len(reset_ids), store_id)
        notification_service.publish(
            notification_service.TOPIC_TICKET_RESET,
            {"store_id": store_id, "ticket_ids": reset_ids},
        )
    return len(reset_ids)
