"""
Box Ledger Service

WHY: Each physical dispenser box carries the day's opening and closing
serial counters. Sales for the day are read off those counters, so they
must never lose an update or skip a day boundary.

DESIGN PRINCIPLES:
- Every mutating command runs the rollover guard first: if the box was
  last touched on an earlier calendar day (store timezone), the daily
  reset is applied in the same optimistic update as the command
- A calendar day is reset at most once (last_reset_at), and a box with
  no activity since its last reset is never reset again
- closing_number never moves backwards within a day
- Each command is one read-modify-write guarded by Box.version_id and
  retried on conflict (run_with_retry)
- Boxes are never deleted; they are deactivated and may be reactivated
- Broadcasts happen after commit and never fail the command
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from flask import current_app, has_app_context

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Box, BoxMetricSample
from ..time_utils import resolve_timezone, utcnow
from ..validation import coerce_int
from . import notification_service
from .concurrency import lock_for_update, run_with_retry
from .rollover import already_reset_today, is_new_day, untouched_since_reset
from .store_service import StoreContext, ensure_same_store, require_store


logger = logging.getLogger(__name__)


# =============================================================================
# PURE HELPERS
# =============================================================================

def calculate_sales(box: Box) -> int:
    """
    Sales in cents: (closing - opening) * unit cost.

    Floored at zero. Right after a rollover closing restarts at 0 while
    opening carries yesterday's closing, and that window must not report
    negative sales.
    """
    delta = (box.closing_number or 0) - (box.opening_number or 0)
    return max(0, delta * (box.ticket_cost_cents or 0))


def next_suggested_ticket(box: Box) -> dict:
    """Ticket the clerk is expected to sell next from this box."""
    return {
        "box_id": box.id,
        "game_number": box.game_number,
        "ticket_serial": box.ticket_serial,
        "ticket_number": box.closing_number + 1,
    }


def _apply_reset(box: Box, now: datetime) -> None:
    box.opening_number = box.closing_number
    box.closing_number = 0
    box.last_reset_at = now
    box.last_updated = now


def _roll_over_if_stale(box: Box, now: datetime, tz: tzinfo) -> bool:
    """
    Apply the daily reset when the box was last updated on an earlier day.

    An end-of-day reset already opened the next day, so a box untouched
    since its last reset is not reset again.
    """
    if not is_new_day(box.last_updated, now, tz):
        return False
    if already_reset_today(box.last_reset_at, now, tz):
        return False
    if untouched_since_reset(box.last_reset_at, box.last_updated):
        return False
    _apply_reset(box, now)
    return True


# =============================================================================
# LOOKUPS
# =============================================================================

def _load_box(box_id: int, ctx: StoreContext | None, *, for_update: bool = True) -> Box:
    query = db.session.query(Box).filter_by(id=box_id)
    if for_update:
        query = lock_for_update(query)
    box = query.first()
    if not box:
        raise NotFoundError(f"Box {box_id} not found")
    ensure_same_store(box.store_id, ctx)
    return box


def _timezone_for(box: Box, ctx: StoreContext | None) -> tzinfo:
    if ctx is not None:
        return ctx.timezone
    return resolve_timezone(box.store.timezone)


def _require_active(box: Box) -> None:
    if not box.is_active:
        raise ValidationError(f"Box {box.box_number} is inactive")


def get_box(box_id: int, ctx: StoreContext | None = None) -> Box:
    return _load_box(box_id, ctx, for_update=False)


def list_active_boxes(store_id: int) -> list[Box]:
    """Active boxes for the display board, most recently updated first."""
    return db.session.query(Box).filter_by(
        store_id=store_id,
        is_active=True
    ).order_by(Box.last_updated.desc(), Box.id).all()


def list_boxes(store_id: int, include_inactive: bool = False) -> list[Box]:
    query = db.session.query(Box).filter_by(store_id=store_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Box.box_number).all()


def store_sales_summary(store_id: int) -> dict:
    """Today's sales across a store's active boxes."""
    boxes = list_active_boxes(store_id)
    per_box = [
        {
            "box_id": box.id,
            "box_number": box.box_number,
            "tickets_sold": max(0, box.closing_number - box.opening_number),
            "sales_cents": calculate_sales(box),
        }
        for box in boxes
    ]
    return {
        "store_id": store_id,
        "box_count": len(per_box),
        "total_sales_cents": sum(b["sales_cents"] for b in per_box),
        "boxes": per_box,
    }


# =============================================================================
# BOX SETUP
# =============================================================================

def create_box(store_id: int, patch: dict, *, now: datetime | None = None) -> Box:
    """
    Register a box loaded with a fresh game pack.

    Counters start at zero. patch is a validated payload (see BOX_POLICY).
    """
    now = now or utcnow()

    def _op():
        require_store(store_id)

        existing = db.session.query(Box).filter_by(
            store_id=store_id,
            box_number=patch["box_number"]
        ).first()
        if existing:
            raise ValidationError(f"Box '{patch['box_number']}' already exists in this store")

        box = Box(
            store_id=store_id,
            box_number=patch["box_number"],
            game_number=patch["game_number"],
            ticket_serial=patch["ticket_serial"],
            ticket_cost_cents=patch["ticket_cost_cents"],
            opening_number=0,
            closing_number=0,
            is_active=True,
            last_updated=now,
        )
        db.session.add(box)
        db.session.commit()
        return box

    box = run_with_retry(_op)
    logger.info("Created box %s (store %s)", box.box_number, store_id)
    return box


def load_new_pack(
    box_id: int,
    patch: dict,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> Box:
    """
    Reload a box with a new game pack; counters restart at zero.

    patch is a validated payload (see BOX_LOAD_POLICY).
    """
    now = now or utcnow()

    def _op():
        box = _load_box(box_id, ctx)
        _require_active(box)

        box.game_number = patch["game_number"]
        box.ticket_serial = patch["ticket_serial"]
        if patch.get("ticket_cost_cents") is not None:
            box.ticket_cost_cents = patch["ticket_cost_cents"]
        box.opening_number = 0
        box.closing_number = 0
        box.last_updated = now
        db.session.commit()
        return box

    box = run_with_retry(_op)
    logger.info("Box %s loaded with game %s", box.box_number, box.game_number)
    return box


def deactivate_box(box_id: int, ctx: StoreContext | None = None) -> Box:
    """Deactivate a box (soft delete). Boxes are never removed."""
    def _op():
        box = _load_box(box_id, ctx)
        if box.is_active:
            box.is_active = False
            db.session.commit()
        return box

    return run_with_retry(_op)


def activate_box(box_id: int, ctx: StoreContext | None = None) -> Box:
    """
    Put a deactivated box back in service.

    Counters are kept; the next command rolls the box over if its last
    update was on an earlier day.
    """
    def _op():
        box = _load_box(box_id, ctx)
        if not box.is_active:
            box.is_active = True
            db.session.commit()
            logger.info("Box %s reactivated", box.box_number)
        return box

    return run_with_retry(_op)


def update_display_settings(box_id: int, patch: dict, ctx: StoreContext | None = None) -> Box:
    """patch is a validated payload (see BOX_DISPLAY_POLICY)."""
    if not patch:
        raise ValidationError("No display settings provided")

    def _op():
        box = _load_box(box_id, ctx)
        for field, value in patch.items():
            setattr(box, field, value)
        db.session.commit()
        return box

    return run_with_retry(_op)


# =============================================================================
# SCAN / MANUAL ENTRY / RESET
# =============================================================================

def record_scan(box_id: int, ctx: StoreContext | None = None, *, now: datetime | None = None) -> Box:
    """
    Record one ticket sold from a box: closing_number += 1.

    A stale day is reset first, so the first scan after midnight leaves
    opening = yesterday's closing and closing = 1.

    Raises:
        NotFoundError: unknown box
        ValidationError: inactive box
    """
    now = now or utcnow()
    rolled = False

    def _op():
        nonlocal rolled
        box = _load_box(box_id, ctx)
        _require_active(box)

        rolled = _roll_over_if_stale(box, now, _timezone_for(box, ctx))
        box.closing_number = box.closing_number + 1
        box.last_updated = now
        db.session.commit()
        return box

    box = run_with_retry(_op)
    if rolled:
        logger.info("Box %s rolled over to a new day on scan", box.box_number)
        notification_service.publish(notification_service.TOPIC_BOX_RESET, box.to_dict())
    notification_service.publish(notification_service.TOPIC_BOX_SCAN, box.to_dict())
    return box


def record_manual_entry(
    box_id: int,
    ticket_number,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> Box:
    """
    Set closing_number directly from a clerk-entered ticket number.

    The value is checked after any pending rollover: it must not be below
    the day's opening number nor below the current closing number.

    Raises:
        NotFoundError: unknown box
        ValidationError: malformed or non-monotonic ticket number (no mutation)
    """
    number = coerce_int("ticket_number", ticket_number)
    if number < 0:
        raise ValidationError("ticket_number cannot be negative")
    now = now or utcnow()
    rolled = False

    def _op():
        nonlocal rolled
        box = _load_box(box_id, ctx)
        _require_active(box)

        rolled = _roll_over_if_stale(box, now, _timezone_for(box, ctx))

        if number < box.opening_number:
            raise ValidationError(
                f"Ticket number {number} is below the opening number {box.opening_number}",
                details={"opening_number": box.opening_number, "closing_number": box.closing_number},
            )
        if number < box.closing_number:
            raise ValidationError(
                f"Ticket number {number} is below the current closing number {box.closing_number}",
                details={"opening_number": box.opening_number, "closing_number": box.closing_number},
            )

        box.closing_number = number
        box.last_updated = now
        db.session.commit()
        return box

    box = run_with_retry(_op)
    if rolled:
        notification_service.publish(notification_service.TOPIC_BOX_RESET, box.to_dict())
    notification_service.publish(notification_service.TOPIC_BOX_MANUAL_ENTRY, box.to_dict())
    return box


def reset_for_new_day(
    box_id: int,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> tuple[Box, bool]:
    """
    Carry closing into opening and zero closing.

    Idempotent per calendar day: a second call on the same day leaves the
    box untouched. A box with nothing recorded since its last reset is not
    reset again either, so an end-of-day reset carries into the next day.

    Returns:
        (box, applied) where applied is False when the day was already reset
    """
    now = now or utcnow()

    def _op():
        box = _load_box(box_id, ctx)
        if already_reset_today(box.last_reset_at, now, _timezone_for(box, ctx)):
            return box, False
        if untouched_since_reset(box.last_reset_at, box.last_updated):
            return box, False
        _apply_reset(box, now)
        db.session.commit()
        return box, True

    box, applied = run_with_retry(_op)
    if applied:
        logger.info("Box %s reset for new day (opening=%s)", box.box_number, box.opening_number)
        notification_service.publish(notification_service.TOPIC_BOX_RESET, box.to_dict())
    return box, applied


# =============================================================================
# DEVICE METRICS
# =============================================================================

def _coerce_metric(key: str, value) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    return float(value)


def _alert_thresholds() -> tuple[float, float]:
    if has_app_context():
        return (
            current_app.config.get("METRICS_TEMPERATURE_ALERT", 40.0),
            current_app.config.get("METRICS_BATTERY_ALERT", 20.0),
        )
    return 40.0, 20.0


def record_metrics(
    box_id: int,
    temperature=None,
    battery_level=None,
    ctx: StoreContext | None = None,
    *,
    now: datetime | None = None,
) -> tuple[Box, list[dict]]:
    """
    Store a device metric reading and raise alerts for out-of-range values.

    Returns:
        (box, alerts) where alerts were also published on box:alert
    """
    temperature = _coerce_metric("temperature", temperature)
    battery_level = _coerce_metric("battery_level", battery_level)
    if temperature is None and battery_level is None:
        raise ValidationError("temperature or battery_level is required")
    if battery_level is not None and not 0 <= battery_level <= 100:
        raise ValidationError("battery_level must be between 0 and 100")
    now = now or utcnow()

    def _op():
        box = _load_box(box_id, ctx)
        if temperature is not None:
            box.temperature = temperature
        if battery_level is not None:
            box.battery_level = battery_level
        box.last_active = now

        db.session.add(BoxMetricSample(
            box_id=box.id,
            temperature=temperature,
            battery_level=battery_level,
            recorded_at=now,
        ))
        db.session.commit()
        return box

    box = run_with_retry(_op)

    max_temperature, min_battery = _alert_thresholds()
    alerts = []
    if temperature is not None and temperature > max_temperature:
        alerts.append({"type": "temperature", "message": "High temperature detected", "severity": "warning"})
    if battery_level is not None and battery_level < min_battery:
        alerts.append({"type": "battery", "message": "Low battery warning", "severity": "warning"})

    for alert in alerts:
        logger.warning("Box %s alert: %s", box.box_number, alert["message"])
        notification_service.publish(
            notification_service.TOPIC_BOX_ALERT,
            {"box_id": box.id, "store_id": box.store_id, "alert": alert},
        )

    return box, alerts


def get_metrics_history(
    box_id: int,
    ctx: StoreContext | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[BoxMetricSample]:
    """Metric samples for a box, oldest first, optionally within [start, end]."""
    box = _load_box(box_id, ctx, for_update=False)
    query = db.session.query(BoxMetricSample).filter_by(box_id=box.id)
    if start is not None:
        query = query.filter(BoxMetricSample.recorded_at >= start)
    if end is not None:
        query = query.filter(BoxMetricSample.recorded_at <= end)
    return query.order_by(BoxMetricSample.recorded_at, BoxMetricSample.id).all()
