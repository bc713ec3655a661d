# backend/lottoledger/routes/system.py
"""
System health and real-time event endpoints.

- /health reports database connectivity and broadcaster state
- /api/events/stream exposes the caller's store broadcasts as server-sent events
"""

import time
from queue import Empty

from flask import Blueprint, Response, current_app, g, jsonify, stream_with_context
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_store_context
from ..extensions import db
from ..models import Box, Store, TicketPack
from ..services.notification_service import get_broadcaster
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        box_count = db.session.query(Box).count()
        pack_count = db.session.query(TicketPack).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "boxes": box_count,
                "ticket_packs": pack_count,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    broadcaster = get_broadcaster()
    overall = "healthy" if database["status"] == "healthy" else "unhealthy"
    body = {
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "broadcaster": {
                "status": "healthy" if broadcaster is not None else "unavailable",
                "subscribers": broadcaster.subscriber_count if broadcaster is not None else 0,
            },
        },
    }
    return jsonify(body), 200 if overall == "healthy" else 503


@system_bp.get("/api/events/stream")
@require_store_context
def event_stream():
    """
    Server-sent event stream of the caller's store box and ticket updates.

    Each event is "event: <topic>" with a JSON data line; a keep-alive
    comment is sent when nothing happens for SSE_KEEPALIVE_SECONDS.
    """
    broadcaster = get_broadcaster()
    if broadcaster is None:
        return jsonify({"error": "Real-time updates unavailable"}), 503

    keepalive = current_app.config.get("SSE_KEEPALIVE_SECONDS", 30)
    q = broadcaster.subscribe(g.store_id)

    def gen():
        try:
            yield ": connected\n\n"
            while True:
                try:
                    topic, data = q.get(timeout=keepalive)
                    yield f"event: {topic}\n"
                    yield f"data: {data}\n\n"
                except Empty:
                    yield ": keep-alive\n\n"
        finally:
            broadcaster.unsubscribe(q)

    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(gen()), headers=headers)
