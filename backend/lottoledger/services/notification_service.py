# Overview: In-process real-time fan-out of ledger updates to subscribed clients.

"""
Real-time notification sink.

The Broadcaster is owned by the Flask app (app.extensions["broadcaster"]),
not by the process, so each app instance and each test gets its own.

DELIVERY:
- Fire-and-forget: publish() never raises and never blocks the command
  that triggered it
- Queue subscribers (the SSE stream) are scoped to one store and only
  receive events whose payload carries that store_id
- Queue subscribers drop events when their queue is full
- Listener callbacks that raise are logged and skipped
"""

from __future__ import annotations

import json
import logging
import threading
from queue import Full, Queue
from typing import Any, Callable

from flask import current_app, has_app_context

from ..time_utils import to_utc_z, utcnow


logger = logging.getLogger(__name__)

TOPIC_BOX_SCAN = "box:scan"
TOPIC_BOX_MANUAL_ENTRY = "box:manual_entry"
TOPIC_BOX_RESET = "box:reset"
TOPIC_BOX_ALERT = "box:alert"
TOPIC_TICKET_SCAN = "ticket:scan"
TOPIC_TICKET_STATUS = "ticket:status"
TOPIC_TICKET_RESET = "ticket:reset"

EXTENSION_KEY = "broadcaster"


class Broadcaster:
    """Thread-safe fan-out to subscriber queues and listener callbacks."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._queues: list[tuple[int | None, Queue]] = []
        self._listeners: list[Callable[[str, dict], Any]] = []

    def subscribe(self, store_id: int | None = None) -> Queue:
        """
        Open a subscriber queue.

        With a store_id only that store's events are delivered; without
        one (server-side consumers) every event is.
        """
        q: Queue = Queue(maxsize=self.queue_size)
        with self._lock:
            self._queues.append((store_id, q))
        return q

    def unsubscribe(self, q: Queue) -> None:
        with self._lock:
            self._queues = [entry for entry in self._queues if entry[1] is not q]

    def add_listener(self, listener: Callable[[str, dict], Any]) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def _remove():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._queues) + len(self._listeners)

    def publish(self, topic: str, payload: dict) -> int:
        """
        Deliver an event to every subscriber scoped to its store_id.

        Returns the number of successful deliveries.
        """
        event = {"type": topic, "data": payload, "emitted_at": to_utc_z(utcnow())}
        try:
            data = json.dumps(event, default=str)
        except (TypeError, ValueError):
            logger.exception("Dropping unserializable %s event", topic)
            return 0

        with self._lock:
            queues = list(self._queues)
            listeners = list(self._listeners)

        store_id = payload.get("store_id") if isinstance(payload, dict) else None

        delivered = 0
        for scope, q in queues:
            if scope is not None and scope != store_id:
                continue
            try:
                q.put_nowait((topic, data))
                delivered += 1
            except Full:
                logger.warning("Subscriber queue full; dropped %s event", topic)

        for listener in listeners:
            try:
                listener(topic, event)
                delivered += 1
            except Exception:
                logger.exception("Listener failed for %s event", topic)

        return delivered


def init_broadcaster(app) -> Broadcaster:
    broadcaster = Broadcaster(queue_size=app.config.get("SSE_QUEUE_SIZE", 100))
    app.extensions[EXTENSION_KEY] = broadcaster
    return broadcaster


def get_broadcaster() -> Broadcaster | None:
    if not has_app_context():
        return None
    return current_app.extensions.get(EXTENSION_KEY)


def publish(topic: str, payload: dict) -> None:
    """Publish through the current app's broadcaster; failures are logged, never raised."""
    broadcaster = get_broadcaster()
    if broadcaster is None:
        logger.debug("No broadcaster configured; %s event not sent", topic)
        return
    try:
        broadcaster.publish(topic, payload)
    except Exception:
        logger.exception("Broadcast of %s event failed", topic)
