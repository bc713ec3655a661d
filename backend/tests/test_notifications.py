"""
Broadcaster fan-out tests.
"""

import json
from datetime import datetime

from lottoledger.services import box_service, notification_service
from lottoledger.services.notification_service import Broadcaster, get_broadcaster


class TestBroadcaster:
    def test_queue_subscribers_receive_json_events(self):
        broadcaster = Broadcaster(queue_size=5)
        q = broadcaster.subscribe()

        delivered = broadcaster.publish("box:scan", {"box_id": 1})

        assert delivered == 1
        topic, data = q.get_nowait()
        assert topic == "box:scan"
        event = json.loads(data)
        assert event["type"] == "box:scan"
        assert event["data"] == {"box_id": 1}
        assert event["emitted_at"].endswith("Z")

    def test_full_queue_drops_instead_of_blocking(self):
        broadcaster = Broadcaster(queue_size=1)
        q = broadcaster.subscribe()

        assert broadcaster.publish("box:scan", {"n": 1}) == 1
        assert broadcaster.publish("box:scan", {"n": 2}) == 0
        assert q.qsize() == 1

    def test_failing_listener_does_not_stop_delivery(self):
        broadcaster = Broadcaster()
        received = []

        def broken(topic, event):
            raise RuntimeError("listener down")

        broadcaster.add_listener(broken)
        broadcaster.add_listener(lambda topic, event: received.append(topic))

        assert broadcaster.publish("ticket:scan", {"ticket_id": 3}) == 1
        assert received == ["ticket:scan"]

    def test_unsubscribe_and_remove_listener(self):
        broadcaster = Broadcaster()
        q = broadcaster.subscribe()
        remove = broadcaster.add_listener(lambda topic, event: None)
        assert broadcaster.subscriber_count == 2

        broadcaster.unsubscribe(q)
        broadcaster.unsubscribe(q)
        remove()

        assert broadcaster.subscriber_count == 0
        assert broadcaster.publish("box:reset", {}) == 0


class TestAppBroadcaster:
    def test_each_app_owns_its_broadcaster(self, app):
        assert get_broadcaster() is app.extensions["broadcaster"]

    def test_module_publish_never_raises(self, app):
        broadcaster = get_broadcaster()

        def broken(topic, event):
            raise RuntimeError("listener down")

        remove = broadcaster.add_listener(broken)
        try:
            notification_service.publish("box:scan", {"box_id": 1})
        finally:
            remove()


class TestStoreScopedDelivery:
    def test_store_subscriber_only_gets_its_store(self):
        broadcaster = Broadcaster()
        store_one = broadcaster.subscribe(1)
        store_two = broadcaster.subscribe(2)
        everything = broadcaster.subscribe()

        broadcaster.publish("box:scan", {"store_id": 1, "box_id": 7})

        assert store_one.qsize() == 1
        assert store_two.empty()
        assert everything.qsize() == 1

    def test_unscoped_payload_skips_store_subscribers(self):
        broadcaster = Broadcaster()
        store_one = broadcaster.subscribe(1)

        assert broadcaster.publish("box:scan", {"box_id": 7}) == 0
        assert store_one.empty()

    def test_other_store_sees_nothing_from_a_scan(self, box_a, store_a, store_b):
        broadcaster = get_broadcaster()
        own = broadcaster.subscribe(store_a.id)
        foreign = broadcaster.subscribe(store_b.id)
        try:
            box_service.record_scan(box_a.id, now=datetime(2026, 3, 14, 13, 0, 0))

            assert foreign.empty()
            topic, data = own.get_nowait()
            assert topic == "box:scan"
            assert json.loads(data)["data"]["store_id"] == store_a.id
        finally:
            broadcaster.unsubscribe(own)
            broadcaster.unsubscribe(foreign)
