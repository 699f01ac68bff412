"""Tests for movein.events -- the publish/subscribe bus."""

from __future__ import annotations

import logging

from movein.events import Event, EventBus, EventType


class TestEventBus:
    def test_publish_reaches_subscriber(self):
        bus = EventBus()
        seen = []
        bus.subscribe(EventType.ORDER_CONFIRMED, seen.append)
        event = bus.publish(EventType.ORDER_CONFIRMED, {"order_id": "X"}, source="test")
        assert seen == [event]
        assert event.data == {"order_id": "X"}
        assert event.source == "test"

    def test_other_types_not_delivered(self):
        bus = EventBus()
        seen = []
        bus.subscribe(EventType.ORDER_FAILED, seen.append)
        bus.publish(EventType.ORDER_CONFIRMED)
        assert seen == []

    def test_wildcard(self):
        bus = EventBus()
        seen = []
        bus.subscribe(None, seen.append)
        bus.publish(EventType.STEP_CHANGED)
        bus.publish(EventType.FLOW_RESET)
        assert [e.type for e in seen] == [EventType.STEP_CHANGED, EventType.FLOW_RESET]

    def test_duplicate_subscription_ignored(self):
        bus = EventBus()
        seen = []
        bus.subscribe(EventType.STEP_CHANGED, seen.append)
        bus.subscribe(EventType.STEP_CHANGED, seen.append)
        bus.publish(EventType.STEP_CHANGED)
        assert len(seen) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        bus.subscribe(EventType.STEP_CHANGED, seen.append)
        bus.unsubscribe(EventType.STEP_CHANGED, seen.append)
        bus.unsubscribe(EventType.FLOW_RESET, seen.append)
        bus.publish(EventType.STEP_CHANGED)
        assert seen == []

    def test_failing_handler_does_not_block_others(self, caplog):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(EventType.ORDER_FAILED, broken)
        bus.subscribe(EventType.ORDER_FAILED, seen.append)
        with caplog.at_level(logging.ERROR, logger="movein.events"):
            bus.publish(EventType.ORDER_FAILED)
        assert len(seen) == 1
        assert "failed" in caplog.text

    def test_publish_prebuilt_event(self):
        bus = EventBus()
        event = Event(type=EventType.FLOW_RESET, source="x")
        assert bus.publish(event) is event


class TestHistory:
    def test_newest_first(self):
        bus = EventBus()
        bus.publish(EventType.STEP_CHANGED, {"step": 2})
        bus.publish(EventType.STEP_CHANGED, {"step": 3})
        assert [e.data["step"] for e in bus.recent_events(EventType.STEP_CHANGED)] == [3, 2]

    def test_limit_and_cap(self):
        bus = EventBus(max_history=5)
        for i in range(10):
            bus.publish(EventType.STEP_CHANGED, {"i": i})
        assert len(bus.recent_events()) == 5
        assert [e.data["i"] for e in bus.recent_events(limit=2)] == [9, 8]

    def test_clear(self):
        bus = EventBus()
        bus.publish(EventType.FLOW_RESET)
        bus.clear_history()
        assert bus.recent_events() == []

    def test_to_dict(self):
        data = Event(type=EventType.ORDER_CONFIRMED, data={"a": 1}, timestamp=1.0).to_dict()
        assert data == {"type": "order.confirmed", "data": {"a": 1}, "timestamp": 1.0, "source": ""}
