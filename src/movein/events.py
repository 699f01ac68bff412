"""Event system: publish/subscribe for checkout flow changes.

The flow controller publishes an event for every committed state
transition.  Views subscribe to :attr:`EventType.STATE_CHANGED` to
re-render from the latest snapshot; notification collaborators
(confirmation email, SMS, PDF export) subscribe to
:attr:`EventType.ORDER_CONFIRMED` and :attr:`EventType.ORDER_FAILED`.

Example::

    bus = EventBus()

    def on_confirmed(event: Event) -> None:
        send_confirmation(event.data["confirmation"])

    bus.subscribe(EventType.ORDER_CONFIRMED, on_confirmed)
    bus.publish(EventType.ORDER_CONFIRMED, {"confirmation": {...}}, source="controller")
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    """All event types emitted by the checkout flow."""

    STATE_CHANGED = "flow.state_changed"
    STEP_CHANGED = "flow.step_changed"
    FLOW_RESET = "flow.reset"

    # Address resolution
    ADDRESS_CHANGED = "address.changed"
    ADDRESS_NOT_FOUND = "address.not_found"
    METER_AMBIGUOUS = "meter.ambiguous"
    METER_CONFIRMED = "meter.confirmed"

    # Catalog
    AVAILABILITY_CHECKED = "catalog.availability_checked"
    PLANS_RANKED = "catalog.plans_ranked"
    PLAN_SELECTION_CLEARED = "catalog.selection_cleared"
    UPSTREAM_FAILED = "catalog.upstream_failed"

    # Order
    ORDER_SUBMITTED = "order.submitted"
    ORDER_CONFIRMED = "order.confirmed"
    ORDER_FAILED = "order.failed"


@dataclass
class Event:
    """A single event in the system."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable dictionary."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
        }


EventHandler = Callable[[Event], None]


class EventBus:
    """Publish/subscribe bus for a single checkout session.

    Handlers are called synchronously in publish order.  If a handler
    raises, the exception is logged but does not prevent other handlers
    from running.  The flow runs on one event loop, so no locking is
    done here.
    """

    def __init__(self, *, max_history: int = 500) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = {}
        self._wildcard_handlers: list[EventHandler] = []
        self._history: list[Event] = []
        self._max_history = max_history

    def subscribe(self, event_type: EventType | None, handler: EventHandler) -> None:
        """Register *handler* for *event_type*, or for every event when ``None``.

        Subscribing the same handler twice is a no-op.
        """
        targets = self._wildcard_handlers if event_type is None else self._handlers.setdefault(event_type, [])
        if any(existing is handler for existing in targets):
            logger.debug("Duplicate subscription for %s, skipping", event_type)
            return
        targets.append(handler)

    def unsubscribe(self, event_type: EventType | None, handler: EventHandler) -> None:
        """Remove a previously registered handler.

        Silently does nothing if the handler is not found.
        """
        if event_type is None:
            self._wildcard_handlers = [h for h in self._wildcard_handlers if h is not handler]
        else:
            entries = self._handlers.get(event_type, [])
            self._handlers[event_type] = [h for h in entries if h is not handler]

    def publish(
        self,
        event_or_type: Event | EventType,
        data: dict[str, Any] | None = None,
        source: str = "",
    ) -> Event:
        """Dispatch an event to all matching handlers and return it.

        Can be called as ``publish(event)`` or
        ``publish(event_type, data_dict, source="...")``.
        """
        if isinstance(event_or_type, EventType):
            event = Event(type=event_or_type, data=data or {}, source=source)
        else:
            event = event_or_type

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history :]

        for handler in list(self._handlers.get(event.type, [])) + list(self._wildcard_handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event.type.value)
        return event

    def recent_events(self, event_type: EventType | None = None, limit: int = 50) -> list[Event]:
        """Most recent events, newest first, optionally filtered by type."""
        events = self._history if event_type is None else [e for e in self._history if e.type is event_type]
        return list(reversed(events[-limit:]))

    def clear_history(self) -> None:
        self._history.clear()
