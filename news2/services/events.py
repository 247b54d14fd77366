"""
Alert lifecycle events for notification collaborators.

The core never delivers notifications itself. It publishes an event for every
alert transition and any number of handlers (push, SMS, e-mail, dashboards)
subscribe to them. A failing handler is logged and skipped; it never undoes or
blocks the transition that produced the event.
"""

import inspect
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog

from news2.domain.models import Alert, Observation

logger = structlog.get_logger(__name__)


class AlertEventType(str, Enum):
    OPENED = "alert_opened"
    UPGRADED = "alert_upgraded"
    ACKNOWLEDGED = "alert_acknowledged"
    RESOLVED = "alert_resolved"


@dataclass(frozen=True)
class AlertEvent:
    """An alert transition, carrying the full alert record after the change."""

    event_type: AlertEventType
    alert: Alert
    observation: Observation | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


AlertEventHandler = Callable[[AlertEvent], Awaitable[None] | None]


class AlertEventBus:
    """Fan-out of alert events to subscribed handlers."""

    def __init__(self, history_size: int = 1000) -> None:
        self.handlers: list[AlertEventHandler] = []
        self.history: deque[AlertEvent] = deque(maxlen=history_size)
        self.logger = logger.bind(component="alert_event_bus")

    def subscribe(self, handler: AlertEventHandler) -> None:
        self.handlers.append(handler)
        self.logger.info("handler_subscribed", handler=getattr(handler, "__name__", repr(handler)))

    def unsubscribe(self, handler: AlertEventHandler) -> None:
        self.handlers.remove(handler)

    async def publish(self, events: Iterable[AlertEvent]) -> None:
        for event in events:
            self.history.append(event)
            for handler in self.handlers:
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    self.logger.error(
                        "alert_event_dispatch_failed",
                        error=str(e),
                        event_type=event.event_type.value,
                        alert_id=event.alert.id,
                    )

    def recent(self, event_type: AlertEventType | None = None) -> list[AlertEvent]:
        """Recent events, oldest first, optionally filtered by type."""
        if event_type is None:
            return list(self.history)
        return [e for e in self.history if e.event_type == event_type]
