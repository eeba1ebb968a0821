"""
Change notification after successful writes.

Subscribers receive an ``OKRChangedEvent`` once the change is committed.
The event only says *what* happened; subscribers must re-read the aggregate
to build their view.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OKRChangedEvent:
    okr_id: int
    action: str
    actor_id: Optional[int]
    owner_id: Optional[int]
    status: Optional[str]
    archived: bool = False
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[OKRChangedEvent], None]


class ChangeNotifier:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns an unsubscribe function."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: OKRChangedEvent):
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                # A broken dashboard must not fail a committed transition
                logger.error(f"Subscriber {callback!r} failed for {event.action} on OKR {event.okr_id}: {e}", exc_info=True)

    def __len__(self):
        return len(self._subscribers)
