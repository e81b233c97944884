"""
Vesting event notifications.

Every successful state transition of the engine appends one event to its
EventLog. Events are the engine's observable history: plan definitions,
locks, claims and the release time being set.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Iterator, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VestingEvent:
    """Base class for engine notifications."""

    timestamp: int

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["event_type"] = self.event_type
        return payload


@dataclass(frozen=True)
class PlanAdded(VestingEvent):
    plan_id: int = 0
    offsets: tuple[int, ...] = ()
    percents: tuple[int, ...] = ()


@dataclass(frozen=True)
class TokensLocked(VestingEvent):
    beneficiary: str = ""
    plan_id: int = 0
    amount: int = 0


@dataclass(frozen=True)
class TokensClaimed(VestingEvent):
    beneficiary: str = ""
    plan_id: int = 0
    amount: int = 0


@dataclass(frozen=True)
class ReleaseTimeSet(VestingEvent):
    release_time: int = 0


E = TypeVar("E", bound=VestingEvent)
Subscriber = Callable[[VestingEvent], None]


@dataclass
class EventLog:
    """Append-only event history with optional subscribers."""

    events: List[VestingEvent] = field(default_factory=list)
    subscribers: List[Subscriber] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def emit(self, event: VestingEvent) -> None:
        with self._lock:
            self.events.append(event)
            subscribers = list(self.subscribers)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                # The state change behind the event has already committed.
                logger.exception(
                    "Event subscriber failed on %s",
                    event.event_type,
                    extra={"event": "events.subscriber_failed", "event_type": event.event_type},
                )

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self.subscribers.append(subscriber)

    def of_type(self, event_type: Type[E], plan_id: Optional[int] = None) -> List[E]:
        """Events of one type, optionally restricted to a plan."""
        selected = [e for e in self.events if isinstance(e, event_type)]
        if plan_id is not None:
            selected = [e for e in selected if getattr(e, "plan_id", None) == plan_id]
        return selected

    def __iter__(self) -> Iterator[VestingEvent]:
        return iter(list(self.events))

    def __len__(self) -> int:
        return len(self.events)
