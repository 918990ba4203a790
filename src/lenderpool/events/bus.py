"""
Ledger event bus.

Synchronous in-process event bus with glob-style pattern matching. The
pool publishes one event per committed state change, after the change
is written.
"""

from __future__ import annotations

import fnmatch
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


# Standard event types
EVENT_DEPOSITED = "pool.deposited"
EVENT_WITHDRAWN = "pool.withdrawn"
EVENT_REGISTERED = "registry.registered"
EVENT_REWARD_CLAIMED = "reward.claimed"
EVENT_RATE_SET = "rate.set"
EVENT_AUTHORITY_SWITCHED = "authority.switched"
EVENT_STRATEGY_SWITCHED = "strategy.switched"

ALL_EVENT_TYPES = [
    EVENT_DEPOSITED,
    EVENT_WITHDRAWN,
    EVENT_REGISTERED,
    EVENT_REWARD_CLAIMED,
    EVENT_RATE_SET,
    EVENT_AUTHORITY_SWITCHED,
    EVENT_STRATEGY_SWITCHED,
]


@dataclass
class Event:
    """An event emitted by the lender pool."""

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: f"evt-{time.monotonic_ns()}")


EventHandler = Callable[[Event], Any]


class EventBus(ABC):
    """Where the pool publishes its committed changes."""

    @abstractmethod
    def emit(self, event: Event) -> int:
        """Deliver ``event`` and return how many handlers received it."""

    @abstractmethod
    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        """Register ``handler`` for event types matching ``pattern``.

        Patterns use ``fnmatch`` syntax, so ``reward.*`` selects every
        reward event and ``*`` selects everything.
        """

    @abstractmethod
    def unsubscribe(self, handler: EventHandler) -> int:
        """Drop ``handler`` from every pattern; returns subscriptions removed."""


class InMemoryEventBus(EventBus):
    """Delivers events synchronously on the emitting call.

    Handlers are grouped by pattern; patterns are visited in the order they
    were first subscribed.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def emit(self, event: Event) -> int:
        delivered = 0
        for pattern, handlers in list(self._handlers.items()):
            if not fnmatch.fnmatchcase(event.event_type, pattern):
                continue
            for handler in list(handlers):
                handler(event)
                delivered += 1
        return delivered

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        self._handlers.setdefault(pattern, []).append(handler)

    def unsubscribe(self, handler: EventHandler) -> int:
        removed = 0
        for pattern in list(self._handlers):
            kept = [h for h in self._handlers[pattern] if h is not handler]
            removed += len(self._handlers[pattern]) - len(kept)
            if kept:
                self._handlers[pattern] = kept
            else:
                del self._handlers[pattern]
        return removed

    def patterns(self) -> list[str]:
        """Patterns with at least one subscriber."""
        return list(self._handlers)



class EventRecorder:
    """Handler that keeps every event it receives, in order.

    Example:
        >>> bus = InMemoryEventBus()
        >>> recorder = EventRecorder()
        >>> bus.subscribe("reward.*", recorder)
    """

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()
