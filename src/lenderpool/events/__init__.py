"""Event bus for lender pool state changes."""

from .bus import (
    ALL_EVENT_TYPES,
    EVENT_AUTHORITY_SWITCHED,
    EVENT_DEPOSITED,
    EVENT_RATE_SET,
    EVENT_REGISTERED,
    EVENT_REWARD_CLAIMED,
    EVENT_STRATEGY_SWITCHED,
    EVENT_WITHDRAWN,
    Event,
    EventBus,
    EventHandler,
    EventRecorder,
    InMemoryEventBus,
)

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "EventRecorder",
    "InMemoryEventBus",
    "EVENT_DEPOSITED",
    "EVENT_WITHDRAWN",
    "EVENT_REGISTERED",
    "EVENT_REWARD_CLAIMED",
    "EVENT_RATE_SET",
    "EVENT_AUTHORITY_SWITCHED",
    "EVENT_STRATEGY_SWITCHED",
    "ALL_EVENT_TYPES",
]
