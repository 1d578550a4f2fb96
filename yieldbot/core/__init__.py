"""Core module - Single Source of Truth for shared components."""

from yieldbot.core.events import (
    EmergencyModeChanged,
    Event,
    EventBus,
    EventType,
    MarketSnapshotUpdated,
    RebalanceExecuted,
    StrategyChanged,
    TaskExecuted,
)
from yieldbot.core.ring_buffer import RingBuffer

__all__ = [
    "EmergencyModeChanged",
    "Event",
    "EventBus",
    "EventType",
    "MarketSnapshotUpdated",
    "RebalanceExecuted",
    "RingBuffer",
    "StrategyChanged",
    "TaskExecuted",
]
