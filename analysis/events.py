"""
Event Model for the Railway Deadlock Manager.

Defines event types for tracking actions applied to the ledger.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events in a run."""
    ALLOCATION = "allocation"
    DENIAL = "denial"
    DEADLOCK = "deadlock"
    NO_DEADLOCK = "no_deadlock"
    RECOVERY = "recovery"
    CHECKPOINT = "checkpoint"
    RESTORE = "restore"
    ERROR = "error"


@dataclass
class SimulationEvent:
    """
    Represents a single event in a run.

    Attributes:
        index: Position of the action that produced the event
        event_type: Type of event
        consumer_id: Train involved in event (-1 for system-wide events)
        units: Units involved per track section (if applicable)
        message: Human-readable description
        reason: Reason for denial/recovery action (if applicable)
    """
    index: int
    event_type: EventType
    consumer_id: int = -1
    units: Optional[List[int]] = None
    message: str = ""
    reason: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Action {self.index}: Train{self.consumer_id}" if self.consumer_id >= 0 \
            else f"Action {self.index}:"

        if self.event_type == EventType.ALLOCATION:
            return f"{base} requests {self.units} - GRANTED ({self.reason})"
        elif self.event_type == EventType.DENIAL:
            return f"{base} requests {self.units} - DENIED ({self.reason})"
        elif self.event_type == EventType.DEADLOCK:
            return f"{base} DEADLOCK DETECTED ({self.message})"
        elif self.event_type == EventType.RECOVERY:
            return f"{base} RECOVERY ({self.message})"
        else:
            return f"{base} {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """Collection of run events."""
    events: list = None

    def __post_init__(self):
        if self.events is None:
            self.events = []

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]
