"""
Result values returned by the core operations.

Every recoverable condition (denied request, bad index, full checkpoint
store, missing checkpoint) is reported through these values instead of
an exception, so callers can re-prompt or re-supply input.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.allocation_state import AllocationState


class Outcome(Enum):
    """Outcome of a core operation."""
    OK = "OK"
    GRANTED = "GRANTED"
    DENIED = "DENIED"
    INVALID_INDEX = "INVALID_INDEX"
    STORE_FULL = "STORE_FULL"
    CHECKPOINT_NOT_FOUND = "CHECKPOINT_NOT_FOUND"


@dataclass
class RequestResult:
    """
    Decision of the request arbiter.

    Attributes:
        outcome: GRANTED or DENIED
        reason: Human-readable explanation of the decision
        safe_sequence: Safe completion order when granted, empty otherwise
    """
    outcome: Outcome
    reason: str
    safe_sequence: List[int] = field(default_factory=list)

    @property
    def granted(self) -> bool:
        return self.outcome == Outcome.GRANTED


@dataclass
class RecoveryResult:
    """
    Result of a forced release (termination or preemption).

    Attributes:
        outcome: OK or INVALID_INDEX
        message: Human-readable description of the action
        released: Units returned to Available per track section
    """
    outcome: Outcome
    message: str
    released: List[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.OK


@dataclass
class SaveResult:
    """Result of saving a checkpoint."""
    outcome: Outcome
    message: str
    slot_id: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.OK


@dataclass
class RestoreResult:
    """Result of restoring a checkpoint; `state` is set only on success."""
    outcome: Outcome
    message: str
    state: Optional[AllocationState] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.OK
