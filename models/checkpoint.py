"""
Checkpoint store for the Railway Deadlock Manager.

Saves full copies of the allocation state into a fixed pool of slots.
Restoring a slot hands back its copy and invalidates the slot, so every
checkpoint can be restored at most once.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

from models.allocation_state import AllocationState
from models.outcomes import Outcome, RestoreResult, SaveResult


MAX_CHECKPOINTS = 16
MAX_LABEL_LEN = 127
DEFAULT_LABEL = "checkpoint"


@dataclass(frozen=True)
class Checkpoint:
    """
    Saved copy of an allocation state.

    Attributes:
        slot_id: Slot holding this checkpoint
        sequence: Creation order across the whole store (monotonic)
        label: Free-text note
        state: Deep copy of the ledger at save time
        created_at: Wall-clock time of the save
        valid: False once the checkpoint has been restored
    """
    slot_id: int
    sequence: int
    label: str
    state: AllocationState
    created_at: datetime
    valid: bool = True


class CheckpointStore:
    """Bounded arena of checkpoint slots indexed by integer handle."""

    def __init__(self, capacity: int = MAX_CHECKPOINTS):
        if capacity < 1:
            raise ValueError(f"Checkpoint store capacity must be positive, got {capacity}")
        self._slots: List[Optional[Checkpoint]] = [None] * capacity
        self._next_sequence = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def free_slots(self) -> int:
        return sum(1 for slot in self._slots if not self._is_valid(slot))

    @staticmethod
    def _is_valid(slot: Optional[Checkpoint]) -> bool:
        return slot is not None and slot.valid

    def save(self, state: AllocationState, label: str = "") -> SaveResult:
        """
        Copy `state` into the first free slot.

        Args:
            state: Ledger to snapshot
            label: Note stored with the checkpoint (defaults to "checkpoint")

        Returns:
            SaveResult with the slot id, or STORE_FULL when no slot is free
        """
        label = (label or DEFAULT_LABEL)[:MAX_LABEL_LEN]

        for slot_id, slot in enumerate(self._slots):
            if self._is_valid(slot):
                continue

            self._slots[slot_id] = Checkpoint(
                slot_id=slot_id,
                sequence=self._next_sequence,
                label=label,
                state=state.copy(),
                created_at=datetime.now(),
            )
            self._next_sequence += 1
            return SaveResult(Outcome.OK, f"Saved checkpoint {slot_id} ({label})", slot_id)

        return SaveResult(
            Outcome.STORE_FULL,
            f"No free checkpoint slots (capacity {self.capacity})"
        )

    def restore(self, slot_id: int) -> RestoreResult:
        """
        Hand back the state saved in `slot_id` and invalidate the slot.

        Returns:
            RestoreResult with the saved state, or CHECKPOINT_NOT_FOUND when
            the slot is out of range or holds no valid checkpoint
        """
        if slot_id < 0 or slot_id >= self.capacity:
            return RestoreResult(
                Outcome.CHECKPOINT_NOT_FOUND,
                f"Checkpoint slot {slot_id} out of range (0-{self.capacity - 1})"
            )

        checkpoint = self._slots[slot_id]
        if not self._is_valid(checkpoint):
            return RestoreResult(
                Outcome.CHECKPOINT_NOT_FOUND,
                f"Checkpoint slot {slot_id} is empty or already restored"
            )

        self._slots[slot_id] = replace(checkpoint, valid=False)
        return RestoreResult(
            Outcome.OK,
            f"Restored checkpoint {slot_id} ({checkpoint.label})",
            checkpoint.state.copy()
        )

    def get(self, slot_id: int) -> Optional[Checkpoint]:
        """Valid checkpoint in `slot_id`, or None. The returned state is a copy."""
        if 0 <= slot_id < self.capacity and self._is_valid(self._slots[slot_id]):
            return self._detached(self._slots[slot_id])
        return None

    def list_checkpoints(self) -> List[Checkpoint]:
        """Valid checkpoints in slot order, each carrying a copy of its state."""
        return [self._detached(slot) for slot in self._slots if self._is_valid(slot)]

    @staticmethod
    def _detached(checkpoint: Checkpoint) -> Checkpoint:
        return replace(checkpoint, state=checkpoint.state.copy())
