"""
Deadlock Recovery Algorithm for the Railway Deadlock Manager.

Implements train termination and track preemption. Neither operation runs
a safety check; callers re-run detection afterwards.
"""

import numpy as np
from typing import List, Sequence, Tuple

from models.allocation_state import AllocationState, ConfigurationError, REMOVED_TAG, as_unit_array
from models.outcomes import Outcome, RecoveryResult
from algorithms.detection import build_wait_for_graph, find_cycle


VICTIM_STRATEGIES = ("fewest_resources", "most_resources", "highest_index")


def _describe_units(state: AllocationState, units: Sequence[int]) -> str:
    held = [
        f"{state.resource_names[j]}[{amount}]"
        for j, amount in enumerate(units) if amount > 0
    ]
    return ", ".join(held) if held else "nothing"


def terminate_consumer(state: AllocationState, consumer_id: int) -> RecoveryResult:
    """
    Terminate a train and release all its track sections.

    Train termination:
    - Return every held unit to Available
    - Zero the Maximum, Allocation and Need rows
    - Mark the train inactive and tag its name; the index stays valid

    Args:
        state: Current allocation state
        consumer_id: Index of the train to terminate

    Returns:
        RecoveryResult with the released units
    """
    if not state.is_valid_consumer(consumer_id):
        return RecoveryResult(
            Outcome.INVALID_INDEX,
            f"Invalid train id {consumer_id} (valid: 0-{state.num_consumers - 1})"
        )

    name = state.consumer_names[consumer_id]
    released = state.allocation[consumer_id].copy()

    state.available += released
    state.allocation[consumer_id] = 0
    state.maximum[consumer_id] = 0
    state.need[consumer_id] = 0

    state.active[consumer_id] = False
    if not name.endswith(REMOVED_TAG):
        state.consumer_names[consumer_id] = f"{name} {REMOVED_TAG}"

    message = f"Terminated {name} (released {_describe_units(state, released)})"
    return RecoveryResult(Outcome.OK, message, released.tolist())


def preempt_resources(
    state: AllocationState,
    consumer_id: int,
    preempt: Sequence[int]
) -> RecoveryResult:
    """
    Preempt track sections from a train.

    For each section r, min(preempt[r], Allocation[c][r]) units are taken
    back to Available. Negative amounts count as zero. Need is recomputed
    from the declared maximum, so it grows by the units taken.

    Args:
        state: Current allocation state
        consumer_id: Index of the victim train
        preempt: Units to take per track section [R]

    Returns:
        RecoveryResult with the units actually taken
    """
    if not state.is_valid_consumer(consumer_id):
        return RecoveryResult(
            Outcome.INVALID_INDEX,
            f"Invalid train id {consumer_id} (valid: 0-{state.num_consumers - 1})"
        )

    try:
        preempt = as_unit_array(preempt, "Preemption")
    except ConfigurationError as e:
        return RecoveryResult(Outcome.INVALID_INDEX, str(e))
    if preempt.shape != (state.num_resources,):
        return RecoveryResult(
            Outcome.INVALID_INDEX,
            f"Preemption must list {state.num_resources} track sections, got shape {preempt.shape}"
        )

    take = np.minimum(np.clip(preempt, 0, None), state.allocation[consumer_id])

    state.allocation[consumer_id] -= take
    state.available += take
    state.recompute_need()

    name = state.consumer_names[consumer_id]
    message = (
        f"Preempted {_describe_units(state, take)} from {name} "
        f"(now holding {_describe_units(state, state.allocation[consumer_id])})"
    )
    return RecoveryResult(Outcome.OK, message, take.tolist())


def select_victim(
    cycle: List[int],
    state: AllocationState,
    strategy: str = "fewest_resources"
) -> int:
    """
    Select victim train for termination.

    Strategies:
    - "fewest_resources": Train holding fewest units (minimize lost work)
    - "most_resources": Train holding most units (free the most track)
    - "highest_index": Train with the highest index

    Ties are broken by the lowest index.

    Args:
        cycle: Train indices in the deadlock
        state: Current allocation state
        strategy: Selection strategy

    Returns:
        Index of selected victim, or -1 if `cycle` is empty
    """
    if not cycle:
        return -1

    held = {i: int(state.allocation[i].sum()) for i in cycle}

    if strategy == "most_resources":
        return min(cycle, key=lambda i: (-held[i], i))
    elif strategy == "highest_index":
        return max(cycle)
    elif strategy == "fewest_resources":
        return min(cycle, key=lambda i: (held[i], i))
    else:
        raise ValueError(
            f"Unknown victim strategy '{strategy}' (choose from {', '.join(VICTIM_STRATEGIES)})"
        )


def recover_from_deadlock(
    state: AllocationState,
    strategy: str = "fewest_resources"
) -> Tuple[bool, List[str]]:
    """
    Recover from deadlock by terminating victims until no cycle remains.

    Args:
        state: Current allocation state
        strategy: Victim selection strategy (see select_victim)

    Returns:
        Tuple of (success, list of action messages)
    """
    actions = []

    cycle = find_cycle(build_wait_for_graph(state))
    if cycle is None:
        return False, ["No deadlock to recover from"]

    # Each termination empties one train's rows, so at most one pass per train
    for _ in range(state.num_consumers):
        victim = select_victim(cycle, state, strategy)
        result = terminate_consumer(state, victim)

        if not result.success:
            actions.append(f"FAILED: {result.message}")
            return False, actions

        actions.append(f"RECOVERY: {result.message}")

        cycle = find_cycle(build_wait_for_graph(state))
        if cycle is None:
            actions.append("Deadlock resolved - no cycle in wait-for graph")
            return True, actions

    actions.append("Deadlock persists after terminating every train")
    return False, actions
