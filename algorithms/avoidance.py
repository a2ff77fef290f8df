"""
Deadlock Avoidance Algorithm (Banker's Algorithm) for the Railway Deadlock Manager.

Implements the safety check and the tentative-allocate / check / commit-or-rollback
protocol that keeps the ledger in a safe state.
"""

import numpy as np
from typing import List, Sequence, Tuple

from models.allocation_state import AllocationState, ConfigurationError, as_unit_array
from models.outcomes import Outcome, RequestResult


def is_safe_state(state: AllocationState) -> Tuple[bool, List[int]]:
    """
    Check if the ledger is in a safe state using Banker's Algorithm.

    Algorithm:
    1. Initialize Work = Available, Finish = [False] * num_consumers
    2. Find the lowest index i where Finish[i] == False and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], append i, restart at 0
    4. Repeat step 2 until all trains finish (SAFE) or a scan finds none (UNSAFE)

    Time Complexity: O(C²×R)

    Args:
        state: Current allocation state (not modified)

    Returns:
        Tuple of (is_safe, sequence). When unsafe the sequence is the partial
        order found before the scan got stuck and carries no guarantee.

    References:
        Silberschatz, A., Galvin, P. B., & Gagne, G. (2018).
        Operating System Concepts (10th ed.). Chapter 7.5: Deadlock Avoidance.
    """
    work = state.available.copy()
    finish = np.zeros(state.num_consumers, dtype=bool)
    safe_sequence = []

    made_progress = True
    while made_progress:
        made_progress = False

        for i in range(state.num_consumers):
            if finish[i]:
                continue

            if np.all(state.need[i] <= work):
                work += state.allocation[i]
                finish[i] = True
                safe_sequence.append(i)
                made_progress = True
                break  # Restart search from index 0 for determinism

    return bool(finish.all()), safe_sequence


def verify_safe_sequence(state: AllocationState, sequence: Sequence[int]) -> bool:
    """
    Replay a completion order against a work copy of Available.

    Every train in `sequence` must have its remaining need covered by the
    free units plus the units released by the trains before it, and the
    sequence must name every train exactly once.

    Args:
        state: Allocation state the sequence was computed for
        sequence: Candidate completion order

    Returns:
        True if the sequence is a valid safe sequence for `state`
    """
    if sorted(sequence) != list(range(state.num_consumers)):
        return False

    work = state.available.copy()
    for i in sequence:
        if np.any(state.need[i] > work):
            return False
        work += state.allocation[i]
    return True


def handle_request(
    state: AllocationState,
    consumer_id: int,
    request: Sequence[int]
) -> RequestResult:
    """
    Handle a multi-resource request using Banker's Algorithm.

    Steps:
    1. Validate: consumer id in range and request well formed
    2. Validate: request <= need
    3. Check: request <= available
    4. Tentatively allocate and run the safety algorithm
    5. If safe: keep the allocation
       If unsafe: roll back with the inverse arithmetic

    A denied request leaves the ledger exactly as it was.

    Args:
        state: Allocation state, mutated only when the request is granted
        consumer_id: Index of the requesting train
        request: Units requested per track section [R]

    Returns:
        RequestResult (GRANTED or DENIED with a reason)
    """
    if not state.is_valid_consumer(consumer_id):
        return RequestResult(
            Outcome.DENIED,
            f"Invalid train id {consumer_id} (valid: 0-{state.num_consumers - 1})"
        )

    try:
        request = as_unit_array(request, "Request")
    except ConfigurationError as e:
        return RequestResult(Outcome.DENIED, str(e))
    if request.shape != (state.num_resources,):
        return RequestResult(
            Outcome.DENIED,
            f"Request must list {state.num_resources} track sections, got shape {request.shape}"
        )
    if np.any(request < 0):
        return RequestResult(Outcome.DENIED, f"Request has negative amounts: {request.tolist()}")

    name = state.consumer_names[consumer_id]
    need = state.need[consumer_id]

    if np.any(request > need):
        j = int(np.argmax(request > need))
        return RequestResult(
            Outcome.DENIED,
            f"Request exceeds need for {state.resource_names[j]} "
            f"(requested: {request[j]}, need: {need[j]})"
        )

    if np.any(request > state.available):
        j = int(np.argmax(request > state.available))
        return RequestResult(
            Outcome.DENIED,
            f"Insufficient units of {state.resource_names[j]} "
            f"(requested: {request[j]}, available: {state.available[j]})"
        )

    if not request.any():
        # Nothing moves, so the request cannot change the safety of the ledger
        return RequestResult(Outcome.GRANTED, f"Empty request by {name} - nothing allocated")

    # Tentative allocation
    state.available -= request
    state.allocation[consumer_id] += request
    state.need[consumer_id] -= request

    is_safe, safe_sequence = is_safe_state(state)

    if not is_safe:
        # Rollback
        state.available += request
        state.allocation[consumer_id] -= request
        state.need[consumer_id] += request
        return RequestResult(
            Outcome.DENIED,
            f"Unsafe state detected - request by {name} rolled back"
        )

    seq_str = " -> ".join(state.consumer_names[i] for i in safe_sequence)
    return RequestResult(
        Outcome.GRANTED,
        f"Safe state maintained, sequence: {seq_str}",
        safe_sequence
    )
