"""
Banker's Algorithm Tests

Tests the safety check and the request arbiter: lowest-index-first safe
sequences, refusals in check order, exact rollback, and conservation.
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.allocation_state import AllocationState
from models.outcomes import Outcome
from algorithms.avoidance import handle_request, is_safe_state, verify_safe_sequence
from utils.scenario_loader import random_scenario, sample_scenario


def textbook_state() -> AllocationState:
    """Five trains, three tracks (Silberschatz Banker's example)."""
    return AllocationState(
        available=[3, 3, 2],
        maximum=[[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
        allocation=[[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
    )


def sample_with_free_t4() -> AllocationState:
    """The sample railway with one free unit on track T4."""
    state = sample_scenario()
    state.available[4] = 1
    return state


def assert_unchanged(state: AllocationState, before: AllocationState, context: str):
    assert np.array_equal(state.available, before.available), f"Available changed {context}"
    assert np.array_equal(state.maximum, before.maximum), f"Maximum changed {context}"
    assert np.array_equal(state.allocation, before.allocation), f"Allocation changed {context}"
    assert np.array_equal(state.need, before.need), f"Need changed {context}"


def test_sample_railway_is_unsafe():
    """
    The sample railway has no free or held unit of T4, yet C and E need one.

    B and D can finish; the scan then gets stuck.
    """
    print("\n" + "="*60)
    print("TEST 1: Sample Railway Safety")
    print("="*60)

    state = sample_scenario()
    before = state.copy()

    is_safe, sequence = is_safe_state(state)
    print(f"  Safe: {is_safe}, partial sequence: {sequence}")

    assert not is_safe, "T4 has zero capacity, so C and E can never finish"
    assert sequence == [1, 3], f"Expected partial sequence [1, 3], got {sequence}"
    assert state == before, "Safety check must not modify the ledger"
    print("  ✓ Unsafe verdict with partial sequence, ledger untouched")


def test_sample_railway_with_free_unit_is_safe():
    state = sample_with_free_t4()

    is_safe, sequence = is_safe_state(state)
    print(f"  Safe: {is_safe}, sequence: {sequence}")

    assert is_safe
    assert sequence == [1, 2, 0, 3, 4], "Scan restarts at index 0 after each success"
    assert verify_safe_sequence(state, sequence)


def test_textbook_safe_sequence():
    state = textbook_state()

    is_safe, sequence = is_safe_state(state)

    assert is_safe
    assert sequence == [1, 3, 0, 2, 4]
    assert verify_safe_sequence(state, sequence)


def test_verify_safe_sequence_rejects_bad_orders():
    state = textbook_state()

    assert not verify_safe_sequence(state, [0, 1, 2, 3, 4]), "Train0 cannot go first"
    assert not verify_safe_sequence(state, [1, 3, 0, 2]), "Sequence must cover every train"
    assert not verify_safe_sequence(state, [1, 1, 3, 0, 2]), "No train may repeat"


def test_sample_request_denied_for_lack_of_units():
    """Train A asks for [1,0,1,0,0]; within its need but T2 has no free unit."""
    print("\n" + "="*60)
    print("TEST 2: Sample Request by Train A")
    print("="*60)

    state = sample_scenario()
    before = state.copy()

    result = handle_request(state, 0, [1, 0, 1, 0, 0])
    print(f"  Outcome: {result.outcome.value} ({result.reason})")

    assert result.outcome == Outcome.DENIED
    assert not result.granted
    assert "Insufficient units of T2" in result.reason
    assert_unchanged(state, before, "after denied sample request")
    print("  ✓ Denied, ledger unchanged")


def test_textbook_request_sequence():
    """Grant, refusal for lack of units, refusal for safety."""
    print("\n" + "="*60)
    print("TEST 3: Textbook Request Sequence")
    print("="*60)

    state = textbook_state()
    capacity = state.capacity

    result = handle_request(state, 1, [1, 0, 2])
    print(f"  Train1 [1,0,2]: {result.outcome.value} ({result.reason})")
    assert result.granted
    assert result.safe_sequence == [1, 3, 0, 2, 4]
    assert state.available.tolist() == [2, 3, 0]
    assert state.allocation[1].tolist() == [3, 0, 2]
    assert state.need[1].tolist() == [0, 2, 0]

    before = state.copy()
    result = handle_request(state, 4, [3, 3, 0])
    print(f"  Train4 [3,3,0]: {result.outcome.value} ({result.reason})")
    assert result.outcome == Outcome.DENIED
    assert "Insufficient units" in result.reason
    assert_unchanged(state, before, "after insufficient-units refusal")

    result = handle_request(state, 0, [0, 2, 0])
    print(f"  Train0 [0,2,0]: {result.outcome.value} ({result.reason})")
    assert result.outcome == Outcome.DENIED
    assert "Unsafe" in result.reason
    assert result.safe_sequence == []
    assert_unchanged(state, before, "after unsafe rollback")

    state.assert_resource_conservation(capacity, "after textbook requests")
    state.assert_need_non_negative("after textbook requests")
    print("  ✓ Rollback exact, resources conserved")


def test_request_exceeding_need_is_denied():
    state = textbook_state()
    before = state.copy()

    result = handle_request(state, 1, [2, 0, 0])

    assert result.outcome == Outcome.DENIED
    assert "exceeds need" in result.reason
    assert_unchanged(state, before, "after over-need request")


def test_invalid_and_malformed_requests_are_denied():
    state = textbook_state()
    before = state.copy()

    for consumer_id, request in [
        (5, [0, 0, 0]),
        (-1, [0, 0, 0]),
        (0, [1, 0]),
        (0, [0, -1, 0]),
    ]:
        result = handle_request(state, consumer_id, request)
        print(f"  Train{consumer_id} {request}: {result.reason}")
        assert result.outcome == Outcome.DENIED
        assert_unchanged(state, before, f"after request {request} by {consumer_id}")


def test_fractional_request_is_denied():
    """A request for part of a unit is refused, not truncated to an empty grant."""
    state = AllocationState(available=[1], maximum=[[1]], allocation=[[0]])
    before = state.copy()

    for request in ([0.9], [1.5], ["one"]):
        result = handle_request(state, 0, request)
        print(f"  Train0 {request}: {result.reason}")
        assert result.outcome == Outcome.DENIED
        assert "Empty request" not in result.reason
        assert_unchanged(state, before, f"after request {request}")

    assert handle_request(state, 0, [1.0]).granted, "Whole-valued floats are still units"


def test_zero_request_is_granted_without_change():
    for state in (textbook_state(), sample_scenario()):
        before = state.copy()
        result = handle_request(state, 0, [0] * state.num_resources)
        assert result.granted
        assert state == before


def test_conservation_over_random_requests():
    """Random request streams never create or destroy units and keep the ledger safe."""
    print("\n" + "="*60)
    print("TEST 4: Conservation over Random Requests")
    print("="*60)

    rng = np.random.default_rng(7)
    granted = 0

    for seed in range(20):
        state = random_scenario(4, 3, max_units=3, seed=seed)
        capacity = state.capacity
        was_safe, _ = is_safe_state(state)

        for _ in range(15):
            consumer_id = int(rng.integers(0, state.num_consumers))
            request = rng.integers(0, 3, size=state.num_resources)
            before = state.copy()

            result = handle_request(state, consumer_id, request)

            if result.granted:
                granted += 1
                assert is_safe_state(state)[0] or not request.any()
                if request.any():
                    assert verify_safe_sequence(state, result.safe_sequence)
            else:
                assert_unchanged(state, before, f"after denied request (seed {seed})")

            state.assert_resource_conservation(capacity, f"(seed {seed})")
            state.assert_need_non_negative(f"(seed {seed})")

        if was_safe:
            assert is_safe_state(state)[0], "A safe ledger must stay safe under the arbiter"

    print(f"  ✓ {granted} grants, conservation held throughout")


def main():
    """Run all Banker's algorithm tests."""
    try:
        test_sample_railway_is_unsafe()
        test_sample_railway_with_free_unit_is_safe()
        test_textbook_safe_sequence()
        test_verify_safe_sequence_rejects_bad_orders()
        test_sample_request_denied_for_lack_of_units()
        test_textbook_request_sequence()
        test_request_exceeding_need_is_denied()
        test_invalid_and_malformed_requests_are_denied()
        test_fractional_request_is_denied()
        test_zero_request_is_granted_without_change()
        test_conservation_over_random_requests()
        print("\n✅ Banker's Algorithm Tests PASSED")
        return 0
    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
