"""
Allocation State Tests - Core Ledger

Tests construction bounds, Need derivation, copying and the sanity checks.
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.allocation_state import (
    AllocationState,
    ConfigurationError,
    MAX_CONSUMERS,
    MAX_RESOURCES,
)


def textbook_state() -> AllocationState:
    """Five trains, three tracks (Silberschatz Banker's example)."""
    return AllocationState(
        available=[3, 3, 2],
        maximum=[[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
        allocation=[[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
    )


def expect_configuration_error(build, description):
    try:
        build()
    except ConfigurationError as e:
        print(f"  ✓ Rejected {description}: {e}")
        return
    assert False, f"Should have rejected {description}"


def test_need_and_capacity():
    """Need is Maximum - Allocation and capacity sums Available and Allocation."""
    print("\n" + "="*60)
    print("TEST 1: Need Matrix and Capacity")
    print("="*60)

    state = textbook_state()

    assert state.num_consumers == 5
    assert state.num_resources == 3
    assert state.need[0].tolist() == [7, 4, 3], "Train0 need should be [7, 4, 3]"
    assert state.need[2].tolist() == [6, 0, 0], "Train2 need should be [6, 0, 0]"
    assert state.capacity.tolist() == [10, 5, 7]
    print(f"  ✓ Need matrix:\n{state.need}")

    state.maximum[0][0] = 8
    state.recompute_need()
    assert state.need[0][0] == 8, "recompute_need should pick up the new maximum"
    print("  ✓ recompute_need reflects direct edits")


def test_default_names_and_active_flags():
    state = AllocationState.empty(2, 3)

    assert state.consumer_names == ["Train0", "Train1"]
    assert state.resource_names == ["Track0", "Track1", "Track2"]
    assert state.active.tolist() == [True, True]
    assert state.available.tolist() == [0, 0, 0]
    assert state.need.shape == (2, 3)


def test_construction_bounds():
    """Counts outside the configured maxima fail construction."""
    print("\n" + "="*60)
    print("TEST 2: Construction Bounds")
    print("="*60)

    expect_configuration_error(lambda: AllocationState.empty(0, 3), "zero trains")
    expect_configuration_error(lambda: AllocationState.empty(3, 0), "zero tracks")
    expect_configuration_error(
        lambda: AllocationState.empty(MAX_CONSUMERS + 1, 1), "too many trains"
    )
    expect_configuration_error(
        lambda: AllocationState.empty(1, MAX_RESOURCES + 1), "too many tracks"
    )

    state = AllocationState.empty(MAX_CONSUMERS, MAX_RESOURCES)
    assert state.need.shape == (MAX_CONSUMERS, MAX_RESOURCES)
    print("  ✓ Largest allowed ledger constructed")


def test_invalid_contents_rejected():
    """Allocation above maximum is rejected, never clamped."""
    expect_configuration_error(
        lambda: AllocationState(available=[0], maximum=[[1]], allocation=[[2]]),
        "allocation above maximum"
    )
    expect_configuration_error(
        lambda: AllocationState(available=[-1], maximum=[[1]], allocation=[[0]]),
        "negative available"
    )
    expect_configuration_error(
        lambda: AllocationState(available=[1, 1], maximum=[[1]], allocation=[[0]]),
        "available shape mismatch"
    )
    expect_configuration_error(
        lambda: AllocationState(available=[1], maximum=[[1], [1]], allocation=[[0]]),
        "allocation shape mismatch"
    )
    expect_configuration_error(
        lambda: AllocationState(
            available=[1], maximum=[[1]], allocation=[[0]], consumer_names=["A", "B"]
        ),
        "wrong number of names"
    )


def test_fractional_and_non_numeric_units_rejected():
    """Track units are indivisible, so fractions are rejected rather than truncated."""
    expect_configuration_error(
        lambda: AllocationState(available=[1.7], maximum=[[2.9]], allocation=[[2.5]]),
        "fractional units"
    )
    expect_configuration_error(
        lambda: AllocationState(available=[1], maximum=[[2]], allocation=[[0.5]]),
        "fractional allocation"
    )
    expect_configuration_error(
        lambda: AllocationState(available=["two"], maximum=[[2]], allocation=[[0]]),
        "non-numeric available"
    )
    expect_configuration_error(
        lambda: AllocationState(available=[float("nan")], maximum=[[2]], allocation=[[0]]),
        "NaN units"
    )

    state = AllocationState(available=[2.0], maximum=[[3.0]], allocation=[[1]])
    assert state.available.tolist() == [2]
    assert state.need.tolist() == [[2]]
    assert state.available.dtype.kind == 'i'


def test_copy_is_deep_and_equal():
    state = textbook_state()
    clone = state.copy()

    assert clone == state
    assert clone is not state

    clone.allocation[0][0] += 1
    clone.consumer_names[0] = "Changed"
    assert state.allocation[0][0] == 0, "Copy must not share arrays"
    assert state.consumer_names[0] == "Train0", "Copy must not share names"
    assert clone != state


def expect_assertion(check, description):
    try:
        check()
    except AssertionError as e:
        print(f"  ✓ {description} detected: {str(e).splitlines()[0]}")
        return
    raise AssertionError(f"Should have detected {description}")


def test_sanity_checks():
    """Conservation and need checks catch tampering."""
    print("\n" + "="*60)
    print("TEST 3: Sanity Checks")
    print("="*60)

    state = textbook_state()
    capacity = state.capacity
    state.assert_resource_conservation(capacity, "at initial state")
    state.assert_need_non_negative("at initial state")
    print("  ✓ Initial state passes both checks")

    state.available[0] += 1
    expect_assertion(
        lambda: state.assert_resource_conservation(capacity, "after tampering"),
        "conservation violation"
    )

    over = textbook_state()
    over.allocation[1][0] = 5
    over.recompute_need()
    expect_assertion(
        lambda: over.assert_need_non_negative("after over-allocation"),
        "negative need"
    )


def test_display():
    state = textbook_state()
    output = state.display()

    assert "ALLOCATION STATE" in output
    assert "Need Matrix (Maximum - Allocation):" in output
    assert "Train4" in output
    assert np.array_equal(state.need, state.maximum - state.allocation)


def main():
    """Run all allocation state tests."""
    try:
        test_need_and_capacity()
        test_default_names_and_active_flags()
        test_construction_bounds()
        test_invalid_contents_rejected()
        test_fractional_and_non_numeric_units_rejected()
        test_copy_is_deep_and_equal()
        test_sanity_checks()
        test_display()
        print("\n✅ Allocation State Tests PASSED")
        return 0
    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
