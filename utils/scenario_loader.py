"""
Scenario Loader for the Railway Deadlock Manager.

Builds allocation states from JSON scenario files, from the built-in sample
railway, or at random. Also validates the scenario's action list.
"""

import json
import numpy as np
from typing import Dict, List, Any, Optional, Tuple

from models.allocation_state import AllocationState, ConfigurationError
from algorithms.recovery import VICTIM_STRATEGIES


ACTION_TYPES = ('request', 'terminate', 'preempt', 'save', 'restore', 'detect', 'recover')


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


def load_scenario(file_path: str) -> Tuple[AllocationState, List[Dict[str, Any]]]:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Tuple of (AllocationState, actions)

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    return parse_scenario(data)


def parse_scenario(data: Dict[str, Any]) -> Tuple[AllocationState, List[Dict[str, Any]]]:
    """
    Build the ledger and action list from already-decoded scenario data.

    Raises:
        ScenarioLoadError: If the scenario is invalid
    """
    if 'resources' not in data:
        raise ScenarioLoadError("Scenario missing 'resources' field")
    if 'consumers' not in data:
        raise ScenarioLoadError("Scenario missing 'consumers' field")

    resources = data['resources']
    consumers = data['consumers']
    num_resources = len(resources)

    if not consumers or not resources:
        raise ScenarioLoadError("Scenario needs at least one consumer and one resource")

    resource_names = []
    available = []
    for j, res in enumerate(resources):
        if 'available' not in res:
            raise ScenarioLoadError(f"Resource {j} missing 'available' field")
        resource_names.append(res.get('name', f"Track{j}"))
        available.append(res['available'])

    consumer_names = []
    maximum = []
    allocation = []
    for i, con in enumerate(consumers):
        if 'maximum' not in con:
            raise ScenarioLoadError(f"Consumer {i} missing 'maximum' field")
        if not isinstance(con['maximum'], list):
            raise ScenarioLoadError(f"Consumer {i}: 'maximum' must be a list")
        if len(con['maximum']) != num_resources:
            raise ScenarioLoadError(
                f"Consumer {i}: maximum length ({len(con['maximum'])}) "
                f"does not match resource count ({num_resources})"
            )
        alloc = con.get('allocation', [0] * num_resources)
        if not isinstance(alloc, list) or len(alloc) != num_resources:
            raise ScenarioLoadError(f"Consumer {i}: allocation length mismatch")

        consumer_names.append(con.get('name', f"Train{i}"))
        maximum.append(con['maximum'])
        allocation.append(alloc)

    try:
        state = AllocationState(
            available=available,
            maximum=maximum,
            allocation=allocation,
            consumer_names=consumer_names,
            resource_names=resource_names,
        )
    except ConfigurationError as e:
        raise ScenarioLoadError(f"Invalid allocation state: {e}")

    actions = data.get('actions', [])
    for index, action in enumerate(actions):
        _validate_action(index, action, state)

    return state, actions


def _validate_action(index: int, action: Dict[str, Any], state: AllocationState) -> None:
    """
    Validate the shape of an action.

    Index ranges are deliberately not checked here: out-of-range trains and
    slots are reported by the core operations as result values.

    Raises:
        ScenarioLoadError: If action is malformed
    """
    if 'type' not in action:
        raise ScenarioLoadError(f"Action {index}: missing 'type' field")

    action_type = action['type']
    if action_type not in ACTION_TYPES:
        raise ScenarioLoadError(f"Action {index}: unknown action type '{action_type}'")

    if action_type in ('request', 'terminate', 'preempt') and 'consumer' not in action:
        raise ScenarioLoadError(f"Action {index}: {action_type} action missing 'consumer'")

    if action_type in ('request', 'preempt'):
        if 'units' not in action:
            raise ScenarioLoadError(f"Action {index}: {action_type} action missing 'units'")
        if not isinstance(action['units'], list):
            raise ScenarioLoadError(f"Action {index}: 'units' must be a list")
        if len(action['units']) != state.num_resources:
            raise ScenarioLoadError(
                f"Action {index}: units length ({len(action['units'])}) "
                f"does not match resource count ({state.num_resources})"
            )

    if action_type == 'restore' and 'slot' not in action:
        raise ScenarioLoadError(f"Action {index}: restore action missing 'slot'")

    for key in ('consumer', 'slot'):
        if key in action and not _is_index(action[key]):
            raise ScenarioLoadError(f"Action {index}: '{key}' must be an integer, got {action[key]!r}")

    if action_type == 'recover' and action.get('strategy', 'fewest_resources') not in VICTIM_STRATEGIES:
        raise ScenarioLoadError(
            f"Action {index}: unknown recovery strategy '{action['strategy']}' "
            f"(choose from {', '.join(VICTIM_STRATEGIES)})"
        )


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def sample_scenario() -> AllocationState:
    """
    The built-in five-train, five-track sample railway.

    Track T4 has no free units and nobody holds it, so trains C and E can never
    obtain their last section: the ledger has no wait-for cycle but is unsafe.
    """
    return AllocationState(
        available=[1, 1, 0, 1, 0],
        maximum=[
            [1, 1, 1, 0, 0],
            [0, 1, 0, 1, 0],
            [0, 0, 1, 0, 1],
            [0, 1, 0, 1, 0],
            [1, 0, 0, 0, 1],
        ],
        allocation=[
            [0, 0, 0, 0, 0],
            [0, 1, 0, 0, 0],
            [0, 0, 1, 0, 0],
            [0, 0, 0, 0, 0],
            [1, 0, 0, 0, 0],
        ],
        consumer_names=["A", "B", "C", "D", "E"],
        resource_names=["T0", "T1", "T2", "T3", "T4"],
    )


def random_scenario(
    num_consumers: int,
    num_resources: int,
    max_units: int = 3,
    seed: Optional[int] = None
) -> AllocationState:
    """
    Generate a random multi-unit ledger.

    Each track gets 1..max_units free units; a random share of its allocated
    units is spread across the trains; every train's maximum is its
    allocation plus a random extra need of 0..max_units.

    Args:
        num_consumers: Number of trains
        num_resources: Number of track sections
        max_units: Upper bound on units per track and per extra need
        seed: Seed for numpy's random generator (None for fresh entropy)

    Raises:
        ConfigurationError: If the counts are out of bounds or max_units < 1
    """
    if max_units < 1:
        raise ConfigurationError(f"max_units must be positive, got {max_units}")
    # Fail before drawing anything
    AllocationState.empty(num_consumers, num_resources)

    rng = np.random.default_rng(seed)

    available = rng.integers(1, max_units + 1, size=num_resources)
    allocation = np.zeros((num_consumers, num_resources), dtype=int)

    for j in range(num_resources):
        remaining = int(rng.integers(0, num_consumers * max_units + 1))
        for i in range(num_consumers):
            take = int(rng.integers(0, remaining + 1)) if remaining else 0
            allocation[i][j] = take
            remaining -= take

    maximum = allocation + rng.integers(0, max_units + 1, size=(num_consumers, num_resources))

    return AllocationState(available=available, maximum=maximum, allocation=allocation)


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Returns:
        Description string, or empty string if not present or unreadable
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data.get('description', '')
    except (OSError, json.JSONDecodeError):
        return ''
