"""
Allocation State model for the Railway Deadlock Manager.

Maintains the ledger of track sections (resources) and trains (consumers):
the Available vector and the Maximum, Allocation and Need matrices used by
the Banker's safety check and the wait-for graph.
"""

import numpy as np
from typing import List, Optional, Sequence
from dataclasses import dataclass, field


MAX_CONSUMERS = 32
MAX_RESOURCES = 64

REMOVED_TAG = "(REMOVED)"


class ConfigurationError(ValueError):
    """Raised when an allocation state cannot be constructed from its inputs."""
    pass


def as_unit_array(values, what: str = "Units") -> np.ndarray:
    """
    Convert `values` to an integer array of whole units.

    Raises:
        ConfigurationError: If any value is non-numeric or fractional
    """
    try:
        raw = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{what} must be numeric: {e}") from e

    if not np.all(np.isfinite(raw)) or not np.all(np.equal(np.mod(raw, 1), 0)):
        raise ConfigurationError(f"{what} must be whole numbers, got {raw.tolist()}")
    return raw.astype(int)


@dataclass(eq=False)
class AllocationState:
    """
    Resource ledger shared by all deadlock handling algorithms.

    Attributes:
        available: [R] Free units of each track section
        maximum: [C][R] Maximum units each train may ever hold
        allocation: [C][R] Units currently held by each train
        consumer_names: Display label per train
        resource_names: Display label per track section
        active: [C] False once a train has been terminated
        need: [C][R] Derived, always Maximum - Allocation

    Invariants:
        need >= 0 everywhere
        available + allocation.sum(axis=0) is constant across core operations
    """
    available: np.ndarray
    maximum: np.ndarray
    allocation: np.ndarray
    consumer_names: List[str] = field(default_factory=list)
    resource_names: List[str] = field(default_factory=list)
    active: Optional[np.ndarray] = None
    need: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        """Normalize inputs to integer arrays and validate the ledger."""
        self.available = as_unit_array(self.available, "Available units")
        self.maximum = as_unit_array(self.maximum, "Maximum demand")
        self.allocation = as_unit_array(self.allocation, "Allocation")

        self._validate_shapes()

        n, m = self.maximum.shape
        if not self.consumer_names:
            self.consumer_names = [f"Train{i}" for i in range(n)]
        if not self.resource_names:
            self.resource_names = [f"Track{j}" for j in range(m)]
        self.consumer_names = list(self.consumer_names)
        self.resource_names = list(self.resource_names)

        if len(self.consumer_names) != n:
            raise ConfigurationError(
                f"Expected {n} consumer names, got {len(self.consumer_names)}"
            )
        if len(self.resource_names) != m:
            raise ConfigurationError(
                f"Expected {m} resource names, got {len(self.resource_names)}"
            )

        if self.active is None:
            self.active = np.ones(n, dtype=bool)
        else:
            self.active = np.array(self.active, dtype=bool)
            if self.active.shape != (n,):
                raise ConfigurationError(f"Active flags must have shape ({n},)")

        self._validate_values()
        self.recompute_need()

    @classmethod
    def empty(cls, num_consumers: int, num_resources: int) -> "AllocationState":
        """
        Create a zero-filled ledger with default names.

        Args:
            num_consumers: Number of trains
            num_resources: Number of track sections

        Raises:
            ConfigurationError: If either count is outside its configured bounds
        """
        _check_counts(num_consumers, num_resources)
        return cls(
            available=np.zeros(num_resources, dtype=int),
            maximum=np.zeros((num_consumers, num_resources), dtype=int),
            allocation=np.zeros((num_consumers, num_resources), dtype=int),
        )

    def _validate_shapes(self) -> None:
        if self.maximum.ndim != 2:
            raise ConfigurationError("Maximum matrix must be two-dimensional")
        n, m = self.maximum.shape
        _check_counts(n, m)

        if self.allocation.shape != (n, m):
            raise ConfigurationError(
                f"Allocation matrix shape {self.allocation.shape} does not match "
                f"maximum matrix shape {(n, m)}"
            )
        if self.available.shape != (m,):
            raise ConfigurationError(
                f"Available vector shape {self.available.shape} does not match "
                f"resource count {m}"
            )

    def _validate_values(self) -> None:
        if np.any(self.available < 0):
            raise ConfigurationError("Available units cannot be negative")
        if np.any(self.maximum < 0):
            raise ConfigurationError("Maximum demand cannot be negative")
        if np.any(self.allocation < 0):
            raise ConfigurationError("Allocation cannot be negative")

        over = np.argwhere(self.allocation > self.maximum)
        if over.size:
            i, j = over[0]
            raise ConfigurationError(
                f"{self.consumer_names[i]} holds {self.allocation[i][j]} units of "
                f"{self.resource_names[j]} but declared maximum {self.maximum[i][j]}"
            )

    @property
    def num_consumers(self) -> int:
        """Number of trains in the ledger."""
        return self.maximum.shape[0]

    @property
    def num_resources(self) -> int:
        """Number of track sections in the ledger."""
        return self.maximum.shape[1]

    @property
    def capacity(self) -> np.ndarray:
        """Total units per track section: Available + sum of Allocation."""
        return self.available + self.allocation.sum(axis=0)

    def recompute_need(self) -> None:
        """Recompute Need = Maximum - Allocation for every train."""
        self.need = self.maximum - self.allocation

    def is_valid_consumer(self, consumer_id: int) -> bool:
        return 0 <= consumer_id < self.num_consumers

    def copy(self) -> "AllocationState":
        """Deep copy of the ledger (used for checkpoints)."""
        return AllocationState(
            available=self.available.copy(),
            maximum=self.maximum.copy(),
            allocation=self.allocation.copy(),
            consumer_names=list(self.consumer_names),
            resource_names=list(self.resource_names),
            active=self.active.copy(),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, AllocationState):
            return NotImplemented
        return (
            self.consumer_names == other.consumer_names
            and self.resource_names == other.resource_names
            and np.array_equal(self.available, other.available)
            and np.array_equal(self.maximum, other.maximum)
            and np.array_equal(self.allocation, other.allocation)
            and np.array_equal(self.need, other.need)
            and np.array_equal(self.active, other.active)
        )

    def display(self) -> str:
        """
        Generate readable string representation of the ledger.

        Returns:
            Formatted string showing Available, Allocation, Maximum and Need
        """
        width = max(6, max(len(name) for name in self.consumer_names) + 2)
        header = " " * width + " ".join(f"{name[:6]:>6}" for name in self.resource_names)

        output = []
        output.append("\n" + "="*60)
        output.append("ALLOCATION STATE")
        output.append("="*60)

        output.append("\nAvailable:")
        output.append(header)
        output.append(" " * width + " ".join(f"{v:6}" for v in self.available))

        for title, matrix in (
            ("Allocation Matrix:", self.allocation),
            ("Maximum Matrix:", self.maximum),
            ("Need Matrix (Maximum - Allocation):", self.need),
        ):
            output.append(f"\n{title}")
            output.append(header)
            for i, name in enumerate(self.consumer_names):
                row = f"{name:<{width}}"
                row += " ".join(f"{v:6}" for v in matrix[i])
                output.append(row)

        output.append("\n" + "="*60)
        return "\n".join(output)

    def assert_resource_conservation(self, expected_capacity: Sequence[int], context=""):
        """Verify conservation: Available + allocated units equal the track capacity.

        Args:
            expected_capacity: Capacity per track section recorded before the operation
            context: Description of when this check is being run (for error messages)

        Raises:
            AssertionError: If resource conservation is violated
        """
        expected = np.asarray(expected_capacity, dtype=int)
        for j, name in enumerate(self.resource_names):
            allocated = self.allocation[:, j].sum()
            available = self.available[j]

            assert allocated + available == expected[j], (
                f"Resource conservation violated for {name} {context}\n"
                f"  Allocated: {allocated}, Available: {available}, Total: {expected[j]}\n"
                f"  Allocated + Available = {allocated + available} != {expected[j]}"
            )

            assert available >= 0, (
                f"Negative available units for {name} {context}\n"
                f"  Available: {available}"
            )

    def assert_need_non_negative(self, context=""):
        """Verify Need == Maximum - Allocation and Need >= 0 for every entry."""
        assert np.array_equal(self.need, self.maximum - self.allocation), (
            f"Need matrix out of date {context}"
        )
        negative = np.argwhere(self.need < 0)
        assert negative.size == 0, (
            f"Negative need {context}: "
            + ", ".join(
                f"{self.consumer_names[i]}/{self.resource_names[j]}={self.need[i][j]}"
                for i, j in negative
            )
        )


def _check_counts(num_consumers: int, num_resources: int) -> None:
    if num_consumers < 1 or num_consumers > MAX_CONSUMERS:
        raise ConfigurationError(
            f"Number of trains must be between 1 and {MAX_CONSUMERS}, got {num_consumers}"
        )
    if num_resources < 1 or num_resources > MAX_RESOURCES:
        raise ConfigurationError(
            f"Number of track sections must be between 1 and {MAX_RESOURCES}, "
            f"got {num_resources}"
        )
