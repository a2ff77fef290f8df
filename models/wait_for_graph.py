"""
Wait-For Graph model for the Railway Deadlock Manager.

Directed relation over train indices: edge (i, j) means train i is blocked
on a track section held by train j.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(eq=False)
class WaitForGraph:
    """
    Boolean adjacency matrix over [0, n).

    Attributes:
        adjacency: [C][C] adjacency[i][j] is True if train i waits for train j
    """
    adjacency: np.ndarray

    def __post_init__(self):
        self.adjacency = np.array(self.adjacency, dtype=bool)
        if self.adjacency.ndim != 2 or self.adjacency.shape[0] != self.adjacency.shape[1]:
            raise ValueError(
                f"Adjacency matrix must be square, got shape {self.adjacency.shape}"
            )

    @classmethod
    def empty(cls, size: int) -> "WaitForGraph":
        return cls(np.zeros((size, size), dtype=bool))

    @property
    def size(self) -> int:
        """Number of nodes (trains)."""
        return self.adjacency.shape[0]

    @property
    def edge_count(self) -> int:
        return int(self.adjacency.sum())

    def add_edge(self, waiter: int, holder: int) -> None:
        self.adjacency[waiter][holder] = True

    def has_edge(self, waiter: int, holder: int) -> bool:
        return bool(self.adjacency[waiter][holder])

    def successors(self, node: int) -> List[int]:
        """Trains that `node` waits for, in ascending index order."""
        return [int(v) for v in np.flatnonzero(self.adjacency[node])]

    def edges(self) -> List[Tuple[int, int]]:
        """All (waiter, holder) pairs in row-major order."""
        return [(int(i), int(j)) for i, j in np.argwhere(self.adjacency)]

    def __eq__(self, other) -> bool:
        if not isinstance(other, WaitForGraph):
            return NotImplemented
        return np.array_equal(self.adjacency, other.adjacency)
