"""
Deadlock Detection Algorithm for the Railway Deadlock Manager.

Builds the wait-for graph from the Need/Allocation/Available columns and
searches it for a cycle (a deadlock witness).
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

from models.allocation_state import AllocationState
from models.wait_for_graph import WaitForGraph
from algorithms.avoidance import is_safe_state


@dataclass
class DetectionReport:
    """
    Combined result of cycle detection and the Banker's safety check.

    The two checks are complementary: a ledger can be cycle-free yet unsafe
    when no track section is exhausted but the demand pattern cannot complete.
    """
    graph: WaitForGraph
    cycle: Optional[List[int]]
    is_safe: bool
    safe_sequence: List[int] = field(default_factory=list)

    @property
    def deadlocked(self) -> bool:
        return self.cycle is not None


def build_wait_for_graph(state: AllocationState) -> WaitForGraph:
    """
    Build the wait-for graph for the current ledger.

    Train i is blocked on track section r when Need[i][r] > 0 and
    Available[r] == 0. A blocked train waits for every other train holding
    units of r. Units that are still free mean the train has not been
    refused anything yet, so no edge is added for that section.

    Args:
        state: Current allocation state

    Returns:
        WaitForGraph over train indices
    """
    graph = WaitForGraph.empty(state.num_consumers)
    exhausted = state.available == 0

    for i in range(state.num_consumers):
        blocked_on = (state.need[i] > 0) & exhausted
        if not blocked_on.any():
            continue

        for r in np.flatnonzero(blocked_on):
            for k in np.flatnonzero(state.allocation[:, r] > 0):
                if k != i:
                    graph.add_edge(i, int(k))

    return graph


def find_cycle(graph: WaitForGraph) -> Optional[List[int]]:
    """
    Find a cycle in the wait-for graph with an iterative depth-first search.

    Nodes are explored from each unvisited root in ascending order. The
    on-path flag marks nodes on the current DFS path and is cleared when a
    node's successors are exhausted. Reaching a node that is still on the
    path closes a cycle.

    The cycle is returned in wait order: it starts at the node the back edge
    points to and ends at the node that found the back edge, so every
    consecutive pair (and last -> first) is an edge of the graph.

    Args:
        graph: Wait-for graph

    Returns:
        List of train indices forming a cycle, or None if the graph is acyclic
    """
    n = graph.size
    visited = np.zeros(n, dtype=bool)
    on_path = np.zeros(n, dtype=bool)

    for root in range(n):
        if visited[root]:
            continue

        visited[root] = True
        on_path[root] = True
        path = [root]
        stack = [iter(graph.successors(root))]

        while stack:
            v = next(stack[-1], None)

            if v is None:
                # Node fully explored
                on_path[path.pop()] = False
                stack.pop()
                continue

            if on_path[v]:
                return path[path.index(v):]

            if not visited[v]:
                visited[v] = True
                on_path[v] = True
                path.append(v)
                stack.append(iter(graph.successors(v)))

    return None


def detect_deadlock(state: AllocationState) -> DetectionReport:
    """
    Run cycle detection and the Banker's safety check on the same ledger.

    Args:
        state: Current allocation state (not modified)

    Returns:
        DetectionReport with the graph, the cycle (if any) and the safety verdict
    """
    graph = build_wait_for_graph(state)
    cycle = find_cycle(graph)
    is_safe, safe_sequence = is_safe_state(state)

    return DetectionReport(
        graph=graph,
        cycle=cycle,
        is_safe=is_safe,
        safe_sequence=safe_sequence if is_safe else []
    )
