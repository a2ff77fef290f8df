"""
Graphviz export for the Railway Deadlock Manager.

Writes the resource allocation graph together with the wait-for graph as a
DOT digraph. Render with: dot -Tpng railway.dot -o railway.png
"""

from typing import List

from models.allocation_state import AllocationState
from models.wait_for_graph import WaitForGraph


def _quote(label: str) -> str:
    return label.replace('\\', '\\\\').replace('"', '\\"')


def render_dot(state: AllocationState, graph: WaitForGraph) -> str:
    """
    Render the ledger and wait-for graph as DOT source.

    Nodes:
    - Trains as circles (T<i>), tracks as boxes (R<j>) showing free units
    Edges:
    - R -> T for allocations, labelled with the unit count
    - T -> R dashed for remaining need
    - T -> T red for wait-for relations

    Args:
        state: Allocation state (read only)
        graph: Wait-for graph built from the same state

    Returns:
        DOT source text
    """
    lines: List[str] = ["digraph RailwayRAG {", "\trankdir=LR;"]

    for i, name in enumerate(state.consumer_names):
        lines.append(f'\tT{i} [shape=circle,label="{_quote(name)}"];')
    for j, name in enumerate(state.resource_names):
        lines.append(f'\tR{j} [shape=box,label="{_quote(name)}\\n(av:{state.available[j]})"];')

    for i in range(state.num_consumers):
        for j in range(state.num_resources):
            if state.allocation[i][j] > 0:
                lines.append(f'\tR{j} -> T{i} [label="{state.allocation[i][j]}"];')
            if state.need[i][j] > 0:
                lines.append(f'\tT{i} -> R{j} [label="need:{state.need[i][j]}", style=dashed];')

    for waiter, holder in graph.edges():
        lines.append(f"\tT{waiter} -> T{holder} [color=red];")

    lines.append("}")
    return "\n".join(lines) + "\n"


def export_dot(state: AllocationState, graph: WaitForGraph, file_path: str) -> None:
    """
    Write the DOT rendering to `file_path`.

    Raises:
        OSError: If the file cannot be written
    """
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(render_dot(state, graph))
