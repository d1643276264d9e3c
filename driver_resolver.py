"""
Driver Dependency Graph
=======================
Orders driver-based lines so every driver is forecast before the lines
that read it.

Nodes are positions in the line snapshot handed in for one
recalculation; edges run driver -> dependent. Kahn's algorithm yields
the acyclic part in evaluation order. Lines on a cycle are returned
separately so the caller can fall back to bounded fixed-point sweeps;
lines fed by a cycle come back in their own evaluation order, to be run
once the cycle has settled.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional

from pl_lines import ForecastMethod, PLLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverOrder:
    ordered: List[int]     # Evaluation order for lines not involved in cycles
    cyclic: List[int]      # Lines on a cycle, in input order
    downstream: List[int]  # Lines fed by a cycle, in evaluation order

    @property
    def has_cycle(self) -> bool:
        return bool(self.cyclic)


def _driver_index(lines: List[PLLine], index_by_id: Dict[str, int], line: PLLine) -> Optional[int]:
    if line.method != ForecastMethod.DRIVER_BASED:
        return None
    return index_by_id.get(line.forecast_method.driver_line_id)


def build_driver_edges(lines: List[PLLine]) -> Dict[int, Optional[int]]:
    """Map each line position to the position of its driver (None if no driver)."""
    index_by_id: Dict[str, int] = {}
    for idx, line in enumerate(lines):
        if line.id is not None and line.id not in index_by_id:
            index_by_id[line.id] = idx
    return {idx: _driver_index(lines, index_by_id, line) for idx, line in enumerate(lines)}


def resolve_driver_order(lines: List[PLLine]) -> DriverOrder:
    edges = build_driver_edges(lines)

    dependents: Dict[int, List[int]] = {idx: [] for idx in edges}
    in_degree = {idx: 0 for idx in edges}
    for idx, driver in edges.items():
        if driver is not None:
            dependents[driver].append(idx)
            in_degree[idx] += 1

    queue = deque(idx for idx in edges if in_degree[idx] == 0)
    ordered: List[int] = []
    while queue:
        idx = queue.popleft()
        ordered.append(idx)
        for dependent in dependents[idx]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    placed = set(ordered)
    unresolved = [idx for idx in edges if idx not in placed]
    cyclic = [idx for idx in unresolved if _on_cycle(idx, edges)]
    if cyclic:
        names = [lines[idx].account_name for idx in cyclic]
        logger.warning("Cyclic driver dependency among lines: %s", ", ".join(names))

    # Each line has at most one driver, so walking dependents outward from
    # the cycle visits every downstream line after its driver
    on_cycle = set(cyclic)
    downstream: List[int] = []
    queue = deque(
        dependent for idx in cyclic for dependent in dependents[idx] if dependent not in on_cycle
    )
    while queue:
        idx = queue.popleft()
        downstream.append(idx)
        queue.extend(dependents[idx])

    return DriverOrder(ordered=ordered, cyclic=cyclic, downstream=downstream)


def _on_cycle(start: int, edges: Dict[int, Optional[int]]) -> bool:
    """Whether following driver links from start leads back to start."""
    idx = edges[start]
    for _ in range(len(edges)):
        if idx is None:
            return False
        if idx == start:
            return True
        idx = edges[idx]
    return False
