from __future__ import annotations

import heapq
import logging
import math
from typing import Callable, Optional, Union

from opsflow.core.model import Graph, Node, ProcessDeadline
from opsflow.core.settings.engine_config import DeadlineStrategy


logger = logging.getLogger("opsflow.deadline")

DEADLINE_UNITS = {"hours", "days"}


def relative_amount(v: object) -> Optional[Union[int, float]]:
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return v if math.isfinite(v) else None
    if not isinstance(v, str) or not v.strip():
        return None
    try:
        f = float(v.strip())
    except ValueError:
        return None
    if not math.isfinite(f):
        return None
    return int(f) if f.is_integer() else f


def deadline_from_node(node: Node) -> Optional[ProcessDeadline]:
    """Deadline rule of a step node, or None when it is not fully configured."""
    if node.kind != "step":
        return None
    attrs = node.attributes
    dtype = attrs.get("deadline_type")

    if dtype == "absolute":
        value = attrs.get("deadline_absolute")
        if isinstance(value, str) and value.strip():
            return ProcessDeadline(
                type="absolute",
                value=value.strip(),
                source_node_id=node.id,
                source_node_label=node.label,
            )
        return None

    if dtype == "relative":
        amount = relative_amount(attrs.get("deadline_relative_value"))
        unit = attrs.get("deadline_relative_unit")
        if amount is None or unit not in DEADLINE_UNITS:
            return None
        return ProcessDeadline(
            type="relative",
            value=amount,
            unit=unit,
            source_node_id=node.id,
            source_node_label=node.label,
        )

    return None


def _by_position(nodes: list[Node]) -> list[Node]:
    return sorted(nodes, key=lambda n: n.position.y)


def topological_order(graph: Graph) -> list[str]:
    """Kahn ordering of the graph; ready nodes are taken top-to-bottom.

    Nodes on a cycle never become ready and are left out.
    """
    index = {n.id: i for i, n in enumerate(graph.nodes)}
    y = {n.id: n.position.y for n in graph.nodes}
    indegree = {nid: 0 for nid in index}
    out: dict[str, list[str]] = {nid: [] for nid in index}
    for e in graph.edges:
        if e.source not in index or e.target not in index or e.source == e.target:
            continue
        out[e.source].append(e.target)
        indegree[e.target] += 1

    ready = [(y[nid], index[nid], nid) for nid, d in indegree.items() if d == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, _, cur = heapq.heappop(ready)
        order.append(cur)
        for nxt in out[cur]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(ready, (y[nxt], index[nxt], nxt))
    return order


def resolve_process_deadline(
    graph: Graph,
    *,
    strategy: DeadlineStrategy = "position",
) -> Optional[ProcessDeadline]:
    """Derive the single process deadline from the terminal configured step.

    ``position`` (default) treats the lowest configured step on the canvas as
    the terminal one. ``topological`` follows the edges instead and falls back
    to ``position`` when a configured step sits on a cycle.
    """
    candidates: list[tuple[Node, ProcessDeadline]] = []
    for n in graph.nodes:
        d = deadline_from_node(n)
        if d is not None:
            candidates.append((n, d))
    if not candidates:
        return None

    by_id = {n.id: d for n, d in candidates}

    if strategy == "topological":
        order = [nid for nid in topological_order(graph) if nid in by_id]
        if len(order) == len(by_id):
            return by_id[order[-1]]
        logger.debug("configured step on a cycle; falling back to position ordering")

    terminal = _by_position([n for n, _ in candidates])[-1]
    return by_id[terminal.id]


def deadlines_equal(a: Optional[ProcessDeadline], b: Optional[ProcessDeadline]) -> bool:
    if a is b:
        return True
    if a is None or b is None:
        return False
    if a.type != b.type:
        return False
    if a.source_node_id != b.source_node_id:
        return False
    if (a.source_node_label or "") != (b.source_node_label or ""):
        return False
    if a.type == "absolute":
        return a.value == b.value
    return a.value == b.value and a.unit == b.unit


class DeadlineTracker:
    """Re-resolves on every graph change and notifies the owner only on real changes."""

    def __init__(
        self,
        on_change: Callable[[Optional[ProcessDeadline]], None],
        *,
        strategy: DeadlineStrategy = "position",
        initial: Optional[ProcessDeadline] = None,
    ) -> None:
        self._on_change = on_change
        self._strategy = strategy
        self.last: Optional[ProcessDeadline] = initial

    def update(self, graph: Graph) -> bool:
        current = resolve_process_deadline(graph, strategy=self._strategy)
        if deadlines_equal(self.last, current):
            return False
        logger.info(
            "process deadline changed: %s -> %s",
            describe_deadline(self.last),
            describe_deadline(current),
        )
        self.last = current
        self._on_change(current)
        return True


def describe_deadline(deadline: Optional[ProcessDeadline]) -> str:
    if deadline is None:
        return "none"
    if deadline.type == "relative":
        return f"+{deadline.value} {deadline.unit}"
    return str(deadline.value)
