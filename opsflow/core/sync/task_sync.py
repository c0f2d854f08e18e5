from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, Sequence

from opsflow.core.model import Graph, Node, Task


logger = logging.getLogger("opsflow.sync")


def _task_key(t: Task) -> tuple[Any, ...]:
    return (t.id, t.text, t.due, t.completed, t.completed_by, t.completed_at, t.node_id)


def task_lists_equal(a: Optional[Sequence[Task]], b: Sequence[Task] = ()) -> bool:
    """Deep, order-sensitive comparison. A missing cache equals an empty list."""
    if a is None:
        return len(b) == 0
    if len(a) != len(b):
        return False
    return all(_task_key(x) == _task_key(y) for x, y in zip(a, b))


def sync_graph_tasks(
    graph: Graph,
    tasks: Sequence[Task],
    available_tasks: Optional[Sequence[Task]] = None,
) -> Graph:
    """Refresh each node's cached ``tasks`` and ``available_tasks`` attributes.

    Only nodes whose cached lists differ from the freshly computed ones are
    replaced, and a cached list that is still current keeps its identity.
    When nothing differs the very same ``graph`` object is returned.

    Tasks pointing at a node id that is not in the graph are left out of
    every node (and out of the unassigned pool).
    """
    if available_tasks is None:
        available_tasks = [t for t in tasks if not t.node_id]
    pool = tuple(available_tasks)

    node_ids = {n.id for n in graph.nodes}
    by_node: dict[str, list[Task]] = {}
    orphaned = 0
    for t in tasks:
        if not t.node_id:
            continue
        if t.node_id not in node_ids:
            orphaned += 1
            continue
        by_node.setdefault(t.node_id, []).append(t)
    if orphaned:
        logger.debug("%d task(s) reference missing nodes; left unassigned", orphaned)

    changed = False
    nodes: list[Node] = []
    for n in graph.nodes:
        cached_tasks = n.attributes.get("tasks")
        cached_pool = n.attributes.get("available_tasks")
        node_tasks = by_node.get(n.id, [])

        tasks_same = task_lists_equal(cached_tasks, node_tasks)
        pool_same = task_lists_equal(cached_pool, pool)
        if tasks_same and pool_same:
            nodes.append(n)
            continue

        changed = True
        attrs = dict(n.attributes)
        attrs["tasks"] = cached_tasks if tasks_same and cached_tasks is not None else tuple(node_tasks)
        attrs["available_tasks"] = cached_pool if pool_same and cached_pool is not None else pool
        nodes.append(replace(n, attributes=attrs))

    if not changed:
        return graph
    return replace(graph, nodes=tuple(nodes))


def node_tasks(graph: Graph, node_id: str) -> tuple[Task, ...]:
    """Cached task view of a node (empty when never synced or unknown)."""
    n = graph.node(node_id)
    if n is None:
        return ()
    cached = n.attributes.get("tasks")
    return tuple(cached) if cached is not None else ()
