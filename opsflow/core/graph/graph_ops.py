from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional

from opsflow.core.errors import ProcessValidationError
from opsflow.core.graph.node_defaults import default_attributes
from opsflow.core.model import NODE_KINDS, Edge, Graph, Node, NodeKind, Position


logger = logging.getLogger("opsflow.graph")

_node_counter = itertools.count(1)


def generate_node_id(kind: str, existing: Iterable[str] = ()) -> str:
    """Return a fresh ``<kind>-<n>`` id.

    The counter is process-wide and only moves forward, so ids are never
    handed out twice; ``existing`` guards against ids loaded from documents.
    """
    taken = set(existing)
    while True:
        candidate = f"{kind}-{next(_node_counter)}"
        if candidate not in taken:
            return candidate


def create_node(
    kind: NodeKind,
    position: Position | tuple[float, float] = Position(),
    *,
    node_id: Optional[str] = None,
    attributes: Optional[Mapping[str, Any]] = None,
    existing_ids: Iterable[str] = (),
) -> Node:
    if kind not in NODE_KINDS:
        raise ProcessValidationError(
            code="E_INVALID_ENUM",
            message=f"kind must be one of {list(NODE_KINDS)}",
            path="kind",
        )
    if isinstance(position, tuple):
        position = Position(x=position[0], y=position[1])

    attrs = default_attributes(kind)
    if attributes:
        attrs.update(attributes)

    return Node(
        id=node_id or generate_node_id(kind, existing_ids),
        kind=kind,
        position=position,
        attributes=attrs,
    )


def add_node(graph: Graph, node: Node) -> Graph:
    if graph.node(node.id) is not None:
        raise ProcessValidationError(
            code="E_DUPLICATE_ID",
            message=f"duplicate node id: {node.id}",
            path="nodes",
        )
    return replace(graph, nodes=graph.nodes + (node,))


def remove_node(graph: Graph, node_id: str) -> Graph:
    """Drop a node and every edge touching it. Unknown ids are a no-op."""
    if graph.node(node_id) is None:
        logger.debug("remove_node: unknown node id %s", node_id)
        return graph
    return Graph(
        nodes=tuple(n for n in graph.nodes if n.id != node_id),
        edges=tuple(e for e in graph.edges if e.source != node_id and e.target != node_id),
    )


def add_edge(graph: Graph, source: str, target: str) -> Graph:
    """Connect ``source -> target``.

    Both endpoints must exist and differ. Re-creating an existing pair
    replaces the earlier edge (it moves to the end of the edge list).
    """
    ids = {n.id for n in graph.nodes}
    for end, nid in (("source", source), ("target", target)):
        if nid not in ids:
            raise ProcessValidationError(
                code="E_UNKNOWN_NODE",
                message=f"edge {end} references unknown node id: {nid}",
                path=f"edges.{end}",
            )
    if source == target:
        raise ProcessValidationError(
            code="E_SELF_LOOP",
            message=f"edge may not connect node {source} to itself",
            path="edges",
        )

    kept = tuple(e for e in graph.edges if not (e.source == source and e.target == target))
    return replace(graph, edges=kept + (Edge(source=source, target=target),))


def remove_edge(graph: Graph, source: str, target: str) -> Graph:
    kept = tuple(e for e in graph.edges if not (e.source == source and e.target == target))
    if len(kept) == len(graph.edges):
        return graph
    return replace(graph, edges=kept)


def update_node_attributes(graph: Graph, node_id: str, patch: Mapping[str, Any]) -> Graph:
    """Shallow-merge ``patch`` into a node's attributes (last writer wins)."""
    changed = False
    nodes: list[Node] = []
    for n in graph.nodes:
        if n.id == node_id:
            merged = {**n.attributes, **patch}
            if merged != n.attributes:
                n = replace(n, attributes=merged)
                changed = True
        nodes.append(n)

    if not changed:
        if graph.node(node_id) is None:
            logger.debug("update_node_attributes: unknown node id %s", node_id)
        return graph
    return replace(graph, nodes=tuple(nodes))


def move_node(graph: Graph, node_id: str, position: Position) -> Graph:
    nodes = tuple(replace(n, position=position) if n.id == node_id else n for n in graph.nodes)
    if nodes == graph.nodes:
        return graph
    return replace(graph, nodes=nodes)


def prune_dangling_edges(graph: Graph) -> Graph:
    """Drop edges whose endpoints are missing or identical."""
    ids = {n.id for n in graph.nodes}
    kept: list[Edge] = []
    seen: set[tuple[str, str]] = set()
    for e in reversed(graph.edges):
        key = (e.source, e.target)
        if e.source not in ids or e.target not in ids or e.source == e.target:
            logger.debug("dropping dangling edge %s -> %s", e.source, e.target)
            continue
        if key in seen:
            continue
        seen.add(key)
        kept.append(e)
    kept.reverse()
    if len(kept) == len(graph.edges):
        return graph
    return replace(graph, edges=tuple(kept))


def successors(graph: Graph, node_id: str) -> list[str]:
    return [e.target for e in graph.edges if e.source == node_id]


def predecessors(graph: Graph, node_id: str) -> list[str]:
    return [e.source for e in graph.edges if e.target == node_id]
