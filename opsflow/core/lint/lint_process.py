from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Optional

from opsflow.core.deadline.resolve_deadline import DEADLINE_UNITS, relative_amount
from opsflow.core.errors import ProcessValidationError


# Process lint rules (best effort, run on possibly-invalid documents):
# - L_MISSING_START / L_MISSING_END: a process needs a start and an end node
# - L_DANGLING_EDGE: edge endpoint does not exist (the loader drops these)
# - L_ORPHAN_TASK: task bound to a node id that does not exist
# - L_STEP_UNASSIGNED: step has neither an individual nor a role assignee
# - L_INCOMPLETE_DEADLINE: relative deadline value is not numeric or unit is invalid
# - L_UNREACHABLE_NODE: node not reachable from any start node
# - L_CYCLE_DETECTED: edges form a cycle


def lint_process(doc: dict[str, Any]) -> list[ProcessValidationError]:
    """Lint a process document.

    Lint runs *in addition to* validation and never blocks loading; it
    reports the soft inconsistencies the engine tolerates.
    """

    file = _cast_optional_str(doc.get("__file__"))

    nodes = doc.get("nodes")
    if not isinstance(nodes, list):
        # Let validator handle shape.
        return []

    id_to_index: dict[str, int] = {}
    id_to_raw: dict[str, dict[str, Any]] = {}
    for i, raw in enumerate(nodes):
        if not isinstance(raw, dict):
            continue
        nid = raw.get("id")
        if not isinstance(nid, str):
            continue
        id_to_index.setdefault(nid, i)
        id_to_raw.setdefault(nid, raw)

    errors: list[ProcessValidationError] = []

    def add(code: str, message: str, path: str) -> None:
        errors.append(ProcessValidationError(code=code, message=message, file=file, path=path))

    kinds = {nid: raw.get("kind") for nid, raw in id_to_raw.items()}
    starts = sorted(nid for nid, k in kinds.items() if k == "start")
    if not starts:
        add("L_MISSING_START", "process has no start node", "nodes")
    if not any(k == "end" for k in kinds.values()):
        add("L_MISSING_END", "process has no end node", "nodes")

    # Edges (best effort).
    adjacency: dict[str, list[str]] = defaultdict(list)
    raw_edges = doc.get("edges")
    for i, raw in enumerate(raw_edges if isinstance(raw_edges, list) else []):
        if not isinstance(raw, dict):
            continue
        source, target = raw.get("source"), raw.get("target")
        if not isinstance(source, str) or not isinstance(target, str):
            continue
        missing = [x for x in (source, target) if x not in id_to_raw]
        if missing:
            add("L_DANGLING_EDGE", f"edge references unknown node id: {missing[0]}", f"edges[{i}]")
            continue
        adjacency[source].append(target)

    # Tasks bound to missing nodes.
    raw_tasks = doc.get("tasks")
    for i, raw in enumerate(raw_tasks if isinstance(raw_tasks, list) else []):
        if not isinstance(raw, dict):
            continue
        node_id = raw.get("node_id")
        if isinstance(node_id, str) and node_id and node_id not in id_to_raw:
            add("L_ORPHAN_TASK", f"task references unknown node id: {node_id}", f"tasks[{i}].node_id")

    # Step configuration.
    for nid, raw in id_to_raw.items():
        if kinds.get(nid) != "step":
            continue
        attrs = raw.get("attributes")
        attrs = attrs if isinstance(attrs, dict) else {}
        path = f"nodes[{id_to_index[nid]}].attributes"

        key = "assigned_role" if attrs.get("assignment_type") == "role" else "assignee"
        who = attrs.get(key)
        if not isinstance(who, str) or not who.strip():
            add("L_STEP_UNASSIGNED", "step has no assignee", f"{path}.{key}")

        dtype = attrs.get("deadline_type")
        if dtype == "relative":
            value = attrs.get("deadline_relative_value")
            if value not in (None, "") and (
                relative_amount(value) is None or attrs.get("deadline_relative_unit") not in DEADLINE_UNITS
            ):
                add(
                    "L_INCOMPLETE_DEADLINE",
                    "relative deadline needs a numeric value and a unit (hours|days)",
                    f"{path}.deadline_relative_value",
                )

    if starts:
        reachable = _reachable_from(starts, adjacency)
        for nid in sorted(set(id_to_raw.keys()) - reachable):
            add(
                "L_UNREACHABLE_NODE",
                f"node is not reachable from start nodes: {starts}",
                f"nodes[{id_to_index[nid]}].id",
            )

    for nid, msg in _detect_cycles(adjacency, list(id_to_raw.keys())):
        add("L_CYCLE_DETECTED", msg, f"nodes[{id_to_index.get(nid, 0)}].id")

    return _sorted(errors)


def _reachable_from(roots: list[str], adjacency: dict[str, list[str]]) -> set[str]:
    q: deque[str] = deque(roots)
    seen: set[str] = set()
    while q:
        cur = q.popleft()
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in adjacency.get(cur, []):
            if nxt not in seen:
                q.append(nxt)
    return seen


def _detect_cycles(adjacency: dict[str, list[str]], node_ids: list[str]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in node_ids}
    stack: list[str] = []
    emitted: set[frozenset[str]] = set()
    out: list[tuple[str, str]] = []

    def dfs(u: str) -> None:
        state[u] = GRAY
        stack.append(u)
        for v in adjacency.get(u, []):
            if v not in state:
                continue
            if state[v] == GRAY:
                cycle = stack[stack.index(v):] + [v]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, "cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                dfs(v)
        stack.pop()
        state[u] = BLACK

    for nid in node_ids:
        if state[nid] == WHITE:
            dfs(nid)

    return out


def _sorted(errors: list[ProcessValidationError]) -> list[ProcessValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
