from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional, cast

from opsflow.core.errors import ProcessValidationError
from opsflow.core.graph.graph_ops import prune_dangling_edges
from opsflow.core.model import (
    NODE_CACHE_ATTRIBUTES,
    NODE_KINDS,
    OUTPUT_REQUIREMENT_TYPES,
    Edge,
    Graph,
    Node,
    NodeKind,
    OutputRequirementType,
    OutputSubmission,
    Position,
    ProcessDocument,
    Task,
)


logger = logging.getLogger("opsflow.validate")

_ErrFn = Callable[[str, str, str], None]


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _date_text(v: Any) -> Any:
    # YAML turns bare dates/timestamps into date objects; keep strings throughout.
    if isinstance(v, datetime):
        return v.isoformat(timespec="minutes" if v.second == 0 else "seconds")
    if isinstance(v, date):
        return v.isoformat()
    return v


def validate_process(doc: dict[str, Any]) -> tuple[Optional[ProcessDocument], list[ProcessValidationError]]:
    """Validate a process document (schema v0).

    Returns (document, errors). Document is None when errors exist.
    Edges pointing at unknown nodes are dropped, not reported.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[ProcessValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(ProcessValidationError(code=code, message=message, file=file, path=path))

    schema_version = doc.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        err("E_REQUIRED_FIELD", "schema_version is required and must be a non-empty string", "schema_version")

    name = doc.get("name")
    if name is not None and not isinstance(name, str):
        err("E_INVALID_TYPE", "name must be a string", "name")

    raw_nodes = doc.get("nodes")
    if not isinstance(raw_nodes, list):
        err("E_REQUIRED_FIELD", "nodes is required and must be an array", "nodes")
        return None, _sorted(errors)

    nodes: list[Node] = []
    seen_ids: set[str] = set()
    for i, raw in enumerate(raw_nodes):
        node_path = f"nodes[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "node must be an object", node_path)
            continue

        nid = raw.get("id")
        if not isinstance(nid, str) or not nid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{node_path}.id")
            continue
        if nid in seen_ids:
            err("E_DUPLICATE_ID", f"duplicate node id: {nid}", f"{node_path}.id")
            continue

        kind = raw.get("kind")
        if not isinstance(kind, str) or kind not in NODE_KINDS:
            err("E_INVALID_ENUM", f"kind must be one of {list(NODE_KINDS)}", f"{node_path}.kind")
            continue

        pos = raw.get("position")
        position = Position()
        if pos is not None:
            if not isinstance(pos, dict) or not all(_is_number(pos.get(k, 0)) for k in ("x", "y")):
                err("E_INVALID_TYPE", "position must be an object with numeric x/y", f"{node_path}.position")
                continue
            position = Position(x=pos.get("x", 0), y=pos.get("y", 0))

        attrs = raw.get("attributes")
        if attrs is None:
            attrs = {}
        if not isinstance(attrs, dict):
            err("E_INVALID_TYPE", "attributes must be an object", f"{node_path}.attributes")
            continue

        seen_ids.add(nid)
        nodes.append(
            Node(
                id=nid,
                kind=cast(NodeKind, kind),
                position=position,
                attributes={k: _date_text(v) for k, v in attrs.items() if k not in NODE_CACHE_ATTRIBUTES},
            )
        )

    edges: list[Edge] = []
    raw_edges = doc.get("edges")
    if raw_edges is not None and not isinstance(raw_edges, list):
        err("E_INVALID_TYPE", "edges must be an array", "edges")
    for i, raw in enumerate(raw_edges if isinstance(raw_edges, list) else []):
        source = raw.get("source") if isinstance(raw, dict) else None
        target = raw.get("target") if isinstance(raw, dict) else None
        if not isinstance(source, str) or not isinstance(target, str):
            err("E_INVALID_TYPE", "edge must be an object with string source/target", f"edges[{i}]")
            continue
        edges.append(Edge(source=source, target=target))

    tasks = _validate_tasks(doc.get("tasks"), err)
    submissions = _validate_submissions(doc.get("submissions"), err)

    if errors:
        return None, _sorted(errors)

    graph = prune_dangling_edges(Graph(nodes=tuple(nodes), edges=tuple(edges)))
    if len(graph.edges) != len(edges):
        logger.debug("dropped %d dangling/duplicate edge(s)", len(edges) - len(graph.edges))

    return (
        ProcessDocument(
            schema_version=cast(str, schema_version),
            name=name or "",
            graph=graph,
            tasks=tasks,
            submissions=submissions,
        ),
        [],
    )


def _validate_tasks(raw_tasks: Any, err: _ErrFn) -> list[Task]:
    if raw_tasks is None:
        return []
    if not isinstance(raw_tasks, list):
        err("E_INVALID_TYPE", "tasks must be an array", "tasks")
        return []

    tasks: list[Task] = []
    seen: set[Any] = set()
    for i, raw in enumerate(raw_tasks):
        tpath = f"tasks[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "task must be an object", tpath)
            continue

        tid = raw.get("id")
        if isinstance(tid, bool) or not (isinstance(tid, int) or (isinstance(tid, str) and tid.strip())):
            err("E_REQUIRED_FIELD", "id is required and must be an integer or non-empty string", f"{tpath}.id")
            continue
        if tid in seen:
            err("E_DUPLICATE_ID", f"duplicate task id: {tid}", f"{tpath}.id")
            continue

        text = raw.get("text")
        if not isinstance(text, str):
            err("E_REQUIRED_FIELD", "text is required and must be a string", f"{tpath}.text")
            continue

        due = _date_text(raw.get("due"))
        completed_at = _date_text(raw.get("completed_at"))
        completed = raw.get("completed", False)
        completed_by = raw.get("completed_by")
        node_id = raw.get("node_id")

        bad = False
        if due is not None and not isinstance(due, str):
            err("E_INVALID_TYPE", "due must be a date string", f"{tpath}.due")
            bad = True
        if not isinstance(completed, bool):
            err("E_INVALID_TYPE", "completed must be a boolean", f"{tpath}.completed")
            bad = True
        if completed_by is not None and not isinstance(completed_by, str):
            err("E_INVALID_TYPE", "completed_by must be a string", f"{tpath}.completed_by")
            bad = True
        if completed_at is not None and not isinstance(completed_at, str):
            err("E_INVALID_TYPE", "completed_at must be a date string", f"{tpath}.completed_at")
            bad = True
        if node_id is not None and not isinstance(node_id, str):
            err("E_INVALID_TYPE", "node_id must be a string or null", f"{tpath}.node_id")
            bad = True
        if bad:
            continue

        seen.add(tid)
        tasks.append(
            Task(
                id=tid,
                text=text,
                due=due or "",
                completed=completed,
                completed_by=completed_by or "",
                completed_at=completed_at,
                node_id=node_id or None,
            )
        )
    return tasks


def _validate_submissions(raw_subs: Any, err: _ErrFn) -> dict[str, OutputSubmission]:
    if raw_subs is None:
        return {}
    if not isinstance(raw_subs, list):
        err("E_INVALID_TYPE", "submissions must be an array", "submissions")
        return {}

    out: dict[str, OutputSubmission] = {}
    for i, raw in enumerate(raw_subs):
        spath = f"submissions[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "submission must be an object", spath)
            continue

        node_id = raw.get("node_id")
        if not isinstance(node_id, str) or not node_id.strip():
            err("E_REQUIRED_FIELD", "node_id is required and must be a non-empty string", f"{spath}.node_id")
            continue

        stype = raw.get("type")
        if stype not in OUTPUT_REQUIREMENT_TYPES:
            err("E_INVALID_ENUM", f"type must be one of {list(OUTPUT_REQUIREMENT_TYPES)}", f"{spath}.type")
            continue

        value = raw.get("value", "")
        completed_by = raw.get("completed_by", "")
        completed_at = _date_text(raw.get("completed_at", ""))
        file_name = raw.get("file_name")
        if not all(isinstance(v, str) for v in (value, completed_by, completed_at)):
            err("E_INVALID_TYPE", "value/completed_by/completed_at must be strings", spath)
            continue
        if file_name is not None and not isinstance(file_name, str):
            err("E_INVALID_TYPE", "file_name must be a string", f"{spath}.file_name")
            continue

        # One current submission per node: later entries replace earlier ones.
        out[node_id] = OutputSubmission(
            node_id=node_id,
            type=cast(OutputRequirementType, stype),
            value=value,
            completed_by=completed_by,
            completed_at=completed_at,
            file_name=file_name,
        )
    return out


def summarize_process(doc: ProcessDocument) -> str:
    counts = Counter([n.kind for n in doc.graph.nodes])
    parts = [f"{k}={counts.get(k, 0)}" for k in NODE_KINDS]
    assigned = sum(1 for t in doc.tasks if t.node_id)
    return (
        f"OK: {len(doc.graph.nodes)} nodes ("
        + ", ".join(parts)
        + f"), {len(doc.graph.edges)} edges\nTasks: {len(doc.tasks)} ({assigned} assigned)"
    )


def _sorted(errors: Iterable[ProcessValidationError]) -> list[ProcessValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
