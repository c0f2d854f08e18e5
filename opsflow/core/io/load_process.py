from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from opsflow.core.errors import ProcessLoadError
from opsflow.core.model import NODE_CACHE_ATTRIBUTES, Node, OutputSubmission, ProcessDocument, Task


_KEYS = ("schema_version", "name", "nodes", "edges", "tasks", "submissions")


def load_process(path: str) -> dict[str, Any]:
    """Load a YAML/JSON process document.

    Returns a dict with keys: schema_version, name, nodes, edges, tasks,
    submissions (missing keys are None). Does not coerce types; the
    validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise ProcessLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise ProcessLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise ProcessLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except ProcessLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ProcessLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise ProcessLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized: dict[str, Any] = {k: data.get(k) for k in _KEYS}
    normalized["__file__"] = str(p)
    return normalized


def _node_to_dict(n: Node) -> dict[str, Any]:
    attrs = {k: v for k, v in n.attributes.items() if k not in NODE_CACHE_ATTRIBUTES}
    for k, v in attrs.items():
        if isinstance(v, tuple):
            attrs[k] = list(v)
    return {
        "id": n.id,
        "kind": n.kind,
        "position": {"x": n.position.x, "y": n.position.y},
        "attributes": attrs,
    }


def _task_to_dict(t: Task) -> dict[str, Any]:
    return {
        "id": t.id,
        "text": t.text,
        "due": t.due,
        "completed": t.completed,
        "completed_by": t.completed_by,
        "completed_at": t.completed_at,
        "node_id": t.node_id,
    }


def _submission_to_dict(s: OutputSubmission) -> dict[str, Any]:
    out: dict[str, Any] = {
        "node_id": s.node_id,
        "type": s.type,
        "value": s.value,
        "completed_by": s.completed_by,
        "completed_at": s.completed_at,
    }
    if s.file_name is not None:
        out["file_name"] = s.file_name
    return out


def process_to_dict(doc: ProcessDocument) -> dict[str, Any]:
    return {
        "schema_version": doc.schema_version,
        "name": doc.name,
        "nodes": [_node_to_dict(n) for n in doc.graph.nodes],
        "edges": [{"source": e.source, "target": e.target} for e in doc.graph.edges],
        "tasks": [_task_to_dict(t) for t in doc.tasks],
        "submissions": [_submission_to_dict(s) for s in doc.submissions.values()],
    }


def dump_process_yaml(doc: ProcessDocument, path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(process_to_dict(doc), f, sort_keys=False, default_flow_style=False, allow_unicode=True)
