from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Sequence

from opsflow.core.graph.graph_ops import create_node
from opsflow.core.model import Edge, Graph, Node, Position, Task
from opsflow.core.settings.engine_config import DEFAULT_SETTINGS, EngineSettings


logger = logging.getLogger("opsflow.flow")

_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s*")
_TAG = re.compile(r"<[^>]+>")
_BLOCK_TAG = re.compile(r"</?(p|div|li|br|h[1-6]|ol|ul)\b[^>]*>", re.IGNORECASE)


@dataclass(frozen=True)
class SequentialFlow:
    graph: Graph
    # One id per input task, in input order.
    step_node_ids: list[str]


def generate_sequential_flow(
    tasks: Sequence[Task],
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> SequentialFlow:
    """Build ``start -> step_1 -> ... -> step_n -> end`` from an ordered task list.

    Nodes are stacked vertically in a single column. The tasks themselves are
    not touched; callers rebind ``Task.node_id`` with ``step_node_ids``
    (see ``bind_tasks_to_steps``). Any previous graph is discarded.
    """
    used: set[str] = set()
    x = settings.column_x
    y = settings.start_y

    start = create_node("start", Position(x=x, y=y), existing_ids=used)
    used.add(start.id)

    chain: list[Node] = [start]
    step_ids: list[str] = []
    for i, task in enumerate(tasks, start=1):
        label = task.text.strip() or f"Step {i}"
        step = create_node(
            "step",
            Position(x=x, y=y + settings.node_spacing * i),
            attributes={"label": label},
            existing_ids=used,
        )
        used.add(step.id)
        chain.append(step)
        step_ids.append(step.id)

    end = create_node(
        "end",
        Position(x=x, y=y + settings.node_spacing * (len(tasks) + 1)),
        existing_ids=used,
    )
    chain.append(end)

    edges = tuple(Edge(source=a.id, target=b.id) for a, b in zip(chain, chain[1:]))
    logger.info("generated sequential flow with %d step(s)", len(step_ids))
    return SequentialFlow(graph=Graph(nodes=tuple(chain), edges=edges), step_node_ids=step_ids)


def extract_plain_text(content: str) -> str:
    """Flatten an SOP document (markdown or simple HTML) to plain lines."""
    text = _BLOCK_TAG.sub("\n", content)
    text = _TAG.sub("", text)
    return html.unescape(text)


def extract_tasks(content: str) -> list[Task]:
    """Turn every numbered line (``1. Do X``) of an SOP document into an unassigned Task."""
    tasks: list[Task] = []
    for line in extract_plain_text(content).splitlines():
        if not _NUMBERED_LINE.match(line):
            continue
        tasks.append(Task(id=len(tasks) + 1, text=_NUMBERED_LINE.sub("", line).strip()))
    return tasks
