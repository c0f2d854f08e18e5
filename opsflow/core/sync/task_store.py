from __future__ import annotations

import itertools
import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional, Sequence

from opsflow.core.model import Task, TaskId


logger = logging.getLogger("opsflow.tasks")

_task_seq = itertools.count()


def new_task_id(existing: Iterable[TaskId] = ()) -> int:
    """Millisecond-clock id, bumped past any id already in use."""
    taken = {t for t in existing if isinstance(t, int)}
    candidate = int(time.time() * 1000) + next(_task_seq)
    while candidate in taken:
        candidate += 1
    return candidate


def _update(tasks: Sequence[Task], task_id: TaskId, **changes: object) -> list[Task]:
    out: list[Task] = []
    found = False
    for t in tasks:
        if t.id == task_id:
            found = True
            t = replace(t, **changes)  # type: ignore[arg-type]
        out.append(t)
    if not found:
        logger.debug("unknown task id %s", task_id)
    return out


def assign_task(tasks: Sequence[Task], task_id: TaskId, node_id: Optional[str]) -> list[Task]:
    """Bind a task to ``node_id`` (``None`` unassigns it)."""
    return _update(tasks, task_id, node_id=node_id)


def create_task(
    tasks: Sequence[Task],
    node_id: Optional[str],
    text: str,
    *,
    task_id: Optional[TaskId] = None,
) -> list[Task]:
    """Append a new task. Blank text is ignored and returns the list unchanged."""
    trimmed = text.strip()
    if not trimmed:
        return list(tasks)
    tid = task_id if task_id is not None else new_task_id(t.id for t in tasks)
    return list(tasks) + [Task(id=tid, text=trimmed, node_id=node_id)]


def update_task_due(tasks: Sequence[Task], task_id: TaskId, due: str) -> list[Task]:
    return _update(tasks, task_id, due=due)


def mark_task_done(
    tasks: Sequence[Task],
    task_id: TaskId,
    *,
    actor: str,
    now: Optional[datetime] = None,
) -> list[Task]:
    """Mark a task complete, stamping who and when. Already-complete tasks keep their stamp."""
    for t in tasks:
        if t.id == task_id and t.completed:
            return list(tasks)
    stamp = (now or datetime.now()).isoformat(timespec="seconds")
    return _update(tasks, task_id, completed=True, completed_by=actor, completed_at=stamp)


def delete_task(tasks: Sequence[Task], task_id: TaskId) -> list[Task]:
    return [t for t in tasks if t.id != task_id]


def unassigned_tasks(tasks: Sequence[Task]) -> list[Task]:
    return [t for t in tasks if not t.node_id]


def tasks_by_node(tasks: Sequence[Task]) -> dict[str, list[Task]]:
    out: dict[str, list[Task]] = {}
    for t in tasks:
        if not t.node_id:
            continue
        out.setdefault(t.node_id, []).append(t)
    return out


def bind_tasks_to_steps(tasks: Sequence[Task], step_node_ids: Sequence[str]) -> list[Task]:
    """Rebind ``tasks[i].node_id`` to ``step_node_ids[i]``.

    This is the caller side of the sequential flow contract. Tasks beyond the
    end of ``step_node_ids`` are left untouched.
    """
    out: list[Task] = []
    for i, t in enumerate(tasks):
        if i < len(step_node_ids):
            t = replace(t, node_id=step_node_ids[i])
        out.append(t)
    return out
