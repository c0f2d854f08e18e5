from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping, Optional, Sequence, Union

from opsflow.core.dates import format_date_time, parse_date_value
from opsflow.core.model import (
    NODE_STATUSES,
    Graph,
    Node,
    NodeStatus,
    OutputRequirementType,
    OutputSubmission,
    Task,
)
from opsflow.core.submissions.output_log import DEFAULT_UNKNOWN_ACTOR, build_completion_log
from opsflow.core.sync.task_store import tasks_by_node


UNASSIGNED_LABEL = "Unassigned"
ASSIGN_HINT = "Assign a processor in the Process Designer."

NodeStatusFilter = Union[NodeStatus, Literal["all"]]

NODE_STATUS_LABELS: dict[str, str] = {
    "pending": "Upcoming",
    "in-progress": "In progress",
    "completed": "Completed",
    "unassigned": "Unassigned",
}

_REQUIREMENT_LABELS: dict[str, str] = {
    "markDone": "Status",
    "file": "Upload supporting file",
    "link": "Provide link or URL",
    "text": "Submit text update",
}


@dataclass(frozen=True)
class AssignmentInfo:
    label: str
    notes: list[str]


@dataclass(frozen=True)
class DeadlineInfo:
    label: str
    absolute_date: Optional[datetime]


@dataclass(frozen=True)
class OutputRequirementInfo:
    label: str
    notes: list[str]
    type: OutputRequirementType


def _text(attrs: Mapping[str, Any], key: str) -> str:
    v = attrs.get(key)
    return v.strip() if isinstance(v, str) else ""


def get_assignment_info(attrs: Optional[Mapping[str, Any]]) -> AssignmentInfo:
    if not attrs:
        return AssignmentInfo(label=UNASSIGNED_LABEL, notes=[ASSIGN_HINT])

    if attrs.get("assignment_type") == "role":
        base = _text(attrs, "assigned_role")
    else:
        base = _text(attrs, "assignee")

    notes: list[str] = []
    if attrs.get("allow_reassignment"):
        notes.append("Reassignment allowed")
    approver = _text(attrs, "approver")
    if approver:
        notes.append(f"Approver: {approver}")
    if not base:
        notes.append(ASSIGN_HINT)

    return AssignmentInfo(label=base or UNASSIGNED_LABEL, notes=notes)


def get_deadline_info(attrs: Optional[Mapping[str, Any]]) -> DeadlineInfo:
    if not attrs:
        return DeadlineInfo(label="—", absolute_date=None)

    dtype = attrs.get("deadline_type")
    if dtype == "absolute":
        raw = _text(attrs, "deadline_absolute")
        if raw:
            parsed = parse_date_value(raw)
            if parsed is not None:
                return DeadlineInfo(label=format_date_time(parsed), absolute_date=parsed)
            return DeadlineInfo(label=raw, absolute_date=None)

    if dtype == "relative":
        value = attrs.get("deadline_relative_value")
        if value not in (None, "") and not isinstance(value, bool):
            unit = "hours" if attrs.get("deadline_relative_unit") == "hours" else "days"
            return DeadlineInfo(label=f"+{value} {unit}", absolute_date=None)

    return DeadlineInfo(label="—", absolute_date=None)


def get_output_requirement_info(attrs: Optional[Mapping[str, Any]]) -> OutputRequirementInfo:
    attrs = attrs or {}
    rtype = attrs.get("output_requirement_type") or "markDone"
    if rtype not in _REQUIREMENT_LABELS:
        rtype = "markDone"

    notes: list[str] = []
    if _text(attrs, "output_structured_data_template"):
        notes.append("Structured data template provided")
    if attrs.get("validation_require_output"):
        notes.append("Requires validation")
    validation_notes = _text(attrs, "validation_notes")
    if validation_notes:
        notes.append(validation_notes)

    return OutputRequirementInfo(label=_REQUIREMENT_LABELS[rtype], notes=notes, type=rtype)


def determine_node_status(
    assignment: AssignmentInfo,
    node_tasks: Sequence[Task],
    completion_log: Sequence[str],
) -> NodeStatus:
    """Lifecycle status of a step. Assignment gates every other signal."""
    normalized = (assignment.label or "").strip().lower()
    if not normalized or normalized == UNASSIGNED_LABEL.lower():
        return "unassigned"

    if completion_log:
        return "completed"

    if node_tasks:
        done = sum(1 for t in node_tasks if t.completed)
        if done == len(node_tasks):
            return "completed"
        if done > 0:
            return "in-progress"

    return "pending"


def derive_node_status(
    node: Node,
    node_tasks: Sequence[Task],
    submission: Optional[OutputSubmission] = None,
) -> NodeStatus:
    assignment = get_assignment_info(node.attributes)
    log = build_completion_log(node_tasks, submission)
    return determine_node_status(assignment, node_tasks, log)


def progress_percent(node_tasks: Sequence[Task], submission: Optional[OutputSubmission]) -> int:
    """Share of completed actions; the output submission counts as one action."""
    total = len(node_tasks) + 1
    done = sum(1 for t in node_tasks if t.completed) + (1 if submission else 0)
    return math.floor(done / total * 100 + 0.5)


@dataclass(frozen=True)
class NodeDetail:
    node: Node
    tasks: list[Task]
    completed_task_count: int
    completed_action_count: int
    total_action_count: int
    progress_percent: int
    deadline: DeadlineInfo
    assignment: AssignmentInfo
    output_requirement: OutputRequirementInfo
    completion_log: list[str]
    submission: Optional[OutputSubmission]
    status: NodeStatus


def build_node_details(
    graph: Graph,
    tasks: Sequence[Task],
    submissions: Mapping[str, OutputSubmission],
    *,
    unknown_actor: str = DEFAULT_UNKNOWN_ACTOR,
) -> list[NodeDetail]:
    """Per-step portal rows, in graph order."""
    grouped = tasks_by_node(tasks)
    out: list[NodeDetail] = []
    for node in graph.nodes_of_kind("step"):
        node_tasks = grouped.get(node.id, [])
        submission = submissions.get(node.id)
        completed = sum(1 for t in node_tasks if t.completed)
        assignment = get_assignment_info(node.attributes)
        log = build_completion_log(node_tasks, submission, unknown_actor=unknown_actor)
        out.append(
            NodeDetail(
                node=node,
                tasks=node_tasks,
                completed_task_count=completed,
                completed_action_count=completed + (1 if submission else 0),
                total_action_count=len(node_tasks) + 1,
                progress_percent=progress_percent(node_tasks, submission),
                deadline=get_deadline_info(node.attributes),
                assignment=assignment,
                output_requirement=get_output_requirement_info(node.attributes),
                completion_log=log,
                submission=submission,
                status=determine_node_status(assignment, node_tasks, log),
            )
        )
    return out


def status_counts(details: Sequence[NodeDetail]) -> dict[str, int]:
    counts = {s: 0 for s in NODE_STATUSES}
    for d in details:
        counts[d.status] += 1
    return counts


def filter_by_status(details: Sequence[NodeDetail], status: NodeStatusFilter) -> list[NodeDetail]:
    if status == "all":
        return list(details)
    return [d for d in details if d.status == status]
