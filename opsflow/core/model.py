from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional, Union


NodeKind = Literal["start", "end", "step", "branch", "script"]
NODE_KINDS: tuple[str, ...] = ("start", "end", "step", "branch", "script")

DeadlineType = Literal["absolute", "relative"]
DeadlineUnit = Literal["hours", "days"]

AssignmentType = Literal["individual", "role"]

OutputRequirementType = Literal["markDone", "file", "link", "text"]
OUTPUT_REQUIREMENT_TYPES: tuple[str, ...] = ("markDone", "file", "link", "text")

NodeStatus = Literal["unassigned", "pending", "in-progress", "completed"]
# Display order of the status counts and filters, not lifecycle order.
NODE_STATUSES: tuple[str, ...] = ("pending", "in-progress", "completed", "unassigned")

TaskId = Union[int, str]

# Per-node task caches rebuilt by task sync; never read from or written to documents.
NODE_CACHE_ATTRIBUTES: frozenset[str] = frozenset({"tasks", "available_tasks"})


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Node:
    """A typed step of a process graph.

    ``kind`` never changes after creation; ``attributes`` is replaced (never
    mutated in place) by the graph operations.
    """

    id: str
    kind: NodeKind
    position: Position = field(default_factory=Position)
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        value = self.attributes.get("label")
        return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class Edge:
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"e-{self.source}-{self.target}"


@dataclass(frozen=True)
class Graph:
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    @property
    def nodes_by_id(self) -> dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [n for n in self.nodes if n.kind == kind]


@dataclass(frozen=True)
class Task:
    id: TaskId
    text: str
    due: str = ""
    completed: bool = False
    completed_by: str = ""
    completed_at: Optional[str] = None
    node_id: Optional[str] = None


@dataclass(frozen=True)
class ProcessDeadline:
    type: DeadlineType
    value: Union[str, int, float]
    source_node_id: str
    source_node_label: str = ""
    unit: Optional[DeadlineUnit] = None


@dataclass(frozen=True)
class SubmissionPayload:
    type: OutputRequirementType
    value: str
    file_name: Optional[str] = None


@dataclass(frozen=True)
class OutputSubmission:
    node_id: str
    type: OutputRequirementType
    value: str
    completed_by: str
    completed_at: str
    file_name: Optional[str] = None


@dataclass(frozen=True)
class CalendarEntry:
    id: str
    task: Optional[Task]
    node: Optional[Node]
    due_date: datetime

    @property
    def title(self) -> str:
        if self.node is not None and self.node.label:
            return self.node.label
        if self.task is not None:
            return self.task.text
        return "Task"


@dataclass(frozen=True)
class ProcessDocument:
    schema_version: str
    name: str
    graph: Graph
    tasks: list[Task]
    submissions: dict[str, OutputSubmission] = field(default_factory=dict)
