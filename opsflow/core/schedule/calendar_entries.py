from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Optional, Sequence

from opsflow.core.dates import epoch_millis, parse_date_value
from opsflow.core.model import CalendarEntry, Graph, Node, Task
from opsflow.core.status.node_status import get_deadline_info


WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def build_calendar_entries(tasks: Sequence[Task], graph: Optional[Graph]) -> list[CalendarEntry]:
    """Master schedule: task due dates plus step deadlines, sorted by due date.

    A task without a parseable due date inherits its step's absolute
    deadline. A step deadline already covered by an entry for the same
    (node, timestamp) is not added twice.
    """
    steps: list[Node] = graph.nodes_of_kind("step") if graph is not None else []
    steps_by_id = {n.id: n for n in steps}

    entries: list[CalendarEntry] = []
    covered: set[tuple[str, int]] = set()

    for task in tasks:
        node = steps_by_id.get(task.node_id) if task.node_id else None
        due = parse_date_value(task.due)
        if due is None and node is not None:
            due = get_deadline_info(node.attributes).absolute_date
        if due is None:
            continue

        millis = epoch_millis(due)
        entries.append(CalendarEntry(id=f"task-{task.id}-{millis}", task=task, node=node, due_date=due))
        if node is not None:
            covered.add((node.id, millis))

    for node in steps:
        due = get_deadline_info(node.attributes).absolute_date
        if due is None:
            continue
        millis = epoch_millis(due)
        if (node.id, millis) in covered:
            continue
        covered.add((node.id, millis))
        entries.append(CalendarEntry(id=f"node-{node.id}-{millis}", task=None, node=node, due_date=due))

    return sorted(entries, key=lambda e: e.due_date)


def entries_for_month(entries: Sequence[CalendarEntry], year: int, month: int) -> list[CalendarEntry]:
    return [e for e in entries if e.due_date.year == year and e.due_date.month == month]


def group_by_day(entries: Sequence[CalendarEntry], year: int, month: int) -> dict[date, list[CalendarEntry]]:
    """Bucket the viewed month's entries by calendar day (entry order kept)."""
    buckets: dict[date, list[CalendarEntry]] = {}
    for e in entries_for_month(entries, year, month):
        buckets.setdefault(e.due_date.date(), []).append(e)
    return buckets


def month_grid(year: int, month: int) -> list[list[Optional[date]]]:
    """Sunday-first weeks covering the month; cells outside it are None."""
    cal = calendar.Calendar(firstweekday=calendar.SUNDAY)
    weeks: list[list[Optional[date]]] = []
    for week in cal.monthdatescalendar(year, month):
        weeks.append([d if d.month == month else None for d in week])
    return weeks


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def default_selected_date(
    entries: Sequence[CalendarEntry],
    year: int,
    month: int,
    selected: Optional[date] = None,
) -> Optional[date]:
    """Keep a selection inside the viewed month, else jump to its first entry."""
    month_entries = entries_for_month(entries, year, month)
    if not month_entries:
        return None
    if selected is not None and selected.year == year and selected.month == month:
        return selected
    return month_entries[0].due_date.date()


def parse_month(value: str) -> tuple[int, int]:
    """``YYYY-MM`` -> (year, month)."""
    parsed = datetime.strptime(value.strip(), "%Y-%m")
    return parsed.year, parsed.month
