from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator, Optional, Sequence

from opsflow.core.dates import format_date_time, parse_date_value
from opsflow.core.errors import ProcessValidationError, SubmissionError
from opsflow.core.model import OUTPUT_REQUIREMENT_TYPES, OutputSubmission, SubmissionPayload, Task


logger = logging.getLogger("opsflow.submissions")

OUTPUT_ACTION_LABELS: dict[str, str] = {
    "markDone": "Marked step complete",
    "file": "Uploaded supporting file",
    "link": "Provided link or URL",
    "text": "Submitted text update",
}

MARK_DONE_VALUE = "Marked complete"

DEFAULT_UNKNOWN_ACTOR = "Unknown processor"


def mark_done_payload() -> SubmissionPayload:
    return SubmissionPayload(type="markDone", value=MARK_DONE_VALUE)


def validate_submission_payload(payload: SubmissionPayload) -> list[ProcessValidationError]:
    """Boundary check for portal input. The log itself trusts its callers."""
    errors: list[ProcessValidationError] = []
    if payload.type not in OUTPUT_REQUIREMENT_TYPES:
        errors.append(
            ProcessValidationError(
                code="E_INVALID_ENUM",
                message=f"type must be one of {list(OUTPUT_REQUIREMENT_TYPES)}",
                path="type",
            )
        )
        return errors

    if payload.type == "file":
        name = (payload.file_name or payload.value or "").strip()
        if not name:
            errors.append(
                ProcessValidationError(
                    code="E_SUBMISSION_NO_FILE",
                    message="a file must be selected",
                    path="file_name",
                )
            )
    elif payload.type == "link":
        if not payload.value.strip():
            errors.append(
                ProcessValidationError(
                    code="E_SUBMISSION_EMPTY_LINK",
                    message="link must be a non-empty URL",
                    path="value",
                )
            )
    elif payload.type == "text":
        if not payload.value.strip():
            errors.append(
                ProcessValidationError(
                    code="E_SUBMISSION_EMPTY_TEXT",
                    message="text update must not be empty",
                    path="value",
                )
            )
    return errors


class SubmissionLog:
    """Current output submission per node id.

    A new submission replaces the previous one for the same node; nothing
    older is retained. A ``markDone`` submission is final.
    """

    def __init__(self, submissions: Optional[dict[str, OutputSubmission]] = None) -> None:
        self._by_node: dict[str, OutputSubmission] = dict(submissions or {})

    def get(self, node_id: str) -> Optional[OutputSubmission]:
        return self._by_node.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_node

    def __len__(self) -> int:
        return len(self._by_node)

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_node)

    def as_dict(self) -> dict[str, OutputSubmission]:
        return dict(self._by_node)

    def can_submit(self, node_id: str) -> bool:
        current = self._by_node.get(node_id)
        return current is None or current.type != "markDone"

    def submit(
        self,
        node_id: str,
        payload: SubmissionPayload,
        *,
        actor: str,
        now: Optional[datetime] = None,
    ) -> OutputSubmission:
        if not self.can_submit(node_id):
            raise SubmissionError(
                code="E_SUBMISSION_TERMINAL",
                message="step was already marked done",
                path=node_id,
            )

        submission = OutputSubmission(
            node_id=node_id,
            type=payload.type,
            value=payload.value,
            file_name=payload.file_name,
            completed_by=actor,
            completed_at=(now or datetime.now()).isoformat(timespec="seconds"),
        )
        if node_id in self._by_node:
            logger.debug("replacing output submission for node %s", node_id)
        self._by_node[node_id] = submission
        return submission

    def clear(self) -> None:
        self._by_node.clear()


def _date_label(value: Optional[str]) -> str:
    parsed = parse_date_value(value)
    if parsed is not None:
        return format_date_time(parsed)
    return value or ""


def build_completion_log(
    tasks: Sequence[Task],
    submission: Optional[OutputSubmission] = None,
    *,
    unknown_actor: str = DEFAULT_UNKNOWN_ACTOR,
) -> list[str]:
    """Readable completion entries for one node: the submission first, then completed tasks."""
    task_logs = [
        f"{t.completed_by or unknown_actor} • {_date_label(t.completed_at)}"
        for t in tasks
        if t.completed and t.completed_at
    ]
    if submission is None:
        return task_logs

    action = OUTPUT_ACTION_LABELS.get(submission.type, "Completed output")
    actor = submission.completed_by or unknown_actor
    return [f"{actor} • {action} • {_date_label(submission.completed_at)}"] + task_logs
