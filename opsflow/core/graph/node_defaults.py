from __future__ import annotations

from typing import Any, Mapping, Optional


DEFAULT_LABELS: dict[str, str] = {
    "start": "Input",
    "end": "Output",
    "step": "Process",
    "branch": "Conditional",
    "script": "Code",
}

DEFAULT_DESCRIPTIONS: dict[str, str] = {
    "start": "Data input node",
    "end": "Data output node",
    "step": "Data processing node",
    "branch": "Conditional branching",
    "script": "Custom code execution",
}

START_TRIGGER_LABELS: dict[str, str] = {
    "schedule": "Scheduled start",
    "process": "Process dependency",
    "service_desk": "Service desk trigger",
}

COMPLETION_RULE_LABELS: dict[str, str] = {
    "all_steps": "Completes when every step is done",
    "approval": "Completes after final approval",
    "manual": "Completed manually by the owner",
}

ALERT_CHANNEL_LABELS: dict[str, str] = {
    "email": "Email",
    "slack": "Slack",
    "teams": "Teams",
    "sms": "SMS",
}


def default_attributes(kind: str) -> dict[str, Any]:
    """Fresh attribute dict for a newly created node of ``kind``."""
    base: dict[str, Any] = {
        "label": DEFAULT_LABELS.get(kind, "Node"),
        "description": DEFAULT_DESCRIPTIONS.get(kind, "Workflow node"),
        "tasks": (),
    }

    if kind == "start":
        base.update(
            {
                "start_trigger_type": "schedule",
                "start_trigger_schedule": "",
                "start_trigger_process": "",
                "start_trigger_service_desk": "",
            }
        )
    elif kind == "end":
        base.update(
            {
                "completion_rule": "all_steps",
                "alert_channels": [],
            }
        )
    elif kind == "step":
        base.update(
            {
                "assignment_type": "individual",
                "assignee": "",
                "assigned_role": "",
                "allow_reassignment": True,
                "approver": "",
                "expected_duration": "",
                "deadline_type": "relative",
                "deadline_relative_value": "",
                "deadline_relative_unit": "days",
                "deadline_absolute": "",
                "reminder_enabled": False,
                "reminder_lead_time": "",
                "reminder_lead_time_unit": "hours",
                "output_requirement_type": "markDone",
                "output_structured_data_template": "",
                "validation_require_output": False,
                "validation_notes": "",
            }
        )
    elif kind == "branch":
        base.update(
            {
                "condition": "data.value > 0",
                "true_label": "Yes",
                "false_label": "No",
            }
        )
    elif kind == "script":
        base.update(
            {
                "code_language": "python",
                "code": "def process(data):\n    return data\n",
            }
        )
    return base


def describe_start_trigger(attributes: Mapping[str, Any]) -> Optional[str]:
    trigger = attributes.get("start_trigger_type") or "schedule"
    if trigger == "process":
        target = _clean(attributes.get("start_trigger_process"))
        return f"Starts after process: {target}" if target else None
    if trigger == "service_desk":
        desk = _clean(attributes.get("start_trigger_service_desk"))
        return f"Starts from service desk: {desk}" if desk else None
    schedule = _clean(attributes.get("start_trigger_schedule"))
    return f"Starts on schedule: {schedule}" if schedule else None


def describe_end_completion(attributes: Mapping[str, Any]) -> Optional[str]:
    rule = attributes.get("completion_rule")
    if not isinstance(rule, str):
        return None
    return COMPLETION_RULE_LABELS.get(rule)


def describe_alert_channels(channels: Any) -> Optional[str]:
    if not isinstance(channels, (list, tuple)):
        return None
    names = [ALERT_CHANNEL_LABELS.get(c, c) for c in channels if isinstance(c, str) and c.strip()]
    if not names:
        return None
    return "Alerts via " + ", ".join(names)


def _clean(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""
