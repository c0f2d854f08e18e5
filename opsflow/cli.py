from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import typer

from opsflow.core.deadline.resolve_deadline import describe_deadline, resolve_process_deadline
from opsflow.core.errors import ProcessError, ProcessLoadError, ProcessValidationError, SubmissionError
from opsflow.core.flow.sequential_flow import extract_tasks, generate_sequential_flow
from opsflow.core.io.load_process import dump_process_yaml, load_process
from opsflow.core.lint.lint_process import lint_process
from opsflow.core.model import NODE_STATUSES, ProcessDocument, SubmissionPayload
from opsflow.core.schedule.calendar_entries import build_calendar_entries, group_by_day, parse_month
from opsflow.core.settings.engine_config import EngineSettings, SettingsConfigError, load_and_merge
from opsflow.core.status.node_status import build_node_details, filter_by_status, status_counts
from opsflow.core.submissions.output_log import SubmissionLog, validate_submission_payload
from opsflow.core.sync.task_store import bind_tasks_to_steps
from opsflow.core.validate.validate_process import summarize_process, validate_process

app = typer.Typer(add_completion=False, no_args_is_help=True)

SCHEMA_VERSION = "0.1.0"


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level for stderr output"),
) -> None:
    """Process graph & scheduling CLI."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    return


def _check_format(format: str, command: str) -> None:
    if format not in ("text", "json"):
        err = ProcessValidationError(
            code=f"E_{command.upper()}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _load_settings(settings_file: Optional[str]) -> EngineSettings:
    try:
        return load_and_merge(settings_file)
    except FileNotFoundError:
        _print_errors(
            [
                ProcessLoadError(
                    code="E_SETTINGS_FILE_NOT_FOUND",
                    message=f"settings file not found: {settings_file}",
                    file=None,
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=1)
    except SettingsConfigError as e:
        _print_errors(
            [
                ProcessValidationError(
                    code="E_SETTINGS_FILE_INVALID",
                    message=str(e),
                    file=settings_file,
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=2)


def _load_document(path: str) -> ProcessDocument:
    try:
        raw = load_process(path)
    except ProcessLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    doc, errors = validate_process(raw)
    if errors or doc is None:
        _print_errors(errors)
        raise typer.Exit(code=2)
    return doc


def _to_item(e: ProcessError) -> dict:
    code = e.code
    source = "load" if isinstance(e, ProcessLoadError) else "lint" if code.startswith("L_") else "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "warning" if source == "lint" else "error",
        "source": source,
    }


def _emit_json(payload: dict[str, Any], exit_code: int = 0) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))
    raise typer.Exit(code=exit_code)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a process document."""
    _check_format(format, "validate")

    try:
        raw = load_process(path)
    except ProcessLoadError as e:
        if format == "json":
            _emit_json({"tool": "opsflow", "command": "validate", "ok": False, "errors": [_to_item(e)]}, 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    doc, errors = validate_process(raw)
    if errors or doc is None:
        if format == "json":
            _emit_json(
                {
                    "tool": "opsflow",
                    "command": "validate",
                    "ok": False,
                    "error_count": len(errors),
                    "errors": [_to_item(e) for e in errors],
                },
                2,
            )
        _print_errors(errors)
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(summarize_process(doc))
        return

    kinds: dict[str, int] = {}
    for n in doc.graph.nodes:
        kinds[n.kind] = kinds.get(n.kind, 0) + 1
    _emit_json(
        {
            "tool": "opsflow",
            "command": "validate",
            "schema_version": doc.schema_version,
            "ok": True,
            "error_count": 0,
            "errors": [],
            "summary": {
                "node_count": len(doc.graph.nodes),
                "edge_count": len(doc.graph.edges),
                "kind_counts": kinds,
                "task_count": len(doc.tasks),
            },
        }
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report soft inconsistencies (dangling edges, orphan tasks, unassigned steps, cycles)."""
    _check_format(format, "lint")

    try:
        raw = load_process(path)
    except ProcessLoadError as e:
        if format == "json":
            _emit_json({"tool": "opsflow", "command": "lint", "ok": False, "errors": [_to_item(e)]}, 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    _, validation_errors = validate_process(raw)
    findings: list[ProcessError] = list(lint_process(raw)) + list(validation_errors)

    if format == "json":
        _emit_json(
            {
                "tool": "opsflow",
                "command": "lint",
                "ok": not findings,
                "error_count": len(findings),
                "errors": [_to_item(e) for e in findings],
            },
            2 if findings else 0,
        )

    if findings:
        _print_errors(findings)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("generate")
def generate(
    sop_file: str = typer.Argument(..., help="SOP document (markdown/HTML) with numbered steps"),
    out: str = typer.Option(..., "--out", help="Path to write the generated process YAML"),
    name: Optional[str] = typer.Option(None, "--name", help="Process name (defaults to the file stem)"),
    settings_file: Optional[str] = typer.Option(None, "--settings", help="Optional YAML settings file"),
) -> None:
    """Build a linear start -> steps -> end process from an SOP's numbered steps."""
    settings = _load_settings(settings_file)

    p = Path(sop_file)
    if not p.exists():
        _print_errors(
            [ProcessLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))]
        )
        raise typer.Exit(code=1)

    tasks = extract_tasks(p.read_text(encoding="utf-8"))
    flow = generate_sequential_flow(tasks, settings=settings)
    doc = ProcessDocument(
        schema_version=SCHEMA_VERSION,
        name=name or p.stem,
        graph=flow.graph,
        tasks=bind_tasks_to_steps(tasks, flow.step_node_ids),
    )
    dump_process_yaml(doc, out)
    typer.echo(f"OK: wrote {out} (steps={len(flow.step_node_ids)})")


@app.command("deadline")
def deadline(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    settings_file: Optional[str] = typer.Option(None, "--settings", help="Optional YAML settings file"),
) -> None:
    """Resolve the single process deadline from the terminal configured step."""
    _check_format(format, "deadline")
    settings = _load_settings(settings_file)
    doc = _load_document(path)

    resolved = resolve_process_deadline(doc.graph, strategy=settings.deadline_strategy)

    if format == "json":
        payload: dict[str, Any] = {"tool": "opsflow", "command": "deadline", "deadline": None}
        if resolved is not None:
            payload["deadline"] = {
                "type": resolved.type,
                "value": resolved.value,
                "unit": resolved.unit,
                "source_node_id": resolved.source_node_id,
                "source_node_label": resolved.source_node_label,
            }
        _emit_json(payload)

    if resolved is None:
        typer.echo("No deadline configured")
        return
    typer.echo(
        f"{resolved.type}: {describe_deadline(resolved)} "
        f"(from {resolved.source_node_id} '{resolved.source_node_label}')"
    )


@app.command("status")
def status(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    status_filter: str = typer.Option("all", "--filter", help="all|pending|in-progress|completed|unassigned"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    settings_file: Optional[str] = typer.Option(None, "--settings", help="Optional YAML settings file"),
) -> None:
    """Per-step status, progress and completion log."""
    _check_format(format, "status")
    if status_filter != "all" and status_filter not in NODE_STATUSES:
        _print_errors(
            [
                ProcessValidationError(
                    code="E_STATUS_UNKNOWN_FILTER",
                    message=f"unknown filter: {status_filter} (choose one of: all, {', '.join(NODE_STATUSES)})",
                    file=None,
                    path="filter",
                )
            ]
        )
        raise typer.Exit(code=2)

    settings = _load_settings(settings_file)
    doc = _load_document(path)

    details = build_node_details(
        doc.graph, doc.tasks, doc.submissions, unknown_actor=settings.unknown_actor_label
    )
    counts = status_counts(details)
    shown = filter_by_status(details, status_filter)  # type: ignore[arg-type]

    if format == "json":
        _emit_json(
            {
                "tool": "opsflow",
                "command": "status",
                "counts": counts,
                "steps": [
                    {
                        "node_id": d.node.id,
                        "label": d.node.label,
                        "status": d.status,
                        "progress_percent": d.progress_percent,
                        "assignee": d.assignment.label,
                        "deadline": d.deadline.label,
                        "completion_log": d.completion_log,
                    }
                    for d in shown
                ],
            }
        )

    for d in shown:
        typer.echo(
            f"{d.node.id}\t{d.node.label}\t{d.status}\t{d.progress_percent}%\t"
            f"{d.assignment.label}\t{d.deadline.label}"
        )
        for entry in d.completion_log:
            typer.echo(f"  - {entry}")
    typer.echo("Counts: " + ", ".join(f"{k}={v}" for k, v in counts.items()))


@app.command("calendar")
def calendar_cmd(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    month: str = typer.Option(..., "--month", help="Month to show, YYYY-MM"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Task due dates and step deadlines for one month, bucketed by day."""
    _check_format(format, "calendar")
    try:
        year, month_num = parse_month(month)
    except ValueError:
        _print_errors(
            [
                ProcessValidationError(
                    code="E_CALENDAR_INVALID_MONTH",
                    message=f"month must be YYYY-MM, got: {month}",
                    file=None,
                    path="month",
                )
            ]
        )
        raise typer.Exit(code=2)

    doc = _load_document(path)
    entries = build_calendar_entries(doc.tasks, doc.graph)
    buckets = group_by_day(entries, year, month_num)

    if format == "json":
        _emit_json(
            {
                "tool": "opsflow",
                "command": "calendar",
                "month": f"{year:04d}-{month_num:02d}",
                "days": {
                    day.isoformat(): [
                        {
                            "id": e.id,
                            "title": e.title,
                            "due": e.due_date.isoformat(),
                            "node_id": e.node.id if e.node else None,
                            "task_id": e.task.id if e.task else None,
                        }
                        for e in day_entries
                    ]
                    for day, day_entries in sorted(buckets.items())
                },
            }
        )

    if not buckets:
        typer.echo(f"No entries for {year:04d}-{month_num:02d}")
        return
    for day, day_entries in sorted(buckets.items()):
        typer.echo(day.isoformat())
        for e in day_entries:
            typer.echo(f"  {e.due_date:%H:%M} {e.title}")


@app.command("submit")
def submit(
    path: str = typer.Argument(..., help="Path to a process file (.yaml/.yml/.json)"),
    node_id: str = typer.Argument(..., help="Step node id"),
    type: str = typer.Option("markDone", "--type", help="markDone|file|link|text"),
    value: str = typer.Option("", "--value", help="Link, text or file name"),
    file_name: Optional[str] = typer.Option(None, "--file-name", help="Uploaded file name (type=file)"),
    out: Optional[str] = typer.Option(None, "--out", help="Where to write the updated process (defaults to PATH)"),
    settings_file: Optional[str] = typer.Option(None, "--settings", help="Optional YAML settings file"),
) -> None:
    """Record output evidence for a step, replacing any earlier submission."""
    settings = _load_settings(settings_file)
    doc = _load_document(path)

    node = doc.graph.node(node_id)
    if node is None or node.kind != "step":
        _print_errors(
            [
                ProcessValidationError(
                    code="E_SUBMIT_UNKNOWN_STEP",
                    message=f"no step node with id: {node_id}",
                    file=path,
                    path="node_id",
                )
            ]
        )
        raise typer.Exit(code=2)

    if type == "markDone" and not value:
        value = "Marked complete"
    if type == "file" and file_name and not value:
        value = file_name
    payload = SubmissionPayload(type=type, value=value.strip(), file_name=file_name)  # type: ignore[arg-type]
    payload_errors = validate_submission_payload(payload)
    if payload_errors:
        _print_errors(payload_errors)
        raise typer.Exit(code=2)

    log = SubmissionLog(doc.submissions)
    try:
        log.submit(node_id, payload, actor=settings.current_actor)
    except SubmissionError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    target = out or path
    dump_process_yaml(replace(doc, submissions=log.as_dict()), target)
    typer.echo(f"OK: recorded {type} for {node_id} in {target}")


def _print_errors(errors: list[ProcessError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="opsflow")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
