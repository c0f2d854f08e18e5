from opsflow.core.io.load_process import load_process
from opsflow.core.lint.lint_process import lint_process


def test_lint_clean_process():
    assert lint_process(load_process("examples/minimal-process.yaml")) == []


def test_lint_reports_every_soft_inconsistency():
    errors = lint_process(load_process("examples/lint-findings.yaml"))
    found = {(e.code, e.path) for e in errors}
    assert found == {
        ("L_MISSING_END", "nodes"),
        ("L_DANGLING_EDGE", "edges[3]"),
        ("L_ORPHAN_TASK", "tasks[0].node_id"),
        ("L_INCOMPLETE_DEADLINE", "nodes[1].attributes.deadline_relative_value"),
        ("L_STEP_UNASSIGNED", "nodes[2].attributes.assigned_role"),
        ("L_UNREACHABLE_NODE", "nodes[3].id"),
        ("L_CYCLE_DETECTED", "nodes[2].id"),
    }
    cycle = next(e for e in errors if e.code == "L_CYCLE_DETECTED")
    assert cycle.message == "cycle detected: step-a -> step-b -> step-a"
    assert all(e.file == "examples/lint-findings.yaml" for e in errors)


def test_lint_results_are_sorted():
    errors = lint_process(load_process("examples/lint-findings.yaml"))
    keys = [(e.file or "", e.path or "", e.code) for e in errors]
    assert keys == sorted(keys)


def test_lint_unassigned_step_in_basic_process():
    errors = lint_process(load_process("examples/basic-process.yaml"))
    assert [(e.code, e.path) for e in errors] == [("L_STEP_UNASSIGNED", "nodes[4].attributes.assignee")]


def test_lint_missing_start_and_bad_shape():
    assert lint_process({"nodes": "nope"}) == []
    errors = lint_process({"nodes": [{"id": "end-1", "kind": "end"}]})
    assert [e.code for e in errors] == ["L_MISSING_START"]


def test_lint_flags_non_finite_relative_deadline():
    raw = {
        "nodes": [
            {"id": "start-1", "kind": "start"},
            {
                "id": "step-1",
                "kind": "step",
                "attributes": {"assignee": "Alex", "deadline_type": "relative", "deadline_relative_value": "nan"},
            },
            {"id": "end-1", "kind": "end"},
        ],
        "edges": [{"source": "start-1", "target": "step-1"}, {"source": "step-1", "target": "end-1"}],
    }
    assert [(e.code, e.path) for e in lint_process(raw)] == [
        ("L_INCOMPLETE_DEADLINE", "nodes[1].attributes.deadline_relative_value")
    ]
