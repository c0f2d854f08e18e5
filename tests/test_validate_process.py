from datetime import date, datetime

from opsflow.core.io.load_process import load_process
from opsflow.core.sync.task_sync import node_tasks, sync_graph_tasks
from opsflow.core.validate.validate_process import summarize_process, validate_process


def test_validate_happy_path():
    raw = load_process("examples/basic-process.yaml")
    doc, errors = validate_process(raw)
    assert errors == []
    assert doc is not None
    assert doc.name == "Vendor payment run"
    assert "step-2" in doc.graph.nodes_by_id
    assert len(doc.graph.edges) == 5
    assert [t.id for t in doc.tasks] == [1, 2, 3, 4, 5]
    assert doc.tasks[4].node_id is None
    assert doc.tasks[2].due == "2024-03-10"
    assert doc.submissions["step-3"].type == "markDone"


def test_summary():
    doc, _ = validate_process(load_process("examples/basic-process.yaml"))
    assert summarize_process(doc) == (
        "OK: 6 nodes (start=1, end=1, step=4, branch=0, script=0), 5 edges\nTasks: 5 (4 assigned)"
    )


def test_validate_missing_required_field():
    doc, errors = validate_process(load_process("examples/invalid-missing-field.yaml"))
    assert doc is None
    assert [(e.path, e.code) for e in errors] == [
        ("nodes[0].id", "E_REQUIRED_FIELD"),
        ("schema_version", "E_REQUIRED_FIELD"),
    ]


def test_validate_bad_kind():
    doc, errors = validate_process(load_process("examples/invalid-bad-kind.yaml"))
    assert doc is None
    assert any(e.code == "E_INVALID_ENUM" and e.path == "nodes[1].kind" for e in errors)


def test_validate_bad_tasks_and_submissions():
    doc, errors = validate_process(load_process("examples/invalid-bad-task.yaml"))
    assert doc is None
    assert {(e.path, e.code) for e in errors} == {
        ("tasks[1].id", "E_DUPLICATE_ID"),
        ("tasks[2].completed", "E_INVALID_TYPE"),
        ("submissions[0].type", "E_INVALID_ENUM"),
    }
    assert all(e.file == "examples/invalid-bad-task.yaml" for e in errors)


def test_dangling_edges_and_orphan_tasks_do_not_block():
    doc, errors = validate_process(load_process("examples/lint-findings.yaml"))
    assert errors == []
    assert ("step-b", "ghost-1") not in {(e.source, e.target) for e in doc.graph.edges}
    assert doc.tasks[0].node_id == "step-removed"


def test_yaml_dates_are_kept_as_strings():
    raw = {
        "schema_version": "0.1.0",
        "nodes": [
            {
                "id": "step-1",
                "kind": "step",
                "attributes": {"deadline_type": "absolute", "deadline_absolute": date(2024, 3, 10)},
            }
        ],
        "tasks": [{"id": 1, "text": "A", "due": datetime(2024, 3, 11, 9, 30)}],
    }
    doc, errors = validate_process(raw)
    assert errors == []
    assert doc.graph.node("step-1").attributes["deadline_absolute"] == "2024-03-10"
    assert doc.tasks[0].due == "2024-03-11T09:30"


def test_duplicate_node_id_and_bad_position():
    raw = {
        "schema_version": "0.1.0",
        "nodes": [
            {"id": "a", "kind": "start"},
            {"id": "a", "kind": "end"},
            {"id": "b", "kind": "step", "position": {"x": "left", "y": 0}},
        ],
        "edges": "nope",
    }
    doc, errors = validate_process(raw)
    assert doc is None
    assert [(e.path, e.code) for e in errors] == [
        ("edges", "E_INVALID_TYPE"),
        ("nodes[1].id", "E_DUPLICATE_ID"),
        ("nodes[2].position", "E_INVALID_TYPE"),
    ]


def test_persisted_task_caches_are_dropped():
    raw = {
        "schema_version": "0.1.0",
        "nodes": [
            {
                "id": "s",
                "kind": "step",
                "attributes": {"label": "Draft", "tasks": [{"id": 1, "text": "x"}], "available_tasks": [{"id": 2}]},
            }
        ],
        "tasks": [{"id": 1, "text": "x", "node_id": "s"}],
    }
    doc, errors = validate_process(raw)
    assert errors == []
    assert doc.graph.node("s").attributes == {"label": "Draft"}

    synced = sync_graph_tasks(doc.graph, doc.tasks)
    assert [t.id for t in node_tasks(synced, "s")] == [1]
