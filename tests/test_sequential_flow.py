from opsflow.core.flow.sequential_flow import extract_plain_text, extract_tasks, generate_sequential_flow
from opsflow.core.model import Task
from opsflow.core.settings.engine_config import EngineSettings
from opsflow.core.sync.task_store import bind_tasks_to_steps


def _tasks(n: int) -> list[Task]:
    return [Task(id=i, text=f"Task {i}") for i in range(1, n + 1)]


def test_flow_is_a_single_chain():
    for n in (0, 1, 4):
        flow = generate_sequential_flow(_tasks(n))
        g = flow.graph
        assert len(g.nodes) == n + 2
        assert len(g.edges) == n + 1
        assert [nd.kind for nd in g.nodes] == ["start"] + ["step"] * n + ["end"]

        ids = [nd.id for nd in g.nodes]
        assert [(e.source, e.target) for e in g.edges] == list(zip(ids, ids[1:]))
        assert flow.step_node_ids == ids[1:-1]


def test_empty_task_list_degenerates_to_start_end():
    g = generate_sequential_flow([]).graph
    assert len(g.edges) == 1
    assert g.edges[0].source == g.nodes[0].id
    assert g.edges[0].target == g.nodes[1].id


def test_steps_are_labeled_and_stacked():
    tasks = [Task(id=1, text="Collect"), Task(id=2, text="  ")]
    settings = EngineSettings(column_x=100, start_y=10, node_spacing=50)
    g = generate_sequential_flow(tasks, settings=settings).graph

    assert [n.label for n in g.nodes_of_kind("step")] == ["Collect", "Step 2"]
    assert [n.position.y for n in g.nodes] == [10, 60, 110, 160]
    assert {n.position.x for n in g.nodes} == {100}


def test_generator_does_not_touch_tasks():
    tasks = _tasks(2)
    flow = generate_sequential_flow(tasks)
    assert all(t.node_id is None for t in tasks)

    bound = bind_tasks_to_steps(tasks, flow.step_node_ids)
    assert [t.node_id for t in bound] == flow.step_node_ids


def test_node_ids_are_unique_across_generations():
    a = generate_sequential_flow(_tasks(2)).graph
    b = generate_sequential_flow(_tasks(2)).graph
    assert not ({n.id for n in a.nodes} & {n.id for n in b.nodes})


def test_extract_tasks_from_sop():
    content = "<h1>Close</h1><ol><li>1. Reconcile &amp; post</li><li>2.Review</li></ol>\nnot a step\n 10. Archive"
    tasks = extract_tasks(content)
    assert [t.text for t in tasks] == ["Reconcile & post", "Review", "Archive"]
    assert [t.id for t in tasks] == [1, 2, 3]
    assert all(t.node_id is None for t in tasks)


def test_extract_plain_text():
    assert extract_plain_text("<p>a</p><p>b &lt; c</p>").split() == ["a", "b", "<", "c"]


def test_extract_tasks_from_example_sop():
    with open("examples/sop.md", encoding="utf-8") as f:
        tasks = extract_tasks(f.read())
    assert [t.text for t in tasks] == [
        "Reconcile bank accounts",
        "Post accruals & deferrals",
        "Review the trial balance",
    ]
