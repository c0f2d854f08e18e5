from opsflow.core.errors import ProcessValidationError
from opsflow.core.graph.graph_ops import (
    add_edge,
    add_node,
    create_node,
    generate_node_id,
    move_node,
    predecessors,
    prune_dangling_edges,
    remove_edge,
    remove_node,
    successors,
    update_node_attributes,
)
from opsflow.core.model import Edge, Graph, Position


def _chain() -> Graph:
    g = Graph()
    for nid, kind in (("s", "start"), ("a", "step"), ("e", "end")):
        g = add_node(g, create_node(kind, node_id=nid))
    g = add_edge(g, "s", "a")
    return add_edge(g, "a", "e")


def test_create_node_applies_kind_defaults():
    n = create_node("step", (10, 20), attributes={"label": "Review"})
    assert n.kind == "step"
    assert n.id.startswith("step-")
    assert n.position == Position(x=10, y=20)
    assert n.label == "Review"
    assert n.attributes["assignment_type"] == "individual"
    assert n.attributes["deadline_relative_unit"] == "days"
    assert n.attributes["output_requirement_type"] == "markDone"

    start = create_node("start")
    assert start.label == "Input"
    assert start.attributes["start_trigger_type"] == "schedule"


def test_create_node_rejects_unknown_kind():
    try:
        create_node("decision")  # type: ignore[arg-type]
        assert False, "expected ProcessValidationError"
    except ProcessValidationError as e:
        assert e.code == "E_INVALID_ENUM"


def test_generate_node_id_is_unique_and_skips_existing():
    first = generate_node_id("step")
    second = generate_node_id("step")
    assert first != second

    n = int(second.split("-")[1])
    taken = {f"step-{n + 1}", f"step-{n + 2}"}
    third = generate_node_id("step", taken)
    assert third not in taken


def test_add_node_duplicate_id():
    g = _chain()
    try:
        add_node(g, create_node("step", node_id="a"))
        assert False, "expected ProcessValidationError"
    except ProcessValidationError as e:
        assert e.code == "E_DUPLICATE_ID"


def test_add_edge_requires_existing_distinct_nodes():
    g = _chain()
    for source, target, code in (("s", "ghost", "E_UNKNOWN_NODE"), ("a", "a", "E_SELF_LOOP")):
        try:
            add_edge(g, source, target)
            assert False, "expected ProcessValidationError"
        except ProcessValidationError as e:
            assert e.code == code


def test_add_edge_replaces_existing_pair():
    g = add_edge(_chain(), "s", "a")
    assert [(e.source, e.target) for e in g.edges] == [("a", "e"), ("s", "a")]
    assert g.edges[-1].id == "e-s-a"


def test_remove_node_drops_incident_edges():
    g = _chain()
    out = remove_node(g, "a")
    assert [n.id for n in out.nodes] == ["s", "e"]
    assert out.edges == ()
    # the input graph is untouched
    assert len(g.edges) == 2

    assert remove_node(out, "missing") is out


def test_remove_edge():
    g = _chain()
    out = remove_edge(g, "s", "a")
    assert [(e.source, e.target) for e in out.edges] == [("a", "e")]
    assert remove_edge(out, "s", "a") is out


def test_update_node_attributes_merges_and_keeps_identity_when_unchanged():
    g = _chain()
    out = update_node_attributes(g, "a", {"assignee": "Alex Doe"})
    assert out is not g
    assert out.node("a").attributes["assignee"] == "Alex Doe"
    assert out.node("a").attributes["assignment_type"] == "individual"
    assert g.node("a").attributes["assignee"] == ""

    assert update_node_attributes(out, "a", {"assignee": "Alex Doe"}) is out
    assert update_node_attributes(out, "missing", {"x": 1}) is out
    # untouched nodes keep their identity
    assert out.node("s") is g.node("s")


def test_move_node():
    g = _chain()
    out = move_node(g, "a", Position(x=1, y=2))
    assert out.node("a").position == Position(x=1, y=2)
    assert move_node(out, "a", Position(x=1, y=2)) is out


def test_prune_dangling_edges():
    g = Graph(
        nodes=_chain().nodes,
        edges=(
            Edge("s", "a"),
            Edge("a", "ghost"),
            Edge("a", "a"),
            Edge("a", "e"),
            Edge("s", "a"),
        ),
    )
    out = prune_dangling_edges(g)
    assert [(e.source, e.target) for e in out.edges] == [("a", "e"), ("s", "a")]

    clean = _chain()
    assert prune_dangling_edges(clean) is clean


def test_successors_and_predecessors():
    g = _chain()
    assert successors(g, "s") == ["a"]
    assert predecessors(g, "e") == ["a"]
    assert successors(g, "e") == []
