import pytest

from issue_graph.core.errors import (
    E_CYCLE_DETECTED,
    E_DUPLICATE_ID,
    E_NOT_FOUND,
    E_SELF_REFERENCE,
    GraphMutationError,
)
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.model import Issue


def _chain() -> GraphEngine:
    # A <- B <- C  (B depends on A, C depends on B)
    return GraphEngine(
        [
            Issue(id="A", title="Alpha"),
            Issue(id="B", title="Beta", dependencies=["A"]),
            Issue(id="C", title="Gamma", dependencies=["B"]),
        ]
    )


def test_add_dependency_rejects_cycle_and_leaves_edges_unchanged():
    g = _chain()
    before = g.dependency_map()

    r = g.add_dependency("A", "C")

    assert not r.ok
    assert r.error is not None
    assert r.error.code == E_CYCLE_DETECTED
    assert g.dependency_map() == before


def test_rejected_cycle_reports_path_and_break_options():
    g = _chain()
    r = g.add_dependency("A", "C")

    assert r.cycle_path == ["C", "B", "A"]
    edges = [(o.dependent_id, o.prerequisite_id) for o in r.cycle_break_options]
    assert edges == [("C", "B"), ("B", "A")]
    assert r.cycle_break_options[0].dependent_title == "Gamma"


def test_add_dependency_self_reference():
    g = _chain()
    r = g.add_dependency("B", "B")
    assert not r.ok
    assert r.error.code == E_SELF_REFERENCE


def test_add_dependency_unknown_ids():
    g = _chain()
    r1 = g.add_dependency("A", "NOPE")
    r2 = g.add_dependency("NOPE", "A")
    assert r1.error.code == E_NOT_FOUND
    assert r2.error.code == E_NOT_FOUND
    assert "NOPE" in r1.error.message


def test_add_dependency_appends_and_is_set_like():
    g = _chain()
    assert g.add_dependency("C", "A").ok
    assert g.add_dependency("C", "A").ok
    assert g.get("C").dependencies == ["B", "A"]


def test_remove_dependency_is_noop_when_absent():
    g = _chain()
    g.remove_dependency("A", "C")
    g.remove_dependency("NOPE", "A")
    g.remove_dependency("C", "B")
    assert g.get("C").dependencies == []


def test_transitive_queries():
    g = _chain()
    assert g.transitive_dependencies("C") == {"A", "B"}
    assert g.transitive_dependencies("A") == set()
    assert g.transitive_dependents("A") == {"B", "C"}


def test_would_create_cycle_has_no_side_effects():
    g = _chain()
    before = g.dependency_map()
    assert g.would_create_cycle("A", "C")
    assert not g.would_create_cycle("C", "A")
    assert g.dependency_map() == before


def test_remove_issue_strips_incoming_edges():
    g = _chain()
    assert g.remove_issue("B")
    assert "B" not in g
    assert g.get("C").dependencies == []
    assert not g.remove_issue("B")


def test_add_issue_rejects_duplicates():
    g = _chain()
    r = g.add_issue(Issue(id="A", title="dup"))
    assert not r.ok
    assert r.error.code == E_DUPLICATE_ID
    assert g.add_issue(Issue(id="D", title="Delta")).ok
    assert g.ids == ["A", "B", "C", "D"]


def test_add_dependency_breaking_cycle():
    g = _chain()
    r = g.add_dependency_breaking_cycle("A", "C", ("B", "A"))
    assert r.ok
    assert g.get("A").dependencies == ["C"]
    assert g.get("B").dependencies == []


def test_add_dependency_breaking_cycle_restores_on_failure():
    g = _chain()
    # dropping an edge that is not on the cycle does not help
    r = g.add_dependency_breaking_cycle("A", "C", ("C", "A"))
    assert not r.ok
    assert g.get("B").dependencies == ["A"]
    assert g.get("C").dependencies == ["B"]


def test_reverse_dependency():
    g = _chain()
    r = g.reverse_dependency("B", "A")
    assert r.ok
    assert g.get("B").dependencies == []
    assert g.get("A").dependencies == ["B"]


def test_reverse_dependency_restores_on_cycle():
    g = GraphEngine(
        [
            Issue(id="A", title="Alpha"),
            Issue(id="B", title="Beta", dependencies=["A"]),
            Issue(id="C", title="Gamma", dependencies=["B", "A"]),
        ]
    )
    # C -> A reversed would need A -> C, but C -> B -> A still exists
    r = g.reverse_dependency("C", "A")
    assert not r.ok
    assert r.error.code == E_CYCLE_DETECTED
    assert g.get("C").dependencies == ["B", "A"]
    assert g.get("A").dependencies == []


def test_ready_blocked_blockers_blocking():
    g = GraphEngine(
        [
            Issue(id="A", title="Alpha", status="closed"),
            Issue(id="B", title="Beta", dependencies=["A"]),
            Issue(id="C", title="Gamma", dependencies=["B"]),
            Issue(id="D", title="Delta", dependencies=["GHOST"]),
            Issue(id="E", title="Eps", status="in_progress"),
        ]
    )
    assert [i.id for i in g.ready()] == ["B"]
    assert [i.id for i in g.blocked()] == ["C"]
    assert [i.id for i in g.blockers("C")] == ["B"]
    assert g.blockers("B") == []
    assert [i.id for i in g.blocking("B")] == ["C"]
    counts = {k: len(v) for k, v in g.by_status().items()}
    assert counts == {"open": 3, "in_progress": 1, "closed": 1}


def test_set_status():
    g = _chain()
    assert g.set_status("A", "closed")
    assert g.get("A").is_closed
    assert not g.set_status("NOPE", "closed")


def test_constructor_rejects_duplicate_ids():
    with pytest.raises(GraphMutationError) as exc:
        GraphEngine([Issue(id="A", title="first"), Issue(id="A", title="second")])
    assert exc.value.code == E_DUPLICATE_ID
