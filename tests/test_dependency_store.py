import random

import pytest

from taskgraph.core.errors import (
    CrossProjectError,
    CycleError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from taskgraph.core.graph.dependencies import DependencyStore
from taskgraph.core.graph.store import WorkspaceStore
from taskgraph.core.io.load_workspace import load_workspace
from taskgraph.core.model import Project, Task
from taskgraph.core.schedule.cpm import topological_order
from taskgraph.core.validate.validate_workspace import validate_workspace


def _diamond() -> DependencyStore:
    workspace, errors = validate_workspace(load_workspace("examples/diamond.yaml"))
    assert errors == []
    return DependencyStore(WorkspaceStore.from_workspace(workspace))


def _edges(deps: DependencyStore):
    return [(e.id, e.predecessor_id, e.successor_id, e.type, e.lag_days) for e in deps.store.all_edges()]


def test_add_edge_returns_endpoint_details():
    deps = _diamond()
    detail = deps.add_edge("B", "C", type="SS", lag_days=-1)
    assert detail.edge.id == 5
    assert detail.predecessor.task_key == "WEB-2"
    assert detail.successor.title == "Frontend build"
    assert detail.to_dict()["lag_days"] == -1
    assert deps.successors_of("B") == ["D", "C"]
    assert deps.predecessors_of("C") == ["A", "B"]


def test_add_edge_defaults():
    deps = _diamond()
    detail = deps.add_edge("X", "Z")
    assert (detail.edge.type, detail.edge.lag_days) == ("FS", 0)

    deps = DependencyStore(deps.store, default_type="SS")
    assert deps.add_edge("C", "B").edge.type == "SS"


def test_add_edge_rejects_self_loop():
    with pytest.raises(ValidationError):
        _diamond().add_edge("A", "A")


def test_add_edge_rejects_bad_type_and_lag():
    deps = _diamond()
    with pytest.raises(ValidationError):
        deps.add_edge("B", "C", type="XX")
    with pytest.raises(ValidationError):
        deps.add_edge("B", "C", lag_days="2")


def test_add_edge_missing_task():
    deps = _diamond()
    with pytest.raises(NotFoundError) as exc:
        deps.add_edge("A", "NOPE")
    assert exc.value.path == "successor_id"
    with pytest.raises(NotFoundError):
        deps.add_edge("NOPE", "A")


def test_add_edge_cross_project():
    with pytest.raises(CrossProjectError):
        _diamond().add_edge("A", "X")


def test_add_edge_duplicate():
    with pytest.raises(DuplicateError):
        _diamond().add_edge("A", "B")


def test_cycle_rejected_and_store_unchanged():
    deps = _diamond()
    before = _edges(deps)
    with pytest.raises(CycleError) as exc:
        deps.add_edge("D", "A")
    assert "D -> A -> B -> D" in exc.value.message
    assert _edges(deps) == before
    assert deps.store.get_edge(5) is None


def test_update_edge_keeps_unset_fields():
    deps = _diamond()
    detail = deps.update_edge(3, lag_days=5)
    assert (detail.edge.type, detail.edge.lag_days) == ("SS", 5)
    detail = deps.update_edge(3, type="FF")
    assert (detail.edge.type, detail.edge.lag_days) == ("FF", 5)
    assert (detail.edge.predecessor_id, detail.edge.successor_id) == ("B", "D")


def test_update_edge_errors():
    deps = _diamond()
    with pytest.raises(NotFoundError):
        deps.update_edge(99, lag_days=1)
    with pytest.raises(ValidationError):
        deps.update_edge(1, type="nope")


def test_remove_edge():
    deps = _diamond()
    deps.remove_edge(1)
    assert deps.successors_of("A") == ["C"]
    assert deps.predecessors_of("B") == []
    with pytest.raises(NotFoundError):
        deps.remove_edge(1)


def test_remove_then_readd_gets_new_id():
    deps = _diamond()
    deps.remove_edge(2)
    detail = deps.add_edge("A", "C")
    assert detail.edge.id == 5


def test_list_edges_scoped_to_project():
    deps = _diamond()
    assert [d.edge.id for d in deps.list_edges("WEB")] == [1, 2, 3, 4]
    assert deps.list_edges("OPS") == []
    assert deps.list_edges("NOPE") == []
    deps.add_edge("X", "Z")
    assert [d.to_dict()["predecessor"]["id"] for d in deps.list_edges("OPS")] == ["X"]


def test_random_mutations_keep_graph_acyclic():
    rng = random.Random(7)
    store = WorkspaceStore()
    ids = [f"T{i}" for i in range(12)]
    with store.transaction() as s:
        s.put_project(Project(id="P", name="P", key="P"))
        for tid in ids:
            s.put_task(Task(id=tid, project_id="P", title=tid))
    deps = DependencyStore(store)

    accepted = 0
    for _ in range(300):
        if store.all_edges() and rng.random() < 0.3:
            deps.remove_edge(rng.choice(store.all_edges()).id)
        else:
            a, b = rng.sample(ids, 2)
            try:
                deps.add_edge(a, b)
                accepted += 1
            except (CycleError, DuplicateError):
                pass
        snap = store.snapshot("P")
        succ = {}
        for e in snap.edges:
            succ.setdefault(e.predecessor_id, []).append(e.successor_id)
        topological_order(ids, succ)

    assert accepted > 0
