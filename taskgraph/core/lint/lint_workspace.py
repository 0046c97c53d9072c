from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional

from taskgraph.core.errors import WorkspaceValidationError
from taskgraph.core.model import DEPENDENCY_TYPES


# Dependency-graph lint rules. A workspace file can be edited by hand, so the
# invariants the store enforces on every mutation are re-checked here:
# - L_SELF_DEPENDENCY: predecessor_id == successor_id
# - L_DUPLICATE_DEPENDENCY: same ordered pair appears more than once
# - L_CROSS_PROJECT_DEPENDENCY: endpoints belong to different projects
# - L_UNKNOWN_DEPENDENCY_TYPE: type outside FS/SS/FF/SF
# - L_CYCLE_DETECTED: dependency cycle exists


def lint_workspace(ws: dict[str, Any]) -> list[WorkspaceValidationError]:
    """Lint a workspace.

    Lint runs *in addition to* schema validation and works best effort on
    partially-invalid input.
    """

    file = _cast_optional_str(ws.get("__file__"))

    tasks = ws.get("tasks")
    deps = ws.get("dependencies")
    if not isinstance(tasks, list) or not isinstance(deps, list):
        # Let validator handle shape.
        return []

    project_of: dict[str, Optional[str]] = {}
    for raw in tasks:
        if isinstance(raw, dict) and isinstance(raw.get("id"), str):
            pid = raw.get("project_id")
            project_of.setdefault(raw["id"], pid if isinstance(pid, str) else None)

    errors: list[WorkspaceValidationError] = []
    successors: dict[str, list[str]] = defaultdict(list)
    first_index: dict[tuple[str, str], int] = {}

    for i, raw in enumerate(deps):
        if not isinstance(raw, dict):
            continue
        pred = raw.get("predecessor_id")
        succ = raw.get("successor_id")
        if not isinstance(pred, str) or not isinstance(succ, str):
            continue
        path = f"dependencies[{i}]"

        dep_type = raw.get("type", "FS")
        if dep_type not in DEPENDENCY_TYPES:
            errors.append(
                WorkspaceValidationError(
                    code="L_UNKNOWN_DEPENDENCY_TYPE",
                    message=f"unknown dependency type: {dep_type} (expected one of {list(DEPENDENCY_TYPES)})",
                    file=file,
                    path=f"{path}.type",
                )
            )

        if pred == succ:
            errors.append(
                WorkspaceValidationError(
                    code="L_SELF_DEPENDENCY",
                    message=f"task cannot depend on itself: {pred}",
                    file=file,
                    path=path,
                )
            )
            continue

        if (pred, succ) in first_index:
            errors.append(
                WorkspaceValidationError(
                    code="L_DUPLICATE_DEPENDENCY",
                    message=f"duplicate dependency {pred} -> {succ} (first at dependencies[{first_index[(pred, succ)]}])",
                    file=file,
                    path=path,
                )
            )
            continue
        first_index[(pred, succ)] = i

        p_proj, s_proj = project_of.get(pred), project_of.get(succ)
        if p_proj and s_proj and p_proj != s_proj:
            errors.append(
                WorkspaceValidationError(
                    code="L_CROSS_PROJECT_DEPENDENCY",
                    message=f"{pred} ({p_proj}) and {succ} ({s_proj}) belong to different projects",
                    file=file,
                    path=path,
                )
            )

        successors[pred].append(succ)

    for start, msg in _detect_cycles(successors):
        errors.append(
            WorkspaceValidationError(
                code="L_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"dependencies[{_first_edge_from(deps, start)}]",
            )
        )

    return _sorted(errors)


def _detect_cycles(successors: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    nodes = set(successors.keys())
    for succs in successors.values():
        nodes.update(succs)
    state: dict[str, int] = {nid: WHITE for nid in sorted(nodes)}
    emitted: set[frozenset[str]] = set()
    out: list[tuple[str, str]] = []

    for root in list(state.keys()):
        if state[root] != WHITE:
            continue
        # path holds the gray nodes; work pairs each with its remaining successors
        path: list[str] = [root]
        work = [(root, iter(successors.get(root, [])))]
        state[root] = GRAY
        while work:
            u, it = work[-1]
            v = next(it, None)
            if v is None:
                work.pop()
                path.pop()
                state[u] = BLACK
                continue
            if state[v] == GRAY:
                # cycle: v ... u -> v
                cycle = path[path.index(v):] + [v]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, "dependency cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                state[v] = GRAY
                path.append(v)
                work.append((v, iter(successors.get(v, []))))

    return out


def _first_edge_from(deps: list[Any], task_id: str) -> int:
    for i, d in enumerate(deps):
        if isinstance(d, dict) and d.get("predecessor_id") == task_id:
            return i
    return 0


def _sorted(errors: list[WorkspaceValidationError]) -> list[WorkspaceValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
