from __future__ import annotations

from collections import deque
from typing import Callable, Iterable, Optional


SuccessorsFn = Callable[[str], Iterable[str]]


def find_cycle_path(successors_of: SuccessorsFn, predecessor_id: str, successor_id: str) -> Optional[list[str]]:
    """Return the path successor_id -> ... -> predecessor_id if one exists.

    Adding predecessor_id -> successor_id would close exactly that loop.
    Breadth-first from successor_id over existing edges only; stops at the
    first hit. O(V+E).
    """
    if predecessor_id == successor_id:
        return [successor_id]

    parent: dict[str, Optional[str]] = {successor_id: None}
    q: deque[str] = deque([successor_id])
    while q:
        cur = q.popleft()
        if cur == predecessor_id:
            path = [cur]
            prev = parent[cur]
            while prev is not None:
                path.append(prev)
                prev = parent[prev]
            path.reverse()
            return path
        for nxt in successors_of(cur):
            if nxt not in parent:
                parent[nxt] = cur
                q.append(nxt)
    return None


def creates_cycle(successors_of: SuccessorsFn, predecessor_id: str, successor_id: str) -> bool:
    return find_cycle_path(successors_of, predecessor_id, successor_id) is not None


def describe_cycle(path: list[str]) -> str:
    # path runs successor -> ... -> predecessor; the candidate edge closes it.
    return " -> ".join([path[-1]] + path)
