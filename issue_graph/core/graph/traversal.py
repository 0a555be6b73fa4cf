from __future__ import annotations

from collections import defaultdict, deque
from typing import Mapping, Optional, Sequence


# Adjacency is always dependent -> prerequisites. Ids that appear only as
# prerequisites (dangling references) simply have no outgoing edges.
Adjacency = Mapping[str, Sequence[str]]


def transitive_dependencies(deps: Adjacency, start: str) -> set[str]:
    """Everything that must finish (directly or indirectly) before `start`.

    `start` itself is only included when it sits on a cycle.
    """
    seen: set[str] = set()
    q: deque[str] = deque(deps.get(start, ()))
    while q:
        cur = q.popleft()
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in deps.get(cur, ()):
            if nxt not in seen:
                q.append(nxt)
    return seen


def reverse_adjacency(deps: Adjacency) -> dict[str, list[str]]:
    # prerequisite -> dependents, restricted to known dependents
    out: dict[str, list[str]] = defaultdict(list)
    for nid, prereqs in deps.items():
        for p in prereqs:
            out[p].append(nid)
    return dict(out)


def transitive_dependents(deps: Adjacency, start: str) -> set[str]:
    """Everything that (directly or indirectly) waits on `start`."""
    return transitive_dependencies(reverse_adjacency(deps), start)


def reaches(
    deps: Adjacency,
    source: str,
    target: str,
    skip_edge: Optional[tuple[str, str]] = None,
) -> bool:
    """True when `target` is reachable from `source` along dependency edges.

    A path of length zero counts. `skip_edge` (dependent, prerequisite) is
    treated as absent for the duration of the search.
    """
    seen: set[str] = set()
    q: deque[str] = deque([source])
    while q:
        cur = q.popleft()
        if cur == target:
            return True
        if cur in seen:
            continue
        seen.add(cur)
        for nxt in deps.get(cur, ()):
            if skip_edge is not None and (cur, nxt) == skip_edge:
                continue
            if nxt not in seen:
                q.append(nxt)
    return False


def shortest_path(deps: Adjacency, source: str, target: str) -> Optional[list[str]]:
    """BFS path source -> ... -> target along dependency edges, or None."""
    parent: dict[str, str] = {}
    seen: set[str] = {source}
    q: deque[str] = deque([source])
    while q:
        cur = q.popleft()
        if cur == target:
            path = [cur]
            while path[-1] != source:
                path.append(parent[path[-1]])
            path.reverse()
            return path
        for nxt in deps.get(cur, ()):
            if nxt not in seen:
                seen.add(nxt)
                parent[nxt] = cur
                q.append(nxt)
    return None


def topological_order(deps: Adjacency) -> list[str]:
    """DFS post-order over known ids: every id comes after its prerequisites.

    Uses an explicit stack so deep chains do not hit the recursion limit.
    Dangling prerequisites are skipped. On a cyclic graph the back edge is
    ignored, so the result is still a permutation of the known ids.
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in deps}
    order: list[str] = []

    for root in deps:
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            nid, idx = stack[-1]
            prereqs = deps[nid]
            if idx < len(prereqs):
                stack[-1] = (nid, idx + 1)
                nxt = prereqs[idx]
                if state.get(nxt) == WHITE:
                    state[nxt] = GRAY
                    stack.append((nxt, 0))
                continue
            stack.pop()
            state[nid] = BLACK
            order.append(nid)

    return order
