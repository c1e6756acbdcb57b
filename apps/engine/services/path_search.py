"""Bounded breadth-first search for short paths between marked nodes.

Used by stores without a native variable-length match (the in-memory graph
store). Edges are treated as undirected, and a path read backwards is the
same path: only the orientation found first is reported.
"""

from collections import deque
from typing import Collection, Hashable, Iterable, Mapping, TypeVar

from models.errors import InvalidQuery

NodeId = TypeVar("NodeId", bound=Hashable)


def validate_hop_window(min_hops: int, max_hops: int, limit: int) -> None:
    """Reject search bounds that would make the search unbounded or empty."""
    if min_hops < 1:
        raise InvalidQuery(f"min_hops must be >= 1, got {min_hops}")
    if max_hops < min_hops:
        raise InvalidQuery(f"max_hops ({max_hops}) must be >= min_hops ({min_hops})")
    if limit < 1:
        raise InvalidQuery(f"limit must be >= 1, got {limit}")


def find_bounded_paths(
    adjacency: Mapping[NodeId, Iterable[NodeId]],
    sources: Iterable[NodeId],
    targets: Collection[NodeId],
    min_hops: int = 1,
    max_hops: int = 3,
    limit: int = 50,
) -> list[list[NodeId]]:
    """Collect simple paths from any source to a different target node.

    Args:
        adjacency: Undirected neighbor lists; iteration order is the
            enumeration order of the results
        sources: Start nodes, searched in the given order
        targets: Nodes that terminate a result path
        min_hops: Minimum number of edges in a reported path
        max_hops: Maximum number of edges in a reported path
        limit: Stop once this many paths have been collected

    Returns:
        Paths as node lists, first node a source and last node a target.
        Paths pass through targets freely; reaching a target reports the
        path and keeps extending it. The reverse of a reported path is
        never reported.
    """
    validate_hop_window(min_hops, max_hops, limit)

    results: list[list[NodeId]] = []
    seen: set[tuple[NodeId, ...]] = set()

    for source in dict.fromkeys(sources):
        queue: deque[tuple[NodeId, ...]] = deque([(source,)])
        while queue:
            path = queue.popleft()
            hops = len(path) - 1
            if hops >= max_hops:
                continue

            for neighbor in adjacency.get(path[-1], ()):
                if neighbor in path:
                    continue
                extended = path + (neighbor,)

                if (
                    hops + 1 >= min_hops
                    and neighbor != source
                    and neighbor in targets
                    and extended not in seen
                    and extended[::-1] not in seen
                ):
                    seen.add(extended)
                    results.append(list(extended))
                    if len(results) >= limit:
                        return results

                queue.append(extended)

    return results
