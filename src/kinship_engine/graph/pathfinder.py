"""Shortest connecting paths between two individuals.

Bidirectional breadth-first search over parent, child and partner edges,
walked in both directions regardless of how parent edges are stored.

Search order is deterministic:
- whichever side has the smaller frontier expands one whole generation
  (the start side on ties);
- inside a generation, individuals expand in ascending identifier order
  (integers before strings);
- neighbors are visited in ascending (identifier, edge kind) order, with
  edge kinds ordered biological, adoptive, step, partner.

The first discovery of an individual fixes its predecessor, so the path
returned by ``shortest_path`` is stable for a given snapshot. All
equal-length alternatives remain available through ``shortest_paths``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from itertools import islice

from ..errors import CycleOrDepthExceededError, NotConnectedError
from .cancellation import CancellationToken
from .graph_store import EdgeFilter, Snapshot
from .models import (
    ALL_KINDS,
    Direction,
    EdgeKind,
    IndividualId,
    Path,
    PathStep,
    id_sort_key,
)

logger = logging.getLogger(__name__)

# Check the token this often inside a single, very wide generation
_CHECK_EVERY = 1024

_REVERSED = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.ACROSS: Direction.ACROSS,
}

Predecessors = dict[IndividualId, list[tuple[IndividualId, EdgeKind, Direction]]]


class _Side:
    """One half of the bidirectional search."""

    def __init__(self, root: IndividualId) -> None:
        self.root = root
        self.dist: dict[IndividualId, int] = {root: 0}
        self.preds: Predecessors = {root: []}
        self.frontier: list[IndividualId] = [root]
        self.depth = 0


class PathFinder:
    """Bidirectional BFS path finder over one snapshot.

    Example:
        >>> finder = PathFinder(store.snapshot())
        >>> path = finder.shortest_path("alice", "bob")
        >>> path.individual_ids
        ['alice', 'carol', 'bob']
    """

    def __init__(self, snapshot: Snapshot, max_depth: int = 200) -> None:
        """Initialize path finder.

        Args:
            snapshot: Immutable graph snapshot to search
            max_depth: Maximum combined depth of both search frontiers
        """
        self.snapshot = snapshot
        self.max_depth = max_depth

    def shortest_path(
        self,
        start_id: IndividualId,
        end_id: IndividualId,
        allowed_kinds: Iterable[EdgeKind] = ALL_KINDS,
        *,
        edge_filter: EdgeFilter | None = None,
        token: CancellationToken | None = None,
    ) -> Path:
        """Find the deterministic shortest path from ``start_id`` to ``end_id``.

        Raises:
            UnknownIndividualError: if either individual is not in the snapshot
            NotConnectedError: if no path exists over the allowed edges
            CycleOrDepthExceededError: if the search reaches ``max_depth``
        """
        return self.shortest_paths(
            start_id, end_id, allowed_kinds, limit=1, edge_filter=edge_filter, token=token
        )[0]

    def shortest_paths(
        self,
        start_id: IndividualId,
        end_id: IndividualId,
        allowed_kinds: Iterable[EdgeKind] = ALL_KINDS,
        *,
        limit: int = 16,
        edge_filter: EdgeFilter | None = None,
        token: CancellationToken | None = None,
    ) -> list[Path]:
        """Find up to ``limit`` distinct shortest paths, in deterministic order.

        The first element is always the path ``shortest_path`` returns.
        """
        self.snapshot.require(start_id)
        self.snapshot.require(end_id)
        if start_id == end_id:
            return [Path(steps=(PathStep(start_id),))]

        edge_filter = (edge_filter or EdgeFilter()).restricted_to(allowed_kinds)
        token = token or CancellationToken.never()

        forward = _Side(start_id)
        backward = _Side(end_id)
        expanded = 0

        while forward.frontier and backward.frontier:
            if forward.depth + backward.depth >= self.max_depth:
                raise CycleOrDepthExceededError(start_id, self.max_depth)
            token.check()

            if len(forward.frontier) <= len(backward.frontier):
                meetings = self._expand(forward, backward, edge_filter, token)
                expanded += 1
                if meetings:
                    oriented = meetings
                    break
            else:
                meetings = self._expand(backward, forward, edge_filter, token)
                expanded += 1
                if meetings:
                    # Re-orient as start-side node -> end-side node
                    oriented = [(v, u, kind, _REVERSED[d]) for u, v, kind, d in meetings]
                    break
        else:
            raise NotConnectedError(start_id, end_id)

        paths = list(islice(self._assemble(forward, backward, oriented), max(limit, 1)))
        logger.debug(
            "Path %r -> %r: length %d, %d generation expansions, %d individuals reached",
            start_id,
            end_id,
            paths[0].length,
            expanded,
            len(forward.dist) + len(backward.dist),
        )
        return paths

    def _expand(
        self,
        side: _Side,
        other: _Side,
        edge_filter: EdgeFilter,
        token: CancellationToken,
    ) -> list[tuple[IndividualId, IndividualId, EdgeKind, Direction]]:
        """Expand one full generation of ``side``.

        Returns every edge joining this generation to individuals already
        reached by ``other``. Once the two searches touch, all such edges
        give paths of the same, minimal length.
        """
        next_depth = side.depth + 1
        next_frontier: list[IndividualId] = []
        meetings: list[tuple[IndividualId, IndividualId, EdgeKind, Direction]] = []

        for count, current in enumerate(sorted(side.frontier, key=id_sort_key), start=1):
            if count % _CHECK_EVERY == 0:
                token.check()
            for neighbor, kind, direction in self.snapshot.adjacent(current, edge_filter):
                if neighbor in other.dist:
                    meetings.append((current, neighbor, kind, direction))
                    continue
                seen_at = side.dist.get(neighbor)
                if seen_at is None:
                    side.dist[neighbor] = next_depth
                    side.preds[neighbor] = [(current, kind, direction)]
                    next_frontier.append(neighbor)
                elif seen_at == next_depth:
                    side.preds[neighbor].append((current, kind, direction))

        side.frontier = next_frontier
        side.depth = next_depth
        return meetings

    def _assemble(
        self,
        forward: _Side,
        backward: _Side,
        meetings: list[tuple[IndividualId, IndividualId, EdgeKind, Direction]],
    ) -> Iterator[Path]:
        """Yield complete paths for each meeting edge, in discovery order."""
        for near, far, kind, direction in meetings:
            for head in _chains_to(forward.preds, near):
                for tail in _chains_from(backward.preds, far):
                    bridge = PathStep(far, kind, direction)
                    yield Path(steps=(*head, bridge, *tail))


def _unlink(chain: tuple | None) -> list[PathStep]:
    """Flatten a shared-tail (step, rest) chain, head first."""
    steps: list[PathStep] = []
    while chain is not None:
        step, chain = chain
        steps.append(step)
    return steps


def _chains_to(preds: Predecessors, node: IndividualId) -> Iterator[list[PathStep]]:
    """Yield root -> node step lists, first-discovery chain first.

    Depth-first over predecessor choices with an explicit stack, so path
    length is not bounded by the interpreter's recursion limit.
    """
    stack = [(node, None)]
    while stack:
        current, after = stack.pop()
        entries = preds[current]
        if not entries:
            yield [PathStep(current), *_unlink(after)]
            continue
        for pred, kind, direction in reversed(entries):
            stack.append((pred, (PathStep(current, kind, direction), after)))


def _chains_from(preds: Predecessors, node: IndividualId) -> Iterator[list[PathStep]]:
    """Yield the steps after ``node`` leading to the backward search's root.

    Backward predecessors point toward the end individual, so each hop is
    walked against the direction it was discovered in.
    """
    stack = [(node, None)]
    while stack:
        current, before = stack.pop()
        entries = preds[current]
        if not entries:
            steps = _unlink(before)
            steps.reverse()
            yield steps
            continue
        for pred, kind, direction in reversed(entries):
            stack.append((pred, (PathStep(pred, kind, _REVERSED[direction]), before)))
