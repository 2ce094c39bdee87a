"""Nearest common ancestor resolution.

Walks strictly along parent edges (partner edges are never followed) one
generation at a time. Each generation is kept as the full set of
individuals exactly that many generations up, so cyclic data keeps the walk
alive forever; the depth cap turns that into a CycleOrDepthExceededError
instead of a hang.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..errors import CycleOrDepthExceededError, NoCommonAncestorError
from .cancellation import CancellationToken
from .graph_store import EdgeFilter, Snapshot
from .models import (
    KIND_QUALIFIERS,
    PARENT_KINDS,
    AncestorMatch,
    AncestorSet,
    EdgeKind,
    IndividualId,
    Qualifier,
    id_sort_key,
)

logger = logging.getLogger(__name__)

_NO_QUALIFIERS: frozenset[Qualifier] = frozenset()


@dataclass
class AncestorDistances:
    """Minimal generations-up from ``root`` to each of its ancestors.

    ``root`` itself is included at distance 0. ``qualifiers`` maps each
    ancestor to the distinct step/adoptive qualifier sets found on its
    minimal-length chains.
    """
    root: IndividualId
    distances: dict[IndividualId, int] = field(default_factory=dict)
    qualifiers: dict[IndividualId, set[frozenset[Qualifier]]] = field(default_factory=dict)

    def __contains__(self, individual_id: object) -> bool:
        return individual_id in self.distances

    def __getitem__(self, individual_id: IndividualId) -> int:
        return self.distances[individual_id]

    @property
    def generations(self) -> int:
        return max(self.distances.values(), default=0)


class AncestorResolver:
    """Computes ancestor distance maps and common ancestor sets."""

    def __init__(
        self,
        snapshot: Snapshot,
        max_depth: int = 50,
        edge_filter: EdgeFilter | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            snapshot: Immutable graph snapshot to search
            max_depth: Generations walked up before giving up
            edge_filter: Edge restrictions (legal-only, min confidence);
                always narrowed to parent kinds
        """
        self.snapshot = snapshot
        self.max_depth = max_depth
        self.edge_filter = (edge_filter or EdgeFilter()).restricted_to(PARENT_KINDS)

    def with_kinds(self, kinds: Iterable[EdgeKind]) -> AncestorResolver:
        """Resolver restricted to a subset of parent kinds (e.g. biological only)."""
        return AncestorResolver(
            self.snapshot, self.max_depth, self.edge_filter.restricted_to(kinds)
        )

    def ancestor_distances(
        self,
        individual_id: IndividualId,
        token: CancellationToken | None = None,
    ) -> AncestorDistances:
        """Breadth-first walk up the parent edges from ``individual_id``.

        Raises:
            UnknownIndividualError: if the individual is not in the snapshot
            CycleOrDepthExceededError: if ancestors remain beyond ``max_depth``
        """
        self.snapshot.require(individual_id)
        token = token or CancellationToken.never()

        result = AncestorDistances(root=individual_id)
        result.distances[individual_id] = 0
        result.qualifiers[individual_id] = {_NO_QUALIFIERS}

        generation: set[IndividualId] = {individual_id}
        depth = 0
        while generation:
            token.check()
            next_generation: set[IndividualId] = set()
            for child in generation:
                # Only a child's first (minimal) appearance extends minimal chains
                on_minimal_chain = result.distances[child] == depth
                for edge in self.snapshot.parent_edges(child, self.edge_filter):
                    parent = edge.source
                    next_generation.add(parent)
                    if not on_minimal_chain:
                        continue
                    known = result.distances.setdefault(parent, depth + 1)
                    if known != depth + 1:
                        continue
                    qualifier = KIND_QUALIFIERS.get(edge.kind)
                    parent_quals = result.qualifiers.setdefault(parent, set())
                    for quals in result.qualifiers[child]:
                        parent_quals.add(quals | {qualifier} if qualifier else quals)

            depth += 1
            if next_generation and depth > self.max_depth:
                logger.warning(
                    "Ancestor walk from %r still has %d individual(s) at depth %d",
                    individual_id,
                    len(next_generation),
                    depth,
                )
                raise CycleOrDepthExceededError(individual_id, self.max_depth)
            generation = next_generation

        return result

    def common_ancestors(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        token: CancellationToken | None = None,
    ) -> AncestorSet:
        """Every common ancestor at the minimal summed distance.

        Raises:
            NoCommonAncestorError: if the two ancestries never intersect
        """
        distances_a = self.ancestor_distances(id_a, token)
        distances_b = distances_a if id_a == id_b else self.ancestor_distances(id_b, token)
        return self.intersect(distances_a, distances_b)

    def intersect(
        self, distances_a: AncestorDistances, distances_b: AncestorDistances
    ) -> AncestorSet:
        """Build the minimal common ancestor set from two distance maps."""
        common = distances_a.distances.keys() & distances_b.distances.keys()
        if not common:
            raise NoCommonAncestorError(distances_a.root, distances_b.root)

        best = min(distances_a[c] + distances_b[c] for c in common)
        matches = [
            AncestorMatch(
                ancestor_id=c,
                distance_a=distances_a[c],
                distance_b=distances_b[c],
                qualifiers_a=frozenset(distances_a.qualifiers[c]),
                qualifiers_b=frozenset(distances_b.qualifiers[c]),
            )
            for c in common
            if distances_a[c] + distances_b[c] == best
        ]
        matches.sort(key=lambda m: (m.distance_a, id_sort_key(m.ancestor_id)))

        logger.debug(
            "Common ancestors of %r and %r: %d at summed distance %d",
            distances_a.root,
            distances_b.root,
            len(matches),
            best,
        )
        return AncestorSet(id_a=distances_a.root, id_b=distances_b.root, matches=tuple(matches))
