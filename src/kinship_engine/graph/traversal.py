"""Pedigree traversal queries for the genealogical graph.

Provides generation-by-generation listings for:
- Ancestor traversal (parents, grandparents, etc.)
- Descendant traversal (children, grandchildren, etc.)

Each individual is listed once, at the first generation it is reached, so
pedigree collapse and cyclic data cannot loop the walk.
"""
from __future__ import annotations

import logging
import time
from collections import deque

from .cancellation import CancellationToken
from .classifier import ancestor_label, compose_label, descendant_label
from .graph_store import EdgeFilter, Snapshot
from .models import (
    KIND_QUALIFIERS,
    PARENT_KINDS,
    EdgeKind,
    IndividualId,
    PedigreeResult,
    RelationshipEdge,
    TraversalDirection,
)

logger = logging.getLogger(__name__)


class PedigreeTraversal:
    """Genealogical graph traversal engine.

    Example:
        >>> traversal = PedigreeTraversal(store.snapshot())
        >>> result = traversal.get_ancestors("alice", max_generations=4)
        >>> for ancestor in result.ancestors:
        ...     print(f"{ancestor['generation']}: {ancestor['relationship_label']}")
    """

    def __init__(self, snapshot: Snapshot, edge_filter: EdgeFilter | None = None) -> None:
        """Initialize traversal engine.

        Args:
            snapshot: Immutable graph snapshot to query
            edge_filter: Edge restrictions; always narrowed to parent kinds
        """
        self.snapshot = snapshot
        self.edge_filter = (edge_filter or EdgeFilter()).restricted_to(PARENT_KINDS)

    def get_ancestors(
        self,
        individual_id: IndividualId,
        max_generations: int = 4,
        token: CancellationToken | None = None,
    ) -> PedigreeResult:
        """Get all ancestors up to specified generation.

        Args:
            individual_id: Root individual to start from
            max_generations: Maximum generations to traverse (1=parents, 2=grandparents)
            token: Cancellation token checked once per generation

        Returns:
            PedigreeResult with ancestors in breadth-first order
        """
        return self._walk(
            individual_id,
            max_generations,
            TraversalDirection.ANCESTORS,
            token or CancellationToken.never(),
        )

    def get_descendants(
        self,
        individual_id: IndividualId,
        max_generations: int = 4,
        token: CancellationToken | None = None,
    ) -> PedigreeResult:
        """Get all descendants down to specified generation.

        Args:
            individual_id: Root individual to start from
            max_generations: Maximum generations to traverse (1=children, 2=grandchildren)
            token: Cancellation token checked once per generation

        Returns:
            PedigreeResult with descendants in breadth-first order
        """
        return self._walk(
            individual_id,
            max_generations,
            TraversalDirection.DESCENDANTS,
            token or CancellationToken.never(),
        )

    def _walk(
        self,
        root: IndividualId,
        max_generations: int,
        direction: TraversalDirection,
        token: CancellationToken,
    ) -> PedigreeResult:
        self.snapshot.require(root)
        start_time = time.time()
        upward = direction is TraversalDirection.ANCESTORS
        label_for = ancestor_label if upward else descendant_label

        found: list[dict] = []
        visited: set[IndividualId] = {root}
        truncated = False

        # (individual, generation, lineage, edge kinds from the root)
        queue: deque[tuple[IndividualId, int, IndividualId | None, list[EdgeKind]]] = deque()
        queue.append((root, 0, None, []))
        current_generation = 0

        while queue:
            current_id, generation, lineage, kinds = queue.popleft()
            if generation != current_generation:
                token.check()
                current_generation = generation

            for edge in self._next_edges(current_id, upward):
                relative = edge.source if upward else edge.target
                if relative in visited:
                    continue
                if generation >= max_generations:
                    truncated = True
                    break
                visited.add(relative)

                path = kinds + [edge.kind]
                qualifiers = {KIND_QUALIFIERS[k] for k in path if k in KIND_QUALIFIERS}
                found.append({
                    "individual_id": relative,
                    "generation": generation + 1,
                    # Which parent (or child) of the root this line runs through
                    "lineage": lineage if lineage is not None else relative,
                    "relationship_label": compose_label(label_for(generation + 1), qualifiers),
                    "edge_kinds": [k.value for k in path],
                    "confidence": edge.confidence,
                })
                queue.append(
                    (relative, generation + 1, lineage if lineage is not None else relative, path)
                )

        query_time = (time.time() - start_time) * 1000
        logger.debug(
            "Pedigree %s of %r: %d individuals in %.1fms",
            direction.value,
            root,
            len(found),
            query_time,
        )

        return PedigreeResult(
            root_id=root,
            direction=direction,
            generations_found=max((f["generation"] for f in found), default=0),
            total_persons=len(found),
            ancestors=found if upward else [],
            descendants=[] if upward else found,
            query_time_ms=query_time,
            truncated=truncated,
        )

    def _next_edges(self, individual_id: IndividualId, upward: bool) -> list[RelationshipEdge]:
        if upward:
            return self.snapshot.parent_edges(individual_id, self.edge_filter)
        return self.snapshot.child_edges(individual_id, self.edge_filter)
