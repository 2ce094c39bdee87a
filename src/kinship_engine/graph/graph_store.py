"""In-memory graph store for genealogical relationships.

The store publishes immutable ``Snapshot`` objects. A snapshot indexes
parent, child and partner adjacency separately so traversals can filter by
edge kind without scanning, and every lookup is a dict access. Adjacency
tuples are pre-sorted by (neighbor id, edge kind) at build time, which is
what makes traversal order deterministic.

Publishing a new snapshot (full ``load`` or incremental ``add_edges``) swaps
a single reference; queries already holding the old snapshot keep using it.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ..errors import InvalidGraphError, UnknownIndividualError
from .models import (
    ALL_KINDS,
    KIND_ORDER,
    PARENT_KINDS,
    Direction,
    EdgeKind,
    Individual,
    IndividualId,
    RelationshipEdge,
    id_sort_key,
)

logger = logging.getLogger(__name__)

_EMPTY: tuple[RelationshipEdge, ...] = ()
_DIRECTION_ORDER = {Direction.UP: 0, Direction.DOWN: 1, Direction.ACROSS: 2}


@dataclass(frozen=True)
class EdgeFilter:
    """Which edges a traversal may use."""
    kinds: frozenset[EdgeKind] = ALL_KINDS
    legal_only: bool = False
    min_confidence: float = 0.0

    def accepts(self, edge: RelationshipEdge) -> bool:
        if edge.kind not in self.kinds:
            return False
        if self.legal_only and not edge.legal:
            return False
        return edge.confidence >= self.min_confidence

    def restricted_to(self, kinds: Iterable[EdgeKind]) -> EdgeFilter:
        """Same filter with its kinds intersected with ``kinds``."""
        return EdgeFilter(
            kinds=self.kinds & frozenset(kinds),
            legal_only=self.legal_only,
            min_confidence=self.min_confidence,
        )


ALL_EDGES = EdgeFilter()


class Snapshot:
    """Immutable, indexed view of individuals and relationship edges.

    Never mutated after construction, so any number of threads may read it
    without locking.
    """

    def __init__(
        self,
        individuals: frozenset[IndividualId],
        parents: dict[IndividualId, tuple[RelationshipEdge, ...]],
        children: dict[IndividualId, tuple[RelationshipEdge, ...]],
        partners: dict[IndividualId, tuple[RelationshipEdge, ...]],
        edges: frozenset[RelationshipEdge],
        version: int,
    ) -> None:
        self._individuals = individuals
        self._parents = parents
        self._children = children
        self._partners = partners
        self._edges = edges
        self.version = version

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def individual_ids(self) -> frozenset[IndividualId]:
        return self._individuals

    @property
    def individual_count(self) -> int:
        return len(self._individuals)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def contains(self, individual_id: IndividualId) -> bool:
        return individual_id in self._individuals

    def require(self, individual_id: IndividualId) -> None:
        """Raise UnknownIndividualError if the individual is absent."""
        if individual_id not in self._individuals:
            raise UnknownIndividualError(individual_id)

    def iter_edges(self) -> Iterator[RelationshipEdge]:
        return iter(self._edges)

    # ------------------------------------------------------------------
    # Adjacency
    # ------------------------------------------------------------------

    def parent_edges(
        self, individual_id: IndividualId, edge_filter: EdgeFilter = ALL_EDGES
    ) -> list[RelationshipEdge]:
        """Edges from the individual's parents, sorted by parent id."""
        return [e for e in self._parents.get(individual_id, _EMPTY) if edge_filter.accepts(e)]

    def child_edges(
        self, individual_id: IndividualId, edge_filter: EdgeFilter = ALL_EDGES
    ) -> list[RelationshipEdge]:
        """Edges to the individual's children, sorted by child id."""
        return [e for e in self._children.get(individual_id, _EMPTY) if edge_filter.accepts(e)]

    def partner_edges(
        self, individual_id: IndividualId, edge_filter: EdgeFilter = ALL_EDGES
    ) -> list[RelationshipEdge]:
        return [e for e in self._partners.get(individual_id, _EMPTY) if edge_filter.accepts(e)]

    def parents(
        self, individual_id: IndividualId, kinds: Iterable[EdgeKind] = PARENT_KINDS
    ) -> list[tuple[IndividualId, EdgeKind]]:
        edge_filter = EdgeFilter(kinds=frozenset(kinds))
        return [(e.source, e.kind) for e in self.parent_edges(individual_id, edge_filter)]

    def children(
        self, individual_id: IndividualId, kinds: Iterable[EdgeKind] = PARENT_KINDS
    ) -> list[tuple[IndividualId, EdgeKind]]:
        edge_filter = EdgeFilter(kinds=frozenset(kinds))
        return [(e.target, e.kind) for e in self.child_edges(individual_id, edge_filter)]

    def partners(self, individual_id: IndividualId) -> list[IndividualId]:
        return [e.other(individual_id) for e in self.partner_edges(individual_id)]

    def adjacent(
        self, individual_id: IndividualId, edge_filter: EdgeFilter = ALL_EDGES
    ) -> list[tuple[IndividualId, EdgeKind, Direction]]:
        """All neighbors in both edge directions, ordered by (id, kind, direction)."""
        result: list[tuple[IndividualId, EdgeKind, Direction]] = []
        if edge_filter.kinds & PARENT_KINDS:
            result.extend((e.source, e.kind, Direction.UP) for e in self.parent_edges(individual_id, edge_filter))
            result.extend((e.target, e.kind, Direction.DOWN) for e in self.child_edges(individual_id, edge_filter))
        if EdgeKind.PARTNER in edge_filter.kinds:
            result.extend(
                (e.other(individual_id), e.kind, Direction.ACROSS)
                for e in self.partner_edges(individual_id, edge_filter)
            )
        result.sort(key=lambda n: (id_sort_key(n[0]), KIND_ORDER[n[1]], _DIRECTION_ORDER[n[2]]))
        return result

    def neighbors(
        self, individual_id: IndividualId, edge_kinds: Iterable[EdgeKind] = ALL_KINDS
    ) -> set[tuple[IndividualId, EdgeKind]]:
        """Neighbors over the given kinds, ignoring declared edge direction."""
        self.require(individual_id)
        edge_filter = EdgeFilter(kinds=frozenset(edge_kinds))
        return {(other, kind) for other, kind, _ in self.adjacent(individual_id, edge_filter)}

    def edges_between(self, a: IndividualId, b: IndividualId) -> list[RelationshipEdge]:
        """Every edge joining ``a`` and ``b`` in either direction."""
        found = [e for e in self._parents.get(a, _EMPTY) if e.source == b]
        found += [e for e in self._children.get(a, _EMPTY) if e.target == b]
        found += [e for e in self._partners.get(a, _EMPTY) if e.other(a) == b]
        return found

    def __repr__(self) -> str:
        return (
            f"Snapshot(version={self.version}, individuals={self.individual_count}, "
            f"edges={self.edge_count})"
        )


def _coerce_id(item: Individual | IndividualId) -> IndividualId:
    return item.individual_id if isinstance(item, Individual) else item


def _valid_id(individual_id: object) -> bool:
    return isinstance(individual_id, (int, str)) and not isinstance(individual_id, bool)


def _edge_order(anchor_other: IndividualId, edge: RelationshipEdge) -> tuple:
    return (id_sort_key(anchor_other), KIND_ORDER[edge.kind], not edge.legal, -edge.confidence)


def _validate_edges(
    edges: Iterable[RelationshipEdge], known: frozenset[IndividualId]
) -> tuple[list[RelationshipEdge], list[str]]:
    accepted: list[RelationshipEdge] = []
    problems: list[str] = []
    for edge in edges:
        if not isinstance(edge, RelationshipEdge):
            problems.append(f"Not a RelationshipEdge: {edge!r}")
            continue
        if not isinstance(edge.kind, EdgeKind):
            problems.append(f"Unknown edge kind {edge.kind!r} on {edge.source!r}->{edge.target!r}")
            continue
        missing = [i for i in (edge.source, edge.target) if i not in known]
        if missing:
            problems.append(
                f"Edge {edge.source!r}->{edge.target!r} ({edge.kind.value}) references "
                f"unknown individual(s) {', '.join(repr(m) for m in missing)}"
            )
            continue
        if edge.source == edge.target:
            problems.append(f"Self-loop on {edge.source!r} ({edge.kind.value})")
            continue
        if not 0.0 <= edge.confidence <= 1.0:
            problems.append(
                f"Confidence {edge.confidence} out of range on {edge.source!r}->{edge.target!r}"
            )
            continue
        accepted.append(edge)
    return accepted, problems


def _index_edges(
    edges: Iterable[RelationshipEdge],
    parents: dict[IndividualId, tuple[RelationshipEdge, ...]],
    children: dict[IndividualId, tuple[RelationshipEdge, ...]],
    partners: dict[IndividualId, tuple[RelationshipEdge, ...]],
) -> None:
    """Merge ``edges`` into the adjacency dicts, keeping each tuple sorted."""
    pending: dict[str, dict[IndividualId, list[RelationshipEdge]]] = {
        "parents": {}, "children": {}, "partners": {},
    }
    for edge in edges:
        if edge.kind is EdgeKind.PARTNER:
            pending["partners"].setdefault(edge.source, []).append(edge)
            pending["partners"].setdefault(edge.target, []).append(edge)
        else:
            pending["parents"].setdefault(edge.target, []).append(edge)
            pending["children"].setdefault(edge.source, []).append(edge)

    for name, index in (("parents", parents), ("children", children), ("partners", partners)):
        for anchor, new_edges in pending[name].items():
            merged = list(index.get(anchor, _EMPTY)) + new_edges
            merged.sort(key=lambda e, a=anchor: _edge_order(e.other(a), e))
            index[anchor] = tuple(merged)


class GraphStore:
    """Owner of the canonical snapshot.

    Example:
        >>> store = GraphStore()
        >>> snapshot = store.load([1, 2, 3], [RelationshipEdge(source=1, target=3)])
        >>> snapshot.parents(3)
        [(1, <EdgeKind.BIOLOGICAL_PARENT: 'biological_parent'>)]
    """

    def __init__(self) -> None:
        self._snapshot: Snapshot | None = None
        self._write_lock = threading.RLock()
        self._version = 0

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def snapshot(self) -> Snapshot:
        """Current immutable snapshot handle."""
        snapshot = self._snapshot
        if snapshot is None:
            raise InvalidGraphError("No snapshot has been loaded")
        return snapshot

    def neighbors(
        self, individual_id: IndividualId, edge_kinds: Iterable[EdgeKind] = ALL_KINDS
    ) -> set[tuple[IndividualId, EdgeKind]]:
        return self.snapshot().neighbors(individual_id, edge_kinds)

    def load(
        self,
        individuals: Iterable[Individual | IndividualId],
        edges: Iterable[RelationshipEdge],
    ) -> Snapshot:
        """Validate a full individual/edge set and publish it as a new snapshot.

        Raises:
            InvalidGraphError: on unknown endpoints, duplicate or malformed
                identifiers, self-loops or out-of-range confidence. The
                previously published snapshot stays in place.
        """
        problems: list[str] = []
        ids: set[IndividualId] = set()
        for item in individuals:
            individual_id = _coerce_id(item)
            if not _valid_id(individual_id):
                problems.append(f"Invalid identifier {individual_id!r}")
            elif individual_id in ids:
                problems.append(f"Duplicate individual {individual_id!r}")
            else:
                ids.add(individual_id)

        known = frozenset(ids)
        accepted, edge_problems = _validate_edges(edges, known)
        problems.extend(edge_problems)
        if problems:
            logger.warning("Rejected snapshot load with %d problem(s)", len(problems))
            raise InvalidGraphError(
                f"Invalid graph: {problems[0]}"
                + (f" (and {len(problems) - 1} more)" if len(problems) > 1 else ""),
                problems,
            )

        unique_edges = frozenset(accepted)
        parents: dict[IndividualId, tuple[RelationshipEdge, ...]] = {}
        children: dict[IndividualId, tuple[RelationshipEdge, ...]] = {}
        partners: dict[IndividualId, tuple[RelationshipEdge, ...]] = {}
        _index_edges(unique_edges, parents, children, partners)

        return self._publish(known, parents, children, partners, unique_edges)

    def add_edges(
        self,
        edges: Iterable[RelationshipEdge],
        individuals: Iterable[Individual | IndividualId] = (),
    ) -> Snapshot:
        """Publish a new snapshot with extra individuals and edges appended.

        Copy-on-write: the current snapshot is left untouched for queries
        already using it. Starts from an empty graph if nothing was loaded.

        Each call copies the adjacency indexes, so its cost grows with the
        whole graph, not with the batch. Streaming ingestion should collect
        edges into large batches; many tiny calls add up to quadratic work.
        """
        with self._write_lock:
            current = self._snapshot
            base_ids = current.individual_ids if current else frozenset()

            problems: list[str] = []
            new_ids: set[IndividualId] = set()
            for item in individuals:
                individual_id = _coerce_id(item)
                if not _valid_id(individual_id):
                    problems.append(f"Invalid identifier {individual_id!r}")
                elif individual_id not in base_ids:
                    new_ids.add(individual_id)

            known = base_ids | new_ids
            accepted, edge_problems = _validate_edges(edges, known)
            problems.extend(edge_problems)
            if problems:
                logger.warning("Rejected edge batch with %d problem(s)", len(problems))
                raise InvalidGraphError(f"Invalid edge batch: {problems[0]}", problems)

            existing = current._edges if current else frozenset()
            fresh = [e for e in dict.fromkeys(accepted) if e not in existing]

            parents = dict(current._parents) if current else {}
            children = dict(current._children) if current else {}
            partners = dict(current._partners) if current else {}
            _index_edges(fresh, parents, children, partners)

            return self._publish(known, parents, children, partners, existing | frozenset(fresh))

    def _publish(
        self,
        individuals: frozenset[IndividualId],
        parents: dict[IndividualId, tuple[RelationshipEdge, ...]],
        children: dict[IndividualId, tuple[RelationshipEdge, ...]],
        partners: dict[IndividualId, tuple[RelationshipEdge, ...]],
        edges: frozenset[RelationshipEdge],
    ) -> Snapshot:
        with self._write_lock:
            self._version += 1
            snapshot = Snapshot(individuals, parents, children, partners, edges, self._version)
            self._snapshot = snapshot

        logger.info(
            "Published snapshot v%d: %d individuals, %d edges",
            snapshot.version,
            snapshot.individual_count,
            snapshot.edge_count,
        )
        return snapshot
