"""Data model for the genealogical relationship graph.

Graph types used on the traversal hot path are frozen dataclasses; query
results that leave the engine carry ``to_dict`` helpers so rendering
consumers get plain collections of identifiers and edge kinds.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Union

from pydantic import BaseModel, Field

IndividualId = Union[int, str]


def id_sort_key(individual_id: IndividualId) -> tuple[int, Any]:
    """Total order over mixed identifiers: integers first, then strings."""
    if isinstance(individual_id, str):
        return (1, individual_id)
    return (0, individual_id)


class EdgeKind(str, Enum):
    """Types of relationship edges."""
    BIOLOGICAL_PARENT = "biological_parent"
    ADOPTIVE_PARENT = "adoptive_parent"
    STEP_PARENT = "step_parent"
    PARTNER = "partner"  # Undirected


PARENT_KINDS: frozenset[EdgeKind] = frozenset(
    {EdgeKind.BIOLOGICAL_PARENT, EdgeKind.ADOPTIVE_PARENT, EdgeKind.STEP_PARENT}
)
ALL_KINDS: frozenset[EdgeKind] = frozenset(EdgeKind)

# Declaration order doubles as the traversal tie-break between kinds
KIND_ORDER: dict[EdgeKind, int] = {kind: i for i, kind in enumerate(EdgeKind)}


class Direction(str, Enum):
    """Direction a path step moves through the pedigree."""
    UP = "up"  # child -> parent
    DOWN = "down"  # parent -> child
    ACROSS = "across"  # partner -> partner


class Qualifier(str, Enum):
    """Qualifiers attached to a relationship label."""
    HALF = "half"
    STEP = "step"
    ADOPTIVE = "adoptive"


KIND_QUALIFIERS: dict[EdgeKind, Qualifier] = {
    EdgeKind.ADOPTIVE_PARENT: Qualifier.ADOPTIVE,
    EdgeKind.STEP_PARENT: Qualifier.STEP,
}


class TraversalDirection(str, Enum):
    """Direction for pedigree traversal."""
    ANCESTORS = "ancestors"
    DESCENDANTS = "descendants"


@dataclass(frozen=True)
class Individual:
    """A person in the graph. Names and dates live in an external record store."""
    individual_id: IndividualId


@dataclass(frozen=True)
class RelationshipEdge:
    """A typed edge between two individuals.

    Parent kinds are directed: ``source`` is the parent, ``target`` the child.
    Partner edges are undirected and stored from both ends.
    """
    source: IndividualId
    target: IndividualId
    kind: EdgeKind = EdgeKind.BIOLOGICAL_PARENT
    legal: bool = True
    confidence: float = 1.0

    def other(self, individual_id: IndividualId) -> IndividualId:
        """Return the endpoint opposite ``individual_id``."""
        return self.target if individual_id == self.source else self.source

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "legal": self.legal,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class PathStep:
    """One individual on a path and the edge used to reach it.

    The first step of a path is the start individual and has no edge.
    """
    individual_id: IndividualId
    kind: EdgeKind | None = None
    direction: Direction | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "individual_id": self.individual_id,
            "kind": self.kind.value if self.kind else None,
            "direction": self.direction.value if self.direction else None,
        }


@dataclass(frozen=True)
class Path:
    """Ordered sequence of steps connecting two individuals."""
    steps: tuple[PathStep, ...]

    @property
    def length(self) -> int:
        """Number of edges traversed."""
        return len(self.steps) - 1

    @property
    def start_id(self) -> IndividualId:
        return self.steps[0].individual_id

    @property
    def end_id(self) -> IndividualId:
        return self.steps[-1].individual_id

    @property
    def individual_ids(self) -> list[IndividualId]:
        """Get list of individual IDs in the path."""
        return [step.individual_id for step in self.steps]

    @property
    def edge_kinds(self) -> list[EdgeKind]:
        return [step.kind for step in self.steps[1:] if step.kind is not None]

    def describe(self) -> list[str]:
        """Human-readable hops, e.g. ``"2 is parent of 1"``."""
        hops = []
        for prev, step in zip(self.steps, self.steps[1:]):
            if step.direction is Direction.UP:
                hops.append(f"{step.individual_id} is {_kind_noun(step.kind)} of {prev.individual_id}")
            elif step.direction is Direction.DOWN:
                hops.append(f"{step.individual_id} is child of {prev.individual_id} ({_kind_noun(step.kind)} link)")
            else:
                hops.append(f"{step.individual_id} is partner of {prev.individual_id}")
        return hops

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "start_id": self.start_id,
            "end_id": self.end_id,
            "length": self.length,
            "steps": [step.to_dict() for step in self.steps],
        }


def _kind_noun(kind: EdgeKind | None) -> str:
    if kind is EdgeKind.ADOPTIVE_PARENT:
        return "adoptive parent"
    if kind is EdgeKind.STEP_PARENT:
        return "step-parent"
    return "parent"


@dataclass(frozen=True)
class AncestorMatch:
    """A common ancestor with its distance from each queried individual.

    ``qualifiers_a``/``qualifiers_b`` hold every distinct set of step/adoptive
    qualifiers seen on a minimal-length leg; more than one entry means the
    ancestor is reachable over equally short legs of different kinds.
    """
    ancestor_id: IndividualId
    distance_a: int
    distance_b: int
    qualifiers_a: frozenset[frozenset[Qualifier]] = frozenset({frozenset()})
    qualifiers_b: frozenset[frozenset[Qualifier]] = frozenset({frozenset()})

    @property
    def total_distance(self) -> int:
        return self.distance_a + self.distance_b

    def to_dict(self) -> dict[str, Any]:
        return {
            "ancestor_id": self.ancestor_id,
            "distance_a": self.distance_a,
            "distance_b": self.distance_b,
        }


@dataclass(frozen=True)
class AncestorSet:
    """Common ancestors of two individuals at minimal summed distance.

    More than one member is normal: both parents of a sibling pair, or
    several lines under pedigree collapse.
    """
    id_a: IndividualId
    id_b: IndividualId
    matches: tuple[AncestorMatch, ...]

    @property
    def ids(self) -> frozenset[IndividualId]:
        return frozenset(m.ancestor_id for m in self.matches)

    @property
    def min_distance(self) -> int:
        return self.matches[0].total_distance if self.matches else 0

    @property
    def is_ambiguous(self) -> bool:
        """True when the nearest ancestors sit at different generation splits."""
        return len({(m.distance_a, m.distance_b) for m in self.matches}) > 1

    def __len__(self) -> int:
        return len(self.matches)

    def __iter__(self) -> Iterator[IndividualId]:
        return (m.ancestor_id for m in self.matches)

    def __contains__(self, individual_id: object) -> bool:
        return any(m.ancestor_id == individual_id for m in self.matches)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id_a": self.id_a,
            "id_b": self.id_b,
            "min_distance": self.min_distance,
            "ancestors": [m.to_dict() for m in self.matches],
        }


@dataclass(frozen=True)
class RelationshipResult:
    """Classified relationship: what B is to A."""
    label: str  # e.g., "first cousin", "adoptive grandparent"
    generations: tuple[int, int]  # (generations up from A, generations up from B)
    qualifiers: frozenset[Qualifier] = frozenset()
    common_ancestors: tuple[IndividualId, ...] = ()
    coefficient_of_relationship: float = 0.0

    @property
    def degree(self) -> int:
        return min(self.generations)

    @property
    def removed(self) -> int:
        return abs(self.generations[0] - self.generations[1])

    @property
    def is_lineal(self) -> bool:
        """Direct ancestor/descendant chain (or self)."""
        return 0 in self.generations

    @property
    def cousin_level(self) -> int | None:
        """1 for first cousins, 2 for second cousins; None for non-cousins."""
        if self.degree < 2:
            return None
        return self.degree - 1

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "label": self.label,
            "generations": list(self.generations),
            "degree": self.degree,
            "cousin_level": self.cousin_level,
            "removed": self.removed,
            "qualifiers": sorted(q.value for q in self.qualifiers),
            "common_ancestors": list(self.common_ancestors),
            "coefficient_of_relationship": self.coefficient_of_relationship,
        }


@dataclass
class Classification:
    """All distinct relationships found between two individuals."""
    id_a: IndividualId
    id_b: IndividualId
    results: list[RelationshipResult] = field(default_factory=list)

    @property
    def primary(self) -> RelationshipResult:
        return self.results[0]

    @property
    def is_ambiguous(self) -> bool:
        return len(self.results) > 1

    @property
    def labels(self) -> list[str]:
        return [r.label for r in self.results]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id_a": self.id_a,
            "id_b": self.id_b,
            "ambiguous": self.is_ambiguous,
            "results": [r.to_dict() for r in self.results],
        }


class PedigreeResult(BaseModel):
    """Result of a pedigree traversal query."""
    root_id: IndividualId
    direction: TraversalDirection
    generations_found: int = 0
    total_persons: int = 0

    ancestors: list[dict] = Field(default_factory=list)
    descendants: list[dict] = Field(default_factory=list)

    query_time_ms: float = 0.0
    truncated: bool = False  # True if max_generations cut the walk short
