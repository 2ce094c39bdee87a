"""Graph storage and traversal for genealogical relationships.

Provides:
- An in-memory graph store publishing immutable, indexed snapshots
- Shortest connecting paths (bidirectional BFS)
- Nearest common ancestor resolution
- Relationship classification (sibling, first cousin once removed, ...)
- Pedigree traversal queries (ancestors, descendants)
"""
from .ancestors import AncestorDistances, AncestorResolver
from .cancellation import CancellationToken
from .classifier import RelationshipClassifier, compose_label, relationship_label
from .graph_store import ALL_EDGES, EdgeFilter, GraphStore, Snapshot
from .models import (
    ALL_KINDS,
    PARENT_KINDS,
    AncestorMatch,
    AncestorSet,
    Classification,
    Direction,
    EdgeKind,
    Individual,
    IndividualId,
    Path,
    PathStep,
    PedigreeResult,
    Qualifier,
    RelationshipEdge,
    RelationshipResult,
    TraversalDirection,
)
from .pathfinder import PathFinder
from .serialization import (
    SnapshotDocument,
    dump_snapshot,
    load_file,
    parse_document,
    read_document,
)
from .traversal import PedigreeTraversal

__all__ = [
    # Store
    "GraphStore",
    "Snapshot",
    "EdgeFilter",
    "ALL_EDGES",
    "CancellationToken",
    # Models
    "IndividualId",
    "Individual",
    "RelationshipEdge",
    "EdgeKind",
    "ALL_KINDS",
    "PARENT_KINDS",
    "Direction",
    "Qualifier",
    "TraversalDirection",
    "Path",
    "PathStep",
    "AncestorMatch",
    "AncestorSet",
    "RelationshipResult",
    "Classification",
    "PedigreeResult",
    # Traversals
    "PathFinder",
    "AncestorResolver",
    "AncestorDistances",
    "RelationshipClassifier",
    "relationship_label",
    "compose_label",
    "PedigreeTraversal",
    # Serialization
    "SnapshotDocument",
    "parse_document",
    "read_document",
    "load_file",
    "dump_snapshot",
]
