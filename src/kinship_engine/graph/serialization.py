"""JSON snapshot documents.

A snapshot document is the exchange format between ingestion and the store::

    {
      "individuals": [1, 2, "p-17"],
      "edges": [
        {"source": 1, "target": "p-17", "kind": "biological_parent",
         "legal": true, "confidence": 1.0}
      ]
    }

Identifiers keep their JSON type: ``1`` and ``"1"`` are different people.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError

from ..errors import InvalidGraphError
from .graph_store import GraphStore, Snapshot
from .models import EdgeKind, RelationshipEdge, id_sort_key

logger = logging.getLogger(__name__)

DocumentId = Union[StrictInt, StrictStr]


class EdgeDocument(BaseModel):
    """One edge as stored in a snapshot document."""
    source: DocumentId
    target: DocumentId
    kind: EdgeKind = EdgeKind.BIOLOGICAL_PARENT
    legal: bool = True
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 1.0

    def to_edge(self) -> RelationshipEdge:
        return RelationshipEdge(
            source=self.source,
            target=self.target,
            kind=self.kind,
            legal=self.legal,
            confidence=self.confidence,
        )

    @classmethod
    def from_edge(cls, edge: RelationshipEdge) -> EdgeDocument:
        return cls.model_validate(edge.to_dict())


class SnapshotDocument(BaseModel):
    """Individuals and edges of a whole graph."""
    individuals: list[DocumentId] = Field(default_factory=list)
    edges: list[EdgeDocument] = Field(default_factory=list)

    def to_edges(self) -> list[RelationshipEdge]:
        return [e.to_edge() for e in self.edges]

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> SnapshotDocument:
        """Document for a snapshot, with individuals and edges in stable order."""
        edges = sorted(
            snapshot.iter_edges(),
            key=lambda e: (id_sort_key(e.source), id_sort_key(e.target), e.kind.value),
        )
        return cls(
            individuals=sorted(snapshot.individual_ids, key=id_sort_key),
            edges=[EdgeDocument.from_edge(e) for e in edges],
        )


def parse_document(text: str) -> SnapshotDocument:
    """Parse and validate a JSON snapshot document.

    Raises:
        InvalidGraphError: if the text is not valid JSON or does not match
            the document schema
    """
    try:
        return SnapshotDocument.model_validate_json(text)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise InvalidGraphError(
            f"Invalid snapshot document ({e.error_count()} error(s))", problems
        ) from e


def read_document(path: str | Path) -> SnapshotDocument:
    """Read a snapshot document from disk."""
    text = Path(path).read_text(encoding="utf-8")
    document = parse_document(text)
    logger.debug(
        "Read %s: %d individuals, %d edges", path, len(document.individuals), len(document.edges)
    )
    return document


def load_into(store: GraphStore, document: SnapshotDocument) -> Snapshot:
    """Publish ``document`` as the store's new snapshot."""
    return store.load(document.individuals, document.to_edges())


def load_file(path: str | Path, store: GraphStore | None = None) -> GraphStore:
    """Build (or reload) a store from a JSON snapshot file."""
    store = store or GraphStore()
    load_into(store, read_document(path))
    return store


def dump_snapshot(snapshot: Snapshot, indent: int | None = 2) -> str:
    """Serialize a snapshot to JSON text."""
    return SnapshotDocument.from_snapshot(snapshot).model_dump_json(indent=indent)


def write_snapshot(snapshot: Snapshot, path: str | Path) -> None:
    Path(path).write_text(dump_snapshot(snapshot) + "\n", encoding="utf-8")

