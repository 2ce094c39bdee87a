"""Shared family graphs for kinship engine tests."""
from __future__ import annotations

import json
import logging

import pytest
import structlog

from kinship_engine.graph import EdgeKind, GraphStore, RelationshipEdge

FAMILY_INDIVIDUALS = [
    "gp1", "gp2",
    "dad", "mom", "mom2", "aunt", "uncle",
    "alice", "bob", "carol", "cousin",
    "cousin_kid", "kid_other",
    "loner",
]


def _bio(parent: str, child: str) -> RelationshipEdge:
    return RelationshipEdge(source=parent, target=child, kind=EdgeKind.BIOLOGICAL_PARENT)


def family_edges() -> list[RelationshipEdge]:
    """Three generations under gp1 + gp2.

    - gp1 + gp2 -> dad, aunt
    - dad + mom -> alice, bob (full siblings)
    - dad + mom2 -> carol (half-sibling of alice and bob)
    - aunt + uncle -> cousin (first cousin of alice)
    - cousin + kid_other -> cousin_kid (first cousin once removed of alice)
    - dad and mom are partners; loner has no edges
    """
    return [
        _bio("gp1", "dad"),
        _bio("gp2", "dad"),
        _bio("gp1", "aunt"),
        _bio("gp2", "aunt"),
        _bio("dad", "alice"),
        _bio("mom", "alice"),
        _bio("dad", "bob"),
        _bio("mom", "bob"),
        _bio("dad", "carol"),
        _bio("mom2", "carol"),
        _bio("aunt", "cousin"),
        _bio("uncle", "cousin"),
        _bio("cousin", "cousin_kid"),
        _bio("kid_other", "cousin_kid"),
        RelationshipEdge(source="dad", target="mom", kind=EdgeKind.PARTNER),
    ]


def family_document() -> dict:
    """The family graph as a JSON snapshot document."""
    return {
        "individuals": list(FAMILY_INDIVIDUALS),
        "edges": [edge.to_dict() for edge in family_edges()],
    }


@pytest.fixture
def family_store() -> GraphStore:
    store = GraphStore()
    store.load(FAMILY_INDIVIDUALS, family_edges())
    return store


@pytest.fixture
def family_snapshot(family_store):
    return family_store.snapshot()


@pytest.fixture
def cyclic_store() -> GraphStore:
    """A is parent of B and B is parent of A."""
    store = GraphStore()
    store.load(["A", "B"], [_bio("A", "B"), _bio("B", "A")])
    return store


@pytest.fixture
def collapse_store() -> GraphStore:
    """Two nearest common ancestors at different generation splits.

    Z is a parent of a and a great-grandparent of b (1 + 3).
    W is a grandparent of both (2 + 2).
    """
    store = GraphStore()
    store.load(
        ["a", "b", "Z", "Y", "W", "Q", "S"],
        [
            _bio("Z", "a"),
            _bio("Y", "a"),
            _bio("W", "Y"),
            _bio("Q", "b"),
            _bio("W", "Q"),
            _bio("S", "Q"),
            _bio("Z", "S"),
        ],
    )
    return store


@pytest.fixture
def family_graph_file(tmp_path):
    """The family graph written to disk as a JSON snapshot document."""
    path = tmp_path / "family.json"
    path.write_text(json.dumps(family_document(), indent=2))
    return path


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging handlers bound to streams captured during a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler and handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()
