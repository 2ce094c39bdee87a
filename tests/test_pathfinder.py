"""Tests for bidirectional shortest path search."""
from __future__ import annotations

import time

import pytest

from kinship_engine.errors import (
    CycleOrDepthExceededError,
    NotConnectedError,
    QueryCancelledError,
    QueryTimeoutError,
    UnknownIndividualError,
)
from kinship_engine.graph import (
    CancellationToken,
    Direction,
    EdgeFilter,
    EdgeKind,
    GraphStore,
    PathFinder,
    RelationshipEdge,
)


def chain_store(length: int) -> GraphStore:
    """0 -> 1 -> ... -> length, each a parent of the next."""
    store = GraphStore()
    store.load(
        list(range(length + 1)),
        [RelationshipEdge(source=i, target=i + 1) for i in range(length)],
    )
    return store


class TestShortestPath:
    """Tests for PathFinder.shortest_path."""

    def test_self_path_has_zero_length(self, family_snapshot):
        finder = PathFinder(family_snapshot)
        for individual in ["alice", "gp1", "loner"]:
            path = finder.shortest_path(individual, individual)
            assert path.length == 0
            assert path.individual_ids == [individual]
            assert path.edge_kinds == []

    def test_siblings_through_first_parent(self, family_snapshot):
        path = PathFinder(family_snapshot).shortest_path("alice", "bob")

        assert path.length == 2
        assert path.individual_ids == ["alice", "dad", "bob"]
        assert [s.direction for s in path.steps[1:]] == [Direction.UP, Direction.DOWN]

    def test_length_is_symmetric(self, family_snapshot):
        finder = PathFinder(family_snapshot)
        ids = sorted(family_snapshot.individual_ids - {"loner"})
        for a in ids:
            for b in ids:
                forward = finder.shortest_path(a, b)
                backward = finder.shortest_path(b, a)
                assert forward.length == backward.length, (a, b)

    def test_path_walks_edges_against_direction(self, family_snapshot):
        path = PathFinder(family_snapshot).shortest_path("cousin_kid", "alice")

        assert path.start_id == "cousin_kid"
        assert path.end_id == "alice"
        # cousin_kid -> cousin -> aunt -> gp1 -> dad -> alice
        assert path.length == 5
        assert path.individual_ids[3] == "gp1"

    def test_partner_edges_connect(self, family_snapshot):
        path = PathFinder(family_snapshot).shortest_path("dad", "mom")
        assert path.length == 1
        assert path.edge_kinds == [EdgeKind.PARTNER]
        assert path.steps[1].direction is Direction.ACROSS

    def test_restricting_kinds_changes_path(self, family_snapshot):
        finder = PathFinder(family_snapshot)
        path = finder.shortest_path("dad", "mom", [EdgeKind.BIOLOGICAL_PARENT])
        assert path.length == 2
        assert path.individual_ids == ["dad", "alice", "mom"]

    def test_disconnected_raises(self, family_snapshot):
        with pytest.raises(NotConnectedError) as exc_info:
            PathFinder(family_snapshot).shortest_path("alice", "loner")
        assert exc_info.value.start_id == "alice"
        assert exc_info.value.end_id == "loner"

    def test_disconnected_by_kind_filter(self, family_snapshot):
        with pytest.raises(NotConnectedError):
            PathFinder(family_snapshot).shortest_path("dad", "mom", [EdgeKind.ADOPTIVE_PARENT])

    def test_unknown_individual(self, family_snapshot):
        with pytest.raises(UnknownIndividualError):
            PathFinder(family_snapshot).shortest_path("alice", "nobody")

    def test_edge_filter_excludes_low_confidence(self):
        store = GraphStore()
        snapshot = store.load(
            ["a", "b", "c"],
            [
                RelationshipEdge(source="a", target="c", confidence=0.2),
                RelationshipEdge(source="a", target="b"),
                RelationshipEdge(source="b", target="c"),
            ],
        )
        finder = PathFinder(snapshot)

        assert finder.shortest_path("a", "c").length == 1
        filtered = finder.shortest_path("a", "c", edge_filter=EdgeFilter(min_confidence=0.5))
        assert filtered.individual_ids == ["a", "b", "c"]

    def test_result_is_stable(self, family_snapshot):
        first = PathFinder(family_snapshot).shortest_path("carol", "cousin")
        for _ in range(5):
            assert PathFinder(family_snapshot).shortest_path("carol", "cousin") == first

    def test_long_chain(self):
        snapshot = chain_store(60).snapshot()
        path = PathFinder(snapshot).shortest_path(60, 0)
        assert path.length == 60
        assert path.individual_ids == list(range(60, -1, -1))


class TestShortestPaths:
    """Tests for enumerating equal-length alternatives."""

    def test_all_sibling_paths(self, family_snapshot):
        paths = PathFinder(family_snapshot).shortest_paths("alice", "bob")

        assert [p.individual_ids for p in paths] == [
            ["alice", "dad", "bob"],
            ["alice", "mom", "bob"],
        ]

    def test_first_matches_shortest_path(self, family_snapshot):
        finder = PathFinder(family_snapshot)
        assert finder.shortest_paths("alice", "cousin")[0] == finder.shortest_path("alice", "cousin")

    def test_alternatives_all_minimal(self, family_snapshot):
        paths = PathFinder(family_snapshot).shortest_paths("alice", "cousin")
        assert len(paths) == 2  # through gp1 or gp2
        assert {p.length for p in paths} == {4}

    def test_limit(self, family_snapshot):
        paths = PathFinder(family_snapshot).shortest_paths("alice", "cousin", limit=1)
        assert len(paths) == 1


class TestLimits:
    """Tests for depth caps and cancellation."""

    def test_depth_cap(self):
        snapshot = chain_store(30).snapshot()
        with pytest.raises(CycleOrDepthExceededError):
            PathFinder(snapshot, max_depth=10).shortest_path(0, 30)

    def test_expired_token_times_out(self):
        snapshot = chain_store(30).snapshot()
        token = CancellationToken(timeout_seconds=0.001)
        time.sleep(0.01)

        with pytest.raises(QueryTimeoutError):
            PathFinder(snapshot).shortest_path(0, 30, token=token)

    def test_cancelled_token(self):
        snapshot = chain_store(30).snapshot()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(QueryCancelledError):
            PathFinder(snapshot).shortest_path(0, 30, token=token)

    def test_very_long_path(self):
        snapshot = chain_store(3000).snapshot()
        path = PathFinder(snapshot, max_depth=5000).shortest_path(0, 3000)

        assert path.length == 3000
        assert path.individual_ids == list(range(3001))
        assert {step.direction for step in path.steps[1:]} == {Direction.DOWN}

    def test_very_long_alternatives(self):
        store = chain_store(3000)
        store.add_edges(
            [RelationshipEdge(source=2998, target="x"), RelationshipEdge(source="x", target=3000)],
            individuals=["x"],
        )

        paths = PathFinder(store.snapshot(), max_depth=5000).shortest_paths(0, 3000)

        assert [p.length for p in paths] == [3000, 3000]
        assert [p.individual_ids[-2] for p in paths] == [2999, "x"]
