"""Tests for the async query façade."""
from __future__ import annotations

import asyncio
import threading
import time

import pytest
from pydantic import ValidationError

from kinship_engine import (
    NotConnectedError,
    QueryFacade,
    QueryOptions,
    QueryTimeoutError,
    UnknownIndividualError,
)
from kinship_engine.config import EngineConfig
from kinship_engine.errors import (
    CycleOrDepthExceededError,
    NoCommonAncestorError,
    QueryCancelledError,
)
from kinship_engine.graph import EdgeKind, GraphStore, RelationshipEdge


def chain_store(length: int) -> GraphStore:
    store = GraphStore()
    store.load(
        list(range(length + 1)),
        [RelationshipEdge(source=i, target=i + 1) for i in range(length)],
    )
    return store


class TestQueryOptions:
    """Tests for option validation."""

    def test_defaults(self):
        options = QueryOptions()
        assert options.allowed_kinds == frozenset(EdgeKind)
        assert options.max_depth is None
        assert options.timeout_seconds is None
        assert options.path_limit == 16

    def test_kinds_coerced_from_strings(self):
        options = QueryOptions(allowed_kinds=["biological_parent"])
        assert options.allowed_kinds == frozenset({EdgeKind.BIOLOGICAL_PARENT})

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_depth", 0),
            ("timeout_seconds", -1.0),
            ("min_confidence", 1.5),
            ("path_limit", 0),
            ("allowed_kinds", ["cousin"]),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            QueryOptions(**{field: value})


class TestQueryFacade:
    """Tests for QueryFacade operations."""

    @pytest.mark.asyncio
    async def test_find_path(self, family_store):
        facade = QueryFacade(family_store)
        path = await facade.find_path("alice", "bob")

        assert path.individual_ids == ["alice", "dad", "bob"]
        assert path.to_dict()["length"] == 2

    @pytest.mark.asyncio
    async def test_find_path_self(self, family_store):
        path = await QueryFacade(family_store).find_path("loner", "loner")
        assert path.length == 0

    @pytest.mark.asyncio
    async def test_find_path_not_connected(self, family_store):
        with pytest.raises(NotConnectedError):
            await QueryFacade(family_store).find_path("alice", "loner")

    @pytest.mark.asyncio
    async def test_find_path_with_kinds(self, family_store):
        options = QueryOptions(allowed_kinds={EdgeKind.PARTNER})
        path = await QueryFacade(family_store).find_path("mom", "dad", options)
        assert path.edge_kinds == [EdgeKind.PARTNER]

    @pytest.mark.asyncio
    async def test_find_paths(self, family_store):
        options = QueryOptions(path_limit=5)
        paths = await QueryFacade(family_store).find_paths("alice", "bob", options)
        assert len(paths) == 2

    @pytest.mark.asyncio
    async def test_find_common_ancestors(self, family_store):
        result = await QueryFacade(family_store).find_common_ancestors("alice", "cousin")

        assert result.ids == frozenset({"gp1", "gp2"})
        data = result.to_dict()
        assert data["min_distance"] == 4
        assert [a["ancestor_id"] for a in data["ancestors"]] == ["gp1", "gp2"]

    @pytest.mark.asyncio
    async def test_find_common_ancestors_none(self, family_store):
        with pytest.raises(NoCommonAncestorError):
            await QueryFacade(family_store).find_common_ancestors("alice", "loner")

    @pytest.mark.asyncio
    async def test_classify_relationship(self, family_store):
        facade = QueryFacade(family_store)

        cousin = await facade.classify_relationship("alice", "cousin")
        assert cousin.primary.label == "first cousin"
        assert not cousin.is_ambiguous

        half = await facade.classify_relationship("bob", "carol")
        assert half.primary.label == "half-sibling"

    @pytest.mark.asyncio
    async def test_classify_ambiguous(self, collapse_store):
        result = await QueryFacade(collapse_store).classify_relationship("a", "b")
        assert result.is_ambiguous
        assert result.labels == ["great-nephew/niece", "first cousin"]

    @pytest.mark.asyncio
    async def test_cycle_uses_configured_depth(self, cyclic_store):
        facade = QueryFacade(cyclic_store, EngineConfig(max_ancestor_depth=10))
        with pytest.raises(CycleOrDepthExceededError) as exc_info:
            await facade.classify_relationship("A", "B")
        assert exc_info.value.max_depth == 10

    @pytest.mark.asyncio
    async def test_option_depth_overrides_config(self, cyclic_store):
        facade = QueryFacade(cyclic_store)
        with pytest.raises(CycleOrDepthExceededError) as exc_info:
            await facade.find_common_ancestors("A", "B", QueryOptions(max_depth=5))
        assert exc_info.value.max_depth == 5

    @pytest.mark.asyncio
    async def test_pedigree(self, family_store):
        facade = QueryFacade(family_store)

        ancestors = await facade.get_ancestors("alice", max_generations=2)
        assert ancestors.total_persons == 4

        descendants = await facade.get_descendants("dad", max_generations=1)
        assert {d["individual_id"] for d in descendants.descendants} == {"alice", "bob", "carol"}

    @pytest.mark.asyncio
    async def test_unknown_individual(self, family_store):
        with pytest.raises(UnknownIndividualError) as exc_info:
            await QueryFacade(family_store).find_path("alice", "nobody")
        assert exc_info.value.individual_id == "nobody"

    @pytest.mark.asyncio
    async def test_invalid_identifier_type(self, family_store):
        facade = QueryFacade(family_store)
        with pytest.raises(TypeError):
            await facade.find_path("alice", 1.5)
        with pytest.raises(TypeError):
            await facade.classify_relationship(True, "alice")

    @pytest.mark.asyncio
    async def test_int_and_str_ids_are_distinct(self):
        store = GraphStore()
        store.load([1, "1"], [])
        facade = QueryFacade(store)

        with pytest.raises(NotConnectedError):
            await facade.find_path(1, "1")
        with pytest.raises(UnknownIndividualError):
            await facade.find_path(1, "2")

    @pytest.mark.asyncio
    async def test_timeout(self):
        facade = QueryFacade(chain_store(2000))
        with pytest.raises(QueryTimeoutError) as exc_info:
            await facade.find_path(0, 2000, QueryOptions(timeout_seconds=1e-9, max_depth=5000))
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_config_default_timeout(self):
        config = EngineConfig(default_timeout_seconds=1e-9, max_path_depth=5000)
        facade = QueryFacade(chain_store(2000), config)
        with pytest.raises(QueryTimeoutError):
            await facade.find_path(0, 2000)

    @pytest.mark.asyncio
    async def test_concurrent_matches_sequential(self, family_store):
        facade = QueryFacade(family_store, EngineConfig(max_concurrency=3))
        ids = sorted(family_store.snapshot().individual_ids - {"loner"})
        pairs = [(a, b) for a in ids for b in ids]

        sequential = [await facade.find_path(a, b) for a, b in pairs]
        concurrent = await asyncio.gather(*(facade.find_path(a, b) for a, b in pairs))

        assert list(concurrent) == sequential

    @pytest.mark.asyncio
    async def test_in_flight_query_keeps_its_snapshot(self, family_store):
        facade = QueryFacade(family_store)
        before = await facade.classify_relationship("alice", "carol")

        # Re-publish with carol now a full sibling
        family_store.add_edges([RelationshipEdge(source="mom", target="carol")])
        after = await facade.classify_relationship("alice", "carol")

        assert before.primary.label == "half-sibling"
        assert after.primary.label == "sibling"

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        facade = QueryFacade(chain_store(20000))
        task = asyncio.create_task(facade.find_path(0, 20000, QueryOptions(max_depth=50000)))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_cancelled_query_holds_slot_until_worker_stops(self, family_store):
        facade = QueryFacade(family_store, EngineConfig(max_concurrency=1))
        started = threading.Event()
        stopped = threading.Event()

        def slow(snapshot, token):
            started.set()
            try:
                while True:
                    token.check()
                    time.sleep(0.005)
            finally:
                stopped.set()

        task = asyncio.create_task(facade._run("slow", slow, QueryOptions(), individual_id="alice"))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert stopped.is_set()
        assert not facade._semaphore.locked()

    @pytest.mark.asyncio
    async def test_worker_sees_cancelled_token(self, family_store):
        facade = QueryFacade(family_store)
        outcome: list[type] = []
        started = threading.Event()

        def slow(snapshot, token):
            started.set()
            try:
                while True:
                    token.check()
                    time.sleep(0.005)
            except QueryCancelledError as e:
                outcome.append(type(e))
                raise

        task = asyncio.create_task(facade._run("slow", slow, QueryOptions()))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert outcome == [QueryCancelledError]
