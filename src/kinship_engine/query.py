"""Query façade: the single contract external callers use.

Every query validates its identifiers, acquires the store's current snapshot
exactly once, and runs the traversal on a worker thread. Concurrency is
bounded by a semaphore; a per-query cancellation token carries the timeout
and is cancelled when the awaiting task is.
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, Field

from .config import EngineConfig
from .graph.ancestors import AncestorResolver
from .graph.cancellation import CancellationToken
from .graph.classifier import RelationshipClassifier
from .graph.graph_store import EdgeFilter, GraphStore, Snapshot
from .graph.models import (
    ALL_KINDS,
    AncestorSet,
    Classification,
    EdgeKind,
    IndividualId,
    Path,
    PedigreeResult,
)
from .graph.pathfinder import PathFinder
from .graph.traversal import PedigreeTraversal
from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class QueryOptions(BaseModel):
    """Per-query options. Unset limits fall back to the engine config."""

    allowed_kinds: frozenset[EdgeKind] = Field(
        default=ALL_KINDS, description="Edge kinds a traversal may use"
    )
    max_depth: int | None = Field(
        default=None, ge=1, description="Depth cap for this query"
    )
    timeout_seconds: float | None = Field(default=None, gt=0)
    legal_only: bool = False
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    path_limit: int = Field(
        default=16, ge=1, description="Maximum equal-length paths from find_paths"
    )

    def edge_filter(self) -> EdgeFilter:
        return EdgeFilter(
            kinds=frozenset(self.allowed_kinds),
            legal_only=self.legal_only,
            min_confidence=self.min_confidence,
        )


DEFAULT_OPTIONS = QueryOptions()


def validate_id(individual_id: object) -> IndividualId:
    """Identifiers are opaque integers or strings (bool is rejected)."""
    if isinstance(individual_id, bool) or not isinstance(individual_id, (int, str)):
        raise TypeError(
            f"Individual identifiers must be int or str, got {type(individual_id).__name__}"
        )
    return individual_id


class QueryFacade:
    """Async relationship queries over a GraphStore.

    Example:
        >>> facade = QueryFacade(store)
        >>> path = await facade.find_path("alice", "bob")
        >>> result = await facade.classify_relationship("alice", "bob")
        >>> result.primary.label
        'first cousin'
    """

    def __init__(self, store: GraphStore, config: EngineConfig | None = None) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def find_path(
        self,
        start_id: IndividualId,
        end_id: IndividualId,
        options: QueryOptions | None = None,
    ) -> Path:
        """Shortest deterministic path between two individuals.

        Raises:
            UnknownIndividualError: if either individual is absent
            NotConnectedError: if no path exists over the allowed edges
            CycleOrDepthExceededError: if the search reaches the depth cap
            QueryTimeoutError: if the query runs past its timeout
        """
        options = options or DEFAULT_OPTIONS
        start_id, end_id = validate_id(start_id), validate_id(end_id)

        def run(snapshot: Snapshot, token: CancellationToken) -> Path:
            finder = PathFinder(snapshot, options.max_depth or self.config.max_path_depth)
            return finder.shortest_path(
                start_id,
                end_id,
                options.allowed_kinds,
                edge_filter=options.edge_filter(),
                token=token,
            )

        return await self._run("find_path", run, options, start_id=start_id, end_id=end_id)

    async def find_paths(
        self,
        start_id: IndividualId,
        end_id: IndividualId,
        options: QueryOptions | None = None,
    ) -> list[Path]:
        """Up to ``options.path_limit`` equal-length shortest paths.

        The first path is the one ``find_path`` returns.
        """
        options = options or DEFAULT_OPTIONS
        start_id, end_id = validate_id(start_id), validate_id(end_id)

        def run(snapshot: Snapshot, token: CancellationToken) -> list[Path]:
            finder = PathFinder(snapshot, options.max_depth or self.config.max_path_depth)
            return finder.shortest_paths(
                start_id,
                end_id,
                options.allowed_kinds,
                limit=options.path_limit,
                edge_filter=options.edge_filter(),
                token=token,
            )

        return await self._run("find_paths", run, options, start_id=start_id, end_id=end_id)

    async def find_common_ancestors(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        options: QueryOptions | None = None,
    ) -> AncestorSet:
        """Nearest common ancestors at the minimal summed distance.

        Raises:
            UnknownIndividualError: if either individual is absent
            NoCommonAncestorError: if the ancestries never intersect
            CycleOrDepthExceededError: if an ancestry exceeds the depth cap
        """
        options = options or DEFAULT_OPTIONS
        id_a, id_b = validate_id(id_a), validate_id(id_b)

        def run(snapshot: Snapshot, token: CancellationToken) -> AncestorSet:
            return self._resolver(snapshot, options).common_ancestors(id_a, id_b, token)

        return await self._run("find_common_ancestors", run, options, id_a=id_a, id_b=id_b)

    async def classify_relationship(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        options: QueryOptions | None = None,
    ) -> Classification:
        """Every distinct relationship label for what B is to A.

        ``Classification.primary`` is the least qualified result;
        ``is_ambiguous`` tells whether more than one was found.
        """
        options = options or DEFAULT_OPTIONS
        id_a, id_b = validate_id(id_a), validate_id(id_b)

        def run(snapshot: Snapshot, token: CancellationToken) -> Classification:
            classifier = RelationshipClassifier(snapshot, self._resolver(snapshot, options))
            return classifier.classification(id_a, id_b, token)

        return await self._run("classify_relationship", run, options, id_a=id_a, id_b=id_b)

    async def get_ancestors(
        self,
        individual_id: IndividualId,
        max_generations: int = 4,
        options: QueryOptions | None = None,
    ) -> PedigreeResult:
        """Ancestors of one individual, generation by generation."""
        options = options or DEFAULT_OPTIONS
        individual_id = validate_id(individual_id)

        def run(snapshot: Snapshot, token: CancellationToken) -> PedigreeResult:
            traversal = PedigreeTraversal(snapshot, options.edge_filter())
            return traversal.get_ancestors(individual_id, max_generations, token)

        return await self._run("get_ancestors", run, options, individual_id=individual_id)

    async def get_descendants(
        self,
        individual_id: IndividualId,
        max_generations: int = 4,
        options: QueryOptions | None = None,
    ) -> PedigreeResult:
        """Descendants of one individual, generation by generation."""
        options = options or DEFAULT_OPTIONS
        individual_id = validate_id(individual_id)

        def run(snapshot: Snapshot, token: CancellationToken) -> PedigreeResult:
            traversal = PedigreeTraversal(snapshot, options.edge_filter())
            return traversal.get_descendants(individual_id, max_generations, token)

        return await self._run("get_descendants", run, options, individual_id=individual_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _resolver(self, snapshot: Snapshot, options: QueryOptions) -> AncestorResolver:
        return AncestorResolver(
            snapshot,
            options.max_depth or self.config.max_ancestor_depth,
            options.edge_filter(),
        )

    async def _run(
        self,
        operation: str,
        fn: Callable[[Snapshot, CancellationToken], T],
        options: QueryOptions,
        **ids: IndividualId,
    ) -> T:
        """Run ``fn`` against one snapshot on a worker thread."""
        snapshot = self.store.snapshot()
        for individual_id in ids.values():
            snapshot.require(individual_id)

        timeout = options.timeout_seconds or self.config.default_timeout_seconds
        token = CancellationToken(timeout)

        async with self._semaphore:
            start_time = time.perf_counter()
            worker = asyncio.ensure_future(asyncio.to_thread(fn, snapshot, token))
            try:
                result = await asyncio.shield(worker)
            except asyncio.CancelledError:
                token.cancel()
                logger.info("query.cancelled", operation=operation, **ids)
                # Hold the slot until the thread sees the token and returns
                await asyncio.wait({worker})
                if not worker.cancelled():
                    worker.exception()
                raise
            except Exception as e:
                logger.info(
                    "query.failed",
                    operation=operation,
                    error=type(e).__name__,
                    snapshot_version=snapshot.version,
                    **ids,
                )
                raise

        logger.debug(
            "query.completed",
            operation=operation,
            snapshot_version=snapshot.version,
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
            **ids,
        )
        return result
