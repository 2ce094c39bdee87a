"""Typed errors raised by the kinship engine.

Absence of a result (no path, no common ancestor) is reported with its own
error type so callers can tell it apart from malformed input or aborted
searches. Multi-valued results are never errors.
"""
from __future__ import annotations

from typing import Any


class KinshipError(Exception):
    """Base exception for all kinship engine errors."""


class InvalidGraphError(KinshipError):
    """Raised when a snapshot load or edge batch is malformed.

    The store keeps its previously published snapshot when this is raised.
    """

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or []


class UnknownIndividualError(KinshipError, ValueError):
    """Raised when a query names an individual absent from the snapshot."""

    def __init__(self, individual_id: Any):
        super().__init__(f"Unknown individual: {individual_id!r}")
        self.individual_id = individual_id


class NotConnectedError(KinshipError):
    """No path connects the two individuals through the allowed edges."""

    def __init__(self, start_id: Any, end_id: Any):
        super().__init__(f"No path between {start_id!r} and {end_id!r}")
        self.start_id = start_id
        self.end_id = end_id


class NoCommonAncestorError(KinshipError):
    """The two individuals share no ancestor through parent edges."""

    def __init__(self, id_a: Any, id_b: Any):
        super().__init__(f"No common ancestor for {id_a!r} and {id_b!r}")
        self.id_a = id_a
        self.id_b = id_b


class CycleOrDepthExceededError(KinshipError):
    """A traversal reached its depth cap with work still pending.

    Usually a parent cycle in the data (someone listed as their own
    ancestor), occasionally a pedigree deeper than the configured cap.
    """

    def __init__(self, individual_id: Any, max_depth: int):
        super().__init__(
            f"Traversal from {individual_id!r} exceeded max depth {max_depth} "
            "(cyclic data or pedigree deeper than the cap)"
        )
        self.individual_id = individual_id
        self.max_depth = max_depth


class QueryTimeoutError(KinshipError, TimeoutError):
    """The query ran past its deadline and was aborted."""

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Query exceeded timeout of {timeout_seconds:.3f}s")
        self.timeout_seconds = timeout_seconds


class QueryCancelledError(KinshipError):
    """The caller cancelled the query before it completed."""
