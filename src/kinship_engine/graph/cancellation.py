"""Cooperative cancellation for long-running traversals.

Searches call ``token.check()`` once per frontier expansion. The token is
shared between the awaiting caller and the worker thread running the search,
so either a deadline or an explicit ``cancel()`` stops the search at the next
expansion.
"""
from __future__ import annotations

import threading
import time

from ..errors import QueryCancelledError, QueryTimeoutError


class CancellationToken:
    """Deadline plus cancel flag, safe to share across threads."""

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )
        self._cancelled = threading.Event()

    @classmethod
    def never(cls) -> CancellationToken:
        """Token that only stops on explicit cancel()."""
        return cls(None)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self) -> None:
        """Raise if the query was cancelled or ran past its deadline."""
        if self._cancelled.is_set():
            raise QueryCancelledError("Query cancelled by caller")
        if self.expired:
            raise QueryTimeoutError(self.timeout_seconds or 0.0)
