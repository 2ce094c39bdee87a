"""Kinship Engine - genealogical relationship queries over pedigree graphs.

Answers three questions about two individuals in a family graph:
how are they connected, who are their nearest common ancestors,
and what do you call the relationship.
"""

__version__ = "0.1.0"

from .errors import (
    CycleOrDepthExceededError,
    InvalidGraphError,
    KinshipError,
    NoCommonAncestorError,
    NotConnectedError,
    QueryCancelledError,
    QueryTimeoutError,
    UnknownIndividualError,
)
from .query import QueryFacade, QueryOptions

__all__ = [
    "QueryFacade",
    "QueryOptions",
    # Errors
    "KinshipError",
    "InvalidGraphError",
    "UnknownIndividualError",
    "NotConnectedError",
    "NoCommonAncestorError",
    "CycleOrDepthExceededError",
    "QueryTimeoutError",
    "QueryCancelledError",
]
