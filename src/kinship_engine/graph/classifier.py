"""Relationship classification from nearest common ancestors.

Labels describe what B is to A. With gA and gB the generations from A and B
up to a nearest common ancestor:

    gA == gB == 0        self
    gA == 0              B is a descendant (child, grandchild, ...)
    gB == 0              B is an ancestor (parent, grandparent, ...)
    gA == gB == 1        sibling
    gB == 1              uncle/aunt with gA - 2 "great-" prefixes
    gA == 1              nephew/niece with gB - 2 "great-" prefixes
    otherwise            cousin of level min - 1, removed |gA - gB| times

Qualifiers compose as prefixes in a fixed order, ``adoptive ``, ``step-``,
``half-``, and apply to the whole relationship whichever leg carries them.
"Removed" depends only on generation counts.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from .ancestors import AncestorDistances, AncestorResolver
from .cancellation import CancellationToken
from .graph_store import Snapshot
from .models import (
    AncestorMatch,
    Classification,
    IndividualId,
    Qualifier,
    RelationshipResult,
    id_sort_key,
)

logger = logging.getLogger(__name__)

_ORDINALS = {1: "first", 2: "second", 3: "third"}
_REMOVALS = {1: "once removed", 2: "twice removed"}
_PREFIXES = (
    (Qualifier.ADOPTIVE, "adoptive "),
    (Qualifier.STEP, "step-"),
    (Qualifier.HALF, "half-"),
)


def ordinal(n: int) -> str:
    """1 -> "first", 4 -> "4th", 22 -> "22nd"."""
    if n in _ORDINALS:
        return _ORDINALS[n]
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def ancestor_label(generations: int) -> str:
    """Get label for direct ancestor."""
    if generations == 1:
        return "parent"
    elif generations == 2:
        return "grandparent"
    else:
        return f"{'great-' * (generations - 2)}grandparent"


def descendant_label(generations: int) -> str:
    """Get label for direct descendant."""
    if generations == 1:
        return "child"
    elif generations == 2:
        return "grandchild"
    else:
        return f"{'great-' * (generations - 2)}grandchild"


def relationship_label(generations_a: int, generations_b: int) -> str:
    """Base label for what B is to A, before qualifiers."""
    if generations_a == 0 and generations_b == 0:
        return "self"
    elif generations_a == 0:
        return descendant_label(generations_b)
    elif generations_b == 0:
        return ancestor_label(generations_a)
    elif generations_a == 1 and generations_b == 1:
        return "sibling"
    elif generations_b == 1:
        # B's parent is A's ancestor: B is A's (great-)uncle/aunt
        return f"{'great-' * (generations_a - 2)}uncle/aunt"
    elif generations_a == 1:
        return f"{'great-' * (generations_b - 2)}nephew/niece"

    cousin_level = min(generations_a, generations_b) - 1
    removal = abs(generations_a - generations_b)
    base = f"{ordinal(cousin_level)} cousin"
    if removal == 0:
        return base
    return f"{base} {_REMOVALS.get(removal, f'{removal} times removed')}"


def compose_label(base: str, qualifiers: Iterable[Qualifier]) -> str:
    """Prefix qualifiers onto a base label: ``adoptive half-sibling``."""
    present = set(qualifiers)
    prefix = "".join(text for qualifier, text in _PREFIXES if qualifier in present)
    return f"{prefix}{base}"


class RelationshipClassifier:
    """Maps nearest common ancestors to relationship labels.

    Example:
        >>> classifier = RelationshipClassifier(snapshot)
        >>> classifier.classify("alice", "bob").label
        'first cousin once removed'
    """

    def __init__(
        self,
        snapshot: Snapshot,
        resolver: AncestorResolver | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.resolver = resolver or AncestorResolver(snapshot)

    def classify(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        token: CancellationToken | None = None,
    ) -> RelationshipResult:
        """The first (least qualified) of all distinct relationships."""
        return self.classify_all(id_a, id_b, token)[0]

    def classification(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        token: CancellationToken | None = None,
    ) -> Classification:
        return Classification(id_a=id_a, id_b=id_b, results=self.classify_all(id_a, id_b, token))

    def classify_all(
        self,
        id_a: IndividualId,
        id_b: IndividualId,
        token: CancellationToken | None = None,
    ) -> list[RelationshipResult]:
        """Every distinct relationship implied by the nearest common ancestors.

        Raises:
            NoCommonAncestorError: if A and B share no ancestor
            CycleOrDepthExceededError: if either ancestry exceeds the depth cap
        """
        distances_a = self.resolver.ancestor_distances(id_a, token)
        distances_b = (
            distances_a if id_a == id_b else self.resolver.ancestor_distances(id_b, token)
        )
        ancestor_set = self.resolver.intersect(distances_a, distances_b)

        groups: dict[tuple[int, int], list[AncestorMatch]] = {}
        for match in ancestor_set.matches:
            groups.setdefault((match.distance_a, match.distance_b), []).append(match)

        found: dict[tuple[tuple[int, int], frozenset[Qualifier]], list[IndividualId]] = {}
        for generations, members in groups.items():
            collateral = generations[0] > 0 and generations[1] > 0
            for match in members:
                for quals in _combinations(match):
                    if (
                        collateral
                        and Qualifier.STEP not in quals
                        and not self._fully_shared(match, quals, members, distances_a, distances_b)
                    ):
                        quals = quals | {Qualifier.HALF}
                    found.setdefault((generations, quals), []).append(match.ancestor_id)

        results = [
            RelationshipResult(
                label=compose_label(relationship_label(*generations), quals),
                generations=generations,
                qualifiers=quals,
                common_ancestors=tuple(sorted(set(ancestors), key=id_sort_key)),
                coefficient_of_relationship=len(set(ancestors)) * 0.5 ** sum(generations),
            )
            for (generations, quals), ancestors in found.items()
        ]
        results.sort(
            key=lambda r: (len(r.qualifiers), sorted(q.value for q in r.qualifiers), r.generations)
        )

        if len(results) > 1:
            logger.info(
                "Ambiguous relationship between %r and %r: %s",
                id_a,
                id_b,
                ", ".join(r.label for r in results),
            )
        return results

    def _fully_shared(
        self,
        match: AncestorMatch,
        quals: frozenset[Qualifier],
        members: list[AncestorMatch],
        distances_a: AncestorDistances,
        distances_b: AncestorDistances,
    ) -> bool:
        """False only when the connecting lines have different second parents.

        The connecting lines are the ancestor's children one generation
        nearer to A and to B. If both lines record another parent and none
        of them is shared (with the same qualifiers), the relationship runs
        through one member of a couple only and is "half". A line with no
        other recorded parent is not evidence of a half relationship.
        """
        edge_filter = self.resolver.edge_filter
        child_edges = self.snapshot.child_edges(match.ancestor_id, edge_filter)
        line_a = {e.target for e in child_edges if distances_a.distances.get(e.target) == match.distance_a - 1}
        line_b = {e.target for e in child_edges if distances_b.distances.get(e.target) == match.distance_b - 1}

        co_parents_a = {
            e.source for child in line_a for e in self.snapshot.parent_edges(child, edge_filter)
        } - {match.ancestor_id}
        co_parents_b = {
            e.source for child in line_b for e in self.snapshot.parent_edges(child, edge_filter)
        } - {match.ancestor_id}
        if not co_parents_a or not co_parents_b:
            return True

        shared = co_parents_a & co_parents_b
        return any(
            other.ancestor_id in shared and quals in _combinations(other)
            for other in members
        )


def _combinations(match: AncestorMatch) -> set[frozenset[Qualifier]]:
    """Qualifier sets formed by pairing each A-leg option with each B-leg option."""
    return {qa | qb for qa in match.qualifiers_a for qb in match.qualifiers_b}
