"""Matching strategies the correlator chains together.

Each strategy looks at the evidence for one normalized name and either
creates a mapping, declares the evidence ambiguous, or passes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapidfuzz.distance import Levenshtein

from identity_bridge.core.types import (
    DisplayNameObservation,
    Identifier,
    Mapping,
    MappingSource,
    ObservationSource,
)

if TYPE_CHECKING:
    from identity_bridge.correlation.correlator import CorrelationState


def similarity(a: str, b: str) -> float:
    """Edit-distance similarity: ``(maxLen - distance) / maxLen``."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - Levenshtein.distance(a, b)) / max_len


@dataclass
class MatchOutcome:
    """What a strategy concluded for one name.

    ``final`` stops the chain even when nothing was mapped, so a later,
    weaker strategy never second-guesses an earlier one.
    """

    mapping: Mapping | None = None
    ambiguous: bool = False
    final: bool = False
    reason: str = ""

    @classmethod
    def passed(cls) -> MatchOutcome:
        return cls()

    @classmethod
    def unresolved(cls, reason: str) -> MatchOutcome:
        return cls(ambiguous=True, final=True, reason=reason)


def _unmapped_pseudonymous(ids: set[Identifier], state: "CorrelationState") -> list[Identifier]:
    return sorted(
        (i for i in ids if not state.store.is_mapped(i)),
        key=lambda i: i.raw,
    )


class MatchStrategy(ABC):
    """A pluggable correlation rule."""

    name: str = ""
    source: MappingSource

    @abstractmethod
    def apply(
        self,
        name: str,
        observation: DisplayNameObservation,
        state: "CorrelationState",
    ) -> MatchOutcome:
        """Try to settle the evidence recorded under normalized *name*."""
        ...


class GroupBackfillStrategy(MatchStrategy):
    """Group co-membership under an identical name is strong evidence.

    A pseudonymous member seen in a group snapshot is promoted straight
    to the pending contact carrying the same name.
    """

    name = "group_backfill"
    source = MappingSource.GROUP_BACKFILL

    def apply(self, name, observation, state):
        identifier = observation.identifier
        if (
            observation.source is not ObservationSource.GROUP_SNAPSHOT
            or not identifier.is_pseudonymous
            or state.store.is_mapped(identifier)
        ):
            return MatchOutcome.passed()
        candidates = state.pending.matching(name)
        if len(candidates) > 1:
            return MatchOutcome.unresolved(
                f"{len(candidates)} pending contacts share the name"
            )
        mapping = state.pending.resolve_against(identifier, name, self.source)
        if mapping is None:
            return MatchOutcome.passed()
        return MatchOutcome(mapping=mapping, final=True)


class ExactNameStrategy(MatchStrategy):
    """One canonical and one unmapped pseudonymous id under the same name."""

    name = "exact"
    source = MappingSource.EXACT_NAME

    def apply(self, name, observation, state):
        evidence = state.registry.identifiers_for_name(name)
        if not evidence.canonical:
            return MatchOutcome.passed()
        if len(evidence.canonical) > 1:
            return MatchOutcome.unresolved(
                f"{len(evidence.canonical)} canonical ids share the name"
            )
        unmapped = _unmapped_pseudonymous(evidence.pseudonymous, state)
        if not unmapped:
            return MatchOutcome(final=True)
        if len(unmapped) > 1:
            return MatchOutcome.unresolved(
                f"{len(unmapped)} unmapped pseudonymous ids share the name"
            )
        (canonical,) = evidence.canonical
        if not state.store.put(unmapped[0], canonical, self.source):
            return MatchOutcome(final=True, reason="mapping rejected by store")
        return MatchOutcome(mapping=state.store.mapping_for(unmapped[0]), final=True)


class FuzzyNameStrategy(MatchStrategy):
    """A pseudonymous id whose name is a near-spelling of one canonical's name."""

    name = "fuzzy"
    source = MappingSource.FUZZY_NAME

    def __init__(self, threshold: float = 0.8) -> None:
        self.threshold = threshold

    def apply(self, name, observation, state):
        evidence = state.registry.identifiers_for_name(name)
        if evidence.canonical:
            return MatchOutcome.passed()
        unmapped = _unmapped_pseudonymous(evidence.pseudonymous, state)
        if not unmapped:
            return MatchOutcome.passed()
        if len(unmapped) > 1:
            return MatchOutcome.unresolved(
                f"{len(unmapped)} unmapped pseudonymous ids share the name"
            )

        candidates = [
            other for other in state.registry.names()
            if other != name
            and state.registry.has_canonical(other)
            and similarity(name, other) >= self.threshold
        ]
        if not candidates:
            return MatchOutcome.passed()
        if len(candidates) > 1:
            return MatchOutcome.unresolved(
                f"{len(candidates)} similar names: {', '.join(candidates)}"
            )
        other_evidence = state.registry.identifiers_for_name(candidates[0])
        if len(other_evidence.canonical) != 1:
            return MatchOutcome.unresolved(
                f"similar name {candidates[0]!r} has "
                f"{len(other_evidence.canonical)} canonical ids"
            )
        (canonical,) = other_evidence.canonical
        if not state.store.put(unmapped[0], canonical, self.source):
            return MatchOutcome(final=True, reason="mapping rejected by store")
        return MatchOutcome(mapping=state.store.mapping_for(unmapped[0]), final=True)


def build_strategies(names: tuple[str, ...] | list[str], fuzzy_threshold: float = 0.8) -> list[MatchStrategy]:
    """Instantiate strategies by configured name, in order.

    Raises:
        ValueError: On an unknown strategy name.
    """
    strategies: list[MatchStrategy] = []
    for strategy_name in names:
        if strategy_name == GroupBackfillStrategy.name:
            strategies.append(GroupBackfillStrategy())
        elif strategy_name == ExactNameStrategy.name:
            strategies.append(ExactNameStrategy())
        elif strategy_name == FuzzyNameStrategy.name:
            strategies.append(FuzzyNameStrategy(threshold=fuzzy_threshold))
        else:
            raise ValueError(f"Unknown match strategy: {strategy_name!r}")
    return strategies
