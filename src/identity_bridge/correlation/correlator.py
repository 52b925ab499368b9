"""Correlator: decides when name evidence is strong enough to map."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from identity_bridge.core.types import DisplayNameObservation, Mapping
from identity_bridge.correlation.matching import MatchStrategy
from identity_bridge.correlation.pending import PendingContactQueue
from identity_bridge.correlation.registry import NameRegistry
from identity_bridge.correlation.store import MappingStore

logger = logging.getLogger(__name__)


@dataclass
class CorrelationState:
    """The structures the correlator reads and mutates, owned by one engine."""

    registry: NameRegistry
    store: MappingStore
    pending: PendingContactQueue


class Correlator:
    """Runs the configured strategies over one name's evidence.

    Order matters: group backfill, then exact, then fuzzy. The first
    strategy that maps or declares the evidence ambiguous ends the pass.
    Canonical sightings still unmapped afterwards wait in the pending
    queue. Ambiguous names are remembered until a later observation
    settles them; nothing is retried on a timer.
    """

    def __init__(self, state: CorrelationState, strategies: list[MatchStrategy]) -> None:
        self.state = state
        self.strategies = strategies
        self._unresolved: dict[str, str] = {}

    def correlate(self, name: str, observation: DisplayNameObservation) -> Mapping | None:
        """Re-evaluate *name* after *observation* was recorded under it."""
        if not name:
            return None

        created: Mapping | None = None
        for strategy in self.strategies:
            outcome = strategy.apply(name, observation, self.state)
            if outcome.mapping is not None:
                created = outcome.mapping
                break
            if outcome.ambiguous:
                if self._unresolved.get(name) != outcome.reason:
                    logger.info(
                        "Unresolved correlation for %r (%s): %s",
                        name, strategy.name, outcome.reason,
                    )
                self._unresolved[name] = outcome.reason
                break
            if outcome.final:
                break

        if created is not None:
            self._unresolved.pop(name, None)
            self.state.pending.discard(created.canonical)

        identifier = observation.identifier
        if identifier.is_canonical and not self.state.store.is_mapped(identifier):
            self.state.pending.offer(
                identifier,
                observation.name,
                source=observation.source,
                context_id=observation.context_id,
            )
        return created

    def unresolved(self) -> dict[str, str]:
        """Names currently held back as ambiguous, with the reason."""
        return dict(self._unresolved)

    def forget_unresolved(self, name: str) -> None:
        self._unresolved.pop(name, None)

    def clear(self) -> None:
        self._unresolved.clear()

    @property
    def unresolved_count(self) -> int:
        return len(self._unresolved)
