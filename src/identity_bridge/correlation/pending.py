"""Canonical-only sightings waiting for a pseudonymous counterpart."""

from __future__ import annotations

import logging

from identity_bridge.core.types import (
    Identifier,
    Mapping,
    MappingSource,
    ObservationSource,
    PendingContact,
    normalize_name,
)
from identity_bridge.correlation.store import MappingStore
from identity_bridge.temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 24 * 60 * 60


class PendingContactQueue:
    """Pending contacts keyed by canonical identifier.

    Entries age out after ``retention_seconds`` without a match; the
    sweep is pure garbage collection and never creates a mapping.
    """

    def __init__(
        self,
        store: MappingStore,
        clock: Clock | None = None,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self.retention_seconds = retention_seconds
        self._entries: dict[Identifier, PendingContact] = {}

    def offer(
        self,
        canonical: Identifier,
        name: str,
        source: ObservationSource = ObservationSource.MESSAGE,
        context_id: str | None = None,
    ) -> bool:
        """Queue *canonical* under *name*. Returns True if a new entry was made.

        An existing entry keeps its first-seen time but takes the newer name.
        """
        if self._store.is_mapped(canonical):
            self._entries.pop(canonical, None)
            return False
        existing = self._entries.get(canonical)
        if existing is not None:
            existing.name = name
            existing.source = source
            existing.context_id = context_id or existing.context_id
            return False
        self._entries[canonical] = PendingContact(
            canonical=canonical,
            name=name,
            first_observed_at=self._clock.now(),
            source=source,
            context_id=context_id,
        )
        logger.debug("Contact detected: %s -> %s (waiting for pseudonymous id)", name, canonical)
        return True

    def matching(self, name: str) -> list[PendingContact]:
        """Pending entries whose name normalizes to *name*."""
        norm = normalize_name(name)
        return [e for e in self._entries.values() if e.normalized_name == norm]

    def resolve_against(
        self,
        pseudonymous: Identifier,
        name: str,
        source: MappingSource = MappingSource.GROUP_BACKFILL,
    ) -> Mapping | None:
        """Promote the single pending entry named *name* to a mapping.

        Several pending entries under the same name are ambiguous and
        promote nothing.
        """
        candidates = self.matching(name)
        if not candidates:
            return None
        if len(candidates) > 1:
            logger.info(
                "Unresolved correlation for %s: %d pending contacts named %r",
                pseudonymous, len(candidates), normalize_name(name),
            )
            return None
        entry = candidates[0]
        if not self._store.put(pseudonymous, entry.canonical, source):
            return None
        self._entries.pop(entry.canonical, None)
        return self._store.mapping_for(pseudonymous)

    def discard(self, canonical: Identifier) -> PendingContact | None:
        return self._entries.pop(canonical, None)

    def sweep(self) -> list[PendingContact]:
        """Evict entries older than the retention window."""
        evicted = [
            entry for entry in self._entries.values()
            if self._clock.seconds_since(entry.first_observed_at) > self.retention_seconds
        ]
        for entry in evicted:
            del self._entries[entry.canonical]
        if evicted:
            logger.info("Evicted %d pending contact(s) past retention", len(evicted))
        return evicted

    def waiting_minutes(self, entry: PendingContact) -> int:
        return int(self._clock.seconds_since(entry.first_observed_at) // 60)

    def get(self, canonical: Identifier) -> PendingContact | None:
        return self._entries.get(canonical)

    def entries(self) -> list[PendingContact]:
        return sorted(self._entries.values(), key=lambda e: e.first_observed_at)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, canonical: object) -> bool:
        return canonical in self._entries

    def __len__(self) -> int:
        return len(self._entries)
