"""CorrelationEngine: owns the registry, store and pending queue; answers queries.

One engine instance per process. Every mutation runs under a single
re-entrant lock; queries take the same lock so they never see half of a
bidirectional update.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from identity_bridge.cache.layer import CacheConfig, CacheLayer
from identity_bridge.core.exceptions import InvalidIdentifierError, SnapshotError
from identity_bridge.core.types import (
    DisplayNameObservation,
    Identifier,
    Mapping,
    MappingSource,
    ObservationSource,
)
from identity_bridge.correlation.config import CorrelationConfig
from identity_bridge.correlation.correlator import CorrelationState, Correlator
from identity_bridge.correlation.matching import build_strategies
from identity_bridge.correlation.pending import PendingContactQueue
from identity_bridge.correlation.persistence import (
    MappingDetailDocument,
    NameEntryDocument,
    SnapshotDocument,
    SnapshotStore,
)
from identity_bridge.correlation.registry import NameEvidence, NameRegistry
from identity_bridge.correlation.store import MappingStore
from identity_bridge.ingest.normalize import normalize_event
from identity_bridge.ingest.transport import message_from_transport
from identity_bridge.ingest.types import GroupSnapshot, ObservationEvent, TransportClient
from identity_bridge.temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    """Outcome of fetching and ingesting a batch of group snapshots."""

    contexts_requested: int = 0
    contexts_processed: int = 0
    contexts_failed: list[str] = field(default_factory=list)
    members_processed: int = 0
    mappings_created: int = 0
    pending_contacts: int = 0


@dataclass
class ReplayReport:
    """Outcome of re-processing stored historic events."""

    events_processed: int = 0
    events_skipped: int = 0
    mappings_created: int = 0


class CorrelationEngine:
    """Pseudonymous identifier resolution and contact correlation.

    Feed transport events to :meth:`observe`; ask :meth:`resolve`,
    :meth:`reverse_lookup`, :meth:`names_for` and
    :meth:`identifiers_for_name`; override with :meth:`force_map`.
    State is persisted by :meth:`flush` and read back by :meth:`load`.
    """

    def __init__(
        self,
        config: CorrelationConfig | None = None,
        cache_config: CacheConfig | None = None,
        snapshot_path: str | Path | None = None,
        clock: Clock | None = None,
        transport: TransportClient | None = None,
    ) -> None:
        self.config = config or CorrelationConfig()
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._dirty = False
        self._last_flush: datetime | None = None

        self.registry = NameRegistry()
        self.store = MappingStore(self._clock, on_change=self._mark_dirty)
        self.pending = PendingContactQueue(
            self.store, self._clock, self.config.pending_retention_seconds
        )
        self.correlator = Correlator(
            CorrelationState(registry=self.registry, store=self.store, pending=self.pending),
            build_strategies(self.config.strategies, self.config.fuzzy_threshold),
        )
        self.cache = CacheLayer(cache_config, self._clock, transport)
        self.snapshots = SnapshotStore(snapshot_path) if snapshot_path else None

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def observe(self, event: ObservationEvent) -> list[Mapping]:
        """Ingest one transport event. Returns mappings it created."""
        observations = normalize_event(event, self._clock, self.config.default_country_code)
        created: list[Mapping] = []
        with self._lock:
            if isinstance(event, GroupSnapshot):
                self.cache.cache_group(event)
            for observation in observations:
                mapping = self._record(observation)
                if mapping is not None:
                    created.append(mapping)
        return created

    def record(self, observation: DisplayNameObservation) -> Mapping | None:
        """Fold one observation into the registry and correlate its name."""
        with self._lock:
            return self._record(observation)

    def _record(self, observation: DisplayNameObservation) -> Mapping | None:
        name = self.registry.record(observation)
        if not name:
            return None
        self._mark_dirty()
        return self.correlator.correlate(name, observation)

    def replay(self, events: Iterable[ObservationEvent | dict[str, Any]]) -> ReplayReport:
        """Re-process historic events, e.g. a transport's stored messages."""
        report = ReplayReport()
        for event in events:
            if isinstance(event, dict):
                event = message_from_transport(event)
            if event is None:
                report.events_skipped += 1
                continue
            report.events_processed += 1
            report.mappings_created += len(self.observe(event))
        logger.info(
            "Replayed %d events (%d skipped), created %d mappings",
            report.events_processed, report.events_skipped, report.mappings_created,
        )
        return report

    async def backfill(
        self,
        context_ids: Iterable[str],
        timeout: float | None = None,
        refresh: bool = True,
    ) -> BackfillReport:
        """Fetch and ingest membership snapshots, one context at a time.

        A context whose fetch fails or exceeds *timeout* is skipped.
        """
        report = BackfillReport()
        for context_id in context_ids:
            report.contexts_requested += 1
            snapshot = await self.cache.group_snapshot(context_id, timeout=timeout, refresh=refresh)
            if snapshot is None:
                report.contexts_failed.append(context_id)
                continue
            report.contexts_processed += 1
            report.members_processed += len(snapshot.members)
            report.mappings_created += len(self.observe(snapshot))

        with self._lock:
            report.pending_contacts = len(self.pending)
        logger.info(
            "Backfill complete: %d/%d contexts, %d members, %d new mappings, %d pending",
            report.contexts_processed, report.contexts_requested,
            report.members_processed, report.mappings_created, report.pending_contacts,
        )
        return report

    async def refresh_context(self, context_id: str, timeout: float | None = None) -> BackfillReport:
        """Refetch one context after a membership change."""
        self.cache.invalidate_context(context_id)
        return await self.backfill([context_id], timeout=timeout)

    async def resolve_participant(
        self,
        participant: str,
        context_id: str,
        timeout: float | None = None,
    ) -> str | None:
        """Resolve a participant seen in *context_id* to a canonical address.

        Tries the per-context cache, then the mapping store, then the
        context's membership snapshot (cached, or fetched on a miss).
        """
        identifier = self._parse(participant)
        if identifier.is_canonical:
            # A bare number may still be a pseudonymous id without its domain.
            return self.resolve(participant)

        with self._lock:
            cached = self.cache.participant(context_id, identifier.raw)
        if cached is not None:
            return cached

        canonical = self.resolve(identifier.raw)
        if canonical is None:
            snapshot = await self.cache.group_snapshot(context_id, timeout=timeout)
            if snapshot is not None:
                self.observe(snapshot)
                canonical = self.resolve(identifier.raw)

        if canonical is None:
            logger.info("Could not resolve %s in context %s", identifier, context_id)
            return None
        with self._lock:
            # Re-read under the lock; a forced override may have landed meanwhile.
            current = self.store.get(identifier)
            if current is None:
                return None
            self.cache.remember_participant(context_id, identifier.raw, current.raw)
        return current.raw

    # ------------------------------------------------------------------
    # Query API
    # ------------------------------------------------------------------

    def resolve(self, identifier: str) -> str | None:
        """Canonical address for *identifier*, or None if unknown.

        Canonical input resolves to itself (normalized). A bare number is
        first checked as a pseudonymous id written without its domain.
        """
        parsed = self._parse(identifier)
        with self._lock:
            if parsed.is_canonical:
                if "@" not in str(identifier):
                    alias = Identifier(f"{parsed.raw}@{self.config.pseudonymous_domain}")
                    canonical = self.store.get(alias)
                    if canonical is not None:
                        return canonical.raw
                return parsed.raw
            canonical = self.store.get(parsed)
            return canonical.raw if canonical else None

    def reverse_lookup(self, canonical: str) -> str | None:
        """Pseudonymous id mapped to *canonical*, or None."""
        parsed = self._parse(canonical)
        if not parsed.is_canonical:
            raise InvalidIdentifierError(canonical, f"Not a canonical address: {canonical!r}")
        with self._lock:
            pseudonymous = self.store.reverse(parsed)
            return pseudonymous.raw if pseudonymous else None

    def names_for(self, identifier: str) -> set[str]:
        """Every normalized name *identifier* was observed under."""
        parsed = self._parse(identifier)
        with self._lock:
            return self.registry.names_for(parsed)

    def name_for_identifier(self, identifier: str) -> str | None:
        """The latest name *identifier* was observed under."""
        parsed = self._parse(identifier)
        with self._lock:
            return self.registry.name_for_identifier(parsed)

    def identifiers_for_name(self, name: str) -> NameEvidence:
        """Identifiers of either kind observed under *name*."""
        with self._lock:
            return self.registry.identifiers_for_name(name)

    def force_map(self, pseudonymous: str, canonical: str, name: str | None = None) -> Mapping:
        """Administrative override; replaces any conflicting mapping.

        Raises:
            InvalidIdentifierError: If either side has the wrong kind.
        """
        p = self._parse(pseudonymous)
        c = self._parse(canonical)
        if not p.is_pseudonymous:
            raise InvalidIdentifierError(pseudonymous, f"Not a pseudonymous id: {pseudonymous!r}")
        if not c.is_canonical:
            raise InvalidIdentifierError(canonical, f"Not a canonical address: {canonical!r}")

        with self._lock:
            previous = self.store.get(p)
            holder = self.store.reverse(c)
            self.store.put(p, c, MappingSource.FORCED)
            self.pending.discard(c)

            self.cache.forget_participant(p.raw)
            if holder is not None and holder != p:
                self.cache.forget_participant(holder.raw)

            # The canonical this id used to map to waits for a match again.
            if previous is not None and previous != c and not self.store.is_mapped(previous):
                previous_name = self.registry.name_for_identifier(previous)
                if previous_name:
                    self.pending.offer(previous, previous_name)

            if name and name.strip():
                norm = self.registry.add(p, name)
                self.registry.add(c, name)
                self.correlator.forget_unresolved(norm)
                self._mark_dirty()
            mapping = self.store.mapping_for(p)
        logger.info("Manual mapping created: %s -> %s", p, c)
        return mapping

    def stats(self, detailed: bool = False) -> dict[str, Any]:
        """Counts for observability; *detailed* adds per-entry listings."""
        with self._lock:
            result: dict[str, Any] = {
                "mappings": len(self.store),
                "pending_contacts": len(self.pending),
                "names": self.registry.size,
                "identifiers": self.registry.identifier_count,
                "unresolved": self.correlator.unresolved_count,
                "dirty": self._dirty,
                "last_flush": self._last_flush.isoformat() if self._last_flush else None,
                "caches": self.cache.stats(),
            }
            if not detailed:
                return result
            result["mapping_list"] = [
                {
                    "pseudonymous": m.pseudonymous.raw,
                    "canonical": m.canonical.raw,
                    "source": m.source.value,
                    "created_at": m.created_at.isoformat(),
                    "name": self.registry.name_for_identifier(m.pseudonymous)
                    or self.registry.name_for_identifier(m.canonical),
                }
                for m in sorted(self.store, key=lambda m: m.pseudonymous.raw)
            ]
            result["pending_list"] = [
                {
                    "canonical": e.canonical.raw,
                    "name": e.name,
                    "source": e.source.value,
                    "waiting_minutes": self.pending.waiting_minutes(e),
                }
                for e in self.pending.entries()
            ]
            result["unresolved_names"] = self.correlator.unresolved()
        return result

    # ------------------------------------------------------------------
    # Contact metadata
    # ------------------------------------------------------------------

    def cache_contact(self, identifier: str, metadata: Any) -> None:
        """Remember looked-up contact metadata for an identifier."""
        parsed = self._parse(identifier)
        with self._lock:
            self.cache.cache_contact(parsed.raw, metadata)

    def cached_contact(self, identifier: str) -> Any | None:
        parsed = self._parse(identifier)
        with self._lock:
            return self.cache.cached_contact(parsed.raw)

    def contact_for(self, identifier: str, lookup: Callable[[str], Any | None]) -> Any | None:
        """Look a contact up by identifier, falling back to its canonical address.

        *lookup* is the caller's directory lookup keyed by canonical
        address; the contact metadata cache is the last resort.
        """
        parsed = self._parse(identifier)
        contact = lookup(parsed.raw)
        if contact is None:
            canonical = self.resolve(parsed.raw)
            if canonical is not None and canonical != parsed.raw:
                contact = lookup(canonical)
        if contact is None:
            contact = self.cached_contact(parsed.raw)
            if contact is not None:
                logger.debug("Found contact for %s via metadata cache", parsed)
        return contact

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Evict expired pending contacts along with their name evidence."""
        with self._lock:
            evicted = self.pending.sweep()
            for entry in evicted:
                if not self.store.is_mapped(entry.canonical):
                    self.registry.forget(entry.canonical)
            if evicted:
                self._mark_dirty()
        return len(evicted)

    def clear(self) -> None:
        """Drop all state and delete the snapshot file."""
        with self._lock:
            self._reset()
            self.cache.clear()
            if self.snapshots is not None:
                self.snapshots.delete()
            self._dirty = False
        logger.info("All identifier mappings cleared")

    def _reset(self) -> None:
        self.store.clear()
        self.registry.clear()
        self.pending.clear()
        self.correlator.clear()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def to_document(self) -> SnapshotDocument:
        """Snapshot of the mapping store and name registry."""
        with self._lock:
            mappings = sorted(self.store, key=lambda m: m.pseudonymous.raw)
            return SnapshotDocument(
                mappings={m.pseudonymous.raw: m.canonical.raw for m in mappings},
                reverse={m.canonical.raw: m.pseudonymous.raw for m in mappings},
                name_registry={
                    norm: NameEntryDocument(**entry)
                    for norm, entry in self.registry.export().items()
                },
                identifier_names=self.registry.export_latest(),
                mapping_details={
                    m.pseudonymous.raw: MappingDetailDocument(
                        canonical=m.canonical.raw,
                        source=m.source.value,
                        created_at=m.created_at,
                    )
                    for m in mappings
                },
                last_updated=self._clock.now(),
            )

    def restore(self, document: SnapshotDocument) -> None:
        """Replace in-memory state with *document*. Bad entries are skipped."""
        with self._lock:
            self._reset()

            for norm, entry in document.name_registry.items():
                for raw in entry.canonical:
                    identifier = self._restore_id(raw, pseudonymous=False)
                    if identifier is not None:
                        self.registry.add(identifier, norm)
                for raw in entry.pseudonymous:
                    identifier = self._restore_id(raw, pseudonymous=True)
                    if identifier is not None:
                        self.registry.add(identifier, norm)

            for raw, norm in document.identifier_names.items():
                identifier = self._restore_id(raw, pseudonymous=not raw.isdigit())
                if identifier is not None:
                    self.registry.set_latest_name(identifier, norm)

            for p_raw, c_raw in document.mappings.items():
                p = self._restore_id(p_raw, pseudonymous=True)
                c = self._restore_id(c_raw, pseudonymous=False)
                if p is None or c is None or not c.is_canonical:
                    logger.warning("Skipping malformed persisted mapping %r -> %r", p_raw, c_raw)
                    continue
                detail = document.mapping_details.get(p_raw)
                try:
                    source = MappingSource(detail.source) if detail else MappingSource.EXACT_NAME
                except ValueError:
                    source = MappingSource.EXACT_NAME
                created_at = (
                    detail.created_at if detail
                    else document.last_updated or self._clock.now()
                )
                self.store.restore(Mapping(pseudonymous=p, canonical=c, source=source, created_at=created_at))

            expected_reverse = {m.canonical.raw: m.pseudonymous.raw for m in self.store}
            if document.reverse and document.reverse != expected_reverse:
                logger.warning("Persisted reverse index disagreed with mappings; rebuilt it")

            # Pending contacts are not persisted; unmapped canonical
            # evidence waits again from load time.
            for identifier in self.registry.canonical_identifiers():
                if self.store.is_mapped(identifier):
                    continue
                name = self.registry.name_for_identifier(identifier)
                if name:
                    self.pending.offer(identifier, name, source=ObservationSource.MESSAGE)

            self._dirty = False

    def load(self) -> bool:
        """Read the snapshot file. A corrupt file leaves the engine empty."""
        if self.snapshots is None:
            return False
        try:
            document = self.snapshots.load()
        except SnapshotError:
            logger.error("Could not load snapshot; starting from empty state", exc_info=True)
            with self._lock:
                self._reset()
                self._dirty = False
            return False
        if document is None:
            return False
        self.restore(document)
        logger.info(
            "Loaded %d mappings and %d names from %s",
            len(self.store), self.registry.size, self.snapshots.path,
        )
        return True

    def flush(self, force: bool = False) -> bool:
        """Write the snapshot if anything changed. Failures are logged, not raised."""
        if self.snapshots is None:
            return False
        with self._lock:
            if not self._dirty and not force:
                return False
            document = self.to_document()
            self._dirty = False
        try:
            self.snapshots.save(document)
        except SnapshotError:
            logger.warning("Snapshot flush failed; in-memory state kept", exc_info=True)
            with self._lock:
                self._dirty = True
            return False
        self._last_flush = self._clock.now()
        logger.debug("Flushed %d mappings to %s", len(document.mappings), self.snapshots.path)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mark_dirty(self) -> None:
        self._dirty = True

    def _parse(self, value: str) -> Identifier:
        return Identifier.parse(value, self.config.default_country_code)

    def _restore_id(self, raw: str, pseudonymous: bool) -> Identifier | None:
        try:
            identifier = Identifier.parse(raw)
        except InvalidIdentifierError:
            logger.warning("Skipping malformed persisted identifier %r", raw)
            return None
        if pseudonymous and identifier.is_canonical:
            # Written without its domain by an older process.
            identifier = Identifier(f"{identifier.raw}@{self.config.pseudonymous_domain}")
        return identifier
