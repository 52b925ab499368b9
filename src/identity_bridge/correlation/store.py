"""Authoritative pseudonymous <-> canonical index."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from identity_bridge.core.types import Identifier, Mapping, MappingSource
from identity_bridge.temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class MappingStore:
    """One-to-one map between pseudonymous and canonical identifiers.

    Forward and reverse indexes are always updated together; callers
    serialize access (see ``CorrelationEngine``). Automatic puts never
    replace an existing mapping. Only ``MappingSource.FORCED`` does, and
    it evicts whatever stood on either side first.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._on_change = on_change
        self._forward: dict[Identifier, Mapping] = {}
        self._reverse: dict[Identifier, Identifier] = {}

    def put(
        self,
        pseudonymous: Identifier,
        canonical: Identifier,
        source: MappingSource,
    ) -> bool:
        """Store a mapping. Returns True when the store changed.

        Conflicting automatic puts are rejected with a log line and never
        raise.
        """
        if not pseudonymous.is_pseudonymous or not canonical.is_canonical:
            logger.info(
                "Rejected mapping %s -> %s: identifier kinds do not match",
                pseudonymous, canonical,
            )
            return False

        existing = self._forward.get(pseudonymous)
        if existing is not None and existing.canonical == canonical:
            if source is MappingSource.FORCED and not existing.is_forced:
                existing.source = MappingSource.FORCED
                self._changed()
                return True
            return False

        if source is not MappingSource.FORCED:
            if existing is not None:
                logger.info(
                    "Rejected %s mapping %s -> %s: already mapped to %s (%s)",
                    source.value, pseudonymous, canonical,
                    existing.canonical, existing.source.value,
                )
                return False
            holder = self._reverse.get(canonical)
            if holder is not None:
                logger.info(
                    "Rejected %s mapping %s -> %s: canonical already mapped from %s",
                    source.value, pseudonymous, canonical, holder,
                )
                return False
        else:
            if existing is not None:
                self._reverse.pop(existing.canonical, None)
            holder = self._reverse.pop(canonical, None)
            if holder is not None and holder != pseudonymous:
                self._forward.pop(holder, None)
                logger.info("Forced mapping displaced %s -> %s", holder, canonical)

        self._forward[pseudonymous] = Mapping(
            pseudonymous=pseudonymous,
            canonical=canonical,
            source=source,
            created_at=self._clock.now(),
        )
        self._reverse[canonical] = pseudonymous
        logger.info(
            "Mapping created: %s -> %s (%s)", pseudonymous, canonical, source.value,
        )
        self._changed()
        return True

    def restore(self, mapping: Mapping) -> bool:
        """Insert a mapping read back from a snapshot, keeping its metadata."""
        if mapping.pseudonymous in self._forward or mapping.canonical in self._reverse:
            logger.warning(
                "Skipping duplicate persisted mapping %s -> %s",
                mapping.pseudonymous, mapping.canonical,
            )
            return False
        self._forward[mapping.pseudonymous] = mapping
        self._reverse[mapping.canonical] = mapping.pseudonymous
        return True

    def get(self, pseudonymous: Identifier) -> Identifier | None:
        mapping = self._forward.get(pseudonymous)
        return mapping.canonical if mapping else None

    def reverse(self, canonical: Identifier) -> Identifier | None:
        return self._reverse.get(canonical)

    def mapping_for(self, pseudonymous: Identifier) -> Mapping | None:
        return self._forward.get(pseudonymous)

    def is_mapped(self, identifier: Identifier) -> bool:
        """True if *identifier* sits on either side of a live mapping."""
        if identifier.is_canonical:
            return identifier in self._reverse
        return identifier in self._forward

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()
        self._changed()

    def __iter__(self) -> Iterator[Mapping]:
        return iter(list(self._forward.values()))

    def __len__(self) -> int:
        return len(self._forward)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
