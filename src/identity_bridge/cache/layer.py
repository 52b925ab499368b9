"""The engine's three caches for transport-fetched data."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from identity_bridge.cache.ttl import TTLCache
from identity_bridge.core.exceptions import TransportError
from identity_bridge.ingest.types import GroupSnapshot, TransportClient
from identity_bridge.temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class CacheConfig:
    """TTLs, in seconds.

    Membership churns (joins/leaves) so snapshots stay fresh; a resolved
    participant rarely changes so it is kept longer.
    """

    group_snapshot_ttl: int = 300
    participant_mapping_ttl: int = 1800
    contact_metadata_ttl: int = 3600


class CacheLayer:
    """Group snapshots, per-context participant resolutions, contact metadata.

    A snapshot miss falls through to the transport. Fetch failures and
    timeouts are logged and reported as a miss.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Clock | None = None,
        transport: TransportClient | None = None,
    ) -> None:
        self.config = config or CacheConfig()
        clock = clock or SystemClock()
        self.transport = transport
        self.groups: TTLCache[GroupSnapshot] = TTLCache(
            self.config.group_snapshot_ttl, clock, name="group_snapshots"
        )
        self.participants: TTLCache[str] = TTLCache(
            self.config.participant_mapping_ttl, clock, name="participant_mappings"
        )
        self.contacts: TTLCache[Any] = TTLCache(
            self.config.contact_metadata_ttl, clock, name="contacts"
        )

    async def group_snapshot(
        self,
        context_id: str,
        timeout: float | None = None,
        refresh: bool = False,
    ) -> GroupSnapshot | None:
        """Cached membership for *context_id*, fetching on a miss."""
        if not refresh:
            cached = self.groups.get(context_id)
            if cached is not None:
                return cached
        if self.transport is None:
            return None

        try:
            fetch = self.transport.fetch_group(context_id)
            if timeout is not None:
                snapshot = await asyncio.wait_for(fetch, timeout=timeout)
            else:
                snapshot = await fetch
        except asyncio.TimeoutError:
            logger.warning("Timed out fetching group snapshot for %s (timeout=%ss)", context_id, timeout)
            return None
        except TransportError as e:
            logger.warning("Failed to fetch group snapshot for %s: %s", context_id, e)
            return None
        except Exception:
            logger.warning("Failed to fetch group snapshot for %s", context_id, exc_info=True)
            return None

        self.cache_group(snapshot, context_id)
        return snapshot

    def cache_group(self, snapshot: GroupSnapshot, context_id: str | None = None) -> None:
        key = context_id or snapshot.context_id
        self.groups.set(key, snapshot)
        logger.debug("Cached snapshot for %s with %d members", key, len(snapshot.members))

    def invalidate_context(self, context_id: str) -> None:
        """Forget the snapshot and participant resolutions of one context."""
        self.groups.delete(context_id)
        prefix = f"{context_id}:"
        for key in self.participants.keys():
            if key.startswith(prefix):
                self.participants.delete(key)

    def participant(self, context_id: str, identifier: str) -> str | None:
        return self.participants.get(f"{context_id}:{identifier}")

    def remember_participant(self, context_id: str, identifier: str, canonical: str) -> None:
        self.participants.set(f"{context_id}:{identifier}", canonical)

    def forget_participant(self, identifier: str) -> int:
        """Drop *identifier*'s resolution in every context. Returns how many."""
        suffix = f":{identifier}"
        dropped = 0
        for key in self.participants.keys():
            if key.endswith(suffix) and self.participants.delete(key):
                dropped += 1
        return dropped

    def cache_contact(self, identifier: str, metadata: Any) -> None:
        if identifier and metadata is not None:
            self.contacts.set(identifier, metadata)

    def cached_contact(self, identifier: str) -> Any | None:
        return self.contacts.get(identifier)

    def clear(self) -> None:
        self.groups.clear()
        self.participants.clear()
        self.contacts.clear()

    def stats(self) -> dict[str, dict[str, Any]]:
        return {
            "group_snapshots": self.groups.stats(),
            "participant_mappings": self.participants.stats(),
            "contacts": self.contacts.stats(),
        }
