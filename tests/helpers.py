"""Test doubles and event builders shared across test modules."""

from __future__ import annotations

import asyncio

from identity_bridge.core.exceptions import TransportError
from identity_bridge.core.types import DisplayNameObservation, Identifier, ObservationSource
from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.ingest.types import GroupMember, GroupSnapshot, MessageReceipt


class FakeTransport:
    """Answers ``fetch_group`` from a dict; can fail or stall per context."""

    def __init__(
        self,
        groups: dict[str, GroupSnapshot] | None = None,
        failing: set[str] | None = None,
        slow: set[str] | None = None,
    ) -> None:
        self.groups = dict(groups or {})
        self.failing = set(failing or ())
        self.slow = set(slow or ())
        self.calls: list[str] = []

    async def fetch_group(self, context_id: str) -> GroupSnapshot:
        self.calls.append(context_id)
        if context_id in self.failing:
            raise TransportError(context_id, "connection closed")
        if context_id in self.slow:
            await asyncio.sleep(5)
        if context_id not in self.groups:
            raise TransportError(context_id, "unknown group")
        return self.groups[context_id]


def message(sender: str, name: str | None, context: str = "120363@g.us") -> MessageReceipt:
    """A message receipt from *sender* shown as *name*."""
    return MessageReceipt(context_id=context, sender_id=sender, display_name=name)


def group(context: str, *members: tuple[str, str | None]) -> GroupSnapshot:
    """A group snapshot from ``(identifier, display_name)`` pairs."""
    return GroupSnapshot(
        context_id=context,
        members=tuple(GroupMember(identifier=i, display_name=n) for i, n in members),
    )


def observation(
    raw: str,
    name: str,
    source: ObservationSource = ObservationSource.MESSAGE,
) -> DisplayNameObservation:
    return DisplayNameObservation(identifier=Identifier.parse(raw), name=name, source=source)


def assert_indexes_agree(engine: CorrelationEngine) -> None:
    """Forward and reverse indexes hold exactly the same pairs."""
    for mapping in engine.store:
        assert engine.store.reverse(mapping.canonical) == mapping.pseudonymous
    canonicals = [m.canonical for m in engine.store]
    assert len(canonicals) == len(set(canonicals))
