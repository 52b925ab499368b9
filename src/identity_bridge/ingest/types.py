"""Event shapes handed to the engine by the messaging transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable


@dataclass(frozen=True)
class MessageReceipt:
    """A message arrived in a context (chat or group)."""

    context_id: str
    sender_id: str
    is_self: bool = False
    display_name: str | None = None


@dataclass(frozen=True)
class ContactUpdate:
    """The transport pushed a contact-update notification."""

    identifier: str
    display_name: str | None = None


@dataclass(frozen=True)
class GroupMember:
    """One member entry of a group membership snapshot."""

    identifier: str
    display_name: str | None = None


@dataclass(frozen=True)
class GroupSnapshot:
    """Full membership of a group/context at fetch time."""

    context_id: str
    members: tuple[GroupMember, ...] = field(default_factory=tuple)
    subject: str | None = None


ObservationEvent = Union[MessageReceipt, ContactUpdate, GroupSnapshot]


@runtime_checkable
class TransportClient(Protocol):
    """The part of the messaging transport the engine depends on."""

    async def fetch_group(self, context_id: str) -> GroupSnapshot:
        """Fetch the current membership snapshot of *context_id*.

        Raises:
            TransportError: When the transport cannot answer; callers treat
                it (and any other failure) as a miss.
        """
        ...
