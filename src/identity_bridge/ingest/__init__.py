"""Observation ingest: transport events -> display-name observations."""

from identity_bridge.ingest.normalize import normalize_event
from identity_bridge.ingest.transport import (
    contacts_from_transport,
    group_from_transport,
    message_from_transport,
)
from identity_bridge.ingest.types import (
    ContactUpdate,
    GroupMember,
    GroupSnapshot,
    MessageReceipt,
    ObservationEvent,
    TransportClient,
)

__all__ = [
    "ContactUpdate",
    "GroupMember",
    "GroupSnapshot",
    "MessageReceipt",
    "ObservationEvent",
    "TransportClient",
    "contacts_from_transport",
    "group_from_transport",
    "message_from_transport",
    "normalize_event",
]
