"""Core types and exceptions for the identity bridge."""

from identity_bridge.core.types import (
    DisplayNameObservation,
    Identifier,
    IdentifierKind,
    Mapping,
    MappingSource,
    ObservationSource,
    PendingContact,
    normalize_name,
)
from identity_bridge.core.exceptions import (
    IdentityBridgeError,
    InvalidIdentifierError,
    SnapshotError,
    TransportError,
)

__all__ = [
    # Types
    "DisplayNameObservation",
    "Identifier",
    "IdentifierKind",
    "Mapping",
    "MappingSource",
    "ObservationSource",
    "PendingContact",
    "normalize_name",
    # Exceptions
    "IdentityBridgeError",
    "InvalidIdentifierError",
    "SnapshotError",
    "TransportError",
]
