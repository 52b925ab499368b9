"""Identity Bridge - resolve pseudonymous participant ids to phone addresses.

Messaging transports increasingly hide a participant's phone number
behind an opaque per-account token. The bridge watches display names
as they appear on both kinds of identifier and links them:

- Exact name matches between one phone address and one token
- Near-spelling matches for names typed slightly differently
- Group membership backfill for contacts that never messaged directly
- A pending queue for phone addresses still waiting for their token
- JSON snapshot persistence with periodic flush

Example:
    >>> from identity_bridge import CorrelationEngine, MessageReceipt
    >>>
    >>> engine = CorrelationEngine()
    >>> engine.observe(MessageReceipt("group-1", "6281130569787@s.whatsapp.net",
    ...                               display_name="Bagus Setiawan"))
    >>> engine.observe(MessageReceipt("group-1", "80444922015783@lid",
    ...                               display_name="Bagus Setiawan"))
    >>> engine.resolve("80444922015783@lid")
    '6281130569787'
"""

__version__ = "0.1.0"

from identity_bridge.core.exceptions import (
    IdentityBridgeError,
    InvalidIdentifierError,
    SnapshotError,
    TransportError,
)
from identity_bridge.core.types import (
    DisplayNameObservation,
    Identifier,
    IdentifierKind,
    Mapping,
    MappingSource,
    ObservationSource,
    PendingContact,
)
from identity_bridge.correlation.config import CorrelationConfig
from identity_bridge.correlation.engine import BackfillReport, CorrelationEngine, ReplayReport
from identity_bridge.cache.layer import CacheConfig
from identity_bridge.ingest.types import (
    ContactUpdate,
    GroupMember,
    GroupSnapshot,
    MessageReceipt,
    TransportClient,
)
from identity_bridge.temporal.clock import Clock, FakeClock, SystemClock

__all__ = [
    "__version__",
    # Engine
    "CorrelationEngine",
    "CorrelationConfig",
    "CacheConfig",
    "BackfillReport",
    "ReplayReport",
    # Types
    "DisplayNameObservation",
    "Identifier",
    "IdentifierKind",
    "Mapping",
    "MappingSource",
    "ObservationSource",
    "PendingContact",
    # Events
    "ContactUpdate",
    "GroupMember",
    "GroupSnapshot",
    "MessageReceipt",
    "TransportClient",
    # Clock
    "Clock",
    "FakeClock",
    "SystemClock",
    # Exceptions
    "IdentityBridgeError",
    "InvalidIdentifierError",
    "SnapshotError",
    "TransportError",
]
