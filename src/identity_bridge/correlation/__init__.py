"""Name correlation: registry, mapping store, pending queue and the engine."""

from identity_bridge.correlation.config import CorrelationConfig
from identity_bridge.correlation.correlator import CorrelationState, Correlator
from identity_bridge.correlation.engine import BackfillReport, CorrelationEngine, ReplayReport
from identity_bridge.correlation.matching import (
    ExactNameStrategy,
    FuzzyNameStrategy,
    GroupBackfillStrategy,
    MatchOutcome,
    MatchStrategy,
    build_strategies,
    similarity,
)
from identity_bridge.correlation.pending import PendingContactQueue
from identity_bridge.correlation.persistence import SnapshotDocument, SnapshotStore
from identity_bridge.correlation.registry import NameEvidence, NameRegistry
from identity_bridge.correlation.store import MappingStore

__all__ = [
    "BackfillReport",
    "CorrelationConfig",
    "CorrelationEngine",
    "CorrelationState",
    "Correlator",
    "ExactNameStrategy",
    "FuzzyNameStrategy",
    "GroupBackfillStrategy",
    "MappingStore",
    "MatchOutcome",
    "MatchStrategy",
    "NameEvidence",
    "NameRegistry",
    "PendingContactQueue",
    "ReplayReport",
    "SnapshotDocument",
    "SnapshotStore",
    "build_strategies",
    "similarity",
]
