"""Configuration for the correlation engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CorrelationConfig:
    """Matching rules and retention for the correlation engine."""

    # Strategies run in this order; drop a name to disable it.
    strategies: tuple[str, ...] = ("group_backfill", "exact", "fuzzy")
    fuzzy_threshold: float = 0.8
    pending_retention_seconds: int = 24 * 60 * 60

    # Applied to canonical numbers written with a trunk prefix ("0812...").
    default_country_code: str | None = None

    # Domain assumed for a pseudonymous id persisted or queried without one.
    pseudonymous_domain: str = "lid"

    def __post_init__(self) -> None:
        if not 0.0 < self.fuzzy_threshold <= 1.0:
            raise ValueError("fuzzy_threshold must be in (0.0, 1.0]")
        if self.pending_retention_seconds <= 0:
            raise ValueError("pending_retention_seconds must be positive")
