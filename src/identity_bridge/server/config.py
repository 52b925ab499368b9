"""Server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from identity_bridge.cache.layer import CacheConfig
from identity_bridge.correlation.config import CorrelationConfig

SNAPSHOT_FILENAME = "lid_phone_mappings.json"


def _default_data_dir() -> Path:
    """``DATA_DIR`` from the environment, else the working directory."""
    return Path(os.environ.get("DATA_DIR") or ".")


@dataclass
class ServerConfig:
    """Configuration for the identity bridge server."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8430

    # Storage
    data_dir: Path = field(default_factory=_default_data_dir)
    snapshot_filename: str = SNAPSHOT_FILENAME

    # Engine
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    # Background timers
    flush_interval: int = 300  # seconds (5 min)
    sweep_interval: int = 1800  # seconds (30 min)
    enable_workers: bool = True

    # Startup backfill
    monitored_groups: list[str] = field(default_factory=list)
    backfill_timeout: float = 30.0

    # CORS
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.snapshot_filename
