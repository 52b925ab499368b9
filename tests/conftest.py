"""Pytest fixtures for identity-bridge tests.

Provides fixtures for:
- Fake clock for retention and TTL tests
- Correlation engines, with and without a snapshot file
- A scripted in-memory transport for group snapshot fetches
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.ingest.types import GroupSnapshot
from identity_bridge.temporal.clock import FakeClock

from tests.helpers import FakeTransport, group


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a fake clock for testing."""
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0))


@pytest.fixture
def engine(fake_clock: FakeClock) -> CorrelationEngine:
    """In-memory engine, no snapshot file."""
    return CorrelationEngine(clock=fake_clock)


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "lid_phone_mappings.json"


@pytest.fixture
def persistent_engine(fake_clock: FakeClock, snapshot_path: Path) -> CorrelationEngine:
    return CorrelationEngine(clock=fake_clock, snapshot_path=snapshot_path)


@pytest.fixture
def family_group() -> GroupSnapshot:
    return group(
        "family@g.us",
        ("6281130569787@s.whatsapp.net", "John Doe"),
        ("80444922015783@lid", "John Doe"),
        ("6285700000001@s.whatsapp.net", None),
    )


@pytest.fixture
def transport(family_group: GroupSnapshot) -> FakeTransport:
    return FakeTransport(groups={"family@g.us": family_group})
