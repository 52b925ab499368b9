"""Tests for MappingStore, the one-to-one pseudonymous <-> canonical index."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from identity_bridge.core.types import Identifier, Mapping, MappingSource
from identity_bridge.correlation.store import MappingStore

P1 = Identifier("80444922015783@lid")
P2 = Identifier("90000000000001@lid")
C1 = Identifier("6281130569787")
C2 = Identifier("6285700000001")


@pytest.fixture
def store(fake_clock) -> MappingStore:
    return MappingStore(fake_clock)


class TestPut:
    def test_both_directions(self, store, fake_clock):
        assert store.put(P1, C1, MappingSource.EXACT_NAME)
        assert store.get(P1) == C1
        assert store.reverse(C1) == P1
        mapping = store.mapping_for(P1)
        assert mapping.source is MappingSource.EXACT_NAME
        assert mapping.created_at == fake_clock.now()
        assert len(store) == 1

    def test_wrong_kinds_rejected(self, store):
        assert not store.put(C1, C2, MappingSource.EXACT_NAME)
        assert not store.put(P1, P2, MappingSource.FORCED)
        assert len(store) == 0

    def test_second_canonical_rejected(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert not store.put(P1, C2, MappingSource.FUZZY_NAME)
        assert store.get(P1) == C1
        assert store.reverse(C2) is None

    def test_held_canonical_rejected(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert not store.put(P2, C1, MappingSource.GROUP_BACKFILL)
        assert store.get(P2) is None
        assert store.reverse(C1) == P1

    def test_same_pair_is_noop(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert not store.put(P1, C1, MappingSource.FUZZY_NAME)
        assert store.mapping_for(P1).source is MappingSource.EXACT_NAME

    def test_is_mapped_checks_either_side(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert store.is_mapped(P1)
        assert store.is_mapped(C1)
        assert not store.is_mapped(P2)
        assert not store.is_mapped(C2)


class TestForcedPut:
    def test_replaces_existing_canonical(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert store.put(P1, C2, MappingSource.FORCED)
        assert store.get(P1) == C2
        assert store.reverse(C2) == P1
        assert store.reverse(C1) is None

    def test_displaces_previous_holder(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert store.put(P2, C1, MappingSource.FORCED)
        assert store.get(P1) is None
        assert store.reverse(C1) == P2
        assert len(store) == 1

    def test_upgrades_source_of_same_pair(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert store.put(P1, C1, MappingSource.FORCED)
        assert store.mapping_for(P1).is_forced

    def test_forced_mapping_survives_automatic_put(self, store):
        store.put(P1, C1, MappingSource.FORCED)
        assert not store.put(P1, C2, MappingSource.EXACT_NAME)
        assert store.get(P1) == C1


class TestChangeNotification:
    def test_called_on_change_only(self, fake_clock):
        on_change = MagicMock()
        store = MappingStore(fake_clock, on_change=on_change)
        store.put(P1, C1, MappingSource.EXACT_NAME)
        store.put(P1, C2, MappingSource.EXACT_NAME)
        store.put(P1, C1, MappingSource.EXACT_NAME)
        assert on_change.call_count == 1

    def test_restore_does_not_notify(self, fake_clock):
        on_change = MagicMock()
        store = MappingStore(fake_clock, on_change=on_change)
        assert store.restore(Mapping(P1, C1, MappingSource.FUZZY_NAME, fake_clock.now()))
        on_change.assert_not_called()
        assert store.reverse(C1) == P1


class TestRestore:
    def test_duplicate_skipped(self, store, fake_clock):
        store.restore(Mapping(P1, C1, MappingSource.EXACT_NAME, fake_clock.now()))
        assert not store.restore(Mapping(P2, C1, MappingSource.EXACT_NAME, fake_clock.now()))
        assert not store.restore(Mapping(P1, C2, MappingSource.EXACT_NAME, fake_clock.now()))
        assert len(store) == 1

    def test_clear(self, store):
        store.put(P1, C1, MappingSource.EXACT_NAME)
        store.clear()
        assert len(store) == 0
        assert store.reverse(C1) is None
        assert list(store) == []
