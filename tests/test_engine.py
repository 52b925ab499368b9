"""Tests for the CorrelationEngine query, override and transport APIs."""

from __future__ import annotations

import threading

import pytest

from identity_bridge.core.exceptions import InvalidIdentifierError
from identity_bridge.core.types import MappingSource, ObservationSource
from identity_bridge.correlation.config import CorrelationConfig
from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.ingest.types import ContactUpdate, MessageReceipt

from tests.helpers import FakeTransport, assert_indexes_agree, group, message, observation


@pytest.fixture
def linked(engine: CorrelationEngine) -> CorrelationEngine:
    """Engine holding 80444922015783@lid -> 6281130569787."""
    engine.observe(message("80444922015783@lid", "John Doe"))
    engine.observe(message("6281130569787@s.whatsapp.net", "John Doe"))
    return engine


# =====================================================================
# Queries
# =====================================================================


class TestResolve:
    def test_canonical_resolves_to_itself(self, engine):
        assert engine.resolve("6281130569787@s.whatsapp.net") == "6281130569787"
        assert engine.resolve("6281130569787") == "6281130569787"

    def test_unknown_pseudonymous(self, engine):
        assert engine.resolve("80444922015783@lid") is None

    def test_mapped_pseudonymous(self, linked):
        assert linked.resolve("80444922015783@lid") == "6281130569787"

    def test_bare_number_of_mapped_lid(self, linked):
        assert linked.resolve("80444922015783") == "6281130569787"

    def test_device_suffix_ignored(self, linked):
        assert linked.resolve("80444922015783:3@lid") == "6281130569787"

    def test_country_code(self, fake_clock):
        engine = CorrelationEngine(CorrelationConfig(default_country_code="62"), clock=fake_clock)
        assert engine.resolve("081130569787") == "6281130569787"

    def test_invalid_identifier(self, engine):
        with pytest.raises(InvalidIdentifierError):
            engine.resolve("  ")


class TestReverseLookupAndNames:
    def test_reverse_lookup(self, linked):
        assert linked.reverse_lookup("6281130569787@s.whatsapp.net") == "80444922015783@lid"
        assert linked.reverse_lookup("6285700000001") is None

    def test_reverse_lookup_rejects_pseudonymous(self, linked):
        with pytest.raises(InvalidIdentifierError):
            linked.reverse_lookup("80444922015783@lid")

    def test_names_for(self, engine):
        engine.observe(message("lid1", "Johnny"))
        engine.observe(message("lid1", "John Doe"))
        assert engine.names_for("lid1") == {"johnny", "john doe"}
        assert engine.name_for_identifier("lid1") == "john doe"
        assert engine.names_for("lid404") == set()

    def test_identifiers_for_name(self, linked):
        evidence = linked.identifiers_for_name("  JOHN doe")
        assert {i.raw for i in evidence.canonical} == {"6281130569787"}
        assert {i.raw for i in evidence.pseudonymous} == {"80444922015783@lid"}


# =====================================================================
# Ingest
# =====================================================================


class TestObserve:
    def test_returns_created_mappings(self, engine):
        assert engine.observe(message("lid1", "Jane")) == []
        (mapping,) = engine.observe(message("111", "Jane"))
        assert mapping.pseudonymous.raw == "lid1"
        assert mapping.canonical.raw == "111"

    def test_self_messages_ignored(self, engine):
        engine.observe(MessageReceipt("g@g.us", "111", is_self=True, display_name="Me"))
        assert engine.stats()["identifiers"] == 0
        assert not engine.dirty

    def test_contact_event_counts_as_evidence(self, engine):
        engine.observe(ContactUpdate("lid1@lid", "Jane"))
        engine.observe(ContactUpdate("111@s.whatsapp.net", "Jane"))
        assert engine.resolve("lid1@lid") == "111"

    def test_group_snapshot_is_cached(self, engine, family_group):
        engine.observe(family_group)
        assert "family@g.us" in engine.cache.groups

    def test_concurrent_snapshots_and_stats(self, engine):
        errors = []

        def ingest(offset: int) -> None:
            for i in range(25):
                n = offset * 100 + i
                engine.observe(group(f"g{n}@g.us", (f"{1000 + n}", f"Person {n}")))

        def read() -> None:
            try:
                for _ in range(50):
                    engine.stats()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=ingest, args=(k,)) for k in range(4)]
        threads += [threading.Thread(target=read) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(engine.cache.groups) == 100

    def test_record_single_observation(self, engine):
        engine.record(observation("lid1", "Jane"))
        mapping = engine.record(observation("111", "Jane", ObservationSource.CONTACT_EVENT))
        assert mapping.source is MappingSource.EXACT_NAME

    def test_concurrent_observers_keep_indexes_consistent(self, engine):
        def worker(offset: int) -> None:
            for i in range(50):
                n = offset * 100 + i
                engine.observe(message(f"{1000 + n}", f"Person {n}"))
                engine.observe(message(f"lid{n}", f"Person {n}"))

        threads = [threading.Thread(target=worker, args=(k,)) for k in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(engine.store) == 200
        assert_indexes_agree(engine)


class TestReplay:
    def test_raw_messages_replayed(self, engine):
        report = engine.replay([
            {"key": {"remoteJid": "g@g.us", "participant": "80444922015783@lid"}, "pushName": "John Doe"},
            {"key": {"remoteJid": "g@g.us", "participant": "6281130569787@s.whatsapp.net"}, "pushName": "John Doe"},
            {"message": {"conversation": "no key"}},
            message("lid1", "Jane"),
        ])
        assert report.events_processed == 3
        assert report.events_skipped == 1
        assert report.mappings_created == 1
        assert engine.resolve("80444922015783@lid") == "6281130569787"


# =====================================================================
# Override
# =====================================================================


class TestForceMap:
    def test_overrides_automatic_mapping(self, linked):
        mapping = linked.force_map("80444922015783@lid", "6285700000001")
        assert mapping.source is MappingSource.FORCED
        assert linked.resolve("80444922015783@lid") == "6285700000001"
        assert linked.reverse_lookup("6281130569787") is None
        assert_indexes_agree(linked)

    def test_records_name_for_both_sides(self, engine):
        engine.force_map("lid1@lid", "111", name="Dewi")
        assert engine.name_for_identifier("lid1@lid") == "dewi"
        assert engine.name_for_identifier("111") == "dewi"

    def test_discards_pending_contact(self, engine):
        engine.observe(message("111", "Dewi"))
        assert len(engine.pending) == 1
        engine.force_map("lid1@lid", "111")
        assert len(engine.pending) == 0

    def test_not_undone_by_later_evidence(self, engine):
        engine.force_map("lid1@lid", "111")
        engine.observe(message("222", "Jane"))
        engine.observe(message("lid1@lid", "Jane"))
        assert engine.resolve("lid1@lid") == "111"

    def test_displaced_canonical_waits_again(self, linked, fake_clock):
        linked.force_map("80444922015783@lid", "6285700000001")
        assert [e.canonical.raw for e in linked.pending.entries()] == ["6281130569787"]
        assert linked.pending.entries()[0].name == "john doe"

        fake_clock.advance(days=2)
        assert linked.sweep() == 1
        assert linked.names_for("6281130569787") == set()

    def test_remap_to_same_canonical_queues_nothing(self, linked):
        linked.force_map("80444922015783@lid", "6281130569787")
        assert len(linked.pending) == 0

    async def test_drops_cached_participant_resolution(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        assert await engine.resolve_participant("80444922015783@lid", "family@g.us") == "6281130569787"

        engine.force_map("80444922015783@lid", "6285700000001")

        assert await engine.resolve_participant("80444922015783@lid", "family@g.us") == "6285700000001"

    async def test_drops_cached_resolution_of_displaced_holder(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        await engine.resolve_participant("80444922015783@lid", "family@g.us")

        engine.force_map("99000000000001@lid", "6281130569787")

        assert engine.cache.participant("family@g.us", "80444922015783@lid") is None
        assert await engine.resolve_participant("80444922015783@lid", "family@g.us") != "6281130569787"

    @pytest.mark.parametrize("pseudonymous, canonical", [
        ("111", "222"),
        ("lid1@lid", "lid2@lid"),
        ("", "111"),
    ])
    def test_wrong_kinds_rejected(self, engine, pseudonymous, canonical):
        with pytest.raises(InvalidIdentifierError):
            engine.force_map(pseudonymous, canonical)
        assert len(engine.store) == 0


# =====================================================================
# Transport-backed operations
# =====================================================================


class TestBackfill:
    async def test_failed_contexts_are_skipped(self, fake_clock, family_group):
        transport = FakeTransport(
            groups={"family@g.us": family_group},
            failing={"broken@g.us"},
            slow={"slow@g.us"},
        )
        engine = CorrelationEngine(clock=fake_clock, transport=transport)

        report = await engine.backfill(
            ["broken@g.us", "slow@g.us", "family@g.us", "missing@g.us"], timeout=0.05,
        )

        assert report.contexts_requested == 4
        assert report.contexts_processed == 1
        assert report.contexts_failed == ["broken@g.us", "slow@g.us", "missing@g.us"]
        assert report.members_processed == 3
        assert report.mappings_created == 1
        assert engine.resolve("80444922015783@lid") == "6281130569787"

    async def test_reports_pending_contacts(self, fake_clock):
        snapshot = group("g@g.us", ("111", "Ann"), ("222", "Budi"))
        engine = CorrelationEngine(clock=fake_clock, transport=FakeTransport(groups={"g@g.us": snapshot}))
        report = await engine.backfill(["g@g.us"])
        assert report.pending_contacts == 2

    async def test_without_transport(self, engine):
        report = await engine.backfill(["g@g.us"])
        assert report.contexts_failed == ["g@g.us"]

    async def test_refresh_context_refetches(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        await engine.backfill(["family@g.us"])
        await engine.refresh_context("family@g.us")
        assert transport.calls == ["family@g.us", "family@g.us"]


class TestResolveParticipant:
    async def test_fetches_context_on_miss(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        canonical = await engine.resolve_participant("80444922015783@lid", "family@g.us")
        assert canonical == "6281130569787"
        assert transport.calls == ["family@g.us"]

    async def test_second_call_served_from_cache(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        await engine.resolve_participant("80444922015783@lid", "family@g.us")
        engine.cache.groups.clear()

        assert await engine.resolve_participant("80444922015783@lid", "family@g.us") == "6281130569787"
        assert transport.calls == ["family@g.us"]
        assert engine.cache.participant("family@g.us", "80444922015783@lid") == "6281130569787"

    async def test_canonical_participant(self, engine):
        assert await engine.resolve_participant("6281130569787@s.whatsapp.net", "g@g.us") == "6281130569787"

    async def test_bare_number_of_mapped_lid(self, linked):
        assert await linked.resolve_participant("80444922015783", "g@g.us") == "6281130569787"

    async def test_unresolvable(self, fake_clock, transport):
        engine = CorrelationEngine(clock=fake_clock, transport=transport)
        assert await engine.resolve_participant("999@lid", "family@g.us") is None
        assert engine.cache.participant("family@g.us", "999@lid") is None


# =====================================================================
# Contact metadata, stats, maintenance
# =====================================================================


class TestContactFor:
    def test_direct_hit(self, engine):
        directory = {"6281130569787": {"name": "John"}}
        assert engine.contact_for("6281130569787@s.whatsapp.net", directory.get) == {"name": "John"}

    def test_falls_back_to_canonical(self, linked):
        directory = {"6281130569787": {"name": "John"}}
        assert linked.contact_for("80444922015783@lid", directory.get) == {"name": "John"}

    def test_falls_back_to_metadata_cache(self, engine):
        engine.cache_contact("lid1@lid", {"name": "Cached"})
        assert engine.cached_contact("lid1@lid") == {"name": "Cached"}
        assert engine.contact_for("lid1@lid", {}.get) == {"name": "Cached"}

    def test_unknown(self, engine):
        assert engine.contact_for("lid1@lid", {}.get) is None


class TestStats:
    def test_counts(self, linked):
        linked.observe(message("111", "Jane"))
        linked.observe(message("222", "Jane"))
        linked.observe(message("lid1", "Jane"))
        stats = linked.stats()
        assert stats["mappings"] == 1
        assert stats["pending_contacts"] == 2
        assert stats["names"] == 2
        assert stats["identifiers"] == 5
        assert stats["unresolved"] == 1
        assert set(stats["caches"]) == {"group_snapshots", "participant_mappings", "contacts"}
        assert "mapping_list" not in stats

    def test_detailed(self, linked, fake_clock):
        linked.observe(message("111", "Jane"))
        fake_clock.advance(minutes=42)
        stats = linked.stats(detailed=True)

        assert stats["mapping_list"] == [{
            "pseudonymous": "80444922015783@lid",
            "canonical": "6281130569787",
            "source": "exact_name",
            "created_at": "2024-01-01T12:00:00+00:00",
            "name": "john doe",
        }]
        assert stats["pending_list"] == [{
            "canonical": "111",
            "name": "Jane",
            "source": "message",
            "waiting_minutes": 42,
        }]
        assert stats["unresolved_names"] == {}


class TestMaintenance:
    def test_sweep_marks_dirty(self, engine, fake_clock):
        engine.observe(message("111", "Jane"))
        engine._dirty = False
        fake_clock.advance(days=2)
        assert engine.sweep() == 1
        assert engine.dirty

    def test_sweep_keeps_mapped_evidence(self, linked, fake_clock):
        fake_clock.advance(days=2)
        assert linked.sweep() == 0
        assert linked.names_for("6281130569787") == {"john doe"}

    def test_clear(self, linked):
        linked.cache_contact("111", {"name": "x"})
        linked.clear()
        assert linked.resolve("80444922015783@lid") is None
        assert linked.stats()["names"] == 0
        assert linked.cached_contact("111") is None
