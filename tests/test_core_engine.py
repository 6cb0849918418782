"""Tests for the deduplication engine facade."""

import carda.deduplication as dedupe
from carda.config import CardaConfig
from carda.deduplication import DeduplicationEngine, Side
from carda.deduplication.core_engine import get_default_engine, set_default_engine
from carda.repositories import InMemoryContactStore

from .conftest import make_contact


class TestDeduplicationEngine:
    """Test the end-to-end workflow through the facade."""

    def test_scan_merge_undo(self, engine, memory_store):
        groups = engine.find_duplicate_groups()
        assert [g.contact_ids for g in groups] == [["c-jane", "c-jdoe"]]

        before = {c.id: c.model_dump() for c in memory_store.load_all_contacts()}
        primary, secondary = groups[0].contact_ids

        merged = engine.merge_contacts(primary, secondary)

        assert merged.name == "Jane Doe"
        assert merged.email == "jane@acme.com"
        assert engine.find_duplicate_groups() == []
        assert len(engine.merge_history()) == 1

        assert engine.undo_last_merge() is True
        assert {c.id: c.model_dump() for c in memory_store.load_all_contacts()} == before
        assert engine.merge_history() == []
        assert engine.undo_last_merge() is False

    def test_rescan_without_changes_is_stable(self, engine):
        assert engine.find_duplicate_groups() == engine.find_duplicate_groups()

    def test_explicit_contacts_and_threshold(self, engine, jane_doe, j_doe):
        assert engine.find_duplicate_groups([jane_doe, j_doe], threshold=101) == []

    def test_score_pair(self, engine, jane_doe, j_doe):
        assert engine.score_pair(jane_doe, j_doe).score == engine.score_pair(j_doe, jane_doe).score

    def test_pick_best_value_and_auto_resolve(self, engine, jane_doe, j_doe):
        assert engine.pick_best_value("", "Acme") == "Acme"
        assert engine.pick_best_value("Sales", "VP Sales", field="title") == "VP Sales"

        resolutions = engine.auto_resolve(jane_doe, j_doe)
        assert resolutions["title"].side is Side.RIGHT

    def test_merge_with_choices(self, engine):
        merged = engine.merge_contacts("c-jane", "c-jdoe", {"name": "right"})

        assert merged.name == "J. Doe"

    def test_suggest_merges(self, engine):
        assert [g.contact_ids for g in engine.suggest_merges()] == [["c-jane", "c-jdoe"]]

    def test_config_threshold_is_used(self, memory_store):
        config = CardaConfig()
        config.dedupe.threshold = 101
        engine = DeduplicationEngine(memory_store, config)

        assert engine.find_duplicate_groups() == []

    def test_statistics(self, engine):
        engine.find_duplicate_groups()
        engine.merge_contacts("c-jane", "c-jdoe")

        stats = engine.get_statistics()
        assert stats["grouping"]["scans"] == 1
        assert stats["merging"]["successful_merges"] == 1
        assert stats["history"]["entries_recorded"] == 1


class TestModuleFunctions:
    """Test the module-level aliases."""

    def test_default_engine_is_in_memory(self, reset_default_engine):
        set_default_engine(None)

        engine = get_default_engine()

        assert isinstance(engine.store, InMemoryContactStore)
        assert get_default_engine() is engine

    def test_aliases_use_default_engine(self, reset_default_engine, memory_store, jane_doe, j_doe):
        set_default_engine(DeduplicationEngine(memory_store))

        assert len(dedupe.find_duplicate_groups()) == 1
        assert dedupe.score_pair(jane_doe, j_doe).score >= 90
        assert dedupe.pick_best_value("J. Doe", "Jane Doe") == "Jane Doe"
        assert set(dedupe.auto_resolve(jane_doe, j_doe)) >= {"name", "email"}
        assert len(dedupe.suggest_merges()) == 1

        merged = dedupe.merge_contacts("c-jane", "c-jdoe")
        assert merged.id == "c-jane"
        assert len(dedupe.merge_history()) == 1

        assert dedupe.undo_last_merge() is True
        assert dedupe.undo_last_merge() is False

    def test_pure_functions_without_store(self, reset_default_engine):
        set_default_engine(None)
        a = make_contact("a", email="x@example.com")
        b = make_contact("b", email="X@example.com")

        groups = dedupe.find_duplicate_groups([a, b])

        assert [g.contact_ids for g in groups] == [["a", "b"]]
