"""Tests for merge history and undo."""

from datetime import datetime
from unittest.mock import patch

import pytest

from carda.deduplication.merge_execution import MergeExecutor
from carda.deduplication.merge_history import MergeHistory
from carda.errors import PersistenceError
from carda.models import TimelineEvent, TimelineEventType
from carda.repositories import InMemoryContactStore, RepositoryError

from .conftest import make_contact


@pytest.fixture
def history(memory_store):
    return MergeHistory(memory_store)


@pytest.fixture
def executor(memory_store, history):
    return MergeExecutor(memory_store, history)


def _by_id(store):
    return {c.id: c.model_dump() for c in store.load_all_contacts()}


class TestUndo:
    """Test undoing the most recent merge."""

    def test_round_trip(self, executor, history, memory_store):
        before = _by_id(memory_store)
        order_before = [c.id for c in memory_store.load_all_contacts()]

        executor.execute("c-jane", "c-jdoe")
        result = history.undo_last()

        assert result.undone
        assert result.restored_ids == ["c-jane", "c-jdoe"]
        assert _by_id(memory_store) == before
        assert [c.id for c in memory_store.load_all_contacts()] == order_before
        assert memory_store.load_merge_history() == []

    def test_primary_restored_in_place(self, executor, history, memory_store):
        executor.execute("c-jane", "c-jdoe")
        history.undo_last()

        ids = [c.id for c in memory_store.load_all_contacts()]
        assert ids[0] == "c-jane"
        assert ids[-1] == "c-jdoe"

    def test_consumed_contact_returns_to_its_slot(self):
        store = InMemoryContactStore(
            [
                make_contact("c-first", name="Jane Doe", email="jane@acme.com"),
                make_contact("c-middle", name="J. Doe", email="jane@acme.com"),
                make_contact("c-last", name="Bob Stone"),
            ]
        )
        history = MergeHistory(store)
        MergeExecutor(store, history).execute("c-first", "c-middle")

        history.undo_last()

        assert [c.id for c in store.load_all_contacts()] == ["c-first", "c-middle", "c-last"]

    def test_primary_after_secondary_keeps_order(self, executor, history, memory_store):
        executor.execute("c-jdoe", "c-jane")

        history.undo_last()

        assert [c.id for c in memory_store.load_all_contacts()] == ["c-jane", "c-bob", "c-jdoe"]

    def test_timeline_meta_round_trips_unchanged(self, jane_doe, j_doe):
        when = datetime(2024, 1, 1, 9, 0)
        j_doe.timeline.append(
            TimelineEvent(
                id="e-meta",
                type=TimelineEventType.MEETING_SCHEDULED,
                at=when,
                meta={"when": when, "slots": (1, 2)},
            )
        )
        store = InMemoryContactStore([jane_doe, j_doe])
        history = MergeHistory(store)
        before = _by_id(store)

        MergeExecutor(store, history).execute("c-jane", "c-jdoe")
        history.undo_last()

        assert _by_id(store) == before
        restored = next(c for c in store.load_all_contacts() if c.id == "c-jdoe")
        meta = next(e for e in restored.timeline if e.id == "e-meta").meta
        assert meta == {"when": when, "slots": (1, 2)}

    def test_nothing_to_undo(self, history, memory_store):
        before = _by_id(memory_store)

        result = history.undo_last()

        assert result.undone is False
        assert result.entry is None
        assert _by_id(memory_store) == before
        assert history.get_statistics()["empty_undos"] == 1

    def test_undo_is_single_level(self, executor, history, memory_store):
        memory_store.save_all_contacts(
            memory_store.load_all_contacts() + [make_contact("c-jd2", name="Jane D")]
        )
        executor.execute("c-jane", "c-jdoe")
        after_first = _by_id(memory_store)
        executor.execute("c-jane", "c-jd2")

        assert len(history.entries()) == 2
        history.undo_last()

        assert _by_id(memory_store) == after_first
        assert len(history.entries()) == 1
        assert history.last().primary_contact_id == "c-jane"

    def test_post_merge_edits_are_lost(self, executor, history, memory_store):
        executor.execute("c-jane", "c-jdoe")
        contacts = memory_store.load_all_contacts()
        contacts[0].department = "Revenue"
        memory_store.save_all_contacts(contacts)

        history.undo_last()

        jane = next(c for c in memory_store.load_all_contacts() if c.id == "c-jane")
        assert jane.department == ""

    def test_restores_missing_primary(self, executor, history, memory_store):
        executor.execute("c-jane", "c-jdoe")
        memory_store.save_all_contacts(
            [c for c in memory_store.load_all_contacts() if c.id != "c-jane"]
        )

        history.undo_last()

        ids = [c.id for c in memory_store.load_all_contacts()]
        assert sorted(ids) == ["c-bob", "c-jane", "c-jdoe"]

    def test_save_failure_reinstates_entry(self, executor, history, memory_store):
        executor.execute("c-jane", "c-jdoe")
        merged_state = _by_id(memory_store)

        with patch.object(
            memory_store, "save_all_contacts", side_effect=RepositoryError("disk full")
        ):
            with pytest.raises(PersistenceError) as exc_info:
                history.undo_last()

        assert exc_info.value.phase == "save_contacts"
        assert _by_id(memory_store) == merged_state
        assert len(history.entries()) == 1


class TestSnapshots:
    """Test that stored snapshots are deep copies."""

    def test_snapshot_unaffected_by_later_mutation(self, executor, history, jane_doe):
        executor.execute("c-jane", "c-jdoe")

        jane_doe.name = "Changed"
        jane_doe.tasks[0].title = "Changed"
        entry = history.last()
        entry.snapshot_for("c-jane").data["tasks"][0]["title"] = "Tampered"

        stored = history.last().snapshot_for("c-jane")
        assert stored.data["name"] == "Jane Doe"
        assert stored.data["tasks"][0]["title"] == "Send deck"

    def test_restore_rebuilds_contact(self, jane_doe):
        store = InMemoryContactStore([jane_doe])
        history = MergeHistory(store)
        entry = history.record(jane_doe, make_contact("other", name="Other"))

        assert entry.snapshot_for("c-jane").restore().model_dump() == jane_doe.model_dump()
        assert entry.snapshot_for("missing") is None
