"""Shared fixtures for the contact merge engine tests."""

from datetime import datetime, timedelta

import pytest

from carda.config import CardaConfig
from carda.deduplication import DeduplicationEngine
from carda.deduplication.core_engine import set_default_engine
from carda.models import (
    Contact,
    ContactReminder,
    ContactTask,
    TimelineEvent,
    TimelineEventType,
)
from carda.repositories import InMemoryContactStore, JsonContactStore

BASE_TIME = datetime(2024, 3, 1, 9, 0, 0)


def make_contact(contact_id, **fields):
    """Build a contact with a fixed id and creation time."""
    fields.setdefault("created_at", BASE_TIME)
    return Contact(id=contact_id, **fields)


def make_event(event_id, hours_ago, type=TimelineEventType.NOTE_ADDED, summary=""):
    return TimelineEvent(
        id=event_id,
        type=type,
        at=BASE_TIME - timedelta(hours=hours_ago),
        summary=summary,
    )


@pytest.fixture
def jane_doe():
    """Primary side of the canonical duplicate pair."""
    return make_contact(
        "c-jane",
        name="Jane Doe",
        email="jane@acme.com",
        company="Acme",
        tasks=[ContactTask(id="t-1", title="Send deck", created_at=BASE_TIME)],
        timeline=[make_event("e-1", hours_ago=5, type=TimelineEventType.SCAN_CREATED)],
        notes="Met at the booth",
    )


@pytest.fixture
def j_doe():
    """Secondary side of the canonical duplicate pair."""
    return make_contact(
        "c-jdoe",
        name="J. Doe",
        email="jane@acme.com",
        title="VP Sales",
        phone="+61 2 9999 1234",
        tasks=[ContactTask(id="t-2", title="Book follow-up", created_at=BASE_TIME)],
        reminders=[
            ContactReminder(
                id="r-1",
                label="Call back",
                remind_at=BASE_TIME + timedelta(days=2),
                created_at=BASE_TIME,
            )
        ],
        timeline=[
            make_event("e-2", hours_ago=1, summary="Emailed"),
            make_event("e-3", hours_ago=10, type=TimelineEventType.SCAN_CREATED),
        ],
        notes="Prefers email",
    )


@pytest.fixture
def bystander():
    """A contact unrelated to the Jane Doe pair."""
    return make_contact("c-bob", name="Bob Stone", email="bob@initech.io", company="Initech")


@pytest.fixture
def contacts(jane_doe, bystander, j_doe):
    return [jane_doe, bystander, j_doe]


@pytest.fixture
def memory_store(contacts):
    return InMemoryContactStore(contacts)


@pytest.fixture
def json_store(tmp_path, contacts):
    store = JsonContactStore(str(tmp_path / "data"))
    store.save_all_contacts(contacts)
    return store


@pytest.fixture
def config():
    return CardaConfig()


@pytest.fixture
def engine(memory_store, config):
    return DeduplicationEngine(memory_store, config)


@pytest.fixture
def reset_default_engine():
    """Restore the module-level engine after a test replaces it."""
    yield
    set_default_engine(None)
