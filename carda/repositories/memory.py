"""In-memory contact store."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pydantic

from ..models import Contact, MergeHistoryEntry, TimelineEvent
from .base import ContactStore, RepositoryError

logger = logging.getLogger(__name__)


class InMemoryContactStore(ContactStore):
    """Keeps contacts and history in process memory.

    Values are deep-copied on the way in and out.
    """

    def __init__(
        self,
        contacts: Optional[Sequence[Contact]] = None,
        history: Optional[Sequence[MergeHistoryEntry]] = None,
    ):
        self._contacts: List[Contact] = [c.model_copy(deep=True) for c in contacts or []]
        self._history: List[MergeHistoryEntry] = [
            e.model_copy(deep=True) for e in history or []
        ]

    def load_all_contacts(self) -> List[Contact]:
        return [c.model_copy(deep=True) for c in self._contacts]

    def save_all_contacts(self, contacts: Sequence[Contact]) -> None:
        self._contacts = [c.model_copy(deep=True) for c in contacts]
        logger.debug(f"💾 Saved {len(self._contacts)} contacts in memory")

    def append_timeline_event(
        self,
        contact_id: str,
        kind: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TimelineEvent:
        for contact in self._contacts:
            if contact.id == contact_id:
                try:
                    event = TimelineEvent(type=kind, summary=description, meta=dict(metadata or {}))
                except pydantic.ValidationError as e:
                    raise RepositoryError(f"Invalid timeline event type: {kind!r}") from e
                contact.timeline = [event] + list(contact.timeline)
                return event.model_copy(deep=True)
        raise RepositoryError(f"Contact not found: {contact_id}")

    def load_merge_history(self) -> List[MergeHistoryEntry]:
        return [e.model_copy(deep=True) for e in self._history]

    def append_merge_history_entry(self, entry: MergeHistoryEntry) -> None:
        self._history.append(entry.model_copy(deep=True))

    def pop_merge_history_entry(self) -> Optional[MergeHistoryEntry]:
        if not self._history:
            return None
        return self._history.pop()
