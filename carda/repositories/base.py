"""Base persistence interface for contacts and merge history."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..models import Contact, MergeHistoryEntry, TimelineEvent


class RepositoryError(Exception):
    """Repository-specific error."""
    pass


class ContactStore(ABC):
    """Abstract store holding the contact collection and the merge log.

    Implementations hand out copies: callers may freely mutate what they
    load without affecting stored state until they save it back.
    """

    @abstractmethod
    def load_all_contacts(self) -> List[Contact]:
        """Load the whole contact collection, in stored order.

        Raises:
            RepositoryError: If the collection cannot be read
        """
        pass

    @abstractmethod
    def save_all_contacts(self, contacts: Sequence[Contact]) -> None:
        """Replace the whole contact collection.

        Raises:
            RepositoryError: If the collection cannot be written
        """
        pass

    @abstractmethod
    def append_timeline_event(
        self,
        contact_id: str,
        kind: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TimelineEvent:
        """Add a timeline event to a stored contact.

        Raises:
            RepositoryError: If the contact does not exist or the write fails
        """
        pass

    @abstractmethod
    def load_merge_history(self) -> List[MergeHistoryEntry]:
        """Load merge history entries, oldest first."""
        pass

    @abstractmethod
    def append_merge_history_entry(self, entry: MergeHistoryEntry) -> None:
        """Append an entry to the end of the merge history."""
        pass

    @abstractmethod
    def pop_merge_history_entry(self) -> Optional[MergeHistoryEntry]:
        """Remove and return the newest history entry, or None if empty."""
        pass
