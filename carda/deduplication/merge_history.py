"""
Merge History and Undo

Keeps the append-only log of merges and reverses the most recent one by
restoring the contact snapshots it recorded.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import PersistenceError
from ..logging_config import get_audit_logger
from ..models import Contact, ContactSnapshot, MergeHistoryEntry
from ..repositories.base import ContactStore, RepositoryError

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


@dataclass
class UndoResult:
    """Outcome of an undo request."""

    undone: bool
    entry: Optional[MergeHistoryEntry] = None
    restored_ids: List[str] = field(default_factory=list)


class MergeHistory:
    """
    Merge log backed by a contact store.

    Only the newest entry can be undone. Undo overwrites the surviving
    contact with its pre-merge snapshot, so edits made to it after the merge
    are lost.
    """

    def __init__(self, store: ContactStore):
        self.store = store

        self.stats = {
            "entries_recorded": 0,
            "undos": 0,
            "empty_undos": 0,
        }

    def record(
        self,
        primary_before: Contact,
        secondary_before: Contact,
        primary_id: Optional[str] = None,
        positions: Optional[Dict[str, int]] = None,
    ) -> MergeHistoryEntry:
        """Snapshot both contacts and append a history entry.

        Args:
            positions: Collection index of each contact before the merge,
                used by undo to put a consumed contact back in its slot

        Raises:
            PersistenceError: If the store rejects the entry
        """
        positions = positions or {}
        entry = MergeHistoryEntry(
            primary_contact_id=primary_id or primary_before.id,
            merged_contact_snapshots=[
                ContactSnapshot.of(contact, positions.get(contact.id))
                for contact in (primary_before, secondary_before)
            ],
        )

        try:
            self.store.append_merge_history_entry(entry)
        except RepositoryError as e:
            raise PersistenceError(
                f"Could not record merge history: {e}", phase="append_history", cause=e
            ) from e

        self.stats["entries_recorded"] += 1
        logger.debug(f"📜 Recorded merge history entry {entry.id}")
        return entry

    def retract(self, entry: MergeHistoryEntry) -> None:
        """Remove ``entry`` again if it is still the newest one.

        Used to compensate when the merge that produced it could not be saved.
        """
        last = self.last()
        if last is None or last.id != entry.id:
            logger.warning(f"⚠️ History entry {entry.id} is no longer the newest, not retracting")
            return
        self.store.pop_merge_history_entry()
        self.stats["entries_recorded"] -= 1
        logger.info(f"↩️ Retracted merge history entry {entry.id}")

    def entries(self) -> List[MergeHistoryEntry]:
        """All history entries, oldest first."""
        return self.store.load_merge_history()

    def last(self) -> Optional[MergeHistoryEntry]:
        history = self.store.load_merge_history()
        return history[-1] if history else None

    def undo_last(self) -> UndoResult:
        """Reverse the most recent merge.

        Returns:
            ``UndoResult(undone=False)`` when there is nothing to undo

        Raises:
            PersistenceError: If the restored collection cannot be saved; the
                history entry is put back first
        """
        try:
            entry = self.store.pop_merge_history_entry()
        except RepositoryError as e:
            raise PersistenceError(
                f"Could not read merge history: {e}", phase="pop_history", cause=e
            ) from e

        if entry is None:
            self.stats["empty_undos"] += 1
            logger.info("ℹ️ Nothing to undo")
            return UndoResult(undone=False)

        logger.info(f"⏪ Undoing merge {entry.id} into {entry.primary_contact_id}")

        try:
            contacts = self.store.load_all_contacts()
            restored = self._restore(contacts, entry)
            self.store.save_all_contacts(contacts)
        except RepositoryError as e:
            self._reinstate(entry)
            raise PersistenceError(
                f"Could not restore merged contacts: {e}", phase="save_contacts", cause=e
            ) from e

        self.stats["undos"] += 1
        audit_logger.info(
            "merge_undone",
            entry_id=entry.id,
            primary_contact_id=entry.primary_contact_id,
            restored_ids=restored,
        )
        logger.info(f"✅ Restored {len(restored)} contacts from merge {entry.id}")

        return UndoResult(undone=True, entry=entry, restored_ids=restored)

    def _restore(self, contacts: List[Contact], entry: MergeHistoryEntry) -> List[str]:
        """Put every snapshot back into ``contacts``.

        A contact still in the collection is overwritten in place; a consumed
        one is re-inserted at its recorded position, or appended when the
        entry has none.
        """
        restored = []

        # Primary first so positions of consumed contacts line up again
        snapshots = sorted(
            entry.merged_contact_snapshots,
            key=lambda s: s.id != entry.primary_contact_id,
        )
        for snapshot in snapshots:
            contact = snapshot.restore()
            index = next((i for i, c in enumerate(contacts) if c.id == snapshot.id), None)
            if index is not None:
                contacts[index] = contact
            elif snapshot.position is None:
                contacts.append(contact)
            else:
                contacts.insert(min(snapshot.position, len(contacts)), contact)
            restored.append(snapshot.id)

        return restored

    def _reinstate(self, entry: MergeHistoryEntry) -> None:
        try:
            self.store.append_merge_history_entry(entry)
        except RepositoryError as e:
            logger.error(f"❌ Could not reinstate history entry {entry.id}: {e}")
            raise PersistenceError(
                f"Undo failed and history entry {entry.id} could not be reinstated",
                phase="reinstate_history",
                cause=e,
            ) from e

    def get_statistics(self):
        return dict(self.stats)
