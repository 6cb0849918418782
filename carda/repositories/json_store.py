"""JSON-file contact store."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pydantic

from ..logging_config import log_event
from ..models import Contact, MergeHistoryEntry, TimelineEvent
from .base import ContactStore, RepositoryError

logger = logging.getLogger(__name__)


class JsonContactStore(ContactStore):
    """Stores contacts and merge history as two JSON documents in a directory.

    Every write goes to a temporary file in the same directory which then
    replaces the target, so a crash never leaves a half-written file behind.
    """

    def __init__(
        self,
        data_dir: str,
        contacts_file: str = "contacts.json",
        history_file: str = "merge_history.json",
    ):
        self.data_dir = Path(data_dir)
        self.contacts_path = self.data_dir / contacts_file
        self.history_path = self.data_dir / history_file

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RepositoryError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def load_all_contacts(self) -> List[Contact]:
        records = self._read(self.contacts_path)
        try:
            return [Contact.model_validate(record) for record in records]
        except pydantic.ValidationError as e:
            raise RepositoryError(f"Invalid contact data in {self.contacts_path}: {e}") from e

    def save_all_contacts(self, contacts: Sequence[Contact]) -> None:
        self._write(self.contacts_path, [c.model_dump(mode="json") for c in contacts])
        log_event(__name__, "contacts_saved", count=len(contacts), path=str(self.contacts_path))

    def append_timeline_event(
        self,
        contact_id: str,
        kind: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TimelineEvent:
        contacts = self.load_all_contacts()
        for contact in contacts:
            if contact.id == contact_id:
                try:
                    event = TimelineEvent(type=kind, summary=description, meta=dict(metadata or {}))
                except pydantic.ValidationError as e:
                    raise RepositoryError(f"Invalid timeline event type: {kind!r}") from e
                contact.timeline = [event] + list(contact.timeline)
                self.save_all_contacts(contacts)
                return event
        raise RepositoryError(f"Contact not found: {contact_id}")

    def load_merge_history(self) -> List[MergeHistoryEntry]:
        records = self._read(self.history_path)
        try:
            return [MergeHistoryEntry.model_validate(record) for record in records]
        except pydantic.ValidationError as e:
            raise RepositoryError(f"Invalid merge history in {self.history_path}: {e}") from e

    def append_merge_history_entry(self, entry: MergeHistoryEntry) -> None:
        history = self.load_merge_history()
        history.append(entry)
        self._write_history(history)

    def pop_merge_history_entry(self) -> Optional[MergeHistoryEntry]:
        history = self.load_merge_history()
        if not history:
            return None
        entry = history.pop()
        self._write_history(history)
        return entry

    def _write_history(self, history: List[MergeHistoryEntry]) -> None:
        self._write(self.history_path, [e.model_dump(mode="json") for e in history])

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise RepositoryError(f"Cannot read {path}: {e}") from e

        if not isinstance(data, list):
            raise RepositoryError(f"Expected a JSON array in {path}")
        return data

    def _write(self, path: Path, data: List[Dict[str, Any]]) -> None:
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise RepositoryError(f"Cannot write {path}: {e}") from e
