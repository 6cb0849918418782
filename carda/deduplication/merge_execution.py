"""
Merge Execution

Merges two contacts into one. The primary (left) contact keeps its id and
position in the collection; the secondary is consumed. Sub-records are
unioned so no task, reminder or timeline event is lost, and a history entry
with snapshots of both originals is written before the collection changes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, TypeVar, Union

import pydantic

from ..errors import (
    ContactNotFoundError,
    InvalidMergeError,
    MalformedFieldChoiceError,
    PersistenceError,
)
from ..logging_config import get_audit_logger, log_context
from ..models import (
    MERGEABLE_FIELDS,
    Contact,
    MergeHistoryEntry,
    MergeMeta,
    TimelineEvent,
    TimelineEventType,
)
from ..repositories.base import ContactStore, RepositoryError
from .field_resolution import ExplicitValue, FieldResolution, FieldResolver, Side, is_empty
from .merge_history import MergeHistory

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

NOTES_SEPARATOR = "\n\n---\n\n"

FieldChoice = Union[Side, str, ExplicitValue]

T = TypeVar("T")


@dataclass
class MergeResult:
    """Result of a merge operation."""

    merged_contact: Contact
    history_entry: MergeHistoryEntry
    field_resolutions: Dict[str, FieldResolution] = field(default_factory=dict)


class MergeExecutor:
    """
    Executes contact merges against a contact store.

    A merge either fully applies or leaves the store as it was: the history
    entry is appended first, and removed again if the merged collection
    cannot be saved.
    """

    def __init__(
        self,
        store: ContactStore,
        history: Optional[MergeHistory] = None,
        resolver: Optional[FieldResolver] = None,
    ):
        self.store = store
        self.history = history or MergeHistory(store)
        self.resolver = resolver or FieldResolver()

        self.stats = {
            "successful_merges": 0,
            "failed_merges": 0,
            "compensations": 0,
        }

    def execute(
        self,
        primary_id: str,
        secondary_id: str,
        field_choices: Optional[Mapping[str, FieldChoice]] = None,
    ) -> MergeResult:
        """Merge ``secondary_id`` into ``primary_id``.

        Args:
            primary_id: Contact that survives the merge
            secondary_id: Contact that is consumed
            field_choices: Per-field override, a side or an ExplicitValue.
                Fields left out are auto-resolved.

        Raises:
            InvalidMergeError: If both ids are the same
            ContactNotFoundError: If either contact does not exist
            MalformedFieldChoiceError: If a choice names an unknown field or
                carries an unusable value
            PersistenceError: If the store fails; nothing is changed
        """
        with log_context(operation="merge", primary_id=primary_id, secondary_id=secondary_id):
            try:
                result = self._execute(primary_id, secondary_id, field_choices or {})
            except Exception:
                self.stats["failed_merges"] += 1
                raise

        self.stats["successful_merges"] += 1
        return result

    def _execute(
        self,
        primary_id: str,
        secondary_id: str,
        field_choices: Mapping[str, FieldChoice],
    ) -> MergeResult:
        if primary_id == secondary_id:
            raise InvalidMergeError(f"Cannot merge contact {primary_id} with itself")

        logger.info(f"🔄 Merging contact {secondary_id} into {primary_id}")

        try:
            contacts = self.store.load_all_contacts()
        except RepositoryError as e:
            raise PersistenceError(
                f"Could not load contacts: {e}", phase="load_contacts", cause=e
            ) from e

        primary = self._find(contacts, primary_id)
        secondary = self._find(contacts, secondary_id)

        choices = self._validate_choices(field_choices)
        resolutions = self._resolve_fields(primary, secondary, choices)
        merged = self._build_merged(primary, secondary, resolutions)

        positions = {
            contact.id: index
            for index, contact in enumerate(contacts)
            if contact.id in (primary_id, secondary_id)
        }
        entry = self.history.record(
            primary, secondary, primary_id=primary_id, positions=positions
        )

        updated = [
            merged if contact.id == primary_id else contact
            for contact in contacts
            if contact.id != secondary_id
        ]

        try:
            self.store.save_all_contacts(updated)
        except RepositoryError as e:
            logger.error(f"❌ Saving merged contacts failed, retracting history entry {entry.id}")
            self._compensate(entry)
            raise PersistenceError(
                f"Could not save merged contacts: {e}", phase="save_contacts", cause=e
            ) from e

        audit_logger.info(
            "contacts_merged",
            entry_id=entry.id,
            primary_contact_id=primary_id,
            merged_from_id=secondary_id,
            fields_from_secondary=[
                name for name, r in resolutions.items() if r.side is Side.RIGHT
            ],
        )
        logger.info(f"✅ Merged {secondary_id} into {primary_id} (history entry {entry.id})")

        return MergeResult(merged_contact=merged, history_entry=entry, field_resolutions=resolutions)

    @staticmethod
    def _find(contacts: Sequence[Contact], contact_id: str) -> Contact:
        for contact in contacts:
            if contact.id == contact_id:
                return contact
        raise ContactNotFoundError(contact_id)

    def _validate_choices(
        self, field_choices: Mapping[str, FieldChoice]
    ) -> Dict[str, Union[Side, ExplicitValue]]:
        choices: Dict[str, Union[Side, ExplicitValue]] = {}

        for name, choice in field_choices.items():
            if name not in MERGEABLE_FIELDS:
                raise MalformedFieldChoiceError(name, choice)

            if isinstance(choice, (Side, ExplicitValue)):
                choices[name] = choice
            elif isinstance(choice, str) and choice.lower() in (Side.LEFT.value, Side.RIGHT.value):
                choices[name] = Side(choice.lower())
            else:
                raise MalformedFieldChoiceError(
                    name,
                    choice,
                    reason=f"Choice for {name!r} must be 'left', 'right' or an explicit value, "
                    f"got {choice!r}",
                )

        return choices

    def _resolve_fields(
        self,
        primary: Contact,
        secondary: Contact,
        choices: Mapping[str, Union[Side, ExplicitValue]],
    ) -> Dict[str, FieldResolution]:
        resolutions: Dict[str, FieldResolution] = {}

        for name in MERGEABLE_FIELDS:
            left, right = getattr(primary, name), getattr(secondary, name)
            choice = choices.get(name)

            if isinstance(choice, ExplicitValue):
                resolutions[name] = FieldResolution(name, choice.value)
            elif isinstance(choice, Side):
                value = left if choice is Side.LEFT else right
                resolutions[name] = FieldResolution(name, value, choice)
            elif name == "notes":
                resolutions[name] = self._combine_notes(left, right)
            else:
                resolutions[name] = self.resolver.resolve(name, left, right)

        return resolutions

    def _combine_notes(self, left: str, right: str) -> FieldResolution:
        if is_empty(right) or right.strip() == (left or "").strip():
            return FieldResolution("notes", left, Side.LEFT)
        if is_empty(left):
            return FieldResolution("notes", right, Side.RIGHT)
        return FieldResolution("notes", f"{left}{NOTES_SEPARATOR}{right}")

    def _build_merged(
        self,
        primary: Contact,
        secondary: Contact,
        resolutions: Mapping[str, FieldResolution],
    ) -> Contact:
        merged = primary.model_copy(deep=True)

        for name, resolution in resolutions.items():
            try:
                setattr(merged, name, resolution.value)
            except pydantic.ValidationError as e:
                raise MalformedFieldChoiceError(
                    name,
                    resolution.value,
                    reason=f"Invalid value for {name!r}: {resolution.value!r}",
                ) from e

        now = datetime.now()

        merged.tasks = _union_by_id(primary.tasks, secondary.tasks)
        merged.reminders = _union_by_id(primary.reminders, secondary.reminders)

        merge_event = TimelineEvent(
            type=TimelineEventType.CONTACT_MERGED,
            at=now,
            summary=f"Merged with {secondary.name or secondary.id}",
            meta={"merged_from_id": secondary.id, "merged_from_name": secondary.name},
        )
        timeline = _union_by_id(primary.timeline, secondary.timeline) + [merge_event]
        merged.timeline = sorted(timeline, key=_event_sort_key, reverse=True)

        merged_from = list(primary.merge_meta.merged_from_ids) if primary.merge_meta else []
        if secondary.merge_meta:
            merged_from.extend(secondary.merge_meta.merged_from_ids)
        merged_from.append(secondary.id)
        merged.merge_meta = MergeMeta(
            merged_from_ids=list(dict.fromkeys(merged_from)),
            merged_at=now,
        )
        merged.last_touched_at = now

        return merged

    def _compensate(self, entry: MergeHistoryEntry) -> None:
        try:
            self.history.retract(entry)
        except RepositoryError as e:
            raise PersistenceError(
                f"Merge failed and history entry {entry.id} could not be retracted",
                phase="retract_history",
                cause=e,
            ) from e
        self.stats["compensations"] += 1

    def get_statistics(self):
        return dict(self.stats)


def _union_by_id(first: Sequence[T], second: Sequence[T]) -> List[T]:
    """Concatenate two sub-record lists, keeping the first of each id."""
    seen = set()
    union = []
    for item in list(first) + list(second):
        if item.id in seen:
            continue
        seen.add(item.id)
        union.append(item.model_copy(deep=True))
    return union


def _event_sort_key(event: TimelineEvent) -> float:
    at = event.at
    if at.tzinfo is None:
        at = at.astimezone()
    return at.astimezone(timezone.utc).timestamp()
