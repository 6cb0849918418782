"""Data models for contacts, their sub-records and merge history."""

import copy
import random
import string
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def generate_id() -> str:
    """Generate an opaque identifier of the form ``<epoch-ms>-<random9>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


class OrgRole(str, Enum):
    """Role a contact plays in an account's buying process."""

    CHAMPION = "Champion"
    NEUTRAL = "Neutral"
    BLOCKER = "Blocker"
    UNKNOWN = "Unknown"


class InfluenceLevel(str, Enum):
    """Influence level used for prioritisation in org charts."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"


class TimelineEventType(str, Enum):
    """Kinds of timeline entries recorded against a contact."""

    SCAN_CREATED = "scan_created"
    NOTE_ADDED = "note_added"
    NOTE_UPDATED = "note_updated"
    FOLLOWUP_GENERATED = "followup_generated"
    REMINDER_SET = "reminder_set"
    REMINDER_DONE = "reminder_done"
    TASK_ADDED = "task_added"
    TASK_DONE = "task_done"
    MEETING_SCHEDULED = "meeting_scheduled"
    EVENT_ATTENDED = "event_attended"
    CONTACT_MERGED = "contact_merged"
    CONTACT_UPDATED = "contact_updated"
    HUBSPOT_SYNCED = "hubspot_synced"


class ContactTask(BaseModel):
    """A follow-up task attached to a contact."""

    id: str = Field(default_factory=generate_id)
    title: str
    done: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    due_at: Optional[datetime] = None


class ContactReminder(BaseModel):
    """A reminder attached to a contact."""

    id: str = Field(default_factory=generate_id)
    label: str
    remind_at: datetime
    done: bool = False
    done_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)


class TimelineEvent(BaseModel):
    """A typed, timestamped entry in a contact's history."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=generate_id)
    type: TimelineEventType
    at: datetime = Field(default_factory=datetime.now)
    summary: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)


class MergeMeta(BaseModel):
    """Bookkeeping about the contacts folded into this one."""

    merged_from_ids: List[str] = Field(default_factory=list)
    merged_at: Optional[datetime] = None


class Contact(BaseModel):
    """A person captured by scan, manual entry or import."""

    model_config = ConfigDict(
        use_enum_values=True, validate_assignment=True, validate_default=True
    )

    id: str = Field(default_factory=generate_id)
    created_at: datetime = Field(default_factory=datetime.now)

    name: str = ""
    title: str = ""
    company: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""
    linkedin_url: str = ""
    address: str = ""
    event_name: Optional[str] = None
    notes: str = ""

    # Org intelligence
    company_id: Optional[str] = None
    department: str = ""
    org_role: OrgRole = OrgRole.UNKNOWN
    influence_level: InfluenceLevel = InfluenceLevel.UNKNOWN
    manager_contact_id: Optional[str] = None

    tasks: List[ContactTask] = Field(default_factory=list)
    reminders: List[ContactReminder] = Field(default_factory=list)
    timeline: List[TimelineEvent] = Field(default_factory=list)

    last_touched_at: Optional[datetime] = None
    merge_meta: Optional[MergeMeta] = None


# Scalar fields a merge resolves one value for. List-valued sub-records are
# unioned instead.
MERGEABLE_FIELDS = (
    "name",
    "title",
    "company",
    "email",
    "phone",
    "website",
    "linkedin_url",
    "address",
    "event_name",
    "notes",
    "company_id",
    "department",
    "org_role",
    "influence_level",
    "manager_contact_id",
)


class ContactSnapshot(BaseModel):
    """Full copy of a contact taken immediately before it was merged.

    ``data`` keeps Python values (datetimes, tuples in timeline metadata) so a
    restore gives back exactly what was captured; only the JSON store turns
    them into JSON. ``position`` is the contact's index in the collection at
    merge time.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    data: Dict[str, Any]
    position: Optional[int] = None

    @classmethod
    def of(cls, contact: Contact, position: Optional[int] = None) -> "ContactSnapshot":
        """Snapshot a contact by value."""
        return cls(id=contact.id, data=copy.deepcopy(contact.model_dump()), position=position)

    def restore(self) -> Contact:
        """Rebuild a live contact from a copy of the stored data."""
        return Contact.model_validate(copy.deepcopy(self.data))


class MergeHistoryEntry(BaseModel):
    """Append-only log record allowing a merge to be reversed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    merged_at: datetime = Field(default_factory=datetime.now)
    primary_contact_id: str
    merged_contact_snapshots: List[ContactSnapshot]

    def snapshot_for(self, contact_id: str) -> Optional[ContactSnapshot]:
        """Return the snapshot stored for a contact id, if any."""
        for snapshot in self.merged_contact_snapshots:
            if snapshot.id == contact_id:
                return snapshot
        return None
