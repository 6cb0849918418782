"""
Carda contact deduplication and merge engine.

Scores contact pairs for similarity, groups duplicates, resolves field
conflicts and merges contacts with single-level undo.
"""

from .config import CardaConfig, ConfigManager
from .deduplication import DeduplicationEngine
from .models import Contact, ContactReminder, ContactTask, MergeHistoryEntry, TimelineEvent
from .repositories import InMemoryContactStore, JsonContactStore

__all__ = [
    "CardaConfig",
    "ConfigManager",
    "DeduplicationEngine",
    "Contact",
    "ContactTask",
    "ContactReminder",
    "TimelineEvent",
    "MergeHistoryEntry",
    "InMemoryContactStore",
    "JsonContactStore",
]

__version__ = "1.0.0"
