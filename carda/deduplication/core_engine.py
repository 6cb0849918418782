"""
Core Deduplication Engine

Facade tying together scoring, grouping, field resolution, merging and undo
over a single contact store.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import CardaConfig
from ..models import Contact, MergeHistoryEntry
from ..repositories.base import ContactStore
from ..repositories.memory import InMemoryContactStore
from .field_resolution import FieldResolution, FieldResolver
from .graph_analyzer import DuplicateGroup, DuplicateGrouper
from .merge_execution import FieldChoice, MergeExecutor, MergeResult
from .merge_history import MergeHistory
from .similarity_scoring import MatchResult, SimilarityScorer

logger = logging.getLogger(__name__)


class DeduplicationEngine:
    """
    Entry point for callers presenting duplicates and merging them.

    Usage:
        engine = DeduplicationEngine(JsonContactStore("data"))
        for group in engine.find_duplicate_groups():
            ...
        engine.merge_contacts(group.contact_ids[0], group.contact_ids[1])
        engine.undo_last_merge()
    """

    def __init__(
        self,
        store: Optional[ContactStore] = None,
        config: Optional[CardaConfig] = None,
    ):
        self.config = config or CardaConfig()
        self.store = store if store is not None else InMemoryContactStore()

        self.scorer = SimilarityScorer(self.config.dedupe)
        self.grouper = DuplicateGrouper(self.scorer, self.config.dedupe)
        self.resolver = FieldResolver()
        self.history = MergeHistory(self.store)
        self.merge_executor = MergeExecutor(self.store, self.history, self.resolver)

        logger.debug(f"🔧 Deduplication engine ready (store={type(self.store).__name__})")

    def score_pair(self, contact_a: Contact, contact_b: Contact) -> MatchResult:
        return self.scorer.score_pair(contact_a, contact_b)

    def find_duplicate_groups(
        self,
        contacts: Optional[Sequence[Contact]] = None,
        threshold: Optional[float] = None,
    ) -> List[DuplicateGroup]:
        """Group duplicates in ``contacts``, or in the stored collection."""
        if contacts is None:
            contacts = self.store.load_all_contacts()
        return self.grouper.find_duplicate_groups(contacts, threshold)

    def suggest_merges(
        self,
        contacts: Optional[Sequence[Contact]] = None,
        limit: Optional[int] = None,
    ) -> List[DuplicateGroup]:
        if contacts is None:
            contacts = self.store.load_all_contacts()
        return self.grouper.suggest_merges(contacts, limit)

    def pick_best_value(self, left: Any, right: Any, field: Optional[str] = None) -> Any:
        resolution = self.resolver.resolve(field or "", left, right)
        return resolution.value

    def auto_resolve(self, left: Contact, right: Contact) -> Dict[str, FieldResolution]:
        return self.resolver.auto_resolve(left, right)

    def merge(
        self,
        primary_id: str,
        secondary_id: str,
        field_choices: Optional[Mapping[str, FieldChoice]] = None,
    ) -> MergeResult:
        """Merge and return the full result, including the history entry."""
        return self.merge_executor.execute(primary_id, secondary_id, field_choices)

    def merge_contacts(
        self,
        primary_id: str,
        secondary_id: str,
        field_choices: Optional[Mapping[str, FieldChoice]] = None,
    ) -> Contact:
        """Merge ``secondary_id`` into ``primary_id`` and return the merged contact."""
        return self.merge(primary_id, secondary_id, field_choices).merged_contact

    def undo_last_merge(self) -> bool:
        """Reverse the newest merge. False when there is nothing to undo."""
        return self.history.undo_last().undone

    def merge_history(self) -> List[MergeHistoryEntry]:
        return self.history.entries()

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "scoring": self.scorer.get_statistics(),
            "grouping": self.grouper.get_statistics(),
            "resolution": self.resolver.get_statistics(),
            "merging": self.merge_executor.get_statistics(),
            "history": self.history.get_statistics(),
        }


_default_engine: Optional[DeduplicationEngine] = None


def get_default_engine() -> DeduplicationEngine:
    """Engine used by the module-level functions; in-memory unless replaced."""
    global _default_engine
    if _default_engine is None:
        _default_engine = DeduplicationEngine()
    return _default_engine


def set_default_engine(engine: Optional[DeduplicationEngine]) -> None:
    global _default_engine
    _default_engine = engine
