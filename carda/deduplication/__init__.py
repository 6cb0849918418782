"""
Contact Deduplication and Merge

Finds likely duplicate contacts, resolves conflicting fields and merges
pairs of contacts with single-level undo.

Components:
- Normalization: canonical forms of names, emails, phones and companies
- Similarity Scoring: weighted-union score of a contact pair with reasons
- Graph Analyzer: transitive grouping of duplicates
- Field Resolution: best-value policy for conflicting fields
- Merge Execution: atomic merge preserving tasks, reminders and timeline
- Merge History: snapshot log and undo

Usage:
    from carda.deduplication import DeduplicationEngine

    engine = DeduplicationEngine(store)
    groups = engine.find_duplicate_groups()

The module-level functions below operate on a default engine; call
``set_default_engine`` to point them at a real store.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import Contact, MergeHistoryEntry
from .core_engine import DeduplicationEngine, get_default_engine, set_default_engine
from .field_resolution import ExplicitValue, FieldResolution, FieldResolver, Side
from .graph_analyzer import DuplicateGroup, DuplicateGrouper
from .merge_execution import FieldChoice, MergeExecutor, MergeResult
from .merge_history import MergeHistory, UndoResult
from .similarity_scoring import MatchDimension, MatchReason, MatchResult, SimilarityScorer


def find_duplicate_groups(
    contacts: Optional[Sequence[Contact]] = None, threshold: Optional[float] = None
) -> List[DuplicateGroup]:
    return get_default_engine().find_duplicate_groups(contacts, threshold)


def score_pair(contact_a: Contact, contact_b: Contact) -> MatchResult:
    return get_default_engine().score_pair(contact_a, contact_b)


def pick_best_value(left: Any, right: Any, field: Optional[str] = None) -> Any:
    return get_default_engine().pick_best_value(left, right, field)


def auto_resolve(left: Contact, right: Contact) -> Dict[str, FieldResolution]:
    return get_default_engine().auto_resolve(left, right)


def merge_contacts(
    primary_id: str,
    secondary_id: str,
    field_choices: Optional[Mapping[str, FieldChoice]] = None,
) -> Contact:
    return get_default_engine().merge_contacts(primary_id, secondary_id, field_choices)


def undo_last_merge() -> bool:
    return get_default_engine().undo_last_merge()


def merge_history() -> List[MergeHistoryEntry]:
    return get_default_engine().merge_history()


def suggest_merges(
    contacts: Optional[Sequence[Contact]] = None, limit: Optional[int] = None
) -> List[DuplicateGroup]:
    return get_default_engine().suggest_merges(contacts, limit)


__all__ = [
    # Engine
    "DeduplicationEngine",
    "get_default_engine",
    "set_default_engine",
    # Scoring and grouping
    "SimilarityScorer",
    "MatchDimension",
    "MatchReason",
    "MatchResult",
    "DuplicateGrouper",
    "DuplicateGroup",
    # Resolution and merging
    "FieldResolver",
    "FieldResolution",
    "Side",
    "ExplicitValue",
    "MergeExecutor",
    "MergeResult",
    "MergeHistory",
    "UndoResult",
    # Module-level operations
    "find_duplicate_groups",
    "score_pair",
    "pick_best_value",
    "auto_resolve",
    "merge_contacts",
    "undo_last_merge",
    "merge_history",
    "suggest_merges",
]
