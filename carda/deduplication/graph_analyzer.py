"""
Duplicate Grouping

Builds a similarity graph over the contact collection and partitions it into
connected components. Pairs scoring at or above the threshold are edges, so
duplicates are grouped transitively: if A~B and B~C then A, B and C share a
group even when A and C score below the threshold.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx

from ..config import DedupeConfig
from ..errors import ValidationError
from ..models import Contact
from . import normalization as norm
from .similarity_scoring import (
    DIMENSION_ORDER,
    MatchDimension,
    MatchReason,
    MatchResult,
    SimilarityScorer,
)

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    """Contacts judged similar enough to be the same person."""

    contact_ids: List[str]
    score: int
    reasons: List[MatchReason] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.contact_ids)


class DuplicateGrouper:
    """
    Groups duplicate contacts via connected components of the match graph.

    Comparison is O(n^2) over the collection. With ``use_blocking`` enabled,
    only pairs sharing a blocking key (email domain, phone suffix, profile
    URL or a name token) are scored; this trades recall on purely
    character-level name matches for speed on large collections.
    """

    def __init__(
        self,
        scorer: Optional[SimilarityScorer] = None,
        config: Optional[DedupeConfig] = None,
    ):
        self.config = config or DedupeConfig()
        self.scorer = scorer or SimilarityScorer(self.config)

        self.stats = {
            "scans": 0,
            "pairs_compared": 0,
            "edges_found": 0,
            "groups_formed": 0,
        }

    def find_duplicate_groups(
        self, contacts: Sequence[Contact], threshold: Optional[float] = None
    ) -> List[DuplicateGroup]:
        """Find duplicate groups, highest score first.

        Args:
            contacts: The full contact collection
            threshold: Minimum pair score for an edge (default from config)

        Returns:
            Groups of size >= 2, ordered by score then by the position of the
            group's first member in ``contacts``
        """
        threshold = self.config.threshold if threshold is None else threshold
        self._check_unique_ids(contacts)

        logger.debug(f"🔍 Scanning {len(contacts)} contacts at threshold {threshold}")

        # Nodes are positions in ``contacts``
        G = nx.Graph()
        edges: List[Tuple[int, int, MatchResult]] = []

        for i, j in self._candidate_pairs(contacts):
            result = self.scorer.score_pair(contacts[i], contacts[j])
            self.stats["pairs_compared"] += 1
            if result.score > 0 and result.score >= threshold:
                edges.append((i, j, result))
                G.add_edge(i, j)

        groups: List[Tuple[int, DuplicateGroup]] = []
        for component in nx.connected_components(G):
            indexes = sorted(component)
            component_edges = [edge for edge in edges if edge[0] in component]
            groups.append((indexes[0], self._build_group(contacts, indexes, component_edges)))

        groups.sort(key=lambda item: (-item[1].score, item[0]))

        self.stats["scans"] += 1
        self.stats["edges_found"] += len(edges)
        self.stats["groups_formed"] += len(groups)
        logger.info(
            f"✅ Found {len(groups)} duplicate groups among {len(contacts)} contacts"
        )

        return [group for _, group in groups]

    def suggest_merges(
        self, contacts: Sequence[Contact], limit: Optional[int] = None
    ) -> List[DuplicateGroup]:
        """Top duplicate groups at the stricter suggestion threshold."""
        limit = self.config.suggestion_limit if limit is None else limit
        groups = self.find_duplicate_groups(contacts, self.config.suggestion_threshold)
        return groups[:limit]

    def _build_group(
        self,
        contacts: Sequence[Contact],
        indexes: List[int],
        edges: List[Tuple[int, int, MatchResult]],
    ) -> DuplicateGroup:
        # Non-edge pairs score below threshold, so the max is always an edge
        best = max(result.score for _, _, result in edges)

        reasons: List[MatchReason] = []
        seen: Set[MatchDimension] = set()
        for _, _, result in edges:
            if result.score != best:
                continue
            for reason in result.reasons:
                if reason.dimension not in seen:
                    seen.add(reason.dimension)
                    reasons.append(reason)

        reasons.sort(key=lambda r: DIMENSION_ORDER[r.dimension])

        return DuplicateGroup(
            contact_ids=[contacts[i].id for i in indexes],
            score=best,
            reasons=reasons,
        )

    def _candidate_pairs(self, contacts: Sequence[Contact]) -> Iterator[Tuple[int, int]]:
        """Yield index pairs (i < j) to score, in a fixed order."""
        if not self.config.use_blocking:
            yield from combinations(range(len(contacts)), 2)
            return

        buckets: Dict[str, List[int]] = {}
        for index, contact in enumerate(contacts):
            for key in self._blocking_keys(contact):
                buckets.setdefault(key, []).append(index)

        pairs: Set[Tuple[int, int]] = set()
        for indexes in buckets.values():
            pairs.update(combinations(indexes, 2))

        logger.debug(f"🧱 Blocking reduced comparisons to {len(pairs)} pairs")
        yield from sorted(pairs)

    def _blocking_keys(self, contact: Contact) -> Set[str]:
        keys = set()

        domain = norm.email_domain(contact.email)
        if domain:
            keys.add(f"domain:{domain}")

        suffix = norm.phone_suffix(contact.phone, self.config.min_phone_digits)
        if suffix:
            keys.add(f"phone:{suffix}")

        profile = norm.normalize_url(contact.linkedin_url)
        if profile:
            keys.add(f"profile:{profile}")

        for token in norm.name_tokens(contact.name):
            keys.add(f"name:{token[0]}" if len(token) == 1 else f"name:{token}")

        return keys

    @staticmethod
    def _check_unique_ids(contacts: Sequence[Contact]) -> None:
        seen: Set[str] = set()
        for contact in contacts:
            if contact.id in seen:
                raise ValidationError(
                    f"Duplicate contact id in collection: {contact.id}",
                    field="id",
                    value=contact.id,
                )
            seen.add(contact.id)

    def get_statistics(self):
        return dict(self.stats)
