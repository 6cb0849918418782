"""
Similarity Scoring System

Weighted-union scoring of contact pairs. A single strong signal such as an
exact email match dominates the score instead of being averaged away by
weaker dimensions.
"""

import difflib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from ..config import DedupeConfig, ScoringWeights
from ..models import Contact
from . import normalization as norm

logger = logging.getLogger(__name__)


class MatchDimension(str, Enum):
    """Dimensions a pair of contacts can match on, in display order."""

    EMAIL = "email"
    EMAIL_DOMAIN = "email_domain"
    PHONE = "phone"
    SOCIAL_PROFILE = "social_profile"
    NAME = "name"
    COMPANY = "company"


DIMENSION_ORDER = {dimension: index for index, dimension in enumerate(MatchDimension)}


@dataclass(frozen=True)
class MatchReason:
    """One signal that contributed to a pair's score."""

    dimension: MatchDimension
    description: str
    contribution: int


@dataclass
class MatchResult:
    """Score in [0, 100] plus the ordered reasons that produced it."""

    score: int = 0
    reasons: List[MatchReason] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.score > 0


class SimilarityScorer:
    """
    Scores contact pairs for duplicate detection.

    Contributions per dimension come from ``ScoringWeights``; the total is
    capped at 100. Every comparison is computed on a canonically ordered pair
    so that ``score_pair(a, b) == score_pair(b, a)``.
    """

    def __init__(self, config: Optional[DedupeConfig] = None):
        self.config = config or DedupeConfig()
        self.weights: ScoringWeights = self.config.weights

        self.stats = {
            "pairs_scored": 0,
            "matches": 0,
        }

    def score_pair(self, contact_a: Contact, contact_b: Contact) -> MatchResult:
        """Compute the match score and reasons for two contacts."""
        reasons: List[MatchReason] = []
        weights = self.weights

        email_signal = False
        email_a = norm.normalize_email(contact_a.email)
        email_b = norm.normalize_email(contact_b.email)
        if email_a and email_a == email_b:
            reasons.append(
                MatchReason(MatchDimension.EMAIL, "Email addresses match", weights.exact_email)
            )
            email_signal = True
        else:
            domain_a = norm.email_domain(contact_a.email)
            if domain_a and domain_a == norm.email_domain(contact_b.email):
                reasons.append(
                    MatchReason(
                        MatchDimension.EMAIL_DOMAIN,
                        f"Same email domain ({domain_a})",
                        weights.email_domain,
                    )
                )
                email_signal = True

        if norm.phones_match(contact_a.phone, contact_b.phone, self.config.min_phone_digits):
            reasons.append(
                MatchReason(MatchDimension.PHONE, "Phone numbers match", weights.phone)
            )

        profile_a = norm.normalize_url(contact_a.linkedin_url)
        if profile_a and profile_a == norm.normalize_url(contact_b.linkedin_url):
            reasons.append(
                MatchReason(
                    MatchDimension.SOCIAL_PROFILE,
                    "Social profile URLs match",
                    weights.social_profile,
                )
            )

        name_reason = self._score_names(contact_a.name, contact_b.name)
        if name_reason:
            reasons.append(name_reason)

        # Company alone never links two people at the same employer
        if name_reason or email_signal:
            company_a = norm.normalize_company(contact_a.company)
            if company_a and company_a == norm.normalize_company(contact_b.company):
                reasons.append(
                    MatchReason(MatchDimension.COMPANY, "Same company", weights.company)
                )

        reasons.sort(key=lambda r: DIMENSION_ORDER[r.dimension])
        score = min(100, sum(r.contribution for r in reasons))

        self.stats["pairs_scored"] += 1
        if score > 0:
            self.stats["matches"] += 1

        return MatchResult(score=score, reasons=reasons)

    def _score_names(self, name_a: str, name_b: str) -> Optional[MatchReason]:
        tokens_a = norm.name_tokens(name_a)
        tokens_b = norm.name_tokens(name_b)
        if not tokens_a or not tokens_b:
            return None

        if sorted(tokens_a) == sorted(tokens_b):
            return MatchReason(MatchDimension.NAME, "Names match", self.weights.exact_name)

        similarity = self.name_similarity(tokens_a, tokens_b)
        if similarity < self.config.name_partial_min:
            return None

        contribution = round(similarity * self.weights.partial_name_max)
        return MatchReason(
            MatchDimension.NAME,
            f"Similar names ({round(similarity * 100)}%)",
            contribution,
        )

    def name_similarity(self, tokens_a: Sequence[str], tokens_b: Sequence[str]) -> float:
        """Similarity ratio in [0, 1] of two tokenized names.

        The better of a token-overlap ratio (initials count half) and a
        character-level ratio over the token-sorted names. When the tokens
        left over after exact and initial matching clash on both sides
        ("jane" against "john"), only the overlap ratio counts, so a shared
        surname alone never makes two names similar.
        """
        first, second = sorted((sorted(tokens_a), sorted(tokens_b)))
        matched, left_a, left_b = self._match_tokens(first, second)
        overlap = matched / max(len(first), len(second))
        if self._tokens_clash(left_a, left_b):
            return overlap
        sequence = difflib.SequenceMatcher(None, " ".join(first), " ".join(second)).ratio()
        return max(overlap, sequence)

    def _match_tokens(self, tokens_a: List[str], tokens_b: List[str]):
        """Pair equal tokens, then initials with full tokens.

        Returns the matched weight and the unmatched tokens of each side.
        """
        remaining_a = list(tokens_a)
        remaining_b = list(tokens_b)
        matched = 0.0

        for token in tokens_a:
            if token in remaining_b:
                remaining_a.remove(token)
                remaining_b.remove(token)
                matched += 1

        # "j" against "jane"
        for token in list(remaining_a):
            partner = self._initial_partner(token, remaining_b)
            if partner:
                remaining_a.remove(token)
                remaining_b.remove(partner)
                matched += 0.5
        for token in list(remaining_b):
            partner = self._initial_partner(token, remaining_a)
            if partner:
                remaining_b.remove(token)
                remaining_a.remove(partner)
                matched += 0.5

        return matched, remaining_a, remaining_b

    def _tokens_clash(self, left_a: List[str], left_b: List[str]) -> bool:
        full_a = [t for t in left_a if len(t) > 1]
        full_b = [t for t in left_b if len(t) > 1]
        if not full_a or not full_b:
            return False
        closest = max(
            difflib.SequenceMatcher(None, a, b).ratio() for a in full_a for b in full_b
        )
        return closest < self.config.name_variant_min

    @staticmethod
    def _initial_partner(token: str, candidates: List[str]) -> Optional[str]:
        if len(token) != 1:
            return None
        for candidate in candidates:
            if len(candidate) > 1 and candidate[0] == token:
                return candidate
        return None

    def get_statistics(self):
        return dict(self.stats)
