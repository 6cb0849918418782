"""
Field Resolution

Chooses one value per scalar field when two contacts are merged. The policy
is applied to each field independently:

1. A non-empty value beats an empty one.
2. When both are present, the more informative value wins: a job-title
   keyword for ``title``, more digits for ``phone``, otherwise the longer
   value.
3. Remaining ties go to the left (primary) contact.

Edit timestamps are never consulted.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..models import MERGEABLE_FIELDS, Contact
from . import normalization as norm

logger = logging.getLogger(__name__)


TITLE_KEYWORDS = {
    "ceo", "cfo", "coo", "cto", "cio", "cmo", "vp", "svp", "evp",
    "president", "founder", "cofounder", "owner", "partner", "principal",
    "chief", "head", "director", "manager", "lead", "officer", "executive",
    "engineer", "developer", "architect", "analyst", "consultant",
    "specialist", "coordinator", "administrator", "associate", "advisor",
    "scientist", "designer", "representative", "supervisor", "chair",
    "chairman", "secretary", "treasurer", "attorney", "counsel",
}

# Enum fields whose "Unknown" member means no information
_UNKNOWN_AS_EMPTY = {"org_role", "influence_level"}

_WORD = re.compile(r"[a-z]+")


class Side(str, Enum):
    """Which contact of a pair a value is taken from."""

    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class ExplicitValue:
    """A caller-supplied value that belongs to neither contact."""

    value: Any


@dataclass
class FieldResolution:
    """The resolved value for one field and where it came from.

    ``side`` is None when the value was supplied explicitly or combined from
    both contacts.
    """

    field: str
    value: Any
    side: Optional[Side] = None


def is_empty(value: Any, field: Optional[str] = None) -> bool:
    """Whether a field value carries no information."""
    if value is None:
        return True
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return True
        if field in _UNKNOWN_AS_EMPTY and stripped == "Unknown":
            return True
    return False


def has_title_keyword(title: str) -> bool:
    return any(word in TITLE_KEYWORDS for word in _WORD.findall(title.lower()))


class FieldResolver:
    """Applies the best-value policy to contact fields."""

    def __init__(self):
        self.stats = {
            "fields_resolved": 0,
            "left_wins": 0,
            "right_wins": 0,
        }

    def choose_side(self, field: Optional[str], left: Any, right: Any) -> Side:
        """Return the side whose value should survive for ``field``."""
        if is_empty(right, field):
            return Side.LEFT
        if is_empty(left, field):
            return Side.RIGHT

        if not isinstance(left, str) or not isinstance(right, str):
            return Side.LEFT

        if field == "title":
            left_keyword, right_keyword = has_title_keyword(left), has_title_keyword(right)
            if left_keyword != right_keyword:
                return Side.LEFT if left_keyword else Side.RIGHT
        elif field == "phone":
            left_digits = len(norm.normalize_phone(left))
            right_digits = len(norm.normalize_phone(right))
            if left_digits != right_digits:
                return Side.LEFT if left_digits > right_digits else Side.RIGHT

        return Side.RIGHT if len(right.strip()) > len(left.strip()) else Side.LEFT

    def resolve(self, field: str, left: Any, right: Any) -> FieldResolution:
        side = self.choose_side(field, left, right)
        value = left if side is Side.LEFT else right

        self.stats["fields_resolved"] += 1
        self.stats["left_wins" if side is Side.LEFT else "right_wins"] += 1

        return FieldResolution(field=field, value=value, side=side)

    def auto_resolve(self, left: Contact, right: Contact) -> Dict[str, FieldResolution]:
        """Resolve every mergeable scalar field of two contacts."""
        resolutions = {
            field: self.resolve(field, getattr(left, field), getattr(right, field))
            for field in MERGEABLE_FIELDS
        }
        taken = [f for f, r in resolutions.items() if r.side is Side.RIGHT]
        logger.debug(
            f"🧮 Auto-resolved {len(resolutions)} fields for {left.id} <- {right.id}, "
            f"{len(taken)} taken from right: {taken}"
        )
        return resolutions

    def get_statistics(self):
        return dict(self.stats)


_default_resolver = FieldResolver()


def pick_best_value(left: Any, right: Any, field: Optional[str] = None) -> Any:
    """Return the better of two values for a field.

    >>> pick_best_value("", "jane@acme.com")
    'jane@acme.com'
    >>> pick_best_value("Jane", "Jane Doe")
    'Jane Doe'
    """
    side = _default_resolver.choose_side(field, left, right)
    return left if side is Side.LEFT else right
