"""
Field Normalization

Canonical forms of contact fields used for comparison. Every function accepts
None or an empty string and returns an empty value in that case.
"""

import re
from typing import List, Optional

TITLES = {"mr", "mrs", "ms", "miss", "mx", "dr", "prof", "sir", "lady", "lord"}
SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "phd", "md", "esq", "mba"}

LEGAL_SUFFIXES = {
    "inc",
    "incorporated",
    "corp",
    "corporation",
    "co",
    "company",
    "ltd",
    "limited",
    "llc",
    "llp",
    "plc",
    "pty",
    "gmbh",
    "ag",
    "sa",
    "bv",
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def _clean(value: Optional[str]) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    if not value:
        return ""
    cleaned = _PUNCTUATION.sub(" ", value.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def name_tokens(name: Optional[str]) -> List[str]:
    """Tokenize a person name, dropping honorifics and suffixes."""
    return [t for t in _clean(name).split() if t not in TITLES and t not in SUFFIXES]


def normalize_name(name: Optional[str]) -> str:
    """Normalize a person name for comparison.

    >>> normalize_name("  Dr. Jane   DOE, Jr. ")
    'jane doe'
    """
    return " ".join(name_tokens(name))


def normalize_email(email: Optional[str]) -> str:
    if not email:
        return ""
    return email.strip().lower()


def email_domain(email: Optional[str]) -> str:
    """Return the part of the email after ``@``, or an empty string."""
    normalized = normalize_email(email)
    if "@" not in normalized:
        return ""
    return normalized.rsplit("@", 1)[1]


def normalize_phone(phone: Optional[str]) -> str:
    """Strip everything but digits."""
    if not phone:
        return ""
    return re.sub(r"\D", "", phone)


def _significant_digits(phone: Optional[str]) -> str:
    # Leading zeros are trunk prefixes ("02 ...") or international ("0061 ...")
    return normalize_phone(phone).lstrip("0")


def phones_match(phone_a: Optional[str], phone_b: Optional[str], min_digits: int = 7) -> bool:
    """Compare two phone numbers on their digit suffix.

    Ignoring leading zeros, the shorter number must be a suffix of the longer
    one and have at least ``min_digits`` digits, so "+61 2 9999 1234" matches
    "(02) 9999 1234".
    """
    digits_a = _significant_digits(phone_a)
    digits_b = _significant_digits(phone_b)

    if len(digits_a) < min_digits or len(digits_b) < min_digits:
        return False

    shorter, longer = sorted((digits_a, digits_b), key=len)
    return longer.endswith(shorter)


def phone_suffix(phone: Optional[str], min_digits: int = 7) -> str:
    """Last ``min_digits`` digits of a phone, or empty if it is too short."""
    digits = _significant_digits(phone)
    if len(digits) < min_digits:
        return ""
    return digits[-min_digits:]


def normalize_company(company: Optional[str]) -> str:
    """Normalize a company name, removing legal-entity suffixes.

    >>> normalize_company("Acme Pty. Ltd.")
    'acme'
    """
    tokens = [t for t in _clean(company).split() if t not in LEGAL_SUFFIXES]
    return " ".join(tokens)


def normalize_url(url: Optional[str]) -> str:
    """Normalize a profile URL: no scheme, no ``www.``, no trailing slash."""
    if not url:
        return ""
    normalized = re.sub(r"^https?://", "", url.strip().lower())
    normalized = re.sub(r"^www\.", "", normalized)
    return normalized.rstrip("/")
