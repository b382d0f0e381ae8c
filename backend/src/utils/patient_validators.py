"""
Patient identifier canonicalization.

The clinical registry stores national ID numbers ("CI") as free text, and
existing rows carry formatting noise such as dots, dashes, spaces or an
issuing-department suffix ("1.234.567", "1234567 LP", " 1234567 "). Lookups
therefore compare canonical forms instead of raw strings.
"""

import re
from typing import Optional

_NON_DIGITS = re.compile(r'[^0-9]+')
_NON_ALNUM = re.compile(r'[^0-9A-Za-z]+')


def canonicalize_ci(raw: Optional[str]) -> str:
    """
    Reduce a CI to its digits.

    Args:
        raw: CI as typed or as stored in the registry (may be None)

    Returns:
        Digits only; empty string when there are none
    """
    if raw is None:
        return ''
    return _NON_DIGITS.sub('', str(raw))


def normalize_complement(raw: Optional[str]) -> Optional[str]:
    """
    Normalize the CI complement (suffix disambiguator).

    Strips separators and upper-cases it; blank values become None.
    """
    if raw is None:
        return None
    cleaned = _NON_ALNUM.sub('', str(raw)).upper()
    return cleaned or None


def ci_matches(raw: Optional[str], ci: str) -> bool:
    """True if the stored value ``raw`` denotes the same CI as ``ci`` after canonicalization."""
    canonical = canonicalize_ci(ci)
    return bool(canonical) and canonicalize_ci(raw) == canonical


def ci_like_pattern(ci: str) -> str:
    """
    SQL LIKE pattern that matches any stored value containing the CI digits in order.

    "1234" becomes "%1%2%3%4%", which lets the database narrow candidates
    despite separators; exact equality is then decided with ``ci_matches``.
    """
    digits = canonicalize_ci(ci)
    return '%' + '%'.join(digits) + '%'
