"""
Text utilities for matching client column headers.

Used by the column mapper to compare headers against template synonyms.
"""

import re

from rapidfuzz.distance import Levenshtein

_SEPARATORS = re.compile(r"[_\s-]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_column_name(name: str) -> str:
    """
    Normalize a column header or synonym for comparison.

    - "Artikel Omschrijving" → "artikelomschrijving"
    - "pick_frequency" → "pickfrequency"
    - "Lengte (cm)" → "lengtecm"
    - "Catégorie" → "catgorie" (accented letters are dropped, not folded)

    Args:
        name: Raw header text

    Returns:
        Lower-case ASCII alphanumerics only (may be empty)
    """
    text = str(name).lower().strip()
    text = _SEPARATORS.sub("", text)
    return _NON_ALNUM.sub("", text)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Similarity score between 0.0 and 1.0.

    1 − levenshtein(a, b) / max(len(a), len(b)); two empty strings score 1.0.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)
