"""String normalization for deduplication and search matching.

Every name that reaches the canonical store, and every query that is
compared against it, goes through these functions so the two sides agree.
"""

import re

from rapidfuzz.distance import Levenshtein

from content_resolver.entities import EntityType

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s-]")
_DIGITS = re.compile(r"\d")

# Longest phrases first so "bachelor of technology" wins over "technology"-like overlaps.
PROGRAM_ABBREVIATIONS: dict[str, str] = {
    "bachelor of technology": "btech",
    "master of technology": "mtech",
    "bachelor of science": "bsc",
    "master of science": "msc",
    "bachelor of commerce": "bcom",
    "master of commerce": "mcom",
    "master of business administration": "mba",
    "electronics and communication": "ece",
    "information technology": "it",
    "electrical engineering": "ee",
    "mechanical engineering": "me",
    "civil engineering": "ce",
    "computer science": "cs",
    "b. tech": "btech",
    "m. tech": "mtech",
    "b.tech": "btech",
    "m.tech": "mtech",
    "b. sc": "bsc",
    "m. sc": "msc",
    "b.sc": "bsc",
    "m.sc": "msc",
    "b. com": "bcom",
    "b.com": "bcom",
    "m.com": "mcom",
}


def normalize_name(raw: str, strip_punctuation: bool = False, strip_digits: bool = False) -> str:
    """Normalize free text into a comparable form.

    Lowercases, trims and collapses internal whitespace. Punctuation (hyphens
    excepted) and digits are removed only when asked for.

    Args:
        raw: The text to normalize
        strip_punctuation: Remove everything that is not a word char, space or hyphen
        strip_digits: Remove all digits

    Returns:
        The normalized string (possibly empty)
    """
    result = raw.lower()
    if strip_punctuation:
        result = _PUNCTUATION.sub("", result)
    if strip_digits:
        result = _DIGITS.sub("", result)
    return _WHITESPACE.sub(" ", result).strip()


def normalize_query(raw: str) -> str:
    """Normalize a user search query."""
    return normalize_name(raw, strip_punctuation=True)


def normalize_program_name(raw: str) -> str:
    """Normalize a program name, standardizing degree abbreviations.

    "B.Tech Computer Science" and "Bachelor of Technology Computer Science"
    both become "btech cs".
    """
    result = normalize_name(raw)
    for phrase, abbreviation in PROGRAM_ABBREVIATIONS.items():
        result = result.replace(phrase, abbreviation)
    return normalize_name(result, strip_punctuation=True)


def normalize_for(entity_type: EntityType, raw: str) -> str:
    """Normalize a name or query the way entities of ``entity_type`` are stored."""
    if entity_type is EntityType.PROGRAM:
        return normalize_program_name(raw)
    return normalize_query(raw)


def similarity(first: str, second: str) -> float:
    """Levenshtein similarity ratio in [0, 1] (1 means identical)."""
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(first, second) / longest


def are_similar(first: str, second: str, threshold: float = 0.8) -> bool:
    """Check if two normalized strings are close enough to be duplicates.

    A string contained in the other counts as similar when the length ratio
    reaches the threshold; otherwise the Levenshtein ratio decides.
    """
    if first == second:
        return True

    longer, shorter = (first, second) if len(first) > len(second) else (second, first)
    if not longer:
        return True

    if shorter in longer:
        return len(shorter) / len(longer) >= threshold

    return similarity(first, second) >= threshold
