"""Location normalization for pt/en place names.

Turns free-text city/state input into a canonical comparable form and
expands it into the closed set of known aliases. The same set drives both
the database-side ``IN`` filter over normalized columns and the
application-side exact-match pattern, so both must agree.
"""
from __future__ import annotations

import logging
import re
import unicodedata

from config.location_aliases import LOCATION_ALIASES

logger = logging.getLogger(__name__)

# Residual folds for characters that survive NFD decomposition
_ACCENT_FOLDS = {
    "ã": "a", "á": "a", "à": "a", "â": "a", "ä": "a",
    "ç": "c",
    "é": "e", "ê": "e",
    "í": "i",
    "ó": "o", "ô": "o", "õ": "o",
    "ú": "u", "ü": "u",
}
_ACCENT_TABLE = str.maketrans(_ACCENT_FOLDS)


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def strip_diacritics(text: str) -> str:
    """Drop combining marks after NFD decomposition."""
    text = unicodedata.normalize('NFD', text)
    return ''.join(c for c in text if unicodedata.category(c) != 'Mn')


def normalize_location(text: str | None) -> str:
    """Canonical comparable form of a place name.

    Lower-cases, trims, strips diacritics and collapses whitespace.
    ``None`` and blank input normalize to an empty string.
    """
    if not text:
        return ""
    text = text.lower().strip()
    text = strip_diacritics(text)
    text = text.translate(_ACCENT_TABLE)
    return normalize_whitespace(text)


def _key_forms(key: str) -> set[str]:
    normalized = normalize_location(key)
    return {normalized, normalized.replace("_", " ")}


def find_canonical_key(text: str) -> str | None:
    """Return the alias-table key that ``text`` refers to, if any."""
    normalized = normalize_location(text)
    if not normalized:
        return None
    for key, aliases in LOCATION_ALIASES.items():
        if normalized in _key_forms(key):
            return key
        if any(normalize_location(alias) == normalized for alias in aliases):
            return key
    return None


def location_variations(text: str) -> set[str]:
    """All equivalent spellings of ``text`` for exact-match comparison.

    Always contains the raw input and its normalized form. When the input
    matches an alias-table entry, every alias and the canonical key are
    added in normalized form. Unknown locations degrade to the two-element
    set.
    """
    normalized = normalize_location(text)
    variations = {text, normalized}

    key = find_canonical_key(text)
    if key is not None:
        variations.add(normalize_location(key))
        variations.update(normalize_location(alias) for alias in LOCATION_ALIASES[key])
    else:
        logger.debug(f"No alias entry for location {text!r}")

    return variations


def normalized_variations(text: str) -> list[str]:
    """Sorted normalized variations, suitable for an ``IN`` list over a
    normalized column."""
    return sorted({normalize_location(v) for v in location_variations(text)} - {""})


def build_exact_pattern(text: str) -> re.Pattern[str]:
    """Case-insensitive regex over the normalized variations, anchored at
    both ends.

    The pattern is meant for normalized values (the ``*_normalized``
    columns, or ``normalize_location(candidate)``); raw input is not part
    of it, so every alias of a location compiles to the same pattern.
    """
    escaped = [re.escape(v) for v in normalized_variations(text)]
    return re.compile(f"^({'|'.join(escaped)})$", re.IGNORECASE)


def matches_location(candidate: str | None, text: str) -> bool:
    """Application-side check: is ``candidate`` an alias of ``text``?

    Compares normalized forms, so it selects exactly the rows the
    ``IN``-over-normalized-column query selects.
    """
    if not candidate:
        return False
    return normalize_location(candidate) in normalized_variations(text)
