"""Institution-name keys used for lookup and fuzzy comparison."""

from __future__ import annotations

import re

from unidecode import unidecode

# Corporate forms and filler words that carry no identity. "bank" and
# "building society" are kept: they distinguish real institutions.
_NOISE_WORDS = re.compile(
    r"\b("
    r"plc|ltd|limited|inc|incorporated|corp|corporation|llp|the|and"
    r")\b"
)
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def clean_search_name(name: str) -> str:
    """Lookup key: trimmed, whitespace-collapsed, upper-cased."""
    return _WHITESPACE.sub(" ", name).strip().upper()


def fuzzy_key(name: str) -> str:
    """Comparison key with corporate suffixes and stopwords removed.

    Steps:
      1. Transliterate Unicode to ASCII.
      2. Lowercase and drop dots (``P.L.C.`` -> ``plc``).
      3. Replace remaining punctuation with spaces.
      4. Remove corporate forms (Ltd, PLC, ...) and ``the`` / ``and``.
      5. Collapse whitespace.
    """
    text = unidecode(name).lower().replace(".", "")
    text = _NON_ALNUM.sub(" ", text)
    text = _NOISE_WORDS.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
