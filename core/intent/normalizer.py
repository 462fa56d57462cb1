"""
Text Normalizer
Canonicalizes raw chat input before entity extraction and intent scoring.
"""

import re
import unicodedata

_PUNCT = re.compile(r"[^\w\s\-]", re.UNICODE)
_SPACES = re.compile(r"\s+")


def normalize(raw: str) -> str:
    """
    Trim, case-fold, drop punctuation (keeping '-' and '_') and collapse whitespace.

    >>> normalize("  Halo,   KUMPUL  BD-03!! ")
    'halo kumpul bd-03'
    """
    if not raw:
        return ""
    text = unicodedata.normalize("NFKC", str(raw)).casefold()
    text = _PUNCT.sub(" ", text)
    return _SPACES.sub(" ", text).strip()
