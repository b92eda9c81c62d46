"""Tokenization and cache-key normalization for vocabulary words."""
import re as _re
import unicodedata
from typing import List

_COMBINING_MARKS = _re.compile(r"[\u0300-\u036f]")
_PUNCTUATION = _re.compile(r"[.,!?¡¿'`;:()]")


def normalize_text(text: str) -> str:
    """Reduce a word to its cache key form.

    Trims, lowercases, strips accents (NFD + combining marks) and a fixed
    punctuation set. Idempotent. Both cache lookups and grouping of AI
    results go through this function, so they always agree on a key.
    """
    text = (text or "").strip().lower()
    text = unicodedata.normalize("NFD", text)
    text = _COMBINING_MARKS.sub("", text)
    # Stripping punctuation can expose whitespace at the edges ("( hola")
    return _PUNCTUATION.sub("", text).strip()


def tokenize(text: str) -> List[str]:
    return [t for t in _re.split(r"\s+", text or "") if t]
