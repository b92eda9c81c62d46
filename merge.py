"""Merging of comma-separated multi-sense vocabulary fields.

A stored translation such as "bien, bueno" is a set of senses serialized as a
sorted, deduplicated, comma-joined string. Merging two such strings is a set
union, so it is commutative and idempotent: re-merging a value that is already
stored never grows the field, and two concurrent writers converge on the same
result regardless of order.

Senses that themselves contain a comma are split; the serialized format has no
escaping.
"""
from typing import Iterable, List, NamedTuple, Optional

from models import UNDEFINED_TRANSLATION, RawAiTranslation


class MergedSense(NamedTuple):
    translation: str
    partOfSpeech: Optional[str]
    gender: Optional[str]


def split_senses(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def combine(values: Iterable[Optional[str]]) -> Optional[str]:
    """Union the senses of every value; None when nothing is left."""
    senses = set()
    for value in values:
        senses.update(split_senses(value))
    if not senses:
        return None
    return ", ".join(sorted(senses))


def combine_senses(records: Iterable[RawAiTranslation]) -> Optional[MergedSense]:
    """Collapse every AI sense returned for one word into a single record.

    Records carrying the "[undefined]" sentinel are the model saying it has no
    answer and contribute nothing. Returns None if no usable translation
    remains.
    """
    usable = [r for r in records if r.translation.strip() != UNDEFINED_TRANSLATION]
    translation = combine(r.translation for r in usable)
    if not translation:
        return None
    return MergedSense(
        translation=translation,
        partOfSpeech=combine(r.partOfSpeech for r in usable),
        gender=combine(r.gender for r in usable),
    )
