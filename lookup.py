"""Phrase vocabulary lookup: cache first, one AI batch for the misses, merge, persist."""
from collections import defaultdict
from typing import Dict, List, Optional, Protocol, Sequence

from log import get_logger, log_duration
from merge import combine_senses
from models import (
    UNDEFINED_TRANSLATION,
    LookupResult, RawAiTranslation, VocabularyDraft, VocabularyEntry,
)
from normalize import normalize_text, tokenize

logger = get_logger("lang2lang.lookup")


class CacheStore(Protocol):
    async def find(self, word: str, source_language: str, target_language: str) -> Optional[VocabularyEntry]: ...

    async def upsert(self, draft: VocabularyDraft) -> VocabularyEntry: ...


class AIGateway(Protocol):
    async def translate_batch(self, words: Sequence[str], source_language: str,
                              target_language: str) -> List[RawAiTranslation]: ...


async def lookup_phrase(
    native_text: str,
    source_language: str,
    target_language: str,
    *,
    store: CacheStore,
    gateway: AIGateway,
) -> List[LookupResult]:
    """Translate every whitespace token of `native_text`, word by word.

    Returns one result per token, in input order, duplicates included, each
    carrying the token's own casing. Words neither cached nor answered by the
    AI come back as "[undefined]". Store failures propagate; AI failures only
    degrade the affected words.
    """
    with log_duration(logger, "Phrase lookup complete", component="lookup",
                      source_language=source_language, target_language=target_language) as stats:
        tokens = tokenize(native_text)
        first_casing = _first_casings(tokens)

        resolved: Dict[str, VocabularyEntry] = {}
        needs_ai: List[str] = []
        for key in first_casing:
            entry = await store.find(key, source_language, target_language)
            if entry:
                resolved[key] = entry
            else:
                needs_ai.append(key)

        if needs_ai:
            missing = {key: first_casing[key] for key in needs_ai}
            resolved.update(await _resolve_with_ai(missing, source_language, target_language,
                                                   store=store, gateway=gateway))

        stats["count"] = len(tokens)
        stats["detail"] = (f"{len(first_casing) - len(needs_ai)} cached, "
                           f"{len(needs_ai)} sent to AI, {len(first_casing) - len(resolved)} undefined")
        return [_to_result(token, resolved.get(normalize_text(token)), source_language, target_language)
                for token in tokens]


def _first_casings(tokens: List[str]) -> Dict[str, str]:
    """Distinct non-empty keys in first-seen order, mapped to the token that introduced them."""
    first_casing: Dict[str, str] = {}
    for token in tokens:
        key = normalize_text(token)
        if key and key not in first_casing:
            first_casing[key] = token
    return first_casing


def _to_result(token: str, entry: Optional[VocabularyEntry],
               source_language: str, target_language: str) -> LookupResult:
    if entry is None:
        return LookupResult(word=token, translation=UNDEFINED_TRANSLATION,
                            sourceLanguage=source_language, targetLanguage=target_language)
    return LookupResult(
        word=token,
        translation=entry.translation,
        partOfSpeech=entry.partOfSpeech,
        gender=entry.gender,
        sourceLanguage=source_language,
        targetLanguage=target_language,
    )


async def _resolve_with_ai(words: Dict[str, str], source_language: str, target_language: str,
                           *, store: CacheStore, gateway: AIGateway) -> Dict[str, VocabularyEntry]:
    try:
        raw = await gateway.translate_batch(list(words), source_language, target_language)
    except Exception:
        # The gateway is opaque: any failure means "no AI data for this batch"
        logger.warning("AI translation failed, words stay unresolved", exc_info=True, extra={
            "component": "lookup", "count": len(words),
        })
        return {}

    groups: Dict[str, List[RawAiTranslation]] = defaultdict(list)
    for record in raw:
        key = normalize_text(record.word)
        if key in words:
            groups[key].append(record)
        else:
            logger.debug("Ignoring unrequested AI word", extra={"component": "lookup", "word": record.word})

    resolved = {}
    for key in words:
        merged = combine_senses(groups.get(key, []))
        if merged is None:
            continue
        resolved[key] = await store.upsert(VocabularyDraft(
            word=words[key],
            translation=merged.translation,
            partOfSpeech=merged.partOfSpeech,
            gender=merged.gender,
            sourceLanguage=source_language,
            targetLanguage=target_language,
        ))
    return resolved
