"""Tests for the phrase lookup pipeline."""
import asyncio

import pytest

from conftest import FakeGateway
from errors import CacheUnavailable, GatewayMalformedResponse
from lookup import lookup_phrase
from models import UNDEFINED_TRANSLATION


def _lookup(text, store, gateway, src="es", tgt="en"):
    return asyncio.run(lookup_phrase(text, src, tgt, store=store, gateway=gateway))


def _sense(word, translation, pos=None, gender=None):
    return {"word": word, "translation": translation, "partOfSpeech": pos, "gender": gender}


DONDE_ESTA_EL_BANCO = {
    "donde": [_sense("donde", "where", "adverb")],
    "esta": [_sense("esta", "is", "verb")],
    "el": [_sense("el", "the", "article", "masculine")],
    "banco": [_sense("banco", "bank", "noun", "masculine"), _sense("banco", "bench", "noun", "masculine")],
}


def test_full_phrase_from_ai(fake_store):
    gateway = FakeGateway(replies=DONDE_ESTA_EL_BANCO)

    results = _lookup("Donde esta el banco", fake_store, gateway)

    assert [r.word for r in results] == ["Donde", "esta", "el", "banco"]
    assert [r.translation for r in results] == ["where", "is", "the", "bank, bench"]
    assert results[3].partOfSpeech == "noun"
    assert results[3].gender == "masculine"
    assert all(r.sourceLanguage == "es" and r.targetLanguage == "en" for r in results)
    assert gateway.calls == [["donde", "esta", "el", "banco"]]
    assert len(fake_store.upserts) == 4


def test_cached_words_skip_ai(fake_store):
    fake_store.seed("hola", "hello", partOfSpeech="interjection")
    gateway = FakeGateway()

    results = _lookup("Hola", fake_store, gateway)

    assert gateway.calls == []
    assert fake_store.upserts == []
    assert results[0].word == "Hola"
    assert results[0].translation == "hello"
    assert results[0].partOfSpeech == "interjection"


def test_only_missing_words_go_to_ai(fake_store):
    fake_store.seed("donde", "where")
    fake_store.seed("el", "the")
    gateway = FakeGateway(replies=DONDE_ESTA_EL_BANCO)

    results = _lookup("¿Dónde está el banco?", fake_store, gateway)

    assert gateway.calls == [["esta", "banco"]]
    assert [r.word for r in results] == ["¿Dónde", "está", "el", "banco?"]
    assert [r.translation for r in results] == ["where", "is", "the", "bank, bench"]


def test_duplicates_keep_order_and_casing(fake_store):
    gateway = FakeGateway(replies={"hola": [_sense("hola", "hello")]})

    results = _lookup("Hola hola HOLA", fake_store, gateway)

    assert [r.word for r in results] == ["Hola", "hola", "HOLA"]
    assert [r.translation for r in results] == ["hello"] * 3
    assert fake_store.finds == ["hola"]
    assert gateway.calls == [["hola"]]
    assert len(fake_store.upserts) == 1


def test_upsert_carries_first_seen_casing(fake_store):
    gateway = FakeGateway(replies={"hola": [_sense("hola", "hello")]})
    _lookup("Hola hola", fake_store, gateway)
    assert fake_store.upserts[0].word == "Hola"
    assert fake_store.rows[("hola", "es", "en")].word == "hola"


def test_gateway_failure_yields_undefined(fake_store):
    fake_store.seed("el", "the")
    gateway = FakeGateway(error=GatewayMalformedResponse("not json"))

    results = _lookup("el banco", fake_store, gateway)

    assert [r.translation for r in results] == ["the", UNDEFINED_TRANSLATION]
    assert results[1].word == "banco"
    assert results[1].partOfSpeech is None
    assert fake_store.upserts == []


def test_unexpected_gateway_error_is_contained(fake_store):
    gateway = FakeGateway(error=RuntimeError("boom"))
    results = _lookup("banco", fake_store, gateway)
    assert results[0].translation == UNDEFINED_TRANSLATION


def test_words_missing_from_ai_reply_are_undefined(fake_store):
    gateway = FakeGateway(replies={"banco": [_sense("banco", "bank")]})

    results = _lookup("el banco", fake_store, gateway)

    assert [r.translation for r in results] == [UNDEFINED_TRANSLATION, "bank"]
    assert [d.word for d in fake_store.upserts] == ["banco"]


def test_undefined_from_ai_is_not_stored(fake_store):
    gateway = FakeGateway(replies={"xyzzy": [_sense("xyzzy", "[undefined]")]})

    results = _lookup("xyzzy", fake_store, gateway)

    assert results[0].translation == UNDEFINED_TRANSLATION
    assert fake_store.upserts == []


def test_unrequested_ai_words_are_ignored(fake_store):
    gateway = FakeGateway(
        replies={"banco": [_sense("banco", "bank")]},
        extra=[_sense("dinero", "money")],
    )

    _lookup("banco", fake_store, gateway)

    assert ("dinero", "es", "en") not in fake_store.rows
    assert [d.word for d in fake_store.upserts] == ["banco"]


def test_ai_words_grouped_by_normalized_form(fake_store):
    gateway = FakeGateway(extra=[
        _sense("Está", "is", "verb"),
        _sense("esta", "this", "pronoun", "feminine"),
    ])

    results = _lookup("está", fake_store, gateway)

    assert results[0].translation == "is, this"
    assert results[0].partOfSpeech == "pronoun, verb"
    assert results[0].gender == "feminine"
    assert len(fake_store.upserts) == 1


def test_punctuation_only_tokens_are_undefined(fake_store):
    gateway = FakeGateway(replies={"hola": [_sense("hola", "hello")]})

    results = _lookup("hola ¿?", fake_store, gateway)

    assert [r.word for r in results] == ["hola", "¿?"]
    assert results[1].translation == UNDEFINED_TRANSLATION
    assert gateway.calls == [["hola"]]


def test_empty_text_returns_nothing(fake_store, fake_gateway):
    assert _lookup("   ", fake_store, fake_gateway) == []
    assert fake_gateway.calls == []


def test_second_lookup_is_served_from_cache(store):
    gateway = FakeGateway(replies=DONDE_ESTA_EL_BANCO)

    first = _lookup("Donde esta el banco", store, gateway)
    second = _lookup("donde ESTA el Banco", store, gateway)

    assert len(gateway.calls) == 1
    assert [r.translation for r in second] == [r.translation for r in first]
    assert [r.word for r in second] == ["donde", "ESTA", "el", "Banco"]


def test_concurrent_lookups_converge(store):
    class YieldingGateway(FakeGateway):
        async def translate_batch(self, words, source_language, target_language):
            await asyncio.sleep(0)
            return await super().translate_batch(words, source_language, target_language)

    async def both():
        return await asyncio.gather(
            lookup_phrase("banco", "es", "en", store=store,
                          gateway=YieldingGateway(replies={"banco": [_sense("banco", "bank")]})),
            lookup_phrase("banco", "es", "en", store=store,
                          gateway=YieldingGateway(replies={"banco": [_sense("banco", "bench")]})),
        )

    asyncio.run(both())
    entry = asyncio.run(store.find("banco", "es", "en"))
    assert entry.translation == "bank, bench"
    assert asyncio.run(store.count()) == 1


def test_store_failure_propagates(fake_store, fake_gateway):
    async def broken_find(*args):
        raise CacheUnavailable("Vocabulary store unavailable: disk I/O error")

    fake_store.find = broken_find
    with pytest.raises(CacheUnavailable):
        _lookup("banco", fake_store, fake_gateway)
