"""Shared fixtures and fakes for the Lang2Lang test suite."""
from typing import Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

import auth
from backend import create_app
from errors import GatewayUnavailable
from merge import combine
from models import RawAiTranslation, VocabularyDraft, VocabularyEntry
from normalize import normalize_text
from vocab_store import VocabularyStore


class FakeGateway:
    """Answers translate_batch from a canned word -> senses table.

    `replies` maps a requested word to the records returned for it; each record
    is a dict of RawAiTranslation fields. `extra` records are appended to every
    reply. Set `error` to make every call raise.
    """

    def __init__(self, replies: Dict[str, List[dict]] = None, extra: List[dict] = None,
                 error: Exception = None, explanation: str = "Because grammar."):
        self.replies = replies or {}
        self.extra = extra or []
        self.error = error
        self.explanation = explanation
        self.calls: List[List[str]] = []
        self.chat_calls: List[tuple] = []

    async def translate_batch(self, words: Sequence[str], source_language: str,
                              target_language: str) -> List[RawAiTranslation]:
        self.calls.append(list(words))
        if self.error:
            raise self.error
        records = []
        for word in words:
            records.extend(self.replies.get(word, []))
        records.extend(self.extra)
        return [RawAiTranslation.model_validate(r) for r in records]

    async def explain_sentence(self, native_text, translated_text, question,
                               source_language, target_language) -> str:
        self.chat_calls.append((native_text, translated_text, question, source_language, target_language))
        if self.error:
            raise self.error
        return self.explanation


class FakeStore:
    """In-memory stand-in for VocabularyStore with the same merge semantics."""

    def __init__(self):
        self.rows: Dict[tuple, VocabularyEntry] = {}
        self.finds: List[str] = []
        self.upserts: List[VocabularyDraft] = []
        self._next_id = 0

    def seed(self, word, translation, source_language="es", target_language="en",
             partOfSpeech=None, gender=None) -> VocabularyEntry:
        self._next_id += 1
        entry = VocabularyEntry(
            id=f"seed-{self._next_id}", word=normalize_text(word), translation=translation,
            partOfSpeech=partOfSpeech, gender=gender,
            sourceLanguage=source_language, targetLanguage=target_language,
        )
        self.rows[(entry.word, source_language, target_language)] = entry
        return entry

    async def find(self, word: str, source_language: str, target_language: str) -> Optional[VocabularyEntry]:
        self.finds.append(word)
        return self.rows.get((word, source_language, target_language))

    async def upsert(self, draft: VocabularyDraft) -> VocabularyEntry:
        self.upserts.append(draft)
        key = (normalize_text(draft.word), draft.sourceLanguage, draft.targetLanguage)
        existing = self.rows.get(key)
        if existing:
            entry = existing.model_copy(update={
                "translation": combine([existing.translation, draft.translation]),
                "partOfSpeech": combine([existing.partOfSpeech, draft.partOfSpeech]),
                "gender": combine([existing.gender, draft.gender]),
            })
        else:
            self._next_id += 1
            entry = VocabularyEntry(
                id=f"fake-{self._next_id}", word=key[0],
                translation=combine([draft.translation]),
                partOfSpeech=combine([draft.partOfSpeech]),
                gender=combine([draft.gender]),
                sourceLanguage=draft.sourceLanguage, targetLanguage=draft.targetLanguage,
            )
        self.rows[key] = entry
        return entry


@pytest.fixture()
def fake_store():
    return FakeStore()


@pytest.fixture()
def fake_gateway():
    return FakeGateway()


@pytest.fixture()
def store(tmp_path):
    vocab_store = VocabularyStore(tmp_path / "lang2lang-test.db")
    vocab_store.init_db()
    return vocab_store


@pytest.fixture()
def client(store, fake_gateway, monkeypatch):
    monkeypatch.setattr(auth, "APP_PASSWORD", "")
    app = create_app(store=store, gateway=fake_gateway)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def unavailable_gateway():
    return FakeGateway(error=GatewayUnavailable("LLM API error"))
