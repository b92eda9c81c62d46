"""Pydantic schemas and constants for Lang2Lang."""
from typing import Optional
from pydantic import BaseModel, Field

# --- Constants ---
UNDEFINED_TRANSLATION = "[undefined]"

SUPPORTED_LANGUAGES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
}

# --- Vocabulary ---

class VocabularyDraft(BaseModel):
    """An entry about to be written; `word` may still carry its original casing."""
    word: str
    translation: str
    partOfSpeech: Optional[str] = None
    gender: Optional[str] = None
    sourceLanguage: str
    targetLanguage: str


class VocabularyEntry(VocabularyDraft):
    """A persisted entry. `word` is the normalized cache key."""
    id: str


class RawAiTranslation(BaseModel):
    """One sense as returned by the LLM. Validated, never trusted as-is."""
    word: str
    translation: str
    partOfSpeech: Optional[str] = None
    gender: Optional[str] = None


class LookupResult(BaseModel):
    word: str  # original casing of the token
    translation: str
    partOfSpeech: Optional[str] = None
    gender: Optional[str] = None
    sourceLanguage: Optional[str] = None
    targetLanguage: Optional[str] = None


# --- Requests ---

class VocabularyLookupRequest(BaseModel):
    nativeText: str = Field(min_length=1)
    sourceLanguage: str = Field(min_length=1)
    targetLanguage: str = Field(min_length=1)


class ChatAboutSentenceRequest(BaseModel):
    nativeText: Optional[str] = None
    translatedText: Optional[str] = None
    userQuestion: Optional[str] = None
    sourceLanguage: Optional[str] = None
    targetLanguage: Optional[str] = None
