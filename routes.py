"""API route handlers for Lang2Lang."""
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from log import get_logger
from auth import require_password
from errors import CacheUnavailable, GatewayError
from llm import OLLAMA_URL, TranslationGateway, check_ollama_connectivity
from lookup import lookup_phrase
from models import SUPPORTED_LANGUAGES, ChatAboutSentenceRequest, VocabularyLookupRequest
from vocab_store import VocabularyStore

logger = get_logger("lang2lang.routes")

router = APIRouter()


def get_store(request: Request) -> VocabularyStore:
    return request.app.state.vocab_store


def get_gateway(request: Request) -> TranslationGateway:
    return request.app.state.gateway


@router.post("/api/vocabulary-lookup", tags=["Vocabulary"], summary="Translate a phrase word by word",
             description="Looks every word up in the vocabulary cache, asks the LLM for the missing ones "
                         "and returns one entry per word in phrase order.")
async def vocabulary_lookup(
    payload: Any = Body(default=None),
    store=Depends(get_store),
    gateway=Depends(get_gateway),
    _pw=Depends(require_password),
):
    try:
        req = VocabularyLookupRequest.model_validate(payload)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={
            "message": "Invalid request body",
            "errors": e.errors(include_url=False, include_context=False),
        })

    try:
        results = await lookup_phrase(
            req.nativeText, req.sourceLanguage, req.targetLanguage,
            store=store, gateway=gateway,
        )
    except Exception as e:
        logger.exception("vocabulary-lookup failed", extra={"endpoint": "/api/vocabulary-lookup"})
        return JSONResponse(status_code=500, content={
            "message": "Failed to process vocabulary lookup",
            "error": str(e),
        })
    return [r.model_dump() for r in results]


@router.get("/api/vocabulary", tags=["Vocabulary"], summary="Get one vocabulary entry")
async def get_vocabulary(
    word: Optional[str] = None,
    targetLanguage: Optional[str] = None,
    sourceLanguage: Optional[str] = None,
    store=Depends(get_store),
    _pw=Depends(require_password),
):
    if not word or not targetLanguage:
        raise HTTPException(400, "Word and target language are required")
    entry = await store.get_by_word(word, targetLanguage, sourceLanguage)
    if not entry:
        raise HTTPException(404, "Vocabulary entry not found")
    return entry.model_dump()


@router.get("/api/vocabulary/language/{targetLanguage}", tags=["Vocabulary"],
            summary="List vocabulary for a target language")
async def get_vocabulary_by_language(
    targetLanguage: str,
    store=Depends(get_store),
    _pw=Depends(require_password),
):
    entries = await store.list_by_target_language(targetLanguage)
    return [e.model_dump() for e in entries]


@router.post("/api/chat-about-sentence", tags=["Learning"], summary="Ask the tutor about a translation")
async def chat_about_sentence(
    req: ChatAboutSentenceRequest,
    gateway=Depends(get_gateway),
    _pw=Depends(require_password),
):
    if not all([req.nativeText, req.translatedText, req.userQuestion, req.sourceLanguage, req.targetLanguage]):
        raise HTTPException(400, "Missing required chat parameters.")

    try:
        explanation = await gateway.explain_sentence(
            req.nativeText, req.translatedText, req.userQuestion,
            req.sourceLanguage, req.targetLanguage,
        )
    except GatewayError as e:
        logger.warning("chat-about-sentence failed", exc_info=True, extra={"endpoint": "/api/chat-about-sentence"})
        raise HTTPException(502, f"Chat service error: {e}")
    return {"success": True, "explanation": explanation}


@router.get("/api/languages", tags=["Reference"], summary="List supported languages")
async def get_languages(_pw=Depends(require_password)):
    return [{"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES.items()]


@router.get("/api/languages/{code}", tags=["Reference"], summary="Get one supported language")
async def get_language(code: str, _pw=Depends(require_password)):
    name = SUPPORTED_LANGUAGES.get(code)
    if name is None:
        raise HTTPException(404, "Language not found")
    return {"code": code, "name": name}


@router.get("/api/health", tags=["System"], summary="Health check with stats")
async def health_check(store=Depends(get_store)):
    ollama_ok = await check_ollama_connectivity()
    try:
        entries = await store.count()
    except CacheUnavailable:
        entries = None
    return {
        "status": "ok" if ollama_ok and entries is not None else "degraded",
        "ollama": {"reachable": ollama_ok, "url": OLLAMA_URL},
        "vocabulary": {"reachable": entries is not None, "entries": entries},
    }
