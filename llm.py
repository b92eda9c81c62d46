"""LLM interaction (Ollama): vocabulary translation batches and sentence explanations."""
import os
import json
import re as _re
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from log import get_logger, log_duration
from errors import GatewayMalformedResponse, GatewayUnavailable
from models import RawAiTranslation, SUPPORTED_LANGUAGES

logger = get_logger("lang2lang.llm")

# --- Config ---
OLLAMA_URL = os.environ.get("LANG2LANG_OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.environ.get("LANG2LANG_OLLAMA_MODEL", "qwen2.5:14b-instruct-q3_K_M")
LLM_TIMEOUT = int(os.environ.get("LANG2LANG_LLM_TIMEOUT", "120"))

ChatFn = Callable[..., Awaitable[Optional[str]]]

TRANSLATE_PROMPT = """Translate the following list of words from the original language: {source_language}
to the target language: {target_language}

For each word, provide:
1. The original word.
2. Its translation in the target language stated above.
3. Its part of speech (e.g. "noun", "verb", "adjective", "adverb", "preposition", "pronoun", "conjunction", "interjection").
4. Its grammatical gender in the target language if applicable (e.g. "masculine", "feminine", "neuter"), otherwise null.

If a word cannot be translated, use "[undefined]" as its translation.

Return the response as a JSON array of objects. Each object must have the keys
"word", "translation", "partOfSpeech" and "gender". Ensure the JSON is valid and can be parsed directly.
Words to translate: {words}"""

CHAT_PROMPT = """You are an expert language tutor and explainer. Your goal is to help a user understand the nuances of translation between languages.

The original sentence is in {source_language}: "{native_text}"
The translated sentence is in {target_language}: "{translated_text}"

Here is the user question: {question}

Please provide a clear, concise, and helpful explanation. Focus on linguistic reasons, grammar, vocabulary, or cultural context. Avoid conversational filler. If you cannot answer based on the provided context, state that clearly."""


def language_name(code: str) -> str:
    return SUPPORTED_LANGUAGES.get(code, code)


# --- Helpers ---

_CODE_FENCE = _re.compile(r"```(?:json)?\s*|```")


def parse_json_array(text: str) -> Optional[list]:
    """Parse an LLM reply that should be a JSON array, tolerating code fences and chatter."""
    cleaned = _CODE_FENCE.sub("", text or "").strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _re.search(r'\[.*\]', cleaned, _re.DOTALL)
        if not match:
            return None
        try:
            parsed = json.loads(match.group())
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, list) else None


async def ollama_chat(messages: list, model: str = None, temperature: float = 0.3,
                      num_predict: int = 2048, timeout: int = LLM_TIMEOUT) -> Optional[str]:
    """Call Ollama chat API and return the content string, or None on a non-200 reply.

    Raises GatewayMalformedResponse when the envelope carries no string content.
    """
    if model is None:
        model = OLLAMA_MODEL
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(
            f"{OLLAMA_URL}/api/chat",
            json={
                "model": model,
                "messages": messages,
                "stream": False,
                "options": {"temperature": temperature, "num_predict": num_predict},
            },
        )
    if resp.status_code != 200:
        logger.warning("Ollama returned an error status", extra={
            "component": "ollama", "status_code": resp.status_code,
        })
        return None
    data = resp.json()
    message = data.get("message") if isinstance(data, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise GatewayMalformedResponse("Ollama reply has no message content", raw_text=resp.text[:300])
    return content


async def check_ollama_connectivity() -> bool:
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(f"{OLLAMA_URL}/api/tags")
            return resp.status_code == 200
    except httpx.HTTPError:
        logger.warning("Ollama not reachable", extra={"component": "ollama"})
        return False


class TranslationGateway:
    """Asks the LLM for word translations and sentence explanations.

    No caching or retries here: one call in, one parsed answer out. The chat
    function is injectable so tests can stand in for Ollama.
    """

    def __init__(self, chat: ChatFn = None, model: str = None):
        self._chat = chat or ollama_chat
        self.model = model or OLLAMA_MODEL

    async def _ask(self, messages: list, **options) -> str:
        with log_duration(logger, "LLM call finished", component="llm", detail=self.model) as stats:
            try:
                text = await self._chat(messages, model=self.model, **options)
            except httpx.HTTPError as e:
                raise GatewayUnavailable(f"LLM request failed: {e}") from e
            except ValueError as e:
                raise GatewayMalformedResponse(f"LLM API returned invalid JSON: {e}") from e
            if text is None:
                raise GatewayUnavailable("LLM API error")
            stats["count"] = len(text)
        return text

    async def translate_batch(self, words: Sequence[str], source_language: str,
                              target_language: str) -> List[RawAiTranslation]:
        """Translate normalized words in one call.

        The reply is not trusted for completeness: it may hold fewer, more or
        differently cased words than requested. Elements that fail validation
        are dropped; a reply that is not a JSON array at all raises
        GatewayMalformedResponse.
        """
        if not words:
            raise ValueError("translate_batch needs at least one word")

        prompt = TRANSLATE_PROMPT.format(
            source_language=language_name(source_language),
            target_language=language_name(target_language),
            words=json.dumps(list(words), ensure_ascii=False),
        )
        logger.info("Requesting vocabulary translations", extra={
            "component": "llm", "count": len(words),
            "source_language": source_language, "target_language": target_language,
        })
        text = await self._ask(
            [{"role": "system", "content": "You are a bilingual dictionary. Respond with valid JSON only."},
             {"role": "user", "content": prompt}],
            temperature=0.2, num_predict=2048,
        )

        items = parse_json_array(text)
        if items is None:
            raise GatewayMalformedResponse("LLM reply is not a JSON array", raw_text=text[:300])

        translations = []
        for item in items:
            try:
                translations.append(RawAiTranslation.model_validate(item))
            except ValidationError:
                logger.warning("Dropping malformed translation record", extra={
                    "component": "llm", "detail": str(item)[:200],
                })
        return translations

    async def explain_sentence(self, native_text: str, translated_text: str, question: str,
                               source_language: str, target_language: str) -> str:
        prompt = CHAT_PROMPT.format(
            source_language=language_name(source_language),
            target_language=language_name(target_language),
            native_text=native_text,
            translated_text=translated_text,
            question=question,
        )
        text = await self._ask([{"role": "user", "content": prompt}], temperature=0.4, num_predict=1024)
        text = text.strip()
        if not text:
            raise GatewayMalformedResponse("LLM returned an empty explanation")
        return text
