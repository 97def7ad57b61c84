"""Synopsis translation through Groq's OpenAI-compatible chat API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field

from mediashelf.adapters.http_resilience import ResilientClient
from mediashelf.domain.enrichment import EnrichmentResult
from mediashelf.domain.ports.enrichment import Translator

if TYPE_CHECKING:
    from collections.abc import Callable

    from mediashelf.config.groq import GroqConfig
    from mediashelf.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

SERVICE_NAME = "groq"
MIN_TRANSLATABLE_LENGTH = 10

_LANGUAGE_NAMES = {"fr": "French", "en": "English", "de": "German", "es": "Spanish"}

SYSTEM_PROMPT = (
    "You are a professional translator specialised in anime, manga and games. "
    "Translate the following synopsis into {language} naturally and fluently. "
    "Do NOT translate the names of characters, places or techniques. "
    "Return ONLY the translation, without introduction or conclusion."
)


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")
    content: str | None = None


class _Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")
    message: _Message


class ChatCompletion(BaseModel):
    model_config = ConfigDict(extra="ignore")
    choices: list[_Choice] = Field(default_factory=list[_Choice])


class GroqTranslator:
    def __init__(
        self,
        *,
        config: GroqConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient

    async def translate(self, text: str, target_language: str) -> EnrichmentResult[str]:
        if len(text.strip()) < MIN_TRANSLATABLE_LENGTH:
            return EnrichmentResult.failure("Text too short to translate", service=SERVICE_NAME)

        language = _LANGUAGE_NAMES.get(target_language, target_language)
        body = {
            "model": self._config.model,
            "temperature": 0.3,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(language=language)},
                {"role": "user", "content": text},
            ],
        }
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        try:
            async with self._client_factory(self._config.resilience) as client:
                response = await client.post("chat/completions", json=body, headers=headers)
            response.raise_for_status()
            completion = ChatCompletion.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("Groq translation failed: %s", exc)
            return EnrichmentResult.failure(str(exc), service=SERVICE_NAME)

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            return EnrichmentResult.failure("Empty translation", service=SERVICE_NAME)
        return EnrichmentResult.success(content.strip())


if TYPE_CHECKING:
    from mediashelf.config.groq import get_groq_config

    _translator_check: Translator = GroqTranslator(config=get_groq_config())
