"""Groq chat-completion configuration values (synopsis translation)."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"
DEFAULT_TRANSLATION_LANGUAGE = "fr"


@dataclass(frozen=True, slots=True)
class GroqConfig:
    """Holds Groq API configuration values."""

    api_key: str
    model: str
    target_language: str
    resilience: ResilienceConfig


def get_groq_config(*, resilience: ResilienceConfig | None = None) -> GroqConfig:
    values = require_env_vars(("GROQ_API_KEY",))
    return GroqConfig(
        api_key=values["GROQ_API_KEY"],
        model=optional_env_var("GROQ_MODEL") or DEFAULT_GROQ_MODEL,
        target_language=translation_language(),
        resilience=resilience
        or ResilienceConfig(
            name="groq",
            base_url=DEFAULT_GROQ_BASE_URL,
            timeout_seconds=30.0,
            ratelimit=RateLimit(max_calls=1, per_seconds=2.0),
            retry=RetryPolicy(total=3),
            cache=None,
        ),
    )


def translation_language() -> str:
    return optional_env_var("MEDIASHELF_TRANSLATION_LANGUAGE") or DEFAULT_TRANSLATION_LANGUAGE
