"""Application configuration helpers."""

from __future__ import annotations

from mediashelf.common.logging import configure_logging

from .anilist import AniListConfig, get_anilist_config
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .groq import GroqConfig, get_groq_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .jikan import JikanConfig, get_jikan_config
from .reconciliation import get_batch_settings, get_reconciliation_settings

__all__ = [
    "AniListConfig",
    "CacheConfig",
    "ConfigurationError",
    "GroqConfig",
    "JikanConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "get_anilist_config",
    "get_batch_settings",
    "get_groq_config",
    "get_jikan_config",
    "get_reconciliation_settings",
    "require_env_vars",
]
