"""Jikan (MyAnimeList mirror) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import (
    SERVER_ERROR_STATUSES,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)

DEFAULT_JIKAN_BASE_URL = "https://api.jikan.moe/v4"
JIKAN_TIMEOUT_SECONDS = 15.0
JIKAN_CACHE_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class JikanConfig:
    resilience: ResilienceConfig


def get_jikan_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> JikanConfig:
    # 429 stays out of the transport retries; the batch driver backs off on it.
    # Clients are built per request, so only the on-disk cache outlives one call.
    return JikanConfig(
        resilience=resilience
        or ResilienceConfig(
            name="jikan",
            base_url=optional_env_var("JIKAN_BASE_URL") or DEFAULT_JIKAN_BASE_URL,
            timeout_seconds=JIKAN_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=3, per_seconds=1.0),
            retry=RetryPolicy(total=2, status_forcelist=SERVER_ERROR_STATUSES),
            cache=CacheConfig(
                backend="sqlite",
                default_ttl_seconds=JIKAN_CACHE_TTL_SECONDS,
                should_cache=cache_predicate,
            ),
        )
    )
