"""AniList GraphQL configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_ANILIST_BASE_URL = "https://graphql.anilist.co"


@dataclass(frozen=True, slots=True)
class AniListConfig:
    resilience: ResilienceConfig


def get_anilist_config(*, resilience: ResilienceConfig | None = None) -> AniListConfig:
    return AniListConfig(
        resilience=resilience
        or ResilienceConfig(
            name="anilist",
            base_url=optional_env_var("ANILIST_BASE_URL") or DEFAULT_ANILIST_BASE_URL,
            timeout_seconds=10.0,
            ratelimit=RateLimit(max_calls=1, per_seconds=2.0),
            retry=RetryPolicy(total=2),
            cache=None,
            default_headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
    )
