"""Jikan (MyAnimeList) metadata adapter."""

from __future__ import annotations

from .client import JikanAPIError, JikanClient, JikanRateLimitedError, JikanUnavailableError
from .fetcher import JikanMetadataFetcher

__all__ = [
    "JikanAPIError",
    "JikanClient",
    "JikanMetadataFetcher",
    "JikanRateLimitedError",
    "JikanUnavailableError",
]
