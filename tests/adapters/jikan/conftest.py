"""Shared fixtures for Jikan adapter tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from mediashelf.adapters.jikan.client import JikanClient
from mediashelf.config.http_resilience import ResilienceConfig, RetryPolicy
from mediashelf.config.jikan import JikanConfig
from tests.helpers.http import Handler, make_client_factory

JikanPayload = dict[str, object]
FIXTURES = Path(__file__).parents[2] / "data" / "jikan"


def _load_fixture(name: str) -> JikanPayload:
    return json.loads((FIXTURES / name).read_text(encoding="utf-8"))


@pytest.fixture
def jikan_config() -> JikanConfig:
    return JikanConfig(
        resilience=ResilienceConfig(
            name="jikan-test",
            base_url="https://jikan.test/v4/",
            retry=RetryPolicy(total=0),
            cache=None,
        )
    )


@pytest.fixture
def anime_payload() -> JikanPayload:
    return _load_fixture("anime_full.json")


@pytest.fixture
def manga_payload() -> JikanPayload:
    return _load_fixture("manga_full.json")


@pytest.fixture
def make_jikan_client(jikan_config: JikanConfig) -> Callable[[Handler], JikanClient]:
    def build(handler: Handler) -> JikanClient:
        return JikanClient(config=jikan_config, client_factory=make_client_factory(handler))

    return build
