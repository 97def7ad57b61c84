"""Reconciliation and batch tuning read from the environment."""

from __future__ import annotations

from mediashelf.domain.batch import (
    DEFAULT_INTER_CALL_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RATE_LIMIT_BASE_DELAY,
    DEFAULT_TRANSIENT_BASE_DELAY,
    DEFAULT_YIELD_EVERY,
    BatchSettings,
)
from mediashelf.domain.model import TieBreakRule
from mediashelf.domain.reconciliation.policy import (
    DEFAULT_SIMILARITY_THRESHOLD,
    ReconciliationSettings,
)

from .env import float_env_var, int_env_var, optional_env_var
from .errors import ConfigurationError


def get_reconciliation_settings() -> ReconciliationSettings:
    threshold = float_env_var("MEDIASHELF_SIMILARITY_THRESHOLD", DEFAULT_SIMILARITY_THRESHOLD)
    raw_rule = optional_env_var("MEDIASHELF_TIE_BREAK")
    try:
        tie_break = TieBreakRule(raw_rule.lower()) if raw_rule else TieBreakRule.LATEST_WINS
        return ReconciliationSettings(similarity_threshold=threshold, tie_break=tie_break)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid reconciliation settings: {exc}") from exc


def get_batch_settings() -> BatchSettings:
    try:
        return BatchSettings(
            max_attempts=int_env_var("MEDIASHELF_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            rate_limit_base_delay=float_env_var(
                "MEDIASHELF_RATE_LIMIT_DELAY", DEFAULT_RATE_LIMIT_BASE_DELAY
            ),
            transient_base_delay=float_env_var(
                "MEDIASHELF_TRANSIENT_DELAY", DEFAULT_TRANSIENT_BASE_DELAY
            ),
            inter_call_delay=float_env_var(
                "MEDIASHELF_INTER_CALL_DELAY", DEFAULT_INTER_CALL_DELAY
            ),
            yield_every=int_env_var("MEDIASHELF_YIELD_EVERY", DEFAULT_YIELD_EVERY),
        )
    except ValueError as exc:
        raise ConfigurationError(f"Invalid batch settings: {exc}") from exc
