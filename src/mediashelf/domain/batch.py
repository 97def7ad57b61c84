"""External fetch orchestration and the batch driver.

Responsibilities:
- retry rate-limited (HTTP 429) and transient upstream failures with linear backoff
- pace long batches so the upstream's implicit rate limit holds
- yield control periodically and stop cleanly at item boundaries when cancelled
- report progress after every item; a failing item never aborts the batch
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from mediashelf.domain.errors import RateLimitedError, TransientFetchError

log = logging.getLogger(__name__)

type SleepFunc = Callable[[float], Awaitable[None]]
type Clock = Callable[[], float]

DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_RATE_LIMIT_BASE_DELAY: Final[float] = 3.0
DEFAULT_TRANSIENT_BASE_DELAY: Final[float] = 2.0
DEFAULT_INTER_CALL_DELAY: Final[float] = 0.8
DEFAULT_YIELD_EVERY: Final[int] = 5


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchSettings:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    rate_limit_base_delay: float = DEFAULT_RATE_LIMIT_BASE_DELAY
    transient_base_delay: float = DEFAULT_TRANSIENT_BASE_DELAY
    inter_call_delay: float = DEFAULT_INTER_CALL_DELAY
    yield_every: int = DEFAULT_YIELD_EVERY

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.yield_every < 1:
            raise ValueError("yield_every must be at least 1")


async def fetch_with_retry[T](
    call: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rate_limit_base_delay: float = DEFAULT_RATE_LIMIT_BASE_DELAY,
    transient_base_delay: float = DEFAULT_TRANSIENT_BASE_DELAY,
    sleep: SleepFunc = asyncio.sleep,
    label: str = "request",
) -> T:
    """Await ``call`` until it succeeds or ``max_attempts`` transient failures occurred.

    A 429 waits ``attempt * rate_limit_base_delay`` (or the upstream's
    ``Retry-After`` when longer); other transient failures wait
    ``attempt * transient_base_delay``. Any other exception propagates at once,
    and the last transient error is re-raised when attempts run out.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retrying = AsyncRetrying(
        sleep=sleep,
        stop=stop_after_attempt(max_attempts),
        wait=linear_backoff(rate_limit_base_delay, transient_base_delay),
        retry=retry_if_exception_type(TransientFetchError),
        before_sleep=_log_retry(label, max_attempts),
        reraise=True,
    )
    try:
        return await retrying(call)
    except TransientFetchError as exc:
        log.warning("Giving up on %s after %d attempts: %s", label, max_attempts, exc)
        raise


def linear_backoff(
    rate_limit_base_delay: float,
    transient_base_delay: float,
) -> Callable[[RetryCallState], float]:
    """Tenacity wait strategy: ``attempt * base``, honouring a longer ``Retry-After``."""

    def wait(retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        if isinstance(exc, RateLimitedError):
            return max(attempt * rate_limit_base_delay, exc.retry_after or 0.0)
        return attempt * transient_base_delay

    return wait


def _log_retry(label: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action is not None else 0.0
        kind = "Rate limited" if isinstance(exc, RateLimitedError) else "Transient failure"
        log.warning(
            "%s on %s (attempt %d/%d): %s; retrying in %.1fs",
            kind,
            label,
            retry_state.attempt_number,
            max_attempts,
            exc,
            delay,
        )

    return before_sleep


class ItemOutcome(StrEnum):
    IMPORTED = "imported"
    UPDATED = "updated"
    SKIPPED = "skipped"


class CancellationToken:
    """Cooperative cancellation flag, checked by the batch driver between items."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchProgress:
    current: int
    total: int
    current_label: str
    elapsed_ms: int
    eta_ms: int | None
    imported_count: int
    updated_count: int
    skipped_count: int
    error_count: int

    def as_dict(self) -> dict[str, object]:
        """Progress record in the shape UI consumers expect."""

        return {
            "current": self.current,
            "total": self.total,
            "currentLabel": self.current_label,
            "elapsedMs": self.elapsed_ms,
            "etaMs": self.eta_ms,
            "importedCount": self.imported_count,
            "updatedCount": self.updated_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
        }


type ProgressCallback = Callable[[BatchProgress], None]


@dataclass(frozen=True, slots=True)
class BatchFailure:
    index: int
    label: str
    message: str


@dataclass(slots=True, kw_only=True)
class BatchResult:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    cancelled: bool = False
    total_time_ms: int = 0
    failures: list[BatchFailure] = field(default_factory=list[BatchFailure])

    @property
    def processed(self) -> int:
        return self.imported + self.updated + self.skipped + self.errors

    def record(self, outcome: ItemOutcome) -> None:
        if outcome is ItemOutcome.IMPORTED:
            self.imported += 1
        elif outcome is ItemOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1


def estimate_eta_ms(processed: int, total: int, elapsed_ms: float) -> int | None:
    """ETA from observed throughput; ``None`` whenever it cannot be finite."""

    if processed <= 0 or elapsed_ms <= 0:
        return None
    per_minute = processed / (elapsed_ms / 60_000)
    if not math.isfinite(per_minute) or per_minute <= 0:
        return None
    eta = max(total - processed, 0) / per_minute * 60_000
    if not math.isfinite(eta) or eta < 0:
        return None
    return round(eta)


async def run_batch[T](  # noqa: PLR0913
    items: Sequence[T],
    work: Callable[[T], Awaitable[ItemOutcome]],
    *,
    on_progress: ProgressCallback | None = None,
    cancellation: CancellationToken | None = None,
    settings: BatchSettings | None = None,
    label: Callable[[T], str] = str,
    sleep: SleepFunc = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> BatchResult:
    """Process ``items`` one at a time with pacing, progress and cancellation."""

    effective = settings or BatchSettings()
    started = clock()
    total = len(items)
    result = BatchResult()

    for index, item in enumerate(items, start=1):
        if index > 1 and effective.inter_call_delay > 0:
            await sleep(effective.inter_call_delay)
        if index % effective.yield_every == 0:
            await sleep(0)
        if cancellation is not None and cancellation.cancelled:
            log.info("Batch cancelled before item %d/%d", index, total)
            result.cancelled = True
            break

        item_label = label(item)
        try:
            outcome = await work(item)
        except Exception as exc:  # noqa: BLE001
            result.errors += 1
            result.failures.append(BatchFailure(index=index, label=item_label, message=str(exc)))
            log.warning("Batch item %d/%d (%s) failed: %s", index, total, item_label, exc)
        else:
            result.record(outcome)

        if on_progress is not None:
            elapsed_ms = (clock() - started) * 1000
            on_progress(
                BatchProgress(
                    current=index,
                    total=total,
                    current_label=item_label,
                    elapsed_ms=round(elapsed_ms),
                    eta_ms=estimate_eta_ms(index, total, elapsed_ms),
                    imported_count=result.imported,
                    updated_count=result.updated,
                    skipped_count=result.skipped,
                    error_count=result.errors,
                )
            )

    result.total_time_ms = round((clock() - started) * 1000)
    log.info(
        "Batch finished: imported=%d, updated=%d, skipped=%d, errors=%d, cancelled=%s, %dms",
        result.imported,
        result.updated,
        result.skipped,
        result.errors,
        result.cancelled,
        result.total_time_ms,
    )
    return result
