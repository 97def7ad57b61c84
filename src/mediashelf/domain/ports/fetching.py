"""Ports for fetching metadata from external catalogs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mediashelf.domain.model import ExternalRef
    from mediashelf.domain.reconciliation.contracts import ImportPayload


@runtime_checkable
class MetadataFetcher(Protocol):
    """Fetch one record by external id.

    Implementations raise ``RateLimitedError`` for HTTP 429 and
    ``TransientFetchError`` for other retryable failures so the batch driver can
    pick the matching backoff.
    """

    async def fetch_by_external_id(self, ref: ExternalRef) -> ImportPayload: ...
