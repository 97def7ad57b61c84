"""Error taxonomy shared by the reconciliation engine and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class ImportValidationError(ValueError):
    """Raised when an incoming record lacks a usable title or external id."""


class ExternalIdConflictError(RuntimeError):
    """An entry is already linked to a different external id in the same namespace."""

    def __init__(
        self,
        message: str,
        *,
        entry_id: UUID | None = None,
        entry_title: str | None = None,
        stored_value: str | None = None,
    ) -> None:
        super().__init__(message)
        self.entry_id = entry_id
        self.entry_title = entry_title
        self.stored_value = stored_value


class TransientFetchError(RuntimeError):
    """Network or upstream failure that may succeed when retried."""


class RateLimitedError(TransientFetchError):
    """The upstream answered HTTP 429."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class EnrichmentError(RuntimeError):
    """Optional enrichment (translation, cover lookup) could not be produced.

    Returned inside :class:`mediashelf.domain.enrichment.EnrichmentResult`, never raised
    out of an adapter.
    """

    def __init__(self, message: str, *, service: str) -> None:
        super().__init__(message)
        self.service = service


class ProgressError(ValueError):
    """Raised for progress updates that cannot be applied."""


class EntryNotFoundError(LookupError):
    """Raised when an operation references an unknown catalog entry."""
