"""Exception hierarchy for the invoice ingestion pipeline.

Every exception carries a human-readable message suitable for showing to the
person who uploaded the file. Callers that only need to distinguish "pipeline
failure" from programming errors can catch :class:`InvoiceIngestError`.

Hierarchy::

    InvoiceIngestError
    ├── ValidationError
    │   └── UploadStateError
    ├── AuthorizationError
    ├── NotFoundError
    ├── ExtractionServiceError
    │   ├── RateLimitedError
    │   ├── QuotaExceededError
    │   └── ExtractionUnavailableError
    ├── ParseError
    └── PersistenceError
"""

from __future__ import annotations


class InvoiceIngestError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InvoiceIngestError):
    """A required field is missing or malformed; raised before any mutation."""


class UploadStateError(ValidationError):
    """The upload's current status does not allow the requested operation."""

    def __init__(self, message: str, *, status: str) -> None:
        super().__init__(message)
        self.status = status


class AuthorizationError(InvoiceIngestError):
    """The caller is not an owner of the household."""


class NotFoundError(InvoiceIngestError):
    """A referenced upload, card or transaction does not exist."""


class ExtractionServiceError(InvoiceIngestError):
    """The external extraction service failed to produce a response."""


class RateLimitedError(ExtractionServiceError):
    """The extraction service rejected the call due to request rate."""


class QuotaExceededError(ExtractionServiceError):
    """The extraction service account has no remaining credits/quota."""


class ExtractionUnavailableError(ExtractionServiceError):
    """Timeout, connection failure or server-side error from the service."""


class ParseError(InvoiceIngestError):
    """The service response did not contain a usable JSON object."""


class PersistenceError(InvoiceIngestError):
    """A database write (insert, delete or status update) failed."""


__all__ = [
    "AuthorizationError",
    "ExtractionServiceError",
    "ExtractionUnavailableError",
    "InvoiceIngestError",
    "NotFoundError",
    "ParseError",
    "PersistenceError",
    "QuotaExceededError",
    "RateLimitedError",
    "UploadStateError",
    "ValidationError",
]
