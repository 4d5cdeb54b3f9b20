"""Public API interfaces for the ``invoice_ingest`` package.

This module serves as a stable import surface. The upload lifecycle lives in
``invoice_ingest.uploads``, manual and recurring entries in
``invoice_ingest.recurrence`` and the extraction adapter in
``invoice_ingest.extraction``; they are re-exported here.
"""

from __future__ import annotations

from .extraction import OpenAIExtractor, TransactionExtractor
from .models import (
    CandidateTransaction,
    FileKind,
    IngestionRequest,
    IngestionResponse,
    ManualEntry,
    PossibleDuplicate,
    ReviewResolutionRequest,
    UndoRequest,
)
from .recurrence import create_manual_entry, delete_recurring_entry
from .uploads import (
    approve_duplicates,
    delete_upload_transaction,
    list_upload_history,
    list_upload_transactions,
    process_invoice,
    undo_upload,
)

__all__ = [
    "CandidateTransaction",
    "FileKind",
    "IngestionRequest",
    "IngestionResponse",
    "ManualEntry",
    "OpenAIExtractor",
    "PossibleDuplicate",
    "ReviewResolutionRequest",
    "TransactionExtractor",
    "UndoRequest",
    "approve_duplicates",
    "create_manual_entry",
    "delete_recurring_entry",
    "delete_upload_transaction",
    "list_upload_history",
    "list_upload_transactions",
    "process_invoice",
    "undo_upload",
]
