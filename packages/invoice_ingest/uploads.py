"""Upload lifecycle: import, duplicate review, undo and history.

Public API:
    - :func:`process_invoice`
    - :func:`approve_duplicates`
    - :func:`undo_upload`
    - :func:`delete_upload_transaction`
    - :func:`list_upload_history`
    - :func:`list_upload_transactions`

Status machine of an upload record::

    processing -> completed | error | pending_review
    pending_review -> completed
    completed | pending_review -> undone

Acting on an ``undone`` or ``error`` upload is a successful no-op. Each
operation opens its own ``session_scope``; an import writes its rows and the
terminal status in a single database transaction.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from db.client import session_scope
from db.models.finance import HouseTransaction

from .billing import effective_closing_day
from .category_learning import (
    apply_learned_categories,
    build_category_lookup,
    load_category_history,
)
from .duplicates import reconcile
from .errors import (
    InvoiceIngestError,
    NotFoundError,
    PersistenceError,
    UploadStateError,
    ValidationError,
)
from .extraction import OpenAIExtractor, TransactionExtractor
from .ingest.file_content import prepare_content
from .installments import project_batch
from .logging_setup import get_logger
from .models import (
    CandidateTransaction,
    IngestionRequest,
    IngestionResponse,
    ReviewResolutionRequest,
    StoredTransaction,
    UndoRequest,
    UploadStatus,
    UploadSummary,
    coerce_model,
    require_user_id,
)
from .persistence import (
    RowContext,
    candidate_row,
    create_upload_log,
    db_errors,
    delete_upload_rows,
    ensure_house_owner,
    get_card,
    get_upload,
    insert_transaction_rows,
    list_transactions_for_upload,
    list_uploads_for_card,
    load_existing_card_transactions,
    projection_row,
    set_upload_status,
    total_amount,
)

_logger = get_logger("invoice_ingest.uploads")

DEFAULT_HISTORY_LIMIT = 10

# Statuses from which each operation may act; NO_OP statuses succeed silently.
_REVIEWABLE = frozenset({UploadStatus.PENDING_REVIEW, UploadStatus.COMPLETED})
_UNDOABLE = frozenset({UploadStatus.PENDING_REVIEW, UploadStatus.COMPLETED})
_NO_OP = frozenset({UploadStatus.UNDONE, UploadStatus.ERROR})


def _build_rows(
    candidates: Sequence[CandidateTransaction], ctx: RowContext
) -> tuple[list[dict[str, Any]], int]:
    """Rows for ``candidates`` and their projected installments, plus the projection count."""

    rows: list[dict[str, Any]] = []
    projected = 0
    for cand, projections in project_batch(candidates, ctx.closing_day):
        rows.append(candidate_row(cand, ctx))
        rows.extend(projection_row(p, ctx) for p in projections)
        projected += len(projections)
    return rows, projected


def _mark_upload_error(upload_id: str, message: str, *, database_url: str | None) -> None:
    try:
        with db_errors("mark upload error"), session_scope(database_url=database_url) as session:
            upload = get_upload(session, upload_id)
            set_upload_status(session, upload, UploadStatus.ERROR, error_message=message[:2000])
    except (PersistenceError, NotFoundError):
        # The original failure is what the caller needs to see.
        _logger.exception("process_invoice:mark_error_failed upload_id=%s", upload_id)


def _import_message(new: int, projected: int, duplicates: int) -> str:
    if new == 0 and duplicates == 0:
        return "No transactions found in the file"
    parts = [f"{new} transactions imported"]
    if projected:
        parts.append(f"{projected} future installments projected")
    if duplicates:
        parts.append(f"{duplicates} possible duplicates awaiting review")
    return ", ".join(parts)


def process_invoice(
    request: IngestionRequest | Mapping[str, Any],
    *,
    user_id: str,
    extractor: TransactionExtractor | None = None,
    database_url: str | None = None,
) -> IngestionResponse:
    """Import one invoice file for a card.

    Creates the upload record in ``processing`` before calling the extraction
    service. Candidates are annotated with learned categories and split into
    clean rows and possible duplicates against the card's stored
    transactions. Clean rows, their installment projections and the terminal
    status are committed together. Possible duplicates are returned, never
    inserted.

    Any failure after the record exists moves it to ``error`` and re-raises.
    """

    req = coerce_model(IngestionRequest, request)
    require_user_id(user_id)
    # Undecodable payloads are rejected before an upload record exists.
    prepare_content(req.file_content, req.file_kind)

    with db_errors("create upload"), session_scope(database_url=database_url) as session:
        ensure_house_owner(session, house_id=req.house_id, user_id=user_id)
        card = get_card(session, card_id=req.card_id, house_id=req.house_id)
        closing_day = effective_closing_day(card.closing_day)
        upload = create_upload_log(
            session,
            card_id=req.card_id,
            house_id=req.house_id,
            user_id=user_id,
            filename=req.filename,
            billing_month=req.billing_month,
        )
        upload_id = upload.id

    _logger.info(
        "process_invoice:start upload_id=%s card_id=%s kind=%s invoice_month=%s",
        upload_id,
        req.card_id,
        req.file_kind.value,
        req.invoice_month,
    )

    try:
        candidates = (extractor or OpenAIExtractor()).extract(req.file_content, req.file_kind)

        with db_errors("import transactions"), session_scope(database_url=database_url) as session:
            lookup = build_category_lookup(load_category_history(session, req.house_id))
            annotated, from_history = apply_learned_categories(candidates, lookup)
            existing = load_existing_card_transactions(session, req.card_id)
            result = reconcile(annotated, existing)

            ctx = RowContext(
                house_id=req.house_id,
                card_id=req.card_id,
                upload_id=upload_id,
                created_by=user_id,
                closing_day=closing_day,
            )
            rows, projected = _build_rows(result.new, ctx)
            insert_transaction_rows(session, rows)

            if result.new or not result.possible_duplicates:
                status = UploadStatus.COMPLETED
            else:
                status = UploadStatus.PENDING_REVIEW
            set_upload_status(
                session, get_upload(session, upload_id), status, items_count=len(result.new)
            )
    except Exception as e:  # noqa: BLE001 - any failure marks the upload, then propagates
        message = e.message if isinstance(e, InvoiceIngestError) else str(e) or e.__class__.__name__
        _logger.error(
            "process_invoice:failed upload_id=%s error=%s", upload_id, e.__class__.__name__
        )
        _mark_upload_error(upload_id, message, database_url=database_url)
        raise

    _logger.info(
        (
            "process_invoice:done upload_id=%s status=%s imported=%d projected=%d "
            "duplicates=%d from_history=%d total=%s"
        ),
        upload_id,
        status.value,
        len(result.new),
        projected,
        len(result.possible_duplicates),
        from_history,
        total_amount(rows),
    )
    return IngestionResponse(
        upload_id=upload_id,
        status=status,
        items_count=len(result.new),
        projected_count=projected,
        possible_duplicates=result.possible_duplicates,
        categorized_from_history=from_history,
        message=_import_message(len(result.new), projected, len(result.possible_duplicates)),
    )


def approve_duplicates(
    request: ReviewResolutionRequest | Mapping[str, Any],
    *,
    user_id: str,
    database_url: str | None = None,
) -> IngestionResponse:
    """Insert the possible duplicates the user approved and complete the upload.

    Approved rows go through the same path as clean rows: learned categories,
    billing month from the card's closing day and installment projection. The
    upload's ``items_count`` grows by the number approved. An empty approval
    list just resolves the review.
    """

    req = coerce_model(ReviewResolutionRequest, request)
    require_user_id(user_id)

    with db_errors("approve duplicates"), session_scope(database_url=database_url) as session:
        upload = get_upload(session, req.upload_id)
        ensure_house_owner(session, house_id=upload.house_id, user_id=user_id)
        status = UploadStatus(upload.status)

        if status in _NO_OP:
            _logger.info("approve_duplicates:noop upload_id=%s status=%s", upload.id, status.value)
            return IngestionResponse(
                upload_id=upload.id,
                status=status,
                items_count=0,
                message=f"Upload is {status.value}; nothing to approve",
            )
        if status not in _REVIEWABLE:
            raise UploadStateError(
                f"upload {upload.id} is still {status.value}", status=status.value
            )

        card = get_card(session, card_id=upload.card_id, house_id=upload.house_id)
        lookup = build_category_lookup(load_category_history(session, upload.house_id))
        annotated, from_history = apply_learned_categories(req.approved_transactions, lookup)
        ctx = RowContext(
            house_id=upload.house_id,
            card_id=upload.card_id,
            upload_id=upload.id,
            created_by=user_id,
            closing_day=effective_closing_day(card.closing_day),
        )
        rows, projected = _build_rows(annotated, ctx)
        insert_transaction_rows(session, rows)
        set_upload_status(
            session,
            upload,
            UploadStatus.COMPLETED,
            items_count=upload.items_count + len(annotated),
        )

    _logger.info(
        "approve_duplicates:done upload_id=%s approved=%d projected=%d",
        req.upload_id,
        len(annotated),
        projected,
    )
    message = (
        f"{len(annotated)} transactions approved and imported"
        if annotated
        else "No transactions approved"
    )
    return IngestionResponse(
        upload_id=req.upload_id,
        status=UploadStatus.COMPLETED,
        items_count=len(annotated),
        projected_count=projected,
        categorized_from_history=from_history,
        message=message,
    )


def undo_upload(
    upload: str | UndoRequest | Mapping[str, Any],
    *,
    user_id: str,
    database_url: str | None = None,
) -> bool:
    """Delete every row written by the upload and mark it ``undone``.

    ``upload`` is an upload id or an :class:`UndoRequest`. Idempotent: undoing
    an ``undone`` (or ``error``) upload returns True without changes. Rows are
    deleted and the status updated in one transaction.
    """

    if isinstance(upload, str):
        upload_id = upload
    else:
        upload_id = coerce_model(UndoRequest, upload).upload_id
    if not upload_id:
        raise ValidationError("upload_id is required")
    require_user_id(user_id)

    with db_errors("undo upload"), session_scope(database_url=database_url) as session:
        record = get_upload(session, upload_id)
        ensure_house_owner(session, house_id=record.house_id, user_id=user_id)
        status = UploadStatus(record.status)
        if status in _NO_OP:
            _logger.info("undo_upload:noop upload_id=%s status=%s", upload_id, status.value)
            return True
        if status not in _UNDOABLE:
            raise UploadStateError(
                f"upload {upload_id} is still {status.value}", status=status.value
            )
        deleted = delete_upload_rows(session, upload_id)
        set_upload_status(session, record, UploadStatus.UNDONE)

    _logger.info("undo_upload:done upload_id=%s deleted=%d", upload_id, deleted)
    return True


def delete_upload_transaction(
    upload_id: str,
    transaction_id: str,
    *,
    user_id: str,
    database_url: str | None = None,
) -> bool:
    """Delete one row of an upload and decrement its count (never below zero).

    Returns False when the transaction does not belong to the upload.
    """

    require_user_id(user_id)
    with (
        db_errors("delete upload transaction"),
        session_scope(database_url=database_url) as session,
    ):
        upload = get_upload(session, upload_id)
        ensure_house_owner(session, house_id=upload.house_id, user_id=user_id)
        row = session.get(HouseTransaction, transaction_id)
        if row is None or row.upload_id != upload_id:
            return False
        session.delete(row)
        set_upload_status(
            session, upload, UploadStatus(upload.status), items_count=upload.items_count - 1
        )

    _logger.info(
        "delete_upload_transaction:done upload_id=%s transaction_id=%s", upload_id, transaction_id
    )
    return True


def list_upload_history(
    card_id: str,
    house_id: str,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
    database_url: str | None = None,
) -> list[UploadSummary]:
    """Most recent uploads of a card first."""

    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    with db_errors("list upload history"), session_scope(database_url=database_url) as session:
        uploads = list_uploads_for_card(session, card_id=card_id, house_id=house_id, limit=limit)
        return [
            UploadSummary(
                id=u.id,
                card_id=u.card_id,
                filename=u.filename,
                billing_month=u.billing_month,
                items_count=u.items_count,
                status=UploadStatus(u.status),
                created_at=u.created_at,
            )
            for u in uploads
        ]


def list_upload_transactions(
    upload_id: str, *, database_url: str | None = None
) -> list[StoredTransaction]:
    with db_errors("list upload transactions"), session_scope(database_url=database_url) as session:
        get_upload(session, upload_id)
        return [
            StoredTransaction(
                id=r.id,
                description=r.description,
                transaction_date=r.transaction_date,
                amount=r.amount,
                installment=r.installment,
                category=r.category,
                billing_month=r.billing_month,
                upload_id=r.upload_id,
                recurrence_id=r.recurrence_id,
            )
            for r in list_transactions_for_upload(session, upload_id)
        ]


__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "approve_duplicates",
    "delete_upload_transaction",
    "list_upload_history",
    "list_upload_transactions",
    "process_invoice",
    "undo_upload",
]
