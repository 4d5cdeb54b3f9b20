# ruff: noqa: I001
"""Persistence integration for invoice_ingest.

Functions here read and write the shared database owned by ``libs/db``. They
take an open SQLAlchemy ``Session`` and never commit; transaction boundaries
belong to the caller (``db.client.session_scope``).

Scope:
- Household ownership and card lookups.
- Upload records: create, load, status updates.
- Point-in-time snapshot of a card's stored transactions.
- Batch insert of transaction rows (imported and projected) and delete by upload.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.finance import CreditCard, HouseMember, HouseTransaction, UploadLog
from .billing import billing_month
from .errors import AuthorizationError, NotFoundError, PersistenceError
from .installments import ProjectedInstallment
from .models import (
    UNCLASSIFIED_CATEGORY,
    CandidateTransaction,
    ExistingTransaction,
    TransactionType,
    UploadStatus,
    to_amount,
)


@contextmanager
def db_errors(operation: str) -> Iterator[None]:
    """Re-raise ``SQLAlchemyError`` raised inside the block as ``PersistenceError``."""

    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"{operation} failed: {e.__class__.__name__}") from e


def ensure_house_owner(session: Session, *, house_id: str, user_id: str) -> None:
    role = session.execute(
        select(HouseMember.role)
        .where(HouseMember.house_id == house_id)
        .where(HouseMember.user_id == user_id)
    ).scalar_one_or_none()
    if role != "owner":
        raise AuthorizationError("only household owners can import or change invoices")


def get_card(session: Session, *, card_id: str, house_id: str) -> CreditCard:
    card = session.get(CreditCard, card_id)
    if card is None or card.house_id != house_id:
        raise NotFoundError(f"credit card {card_id} not found in household {house_id}")
    return card


def get_upload(session: Session, upload_id: str) -> UploadLog:
    upload = session.get(UploadLog, upload_id)
    if upload is None:
        raise NotFoundError(f"upload {upload_id} not found")
    return upload


def create_upload_log(
    session: Session,
    *,
    card_id: str,
    house_id: str,
    user_id: str,
    filename: str,
    billing_month: date,
) -> UploadLog:
    upload = UploadLog(
        id=str(uuid.uuid4()),
        card_id=card_id,
        house_id=house_id,
        user_id=user_id,
        filename=filename,
        billing_month=billing_month,
        items_count=0,
        status=UploadStatus.PROCESSING.value,
    )
    session.add(upload)
    session.flush()
    return upload


def set_upload_status(
    session: Session,
    upload: UploadLog,
    status: UploadStatus,
    *,
    items_count: int | None = None,
    error_message: str | None = None,
) -> None:
    upload.status = status.value
    if items_count is not None:
        upload.items_count = max(0, items_count)
    if error_message is not None:
        upload.error_message = error_message
    session.flush()


def load_existing_card_transactions(session: Session, card_id: str) -> list[ExistingTransaction]:
    """Snapshot of the card's stored transactions, oldest first."""

    stmt = (
        select(HouseTransaction)
        .where(HouseTransaction.card_id == card_id)
        .order_by(HouseTransaction.created_at, HouseTransaction.id)
    )
    return [
        ExistingTransaction(
            id=row.id,
            description=row.description,
            transaction_date=row.transaction_date,
            amount=to_amount(row.amount),
            installment=row.installment,
            category=row.category,
        )
        for row in session.execute(stmt).scalars()
    ]


@dataclass(frozen=True, slots=True)
class RowContext:
    """Columns shared by every row written for one upload."""

    house_id: str
    card_id: str
    upload_id: str
    created_by: str
    closing_day: int


def candidate_row(cand: CandidateTransaction, ctx: RowContext) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "house_id": ctx.house_id,
        "card_id": ctx.card_id,
        "upload_id": ctx.upload_id,
        "description": cand.description,
        "transaction_date": cand.date,
        "amount": abs(to_amount(cand.amount)),
        "installment": cand.installment,
        "category": cand.category or UNCLASSIFIED_CATEGORY,
        "type": TransactionType.EXPENSE.value,
        "billing_month": billing_month(cand.date, ctx.closing_day).billing_month,
        "created_by": ctx.created_by,
    }


def projection_row(proj: ProjectedInstallment, ctx: RowContext) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "house_id": ctx.house_id,
        "card_id": ctx.card_id,
        "upload_id": ctx.upload_id,
        "description": proj.description,
        "transaction_date": proj.transaction_date,
        "amount": abs(to_amount(proj.amount)),
        "installment": proj.installment,
        "category": proj.category or UNCLASSIFIED_CATEGORY,
        "type": TransactionType.EXPENSE.value,
        "billing_month": proj.billing_month,
        "created_by": ctx.created_by,
    }


def insert_transaction_rows(session: Session, rows: Sequence[dict[str, Any]]) -> int:
    """Bulk insert prepared rows; returns the number written."""

    if not rows:
        return 0
    session.execute(insert(HouseTransaction), list(rows))
    return len(rows)


def delete_upload_rows(session: Session, upload_id: str) -> int:
    stmt = delete(HouseTransaction).where(HouseTransaction.upload_id == upload_id)
    result = session.execute(stmt)
    return int(result.rowcount or 0)


def list_transactions_for_upload(session: Session, upload_id: str) -> list[HouseTransaction]:
    stmt = (
        select(HouseTransaction)
        .where(HouseTransaction.upload_id == upload_id)
        .order_by(
            HouseTransaction.transaction_date, HouseTransaction.created_at, HouseTransaction.id
        )
    )
    return list(session.execute(stmt).scalars())


def list_uploads_for_card(
    session: Session, *, card_id: str, house_id: str, limit: int
) -> list[UploadLog]:
    stmt = (
        select(UploadLog)
        .where(UploadLog.card_id == card_id)
        .where(UploadLog.house_id == house_id)
        .order_by(UploadLog.created_at.desc(), UploadLog.id.desc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars())


def total_amount(rows: Iterable[dict[str, Any]]) -> Decimal:
    return sum((r["amount"] for r in rows), Decimal("0.00"))


__all__ = [
    "RowContext",
    "candidate_row",
    "create_upload_log",
    "db_errors",
    "delete_upload_rows",
    "ensure_house_owner",
    "get_card",
    "get_upload",
    "insert_transaction_rows",
    "list_transactions_for_upload",
    "list_uploads_for_card",
    "load_existing_card_transactions",
    "projection_row",
    "set_upload_status",
    "total_amount",
]
