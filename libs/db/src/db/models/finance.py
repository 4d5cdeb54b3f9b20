from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    # SQLite CURRENT_TIMESTAMP only has whole seconds.
    return datetime.now(UTC)


# ---------------------------
# Reference: house_members
# ---------------------------


class HouseMember(Base):
    __tablename__ = "house_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    house_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Only "owner" may import, approve or undo invoices.
    role: Mapped[str] = mapped_column(String, nullable=False, server_default="member")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("house_id", "user_id", name="uq_house_members_house_user"),
        CheckConstraint("role in ('owner','member')", name="ck_house_members_role"),
    )


# ---------------------------
# Reference: credit_cards
# ---------------------------


class CreditCard(Base):
    __tablename__ = "credit_cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    house_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Stored as entered. Missing or out-of-range values are replaced by the
    # default closing/due day at the call site, never written back here.
    closing_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Audit: upload_logs
# ---------------------------


class UploadLog(Base):
    __tablename__ = "upload_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("credit_cards.id"), nullable=False, index=True
    )
    house_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    # Target invoice month declared by the uploader (first day of month).
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    items_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default="processing")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('processing','completed','error','pending_review','undone')",
            name="ck_upload_logs_status",
        ),
        CheckConstraint("items_count >= 0", name="ck_upload_logs_items_count"),
    )


# ---------------------------
# Core: transactions
# ---------------------------


class HouseTransaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    house_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # NULL for manual income/expense entries not tied to a card.
    card_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("credit_cards.id"), nullable=True
    )
    # NULL for manually entered rows; undo deletes by this column.
    upload_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("upload_logs.id"), nullable=True
    )
    # Verbatim text as extracted. Matching normalizes in memory only.
    description: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    installment: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="expense")
    billing_month: Mapped[date] = mapped_column(Date, nullable=False)
    recurrence_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("type in ('expense','income')", name="ck_transactions_type"),
        Index("ix_transactions_card_date", "card_id", "transaction_date"),
        Index("ix_transactions_upload_id", "upload_id"),
        Index("ix_transactions_recurrence_id", "recurrence_id"),
    )


__all__ = [
    "Base",
    "CreditCard",
    "HouseMember",
    "HouseTransaction",
    "UploadLog",
]
