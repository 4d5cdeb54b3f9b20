# ruff: noqa: I001
"""Household cards, upload audit log and transactions.

Revision ID: 0001_invoice_core
Revises: None
Create Date: 2026-01-15
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_invoice_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "house_members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("house_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'member'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("house_id", "user_id", name="uq_house_members_house_user"),
        sa.CheckConstraint("role in ('owner','member')", name="ck_house_members_role"),
    )

    op.create_table(
        "credit_cards",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("house_id", sa.String(36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("closing_day", sa.Integer(), nullable=True),
        sa.Column("due_day", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_credit_cards_house_id", "credit_cards", ["house_id"])

    op.create_table(
        "upload_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("card_id", sa.String(36), sa.ForeignKey("credit_cards.id"), nullable=False),
        sa.Column("house_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("billing_month", sa.Date(), nullable=False),
        sa.Column("items_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'processing'")),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('processing','completed','error','pending_review','undone')",
            name="ck_upload_logs_status",
        ),
        sa.CheckConstraint("items_count >= 0", name="ck_upload_logs_items_count"),
    )
    op.create_index("ix_upload_logs_card_id", "upload_logs", ["card_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("house_id", sa.String(36), nullable=False),
        sa.Column("card_id", sa.String(36), sa.ForeignKey("credit_cards.id"), nullable=True),
        sa.Column("upload_id", sa.String(36), sa.ForeignKey("upload_logs.id"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("installment", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("type", sa.Text(), nullable=False, server_default=sa.text("'expense'")),
        sa.Column("billing_month", sa.Date(), nullable=False),
        sa.Column("recurrence_id", sa.String(36), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint("type in ('expense','income')", name="ck_transactions_type"),
    )
    op.create_index("ix_transactions_card_date", "transactions", ["card_id", "transaction_date"])
    op.create_index("ix_transactions_upload_id", "transactions", ["upload_id"])
    op.create_index("ix_transactions_recurrence_id", "transactions", ["recurrence_id"])


def downgrade() -> None:
    op.drop_index("ix_transactions_recurrence_id", table_name="transactions")
    op.drop_index("ix_transactions_upload_id", table_name="transactions")
    op.drop_index("ix_transactions_card_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_upload_logs_card_id", table_name="upload_logs")
    op.drop_table("upload_logs")
    op.drop_index("ix_credit_cards_house_id", table_name="credit_cards")
    op.drop_table("credit_cards")
    op.drop_table("house_members")
