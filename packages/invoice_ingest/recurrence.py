"""Manual expense/income entries, optionally repeated monthly.

A repeated entry writes one row per month sharing a ``recurrence_id``.
Occurrence ``i`` is dated ``i`` months after the first one and billed ``i``
months after the first occurrence's billing month. Card expenses are billed
through the card's closing day; everything else is billed in its own month.
A card occurrence whose clamped date would bill a month early (Jan 30 to
Feb 28 with closing day 28) is moved to the first day of its billing month.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, Literal

from db.client import session_scope
from db.models.finance import HouseTransaction
from sqlalchemy import delete, select

from .billing import (
    add_months,
    billing_month,
    date_in_billing_month,
    effective_closing_day,
    month_start,
)
from .errors import NotFoundError, ValidationError
from .logging_setup import get_logger
from .models import (
    UNCLASSIFIED_CATEGORY,
    ManualEntry,
    TransactionType,
    coerce_model,
    require_user_id,
)
from .persistence import db_errors, ensure_house_owner, get_card

type DeleteScope = Literal["single", "future"]

_logger = get_logger("invoice_ingest.recurrence")


def create_manual_entry(
    entry: ManualEntry | Mapping[str, Any],
    *,
    user_id: str,
    database_url: str | None = None,
) -> list[str]:
    """Write ``entry.months`` monthly occurrences and return their ids in date order."""

    e = coerce_model(ManualEntry, entry)
    require_user_id(user_id)

    with db_errors("create manual entry"), session_scope(database_url=database_url) as session:
        ensure_house_owner(session, house_id=e.house_id, user_id=user_id)
        # Only card expenses follow a closing day.
        closing_day: int | None = None
        if e.card_id is not None and e.type is TransactionType.EXPENSE:
            card = get_card(session, card_id=e.card_id, house_id=e.house_id)
            closing_day = effective_closing_day(card.closing_day)
            first_billing = billing_month(e.transaction_date, closing_day).billing_month
        else:
            first_billing = month_start(e.transaction_date.year, e.transaction_date.month)

        recurrence_id = str(uuid.uuid4()) if e.months > 1 else None
        rows: list[HouseTransaction] = []
        for i in range(e.months):
            target = add_months(first_billing, i)
            occurred = add_months(e.transaction_date, i)
            if closing_day is not None:
                occurred = date_in_billing_month(occurred, target, closing_day)
            rows.append(
                HouseTransaction(
                    id=str(uuid.uuid4()),
                    house_id=e.house_id,
                    card_id=e.card_id,
                    upload_id=None,
                    description=e.description,
                    transaction_date=occurred,
                    amount=e.amount,
                    installment=None,
                    category=e.category or UNCLASSIFIED_CATEGORY,
                    type=e.type.value,
                    billing_month=target,
                    recurrence_id=recurrence_id,
                    created_by=user_id,
                )
            )
        session.add_all(rows)
        ids = [r.id for r in rows]

    _logger.info(
        "manual_entry:created house_id=%s type=%s months=%d recurrence_id=%s",
        e.house_id,
        e.type.value,
        e.months,
        recurrence_id,
    )
    return ids


def delete_recurring_entry(
    transaction_id: str,
    scope: DeleteScope = "single",
    *,
    user_id: str,
    database_url: str | None = None,
) -> int:
    """Delete one occurrence, or it and every later occurrence of its group.

    Returns the number of rows removed. ``"future"`` on a row without a
    recurrence group behaves like ``"single"``.
    """

    if scope not in ("single", "future"):
        raise ValidationError(f"scope must be 'single' or 'future', got {scope!r}")
    require_user_id(user_id)

    with db_errors("delete recurring entry"), session_scope(database_url=database_url) as session:
        row = session.get(HouseTransaction, transaction_id)
        if row is None:
            raise NotFoundError(f"transaction {transaction_id} not found")
        ensure_house_owner(session, house_id=row.house_id, user_id=user_id)

        if scope == "single" or row.recurrence_id is None:
            session.delete(row)
            removed = 1
        else:
            ids = session.execute(
                select(HouseTransaction.id)
                .where(HouseTransaction.recurrence_id == row.recurrence_id)
                .where(HouseTransaction.transaction_date >= row.transaction_date)
            ).scalars().all()
            session.execute(delete(HouseTransaction).where(HouseTransaction.id.in_(ids)))
            removed = len(ids)

    _logger.info(
        "manual_entry:deleted transaction_id=%s scope=%s removed=%d", transaction_id, scope, removed
    )
    return removed


__all__ = ["DeleteScope", "create_manual_entry", "delete_recurring_entry"]
