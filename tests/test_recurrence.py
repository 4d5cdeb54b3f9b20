from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from db.client import session_scope
from db.models.finance import CreditCard

from invoice_ingest.billing import billing_month
from invoice_ingest.errors import AuthorizationError, NotFoundError, ValidationError
from invoice_ingest.models import ManualEntry, TransactionType
from invoice_ingest.recurrence import create_manual_entry, delete_recurring_entry
from tests.helpers.db import CARD_ID, HOUSE_ID, MEMBER_ID, OWNER_ID, fetch_transactions


def _entry(**kw) -> ManualEntry:
    base = {
        "house_id": HOUSE_ID,
        "description": "Academia",
        "amount": Decimal("99.90"),
        "transaction_date": date(2024, 1, 31),
        "months": 3,
    }
    base.update(kw)
    return ManualEntry(**base)


def test_recurring_expense_without_card_bills_in_its_own_month(db_url):
    ids = create_manual_entry(_entry(), user_id=OWNER_ID, database_url=db_url)

    rows = fetch_transactions(db_url, house_id=HOUSE_ID)
    assert [r.id for r in rows] == ids
    assert [r.transaction_date for r in rows] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]
    assert [r.billing_month for r in rows] == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
    assert len({r.recurrence_id for r in rows}) == 1
    assert rows[0].recurrence_id is not None
    assert all(r.upload_id is None and r.category == "Não classificado" for r in rows)


def test_card_expense_uses_closing_day(db_url):
    create_manual_entry(
        _entry(card_id=CARD_ID, transaction_date=date(2024, 3, 25), months=2, category="Saúde"),
        user_id=OWNER_ID,
        database_url=db_url,
    )
    rows = fetch_transactions(db_url, card_id=CARD_ID)
    assert [r.billing_month for r in rows] == [date(2024, 4, 1), date(2024, 5, 1)]
    assert {r.category for r in rows} == {"Saúde"}


def test_single_income_has_no_recurrence_group(db_url):
    (tx_id,) = create_manual_entry(
        {
            "houseId": HOUSE_ID,
            "description": "Salário",
            "amount": "5000",
            "transactionDate": "2024-03-05",
            "type": "income",
        },
        user_id=OWNER_ID,
        database_url=db_url,
    )
    (row,) = fetch_transactions(db_url, id=tx_id)
    assert row.type == TransactionType.INCOME.value
    assert row.recurrence_id is None
    assert row.amount == Decimal("5000.00")


def test_non_owner_cannot_add_entries(db_url):
    with pytest.raises(AuthorizationError):
        create_manual_entry(_entry(), user_id=MEMBER_ID, database_url=db_url)
    assert fetch_transactions(db_url, house_id=HOUSE_ID) == []


@pytest.mark.parametrize(
    "overrides", [{"amount": "0"}, {"months": 0}, {"description": ""}, {"houseId": ""}]
)
def test_invalid_entries_are_rejected(db_url, overrides):
    body = {
        "houseId": HOUSE_ID,
        "description": "Academia",
        "amount": "10",
        "transactionDate": "2024-01-10",
    }
    body.update(overrides)
    with pytest.raises(ValidationError):
        create_manual_entry(body, user_id=OWNER_ID, database_url=db_url)


def test_delete_future_occurrences(db_url):
    ids = create_manual_entry(_entry(months=4), user_id=OWNER_ID, database_url=db_url)

    removed = delete_recurring_entry(ids[1], "future", user_id=OWNER_ID, database_url=db_url)

    assert removed == 3
    assert [r.id for r in fetch_transactions(db_url, house_id=HOUSE_ID)] == [ids[0]]


def test_delete_single_occurrence(db_url):
    ids = create_manual_entry(_entry(), user_id=OWNER_ID, database_url=db_url)

    assert delete_recurring_entry(ids[1], user_id=OWNER_ID, database_url=db_url) == 1
    assert [r.id for r in fetch_transactions(db_url, house_id=HOUSE_ID)] == [ids[0], ids[2]]


def test_delete_errors(db_url):
    ids = create_manual_entry(_entry(), user_id=OWNER_ID, database_url=db_url)
    with pytest.raises(NotFoundError):
        delete_recurring_entry("missing", user_id=OWNER_ID, database_url=db_url)
    with pytest.raises(ValidationError):
        delete_recurring_entry(
            ids[0], "all", user_id=OWNER_ID, database_url=db_url  # type: ignore[arg-type]
        )
    with pytest.raises(AuthorizationError):
        delete_recurring_entry(ids[0], user_id=MEMBER_ID, database_url=db_url)


def test_card_occurrences_match_the_calculator(db_url):
    with session_scope(database_url=db_url) as session:
        session.add(CreditCard(id="card-28", house_id=HOUSE_ID, name="Late", closing_day=28))

    create_manual_entry(
        _entry(card_id="card-28", transaction_date=date(2023, 1, 30), months=4),
        user_id=OWNER_ID,
        database_url=db_url,
    )

    rows = fetch_transactions(db_url, card_id="card-28")
    assert [r.billing_month for r in rows] == [date(2023, m, 1) for m in range(2, 6)]
    assert [r.transaction_date for r in rows] == [
        date(2023, 1, 30),
        date(2023, 3, 1),
        date(2023, 3, 30),
        date(2023, 4, 30),
    ]
    for r in rows:
        assert billing_month(r.transaction_date, 28).billing_month == r.billing_month
