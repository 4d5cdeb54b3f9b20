from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from invoice_ingest.billing import billing_month
from invoice_ingest.installments import parse_installment, project_batch, project_installments
from invoice_ingest.models import CandidateTransaction


def _cand(**kw) -> CandidateTransaction:
    base = {
        "description": "LOJA X",
        "date": date(2024, 3, 25),
        "amount": Decimal("100.00"),
        "installment": "2/4",
        "category": "Compras",
    }
    base.update(kw)
    return CandidateTransaction.model_validate(base)


@pytest.mark.parametrize(
    ("label", "expected"),
    [("1/3", (1, 3)), (" 2 / 12 ", (2, 12)), ("3/3", (3, 3))],
)
def test_parse_installment_accepts(label, expected):
    inst = parse_installment(label)
    assert inst is not None
    assert (inst.current, inst.total) == expected


@pytest.mark.parametrize("label", [None, "", "0/3", "5/3", "1-3", "abc", "1/", "/3"])
def test_parse_installment_rejects(label):
    assert parse_installment(label) is None


def test_projects_remaining_installments_with_own_billing_months():
    projections = project_installments(_cand(), closing_day=20)

    assert [p.installment for p in projections] == ["3/4", "4/4"]
    assert [p.transaction_date for p in projections] == [date(2024, 4, 25), date(2024, 5, 25)]
    # Day 25 > closing day 20: each projection rolls to the following month.
    assert [p.billing_month for p in projections] == [date(2024, 5, 1), date(2024, 6, 1)]
    assert all(p.amount == Decimal("100.00") for p in projections)
    assert all(p.description == "LOJA X" and p.category == "Compras" for p in projections)


@pytest.mark.parametrize("label", [None, "1/1", "4/4"])
def test_no_projection_for_single_last_or_unlabelled(label):
    assert project_installments(_cand(installment=label), closing_day=20) == []


def test_projection_amount_is_absolute():
    projections = project_installments(_cand(amount=Decimal("-50.00")), closing_day=20)
    assert {p.amount for p in projections} == {Decimal("50.00")}


def test_projection_dates_clamp_at_month_end():
    projections = project_installments(
        _cand(date=date(2024, 1, 31), installment="1/3"), closing_day=28
    )
    assert [p.transaction_date for p in projections] == [date(2024, 2, 29), date(2024, 3, 31)]


def test_batch_projects_identical_rows_once():
    a = _cand()
    b = _cand()
    out = project_batch([a, b], closing_day=20)
    assert len(out) == 2
    assert len(out[0][1]) == 2
    assert out[1][1] == []


def test_three_of_twelve_projects_nine_consecutive_months():
    projections = project_installments(
        _cand(date=date(2024, 3, 15), installment="3/12"), closing_day=20
    )

    assert len(projections) == 9
    assert [p.installment for p in projections] == [f"{n}/12" for n in range(4, 13)]
    assert [p.billing_month for p in projections] == [date(2024, m, 1) for m in range(4, 13)]
    assert [p.transaction_date for p in projections] == [date(2024, m, 15) for m in range(4, 13)]


def test_clamped_february_date_still_bills_the_next_invoice():
    # 2023-01-30 bills in February (30 > 28); Feb 28 would bill in February too.
    projections = project_installments(
        _cand(date=date(2023, 1, 30), installment="1/3"), closing_day=28
    )

    assert [p.billing_month for p in projections] == [date(2023, 3, 1), date(2023, 4, 1)]
    assert [p.transaction_date for p in projections] == [date(2023, 3, 1), date(2023, 3, 30)]
    for p in projections:
        assert billing_month(p.transaction_date, 28).billing_month == p.billing_month
