from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from invoice_ingest.duplicates import description_similarity, normalize_description, reconcile
from invoice_ingest.models import CandidateTransaction, ExistingTransaction

D = date(2024, 3, 10)


def _cand(description: str, amount: str = "42.90", when: date = D) -> CandidateTransaction:
    return CandidateTransaction(description=description, date=when, amount=Decimal(amount))


def _row(id_: str, description: str, amount: str = "42.90", when: date = D) -> ExistingTransaction:
    return ExistingTransaction(
        id=id_, description=description, transaction_date=when, amount=Decimal(amount)
    )


def test_normalize_strips_diacritics_case_and_symbols():
    assert normalize_description("Pão de Açúcar - 01") == "paodeacucar01"
    assert normalize_description("  UBER *TRIP ") == "ubertrip"


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("MERCADO LIVRE", "Mercado Livre", 1.0),
        ("NETFLIX.COM", "NETFLIX COM SAO PAULO", 1.0),
        ("UBER", "UBER", 0.0),
        ("abcd", "abcdefgh", 0.0),
        ("abcdefgh", "abcdxxxx", 0.5),
        ("SUPERMERCADO ABC", "SUPERMERCADO XYZ", 12 / 15),
        ("farmacia", "padaria1", 0.0),
    ],
)
def test_description_similarity(a, b, expected):
    assert description_similarity(a, b) == pytest.approx(expected)


def test_similarity_is_symmetric():
    pairs = [("Padaria Real", "PADARIA REAL LTDA"), ("abcdefgh", "abcdxxxx"), ("x", "xyzxyz")]
    for a, b in pairs:
        assert description_similarity(a, b) == description_similarity(b, a)


def test_exact_gate_requires_same_date_and_amount():
    existing = [_row("e1", "MERCADO LIVRE", amount="42.90", when=D)]
    result = reconcile(
        [
            _cand("MERCADO LIVRE", amount="42.91"),
            _cand("MERCADO LIVRE", when=date(2024, 3, 11)),
        ],
        existing,
    )
    assert len(result.new) == 2
    assert result.possible_duplicates == []


def test_amount_sign_is_ignored_by_gate():
    result = reconcile([_cand("MERCADO LIVRE", amount="-42.90")], [_row("e1", "Mercado Livre")])
    assert result.new == []
    assert len(result.possible_duplicates) == 1
    assert result.possible_duplicates[0].similarity == 1.0


def test_below_threshold_is_new():
    result = reconcile([_cand("abcdefgh")], [_row("e1", "abcdxxxx")])
    assert len(result.new) == 1


def test_picks_highest_similarity_match_and_first_on_tie():
    existing = [
        _row("low", "SUPERMERCADO XYZ"),
        _row("best-1", "SUPERMERCADO ABC"),
        _row("best-2", "supermercado abc"),
    ]
    result = reconcile([_cand("Supermercado ABC")], existing)
    (dup,) = result.possible_duplicates
    assert dup.existing_match.id == "best-1"
    assert dup.similarity == 1.0


def test_partition_preserves_order_and_counts():
    cands = [_cand("LOJA UM"), _cand("MERCADO LIVRE"), _cand("LOJA DOIS", amount="10.00")]
    result = reconcile(cands, [_row("e1", "MERCADO LIVRE")])
    assert [c.description for c in result.new] == ["LOJA UM", "LOJA DOIS"]
    assert [d.transaction.description for d in result.possible_duplicates] == ["MERCADO LIVRE"]
    assert len(result.new) + len(result.possible_duplicates) == len(cands)


def test_candidates_are_not_compared_with_each_other():
    result = reconcile([_cand("MERCADO LIVRE"), _cand("MERCADO LIVRE")], [])
    assert len(result.new) == 2
