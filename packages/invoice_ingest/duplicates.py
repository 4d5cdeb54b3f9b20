"""Duplicate reconciliation between extracted candidates and stored rows.

Public surface:
- ``normalize_description``: in-memory normalization used only for matching.
- ``description_similarity``: tolerant prefix-based similarity in ``[0, 1]``.
- ``reconcile``: split candidates into clean rows and possible duplicates.

A candidate can only be a duplicate of a stored row with the exact same date
and the same absolute amount (2-decimal comparison). Text similarity is a
second gate applied to those rows only. Callers pass the snapshot of the same
card's transactions; nothing here touches the database.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .logging_setup import get_logger
from .models import CandidateTransaction, ExistingTransaction, PossibleDuplicate, to_amount

SIMILARITY_THRESHOLD: float = 0.60
MIN_COMPARABLE_LENGTH: int = 5

_logger = get_logger("invoice_ingest.duplicates")


def normalize_description(text: str) -> str:
    """Lower-case, strip diacritics and drop every non-alphanumeric character.

    >>> normalize_description("Pão de Açúcar - 01")
    'paodeacucar01'
    """

    decomposed = unicodedata.normalize("NFD", text)
    no_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return "".join(ch for ch in no_marks.lower() if ch.isalnum())


def _common_prefix_len(a: str, b: str) -> int:
    n = 0
    for ca, cb in zip(a, b):
        if ca != cb:
            break
        n += 1
    return n


def description_similarity(a: str, b: str) -> float:
    """Return the similarity of two raw descriptions.

    Rules, applied to normalized text:
    - either side shorter than 5 characters -> 0.0 (too short to judge);
    - equal, or one is a prefix of the other -> 1.0;
    - otherwise common-prefix length divided by the shorter length.
    """

    na = normalize_description(a)
    nb = normalize_description(b)
    shorter = min(len(na), len(nb))
    if shorter < MIN_COMPARABLE_LENGTH:
        return 0.0
    if na == nb or na.startswith(nb) or nb.startswith(na):
        return 1.0
    return _common_prefix_len(na, nb) / shorter


@dataclass(slots=True)
class ReconciliationResult:
    new: list[CandidateTransaction] = field(default_factory=list)
    possible_duplicates: list[PossibleDuplicate] = field(default_factory=list)


def _best_match(
    candidate: CandidateTransaction, existing: Sequence[ExistingTransaction]
) -> tuple[ExistingTransaction, float] | None:
    amount = to_amount(abs(candidate.amount))
    best: tuple[ExistingTransaction, float] | None = None
    for row in existing:
        if row.transaction_date != candidate.date:
            continue
        if to_amount(abs(row.amount)) != amount:
            continue
        score = description_similarity(candidate.description, row.description)
        if score < SIMILARITY_THRESHOLD:
            continue
        # Strictly greater: ties keep the first row in snapshot order.
        if best is None or score > best[1]:
            best = (row, score)
    return best


def reconcile(
    candidates: Iterable[CandidateTransaction],
    existing: Sequence[ExistingTransaction],
) -> ReconciliationResult:
    """Partition ``candidates`` into new rows and possible duplicates.

    Every candidate lands in exactly one of the two lists, preserving input
    order. ``existing`` is a point-in-time snapshot; candidates are never
    compared with each other.
    """

    result = ReconciliationResult()
    for cand in candidates:
        match = _best_match(cand, existing)
        if match is None:
            result.new.append(cand)
            continue
        row, score = match
        result.possible_duplicates.append(
            PossibleDuplicate(transaction=cand, existing_match=row, similarity=score)
        )

    _logger.info(
        "reconcile:done new=%d possible_duplicates=%d snapshot=%d",
        len(result.new),
        len(result.possible_duplicates),
        len(existing),
    )
    return result


__all__ = [
    "SIMILARITY_THRESHOLD",
    "ReconciliationResult",
    "description_similarity",
    "normalize_description",
    "reconcile",
]
