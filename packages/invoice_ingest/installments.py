"""Installment label parsing and projection of remaining installments.

An invoice line for an installment purchase carries a ``"current/total"`` label
(e.g. ``"2/12"``). Only the current installment appears on the invoice, so the
pipeline synthesizes the remaining ``total - current`` occurrences, one
calendar month apart, each assigned its own billing month through
:func:`invoice_ingest.billing.billing_month`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from .billing import add_months, billing_month, date_in_billing_month

if TYPE_CHECKING:
    from .models import CandidateTransaction

_INSTALLMENT_RE = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")


@dataclass(frozen=True, slots=True)
class Installment:
    current: int
    total: int

    @property
    def label(self) -> str:
        return f"{self.current}/{self.total}"

    @property
    def remaining(self) -> int:
        return self.total - self.current


def parse_installment(label: str | None) -> Installment | None:
    """Parse ``"X/Y"`` into an :class:`Installment`.

    Returns ``None`` for missing or malformed labels and for labels that break
    ``total >= current >= 1`` (e.g. ``"0/3"`` or ``"5/3"``).
    """

    if not label:
        return None
    m = _INSTALLMENT_RE.match(str(label))
    if not m:
        return None
    current, total = int(m.group(1)), int(m.group(2))
    if current < 1 or total < current:
        return None
    return Installment(current=current, total=total)


@dataclass(frozen=True, slots=True)
class ProjectedInstallment:
    """A synthesized future occurrence of an installment purchase."""

    description: str
    transaction_date: date
    amount: Decimal
    category: str | None
    installment: str
    billing_month: date


def project_installments(
    candidate: CandidateTransaction, closing_day: int
) -> list[ProjectedInstallment]:
    """Return the remaining installments for ``candidate``.

    Projection ``k`` (1-based) is billed ``k`` months after the candidate's
    billing month and labelled ``"current+k/total"``. It is dated ``k`` calendar
    months after the candidate, or on the first day of its billing month when
    month-end clamping would bill that date a month early. Unlabelled, single and
    final installments produce no projections.
    """

    inst = parse_installment(candidate.installment)
    if inst is None or inst.remaining <= 0:
        return []

    base_billing = billing_month(candidate.date, closing_day).billing_month
    out: list[ProjectedInstallment] = []
    for k in range(1, inst.remaining + 1):
        target = add_months(base_billing, k)
        # Offset from the base date: a day-31 purchase stays on day 31 after February.
        projected_date = date_in_billing_month(add_months(candidate.date, k), target, closing_day)
        out.append(
            ProjectedInstallment(
                description=candidate.description,
                transaction_date=projected_date,
                amount=abs(candidate.amount),
                category=candidate.category,
                installment=Installment(inst.current + k, inst.total).label,
                billing_month=target,
            )
        )
    return out


def _projection_key(candidate: CandidateTransaction) -> tuple[str, date, Decimal, str | None]:
    return (candidate.description, candidate.date, abs(candidate.amount), candidate.installment)


def project_batch(
    candidates: Iterable[CandidateTransaction], closing_day: int
) -> list[tuple[CandidateTransaction, list[ProjectedInstallment]]]:
    """Project every candidate at most once within a single pipeline run.

    Candidates repeated verbatim in the batch (same description, date, amount
    and installment label) are paired with an empty projection list after the
    first occurrence.
    """

    seen: set[tuple[str, date, Decimal, str | None]] = set()
    out: list[tuple[CandidateTransaction, list[ProjectedInstallment]]] = []
    for cand in candidates:
        key = _projection_key(cand)
        if key in seen:
            out.append((cand, []))
            continue
        seen.add(key)
        out.append((cand, project_installments(cand, closing_day)))
    return out


__all__ = [
    "Installment",
    "ProjectedInstallment",
    "parse_installment",
    "project_batch",
    "project_installments",
]
