"""Learn categories from a household's previously labelled transactions.

The lookup maps a lightly normalized description (``strip().lower()``) to the
category the household used most often for it. It is rebuilt on every run
from the store; nothing is cached across runs.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from db.models.finance import HouseTransaction
from sqlalchemy import select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import UNCLASSIFIED_CATEGORY, CandidateTransaction, is_classified

_logger = get_logger("invoice_ingest.category_learning")


def lookup_key(description: str) -> str:
    return description.strip().lower()


def build_category_lookup(history: Iterable[tuple[str, str | None]]) -> dict[str, str]:
    """Return ``{normalized description: dominant category}``.

    Pairs with an empty or unclassified category are ignored. When two
    categories are used equally often the lexicographically smallest wins, so
    the result does not depend on history order.
    """

    counts: dict[str, Counter[str]] = {}
    for description, category in history:
        if not description or not is_classified(category):
            continue
        key = lookup_key(description)
        if not key:
            continue
        counts.setdefault(key, Counter())[category.strip()] += 1  # type: ignore[union-attr]

    lookup: dict[str, str] = {}
    for key, counter in counts.items():
        lookup[key] = min(counter.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return lookup


def apply_learned_categories(
    candidates: Sequence[CandidateTransaction], lookup: dict[str, str]
) -> tuple[list[CandidateTransaction], int]:
    """Annotate ``candidates`` with learned categories.

    Returns ``(annotated, from_history)``. A learned category overrides the
    extractor's suggestion; otherwise the extractor's value is kept, or the
    unclassified label when it gave none.
    """

    annotated: list[CandidateTransaction] = []
    from_history = 0
    for cand in candidates:
        learned = lookup.get(lookup_key(cand.description))
        if learned is not None:
            from_history += 1
            category = learned
        else:
            category = cand.category or UNCLASSIFIED_CATEGORY
        annotated.append(cand.model_copy(update={"category": category}))
    return annotated, from_history


def load_category_history(session: Session, house_id: str) -> list[tuple[str, str | None]]:
    """Read ``(description, category)`` pairs for every transaction of the house."""

    stmt = (
        select(HouseTransaction.description, HouseTransaction.category)
        .where(HouseTransaction.house_id == house_id)
        .where(HouseTransaction.category.is_not(None))
    )
    rows = [(desc, cat) for desc, cat in session.execute(stmt).all()]
    _logger.debug("category_history:loaded house_id=%s rows=%d", house_id, len(rows))
    return rows


__all__ = [
    "apply_learned_categories",
    "build_category_lookup",
    "load_category_history",
    "lookup_key",
]
