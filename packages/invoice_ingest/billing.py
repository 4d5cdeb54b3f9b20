"""Billing-cycle arithmetic for credit-card invoices.

A card closes its invoice on a fixed day of the month. Purchases made on or
before that day count toward the invoice of the purchase month; purchases made
strictly after it roll to the following month's invoice ("deferred").

Closing days are restricted to ``[1, 28]`` so every month has the day and no
end-of-month special-casing is needed. Cards without a usable closing day use
:data:`DEFAULT_CLOSING_DAY`; that substitution happens here at the call site,
never in stored card data.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

DEFAULT_CLOSING_DAY = 20
MIN_CYCLE_DAY = 1
MAX_CYCLE_DAY = 28

_INVOICE_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


@dataclass(frozen=True, slots=True)
class BillingInfo:
    """Result of assigning a purchase to an invoice.

    ``billing_month`` is always the first day of a calendar month.
    ``is_deferred`` is informational (user-facing messaging only).
    """

    billing_month: date
    is_deferred: bool


def effective_closing_day(closing_day: int | None) -> int:
    """Return ``closing_day`` when within ``[1, 28]``, else the default (20)."""

    if closing_day is None or isinstance(closing_day, bool):
        return DEFAULT_CLOSING_DAY
    if MIN_CYCLE_DAY <= closing_day <= MAX_CYCLE_DAY:
        return closing_day
    return DEFAULT_CLOSING_DAY


def clamp_cycle_day(day: int) -> int:
    return max(MIN_CYCLE_DAY, min(MAX_CYCLE_DAY, day))


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def add_months(value: date, months: int) -> date:
    """Shift ``value`` by whole calendar months, clamping to the month's last day.

    ``add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)``
    """

    total = value.year * 12 + (value.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def billing_month(purchase_date: date, closing_day: int) -> BillingInfo:
    """Assign ``purchase_date`` to the invoice it belongs to.

    >>> billing_month(date(2024, 3, 25), 20)
    BillingInfo(billing_month=datetime.date(2024, 4, 1), is_deferred=True)
    >>> billing_month(date(2024, 3, 15), 20)
    BillingInfo(billing_month=datetime.date(2024, 3, 1), is_deferred=False)
    """

    day = clamp_cycle_day(closing_day)
    own_month = month_start(purchase_date.year, purchase_date.month)
    if purchase_date.day > day:
        return BillingInfo(billing_month=add_months(own_month, 1), is_deferred=True)
    return BillingInfo(billing_month=own_month, is_deferred=False)


def date_in_billing_month(preferred: date, target_month: date, closing_day: int) -> date:
    """Return ``preferred`` if it bills in ``target_month``, else the month's first day.

    Month-end clamping can pull a shifted date back onto or before the closing
    day (Jan 30 + 1 month = Feb 28 with closing day 28), which would bill it a
    month early. Day 1 is never after a closing day, so it always bills in its
    own month.
    """

    if billing_month(preferred, closing_day).billing_month == target_month:
        return preferred
    return month_start(target_month.year, target_month.month)


def parse_invoice_month(value: str) -> date:
    """Parse a declared invoice month ``"YYYY-MM"`` into its first day.

    Raises ``ValueError`` when the value does not match ``^\\d{4}-\\d{2}$`` or
    the month is outside 01-12.
    """

    if not isinstance(value, str) or not _INVOICE_MONTH_RE.match(value):
        raise ValueError(f"invoice month must be formatted as YYYY-MM, got {value!r}")
    year, month = (int(p) for p in value.split("-"))
    if not 1 <= month <= 12:
        raise ValueError(f"invoice month out of range: {value!r}")
    return month_start(year, month)


__all__ = [
    "DEFAULT_CLOSING_DAY",
    "BillingInfo",
    "add_months",
    "billing_month",
    "date_in_billing_month",
    "effective_closing_day",
    "month_start",
    "parse_invoice_month",
]
