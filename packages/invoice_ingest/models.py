"""Data models for ``invoice_ingest``.

Two families live here:

- Domain constants and enums (categories, file kinds, upload statuses).
- Pydantic DTOs for the request/response payloads of the ingestion, review
  and undo operations. They serialize with camelCase aliases
  (``model_dump(by_alias=True)``) to match the JSON contract consumed by the
  web client, while Python code uses snake_case attribute names.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .billing import parse_invoice_month
from .errors import ValidationError
from .installments import parse_installment

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

UNCLASSIFIED_CATEGORY = "Não classificado"

CATEGORIES: tuple[str, ...] = (
    "Alimentação",
    "Transporte",
    "Compras",
    "Saúde",
    "Lazer",
    "Educação",
    "Moradia",
    "Serviços",
    "Assinaturas",
    "Outros",
    UNCLASSIFIED_CATEGORY,
)


def is_classified(category: str | None) -> bool:
    """True when ``category`` is a usable label (non-empty and not unclassified)."""

    if category is None:
        return False
    s = category.strip()
    return bool(s) and s != UNCLASSIFIED_CATEGORY


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FileKind(StrEnum):
    PDF = "pdf"
    EXCEL = "excel"
    CSV = "csv"


class UploadStatus(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    PENDING_REVIEW = "pending_review"
    UNDONE = "undone"


class TransactionType(StrEnum):
    EXPENSE = "expense"
    INCOME = "income"


def to_amount(value: Decimal | float | int | str) -> Decimal:
    """Coerce to a 2-decimal ``Decimal`` (half-up), preserving sign."""

    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CandidateTransaction(_ApiModel):
    """An extracted, not-yet-persisted transaction.

    ``description`` is kept exactly as extracted. ``amount`` may carry either
    sign as produced by the extractor; it is stored as its absolute value.
    ``installment`` is normalized to ``"X/Y"`` or ``None`` when malformed.
    """

    description: str
    date: dt.date
    amount: Decimal
    installment: str | None = None
    category: str | None = None

    @field_validator("description")
    @classmethod
    def _description_non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must be non-empty")
        return v

    @field_validator("amount")
    @classmethod
    def _amount_non_zero(cls, v: Decimal) -> Decimal:
        q = to_amount(v)
        if q == 0:
            raise ValueError("amount must be non-zero")
        return q

    @field_validator("installment", mode="before")
    @classmethod
    def _canonical_installment(cls, v: object) -> str | None:
        if v is None:
            return None
        inst = parse_installment(str(v))
        return inst.label if inst else None

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category_is_none(cls, v: object) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s or None


class ExistingTransaction(_ApiModel):
    """Point-in-time view of a stored transaction used for duplicate checks."""

    id: str
    description: str
    transaction_date: date
    amount: Decimal
    installment: str | None = None
    category: str | None = None


class PossibleDuplicate(_ApiModel):
    transaction: CandidateTransaction
    existing_match: ExistingTransaction
    similarity: float = Field(ge=0.0, le=1.0)


class IngestionRequest(_ApiModel):
    file_content: str = Field(min_length=1)
    file_kind: FileKind
    filename: str = Field(min_length=1)
    card_id: str = Field(min_length=1)
    house_id: str = Field(min_length=1)
    invoice_month: str

    @field_validator("invoice_month")
    @classmethod
    def _invoice_month_format(cls, v: str) -> str:
        parse_invoice_month(v)
        return v

    @property
    def billing_month(self) -> date:
        return parse_invoice_month(self.invoice_month)


class IngestionResponse(_ApiModel):
    upload_id: str
    status: UploadStatus
    items_count: int = Field(ge=0)
    projected_count: int = Field(default=0, ge=0)
    possible_duplicates: list[PossibleDuplicate] = Field(default_factory=list)
    categorized_from_history: int = Field(default=0, ge=0)
    message: str


class ReviewResolutionRequest(_ApiModel):
    upload_id: str = Field(min_length=1)
    approved_transactions: list[CandidateTransaction] = Field(default_factory=list)


class UndoRequest(_ApiModel):
    upload_id: str = Field(min_length=1)


class UploadSummary(_ApiModel):
    id: str
    card_id: str
    filename: str
    billing_month: date
    items_count: int
    status: UploadStatus
    created_at: datetime | None = None


class StoredTransaction(_ApiModel):
    id: str
    description: str
    transaction_date: date
    amount: Decimal
    installment: str | None = None
    category: str | None = None
    billing_month: date
    upload_id: str | None = None
    recurrence_id: str | None = None


class ManualEntry(_ApiModel):
    """A manually entered expense or income, optionally repeated monthly."""

    house_id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    transaction_date: date
    type: TransactionType = TransactionType.EXPENSE
    category: str | None = None
    card_id: str | None = None
    months: int = Field(default=1, ge=1, le=120)

    @field_validator("amount")
    @classmethod
    def _two_decimals(cls, v: Decimal) -> Decimal:
        return to_amount(v)


_M = TypeVar("_M", bound=BaseModel)


def coerce_model(model: type[_M], value: _M | Mapping[str, Any]) -> _M:
    """Return ``value`` as ``model``, wrapping pydantic failures as ``ValidationError``."""

    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or "request"
        raise ValidationError(f"invalid {loc}: {first.get('msg', 'invalid value')}") from e


def require_user_id(user_id: str) -> None:
    if not user_id or not str(user_id).strip():
        raise ValidationError("user_id is required")


__all__ = [
    "CATEGORIES",
    "UNCLASSIFIED_CATEGORY",
    "CandidateTransaction",
    "ExistingTransaction",
    "FileKind",
    "IngestionRequest",
    "IngestionResponse",
    "ManualEntry",
    "PossibleDuplicate",
    "ReviewResolutionRequest",
    "StoredTransaction",
    "TransactionType",
    "UndoRequest",
    "UploadStatus",
    "UploadSummary",
    "coerce_model",
    "is_classified",
    "require_user_id",
    "to_amount",
]
