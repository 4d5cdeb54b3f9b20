"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the household finance models used by ``invoice_ingest``.
"""

from .finance import Base, CreditCard, HouseMember, HouseTransaction, UploadLog

__all__ = [
    "Base",
    "CreditCard",
    "HouseMember",
    "HouseTransaction",
    "UploadLog",
]
