"""Shared SQLAlchemy models registry for the ledger database."""

from .ledger import Base, LedgerAccount, LedgerBalance, LedgerCategory

__all__ = [
    "Base",
    "LedgerAccount",
    "LedgerBalance",
    "LedgerCategory",
]
