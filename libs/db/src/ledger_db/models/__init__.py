"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger and import models used by ``statement_import``.
"""

from .ledger import Account, Base, Category, ImportRow, LedgerEntry, StatementImport, Tag

__all__ = [
    "Base",
    "Account",
    "Category",
    "Tag",
    "LedgerEntry",
    "StatementImport",
    "ImportRow",
]
