"""ledger_db: shared database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``ledger_db.models.ledger`` (re-exported for convenience)
- Engine/session helpers in ``ledger_db.client``
"""

from __future__ import annotations

from .models.ledger import (
    Account,
    Base,
    Category,
    ImportRow,
    LedgerEntry,
    StatementImport,
    Tag,
)

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Account",
    "Category",
    "Tag",
    "LedgerEntry",
    "StatementImport",
    "ImportRow",
]
