"""Data models for ``statement_import``.

Parse output is expressed as small frozen dataclasses, one per record kind,
decided by the parser at parse time. Persistent shapes (import rows, ledger
entries, anchors) live in ``ledger_db.models.ledger``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import StrEnum


class ImportKind(StrEnum):
    """Source file family of an import."""

    QIF = "qif"
    OFX = "ofx"


class SignageConvention(StrEnum):
    """How the source file signs amounts.

    The ledger stores outflows as positive amounts and inflows as negative.
    ``INFLOWS_POSITIVE`` sources (QIF, OFX) are negated on the way in;
    ``INFLOWS_NEGATIVE`` sources already match the ledger.
    """

    INFLOWS_POSITIVE = "inflows_positive"
    INFLOWS_NEGATIVE = "inflows_negative"


# ---------------------------------------------------------------------------
# Parse output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """One financial movement extracted from a QIF or OFX file.

    ``date`` is an ISO ``YYYY-MM-DD`` string and ``amount`` an exact decimal
    string signed as in the source file. Instances are only built once both
    have been validated; records failing either are dropped by the parser.

    ``currency`` is set by OFX (statement ``CURDEF``) and left ``None`` by QIF,
    whose rows take the import's default currency. ``external_id`` carries
    the OFX ``FITID``. ``check_num`` and ``cleared`` are QIF-only.
    """

    date: str
    amount: str
    payee: str | None = None
    memo: str | None = None
    category: str = ""
    tags: tuple[str, ...] = ()
    external_id: str | None = None
    currency: str | None = None
    check_num: str | None = None
    cleared: str | None = None


@dataclass(frozen=True, slots=True)
class ParsedCategory:
    name: str
    description: str | None = None
    income: bool = False


@dataclass(frozen=True, slots=True)
class ParsedTag:
    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class OpeningBalanceEntry:
    """A file's declaration of the account's starting balance (QIF only)."""

    date: date
    amount: Decimal


__all__ = [
    "ImportKind",
    "SignageConvention",
    "ParsedTransaction",
    "ParsedCategory",
    "ParsedTag",
    "OpeningBalanceEntry",
]
