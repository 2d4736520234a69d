# ruff: noqa: I001
"""Opening-balance anchor resolution.

Each account has at most one ``opening_anchor`` ledger entry: the balance as
of a date before which no history is tracked. On publish the anchor is
positioned from two facts, whether the file declares an opening balance and
whether the account already has an anchor:

==========================  ===================================  =========================
File declares a balance     Account anchor                       Action
==========================  ===================================  =========================
yes                         any                                  set (date, balance)
no                          none                                 nothing
no                          earliest row date >= anchor date     nothing
no                          earliest row date < anchor date      move to earliest - 1 day,
                                                                 balance unchanged
==========================  ===================================  =========================

Balances are never recomputed here; the balance-forward calculator downstream
owns that. The preview helpers evaluate the same table without writing, so a
confirm step can show the effect first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_db.models.ledger import Account, LedgerEntry, StatementImport
from . import qif
from .logging_setup import get_logger, import_logger
from .models import ImportKind, OpeningBalanceEntry
from .rows import earliest_row_date, load_rows

_logger = get_logger("statement_import.anchor")

OPENING_ANCHOR_KIND = "opening_anchor"
OPENING_ANCHOR_NAME = "Opening balance"


class AnchorAction(StrEnum):
    SET = "set"
    MOVE = "move"


@dataclass(frozen=True, slots=True)
class AnchorChange:
    action: AnchorAction
    date: date
    # None only when moving an anchor that never had a balance.
    balance: Decimal | None


@dataclass(frozen=True, slots=True)
class CurrentAnchor:
    date: date
    balance: Decimal | None


def resolve_anchor_change(
    declared: OpeningBalanceEntry | None,
    current: CurrentAnchor | None,
    earliest_row_date: date | None,
) -> AnchorChange | None:
    """Apply the rule table to plain values; ``None`` means leave the anchor alone."""

    if declared is not None:
        return AnchorChange(AnchorAction.SET, declared.date, declared.amount)
    if current is None or earliest_row_date is None:
        return None
    if earliest_row_date >= current.date:
        return None
    return AnchorChange(AnchorAction.MOVE, earliest_row_date - timedelta(days=1), current.balance)


class OpeningAnchorManager:
    """Read/write access to one account's opening anchor entry."""

    def __init__(self, session: Session, account: Account) -> None:
        self.session = session
        self.account = account

    @property
    def anchor(self) -> LedgerEntry | None:
        return self.session.scalars(
            select(LedgerEntry).where(
                LedgerEntry.account_id == self.account.id,
                LedgerEntry.kind == OPENING_ANCHOR_KIND,
            )
        ).one_or_none()

    def has_opening_anchor(self) -> bool:
        return self.anchor is not None

    @property
    def opening_date(self) -> date | None:
        anchor = self.anchor
        return anchor.date if anchor is not None else None

    @property
    def opening_balance(self) -> Decimal | None:
        anchor = self.anchor
        return anchor.balance if anchor is not None else None

    def current(self) -> CurrentAnchor | None:
        anchor = self.anchor
        if anchor is None:
            return None
        return CurrentAnchor(date=anchor.date, balance=anchor.balance)

    def set_opening_balance(self, *, balance: Decimal | None, date: date) -> LedgerEntry:
        """Create the anchor or update its date and balance together."""

        anchor = self.anchor
        if anchor is None:
            anchor = LedgerEntry(
                account_id=self.account.id,
                kind=OPENING_ANCHOR_KIND,
                name=OPENING_ANCHOR_NAME,
                currency=self.account.currency,
                amount=Decimal("0"),
            )
            self.session.add(anchor)
        anchor.date = date
        anchor.balance = balance
        self.session.flush()
        return anchor


def declared_opening_balance(statement_import: StatementImport) -> OpeningBalanceEntry | None:
    """The opening balance the file declares; OFX files never declare one."""

    if ImportKind(statement_import.kind) is ImportKind.QIF:
        return qif.parse_opening_balance(statement_import.raw_file_str)
    return None


def preview_anchor_change(
    session: Session, statement_import: StatementImport
) -> AnchorChange | None:
    """Return the anchor change publishing would make, without writing."""

    account = statement_import.account
    if account is None:
        return None
    declared = declared_opening_balance(statement_import)
    current = OpeningAnchorManager(session, account).current()
    earliest = earliest_row_date(
        load_rows(session, statement_import), statement_import.date_format
    )
    return resolve_anchor_change(declared, current, earliest)


def will_adjust_opening_anchor(session: Session, statement_import: StatementImport) -> bool:
    """True when publishing will move an existing anchor back in time."""

    change = preview_anchor_change(session, statement_import)
    return change is not None and change.action is AnchorAction.MOVE


def adjusted_opening_anchor_date(
    session: Session, statement_import: StatementImport
) -> date | None:
    """The date the anchor will move to, when :func:`will_adjust_opening_anchor`."""

    change = preview_anchor_change(session, statement_import)
    if change is None or change.action is not AnchorAction.MOVE:
        return None
    return change.date


def apply_anchor_change(
    session: Session, statement_import: StatementImport
) -> AnchorChange | None:
    """Position the account's opening anchor for this import."""

    change = preview_anchor_change(session, statement_import)
    if change is None:
        return None
    assert statement_import.account is not None  # preview returns None otherwise
    OpeningAnchorManager(session, statement_import.account).set_opening_balance(
        balance=change.balance, date=change.date
    )
    import_logger(_logger, statement_import.id).info(
        "%s opening anchor of account %s to %s (balance %s)",
        "set" if change.action is AnchorAction.SET else "moved",
        statement_import.account_id,
        change.date.isoformat(),
        change.balance,
    )
    return change


__all__ = [
    "OPENING_ANCHOR_KIND",
    "AnchorAction",
    "AnchorChange",
    "CurrentAnchor",
    "OpeningAnchorManager",
    "resolve_anchor_change",
    "declared_opening_balance",
    "preview_anchor_change",
    "will_adjust_opening_anchor",
    "adjusted_opening_anchor_date",
    "apply_anchor_change",
]
