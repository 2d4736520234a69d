# ruff: noqa: I001
"""Auto-match materialized import rows against the account's existing ledger.

A row is a duplicate of an existing entry when:

1. its external id (OFX ``FITID``) equals the entry's external id, or
2. failing that, the calendar date and the amount (converted to the ledger's
   sign convention) are equal. This fallback covers history imported before
   external ids were tracked; it can pair two unrelated movements that share
   a date and an amount, which is accepted.

Only entries of the import's own account are candidates. Matching recomputes
from scratch on every call and touches nothing but ``matched_entry_id``. QIF
imports carry no external id and are not auto-matched.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_db.models.ledger import LedgerEntry, StatementImport
from .logging_setup import get_logger, import_logger
from .models import SignageConvention
from .rows import load_rows, row_date, signed_amount

_logger = get_logger("statement_import.matching")


class MatchableRow(Protocol):
    id: int
    date: str
    amount: str
    external_id: str


class ExistingEntry(Protocol):
    id: int
    account_id: int
    date: date
    amount: Decimal
    external_id: str | None


def match_rows(
    rows: Iterable[MatchableRow],
    existing_entries: Iterable[ExistingEntry],
    *,
    account_id: int,
    signage_convention: SignageConvention | str = SignageConvention.INFLOWS_POSITIVE,
    date_format: str = "%Y-%m-%d",
) -> dict[int, int]:
    """Return ``{row_id: entry_id}`` for every row that duplicates an entry.

    Entries whose ``account_id`` differs from ``account_id`` are ignored.
    On index collisions the first entry wins.
    """

    by_external_id: dict[str, int] = {}
    by_date_amount: dict[tuple[date, Decimal], int] = {}
    for entry in existing_entries:
        if entry.account_id != account_id:
            continue
        if entry.external_id:
            by_external_id.setdefault(entry.external_id, entry.id)
        if entry.date is not None and entry.amount is not None:
            by_date_amount.setdefault((entry.date, Decimal(entry.amount)), entry.id)

    matches: dict[int, int] = {}
    for row in rows:
        external_id = (row.external_id or "").strip()
        has_date = bool(row.date and row.date.strip())
        if not external_id and not has_date:
            continue

        entry_id = by_external_id.get(external_id) if external_id else None
        if entry_id is None:
            d = row_date(row.date, date_format)
            amount = signed_amount(row.amount, signage_convention)
            if d is not None and amount is not None:
                entry_id = by_date_amount.get((d, amount))

        if entry_id is not None:
            matches[row.id] = entry_id
    return matches


def auto_match_rows(session: Session, statement_import: StatementImport) -> int:
    """Recompute ``matched_entry_id`` for every row of ``statement_import``.

    Returns the number of matched rows. Does nothing (returns 0) when the
    import is not linked to an account yet. The caller owns the transaction.
    """

    if statement_import.account_id is None:
        return 0

    existing = session.scalars(
        select(LedgerEntry).where(
            LedgerEntry.account_id == statement_import.account_id,
            LedgerEntry.kind == "transaction",
        )
    ).all()
    rows = load_rows(session, statement_import)

    matches = match_rows(
        rows,
        existing,
        account_id=statement_import.account_id,
        signage_convention=statement_import.signage_convention,
        date_format=statement_import.date_format,
    )

    for row in rows:
        row.matched_entry_id = matches.get(row.id)
    session.flush()

    import_logger(_logger, statement_import.id).info(
        "matched %d of %d row(s) to existing entries on account %s",
        len(matches),
        len(rows),
        statement_import.account_id,
    )
    return len(matches)


__all__ = ["MatchableRow", "ExistingEntry", "match_rows", "auto_match_rows"]
