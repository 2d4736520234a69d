# ruff: noqa: I001
"""Row materialization: parsed transactions -> ``import_rows``.

Every import variant shares one row schema, so QIF and OFX rows carry empty
placeholders for the trade/account-list columns. Materialization replaces the
import's previous row set, so re-running it on the same source text yields
the same rows. OFX imports are auto-matched against the account's ledger
right after insertion.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from ledger_db.models.ledger import ImportRow, StatementImport
from . import ofx, qif
from .logging_setup import get_logger, import_logger
from .models import ImportKind, ParsedTransaction, SignageConvention
from .settings import ImportSettings

_logger = get_logger("statement_import.rows")

TAG_DELIMITER = "|"

# Columns only meaningful to other import variants.
_PLACEHOLDER_COLUMNS: dict[str, str] = {
    "account": "",
    "qty": "",
    "ticker": "",
    "price": "",
    "exchange_operating_mic": "",
    "entity_type": "",
}


# ---------------------------------------------------------------------------
# Value helpers shared by matching and publishing
# ---------------------------------------------------------------------------


def signed_amount(amount: str | None, convention: SignageConvention | str) -> Decimal | None:
    """Return ``amount`` in the ledger's sign convention (outflows positive).

    ``None`` when the text is not a decimal number.
    """

    if amount is None or not str(amount).strip():
        return None
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    if SignageConvention(convention) is SignageConvention.INFLOWS_POSITIVE:
        return -value
    return value


def row_date(value: str | None, date_format: str = "%Y-%m-%d") -> date | None:
    """Parse a row's date text with the import's ``date_format``."""

    if not value or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), date_format).date()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


def row_values_from_qif(tx: ParsedTransaction, *, settings: ImportSettings) -> dict[str, Any]:
    """Map a QIF transaction to row columns.

    QIF carries no currency, so the import's default currency always applies.
    """

    return {
        "date": tx.date,
        "amount": tx.amount,
        "currency": settings.default_currency,
        "name": tx.payee or settings.default_row_name,
        "notes": tx.memo or "",
        "category": tx.category or "",
        "tags": TAG_DELIMITER.join(tx.tags),
        "external_id": "",
        **_PLACEHOLDER_COLUMNS,
    }


def row_values_from_ofx(tx: ParsedTransaction, *, settings: ImportSettings) -> dict[str, Any]:
    """Map an OFX transaction to row columns.

    OFX rows are uncategorized; category and tags are picked in the mapping
    step.
    """

    return {
        "date": tx.date,
        "amount": tx.amount,
        "currency": tx.currency or settings.default_currency,
        "name": tx.payee or settings.default_row_name,
        "notes": tx.memo or "",
        "category": "",
        "tags": "",
        "external_id": tx.external_id or "",
        **_PLACEHOLDER_COLUMNS,
    }


def import_settings(statement_import: StatementImport) -> ImportSettings:
    """Rebuild the settings snapshot stored on an import."""

    return ImportSettings(
        default_currency=statement_import.default_currency,
        default_row_name=statement_import.default_row_name,
        signage_convention=statement_import.signage_convention,
        date_format=statement_import.date_format,
    )


def parse_statement(statement_import: StatementImport) -> list[ParsedTransaction]:
    """Parse the import's stored text with the parser for its kind."""

    if ImportKind(statement_import.kind) is ImportKind.QIF:
        return qif.parse(statement_import.raw_file_str)
    return ofx.parse(statement_import.raw_file_str)


def build_row_values(statement_import: StatementImport) -> list[dict[str, Any]]:
    settings = import_settings(statement_import)
    mapper = (
        row_values_from_qif
        if ImportKind(statement_import.kind) is ImportKind.QIF
        else row_values_from_ofx
    )
    return [
        {"import_id": statement_import.id, **mapper(tx, settings=settings)}
        for tx in parse_statement(statement_import)
    ]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def generate_rows(session: Session, statement_import: StatementImport) -> list[ImportRow]:
    """Replace the import's rows with freshly parsed ones and return them.

    For OFX imports the auto-matcher runs before returning, so the returned
    rows already carry ``matched_entry_id`` where a duplicate was found.
    The caller owns the transaction scope.
    """

    if statement_import.id is None:
        session.flush()

    session.execute(delete(ImportRow).where(ImportRow.import_id == statement_import.id))
    payloads = build_row_values(statement_import)
    if payloads:
        session.execute(insert(ImportRow), payloads)
    # Bulk statements bypass the identity map; drop stale collections.
    session.expire(statement_import, ["rows"])

    import_logger(_logger, statement_import.id).info(
        "materialized %d %s row(s)", len(payloads), statement_import.kind
    )

    if ImportKind(statement_import.kind) is ImportKind.OFX:
        from .matching import auto_match_rows

        auto_match_rows(session, statement_import)

    return load_rows(session, statement_import)


def load_rows(session: Session, statement_import: StatementImport) -> list[ImportRow]:
    return list(
        session.scalars(
            select(ImportRow)
            .where(ImportRow.import_id == statement_import.id)
            .order_by(ImportRow.id)
        )
    )


def earliest_row_date(rows: Iterable[ImportRow], date_format: str = "%Y-%m-%d") -> date | None:
    """Earliest decodable date across materialized rows."""

    dates = [d for d in (row_date(r.date, date_format) for r in rows) if d is not None]
    return min(dates) if dates else None


def row_categories(rows: Iterable[ImportRow]) -> list[str]:
    """Distinct non-blank category labels, sorted."""

    return sorted({r.category for r in rows if r.category and r.category.strip()})


def row_tags(rows: Iterable[ImportRow]) -> list[str]:
    """Distinct non-blank tag labels across all rows, sorted."""

    return sorted({t for r in rows for t in r.tags_list})


__all__ = [
    "TAG_DELIMITER",
    "signed_amount",
    "row_date",
    "row_values_from_qif",
    "row_values_from_ofx",
    "import_settings",
    "parse_statement",
    "build_row_values",
    "generate_rows",
    "load_rows",
    "earliest_row_date",
    "row_categories",
    "row_tags",
]
