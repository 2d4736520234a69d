# ruff: noqa: I001
"""Import orchestration: create, link, materialize and publish statement imports.

Typical flow
------------
1. :func:`create_import` validates and stores the normalized file text.
2. :func:`link_account` (or :func:`quick_import` for OFX files whose
   ``ACCTID`` is already linked) attaches the target account and materializes
   rows; OFX rows are auto-matched at this point.
3. :func:`publish` commits the import as one unit of work: category/tag
   entities, ledger entries for unmatched rows, and the opening anchor.

All functions take the caller's session; the caller owns the outer
transaction (e.g. ``ledger_db.client.session_scope``).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_db.models.ledger import Account, ImportRow, LedgerEntry, StatementImport
from . import ofx, qif
from .anchor import AnchorChange, apply_anchor_change
from .encoding import normalize_encoding
from .logging_setup import get_logger, import_logger
from .mappings import resolve_categories, resolve_tags
from .models import ImportKind, ParsedCategory, ParsedTag
from .rows import generate_rows, load_rows, row_categories, row_date, row_tags, signed_amount
from .settings import ImportSettings

_logger = get_logger("statement_import.importer")

UNRECOGNIZED_FILE_MESSAGE = (
    "Must be a valid QIF file or an OFX/QFX file with at least one transaction"
)


@dataclass(frozen=True, slots=True)
class PublishResult:
    entries_created: int
    rows_skipped: int
    anchor_change: AnchorChange | None


def detect_kind(content: bytes | str | None) -> ImportKind | None:
    """Return the file family of ``content``; OFX is checked first."""

    if ofx.is_valid(content):
        return ImportKind.OFX
    if qif.is_valid(content):
        return ImportKind.QIF
    return None


def create_import(
    session: Session,
    content: bytes | str,
    *,
    settings: ImportSettings,
    kind: ImportKind | str | None = None,
    account: Account | None = None,
) -> StatementImport:
    """Validate ``content`` and store it as a pending import.

    Raises
    ------
    ValueError
        When the file is not recognized as ``kind`` (or as any supported
        format when ``kind`` is omitted). Nothing is written in that case.
    """

    resolved = ImportKind(kind) if kind is not None else detect_kind(content)
    if resolved is None:
        raise ValueError(UNRECOGNIZED_FILE_MESSAGE)

    text = normalize_encoding(content, fmt=resolved.value)
    validator = qif.is_valid if resolved is ImportKind.QIF else ofx.is_valid
    if not text or not validator(text):
        raise ValueError(UNRECOGNIZED_FILE_MESSAGE)

    statement_import = StatementImport(
        kind=resolved.value,
        account=account,
        raw_file_str=text,
        status="pending",
        default_currency=settings.default_currency,
        default_row_name=settings.default_row_name,
        signage_convention=settings.signage_convention.value,
        date_format=settings.date_format,
    )
    session.add(statement_import)
    session.flush()
    import_logger(_logger, statement_import.id).info("created from a %s file", resolved.value)
    return statement_import


def find_linked_account(session: Session, statement_import: StatementImport) -> Account | None:
    """Return the account already linked to the file's OFX ``ACCTID``, if any."""

    if ImportKind(statement_import.kind) is not ImportKind.OFX:
        return None
    acct_id = ofx.extract_account_id(statement_import.raw_file_str)
    if not acct_id:
        return None
    return session.scalars(select(Account).where(Account.ofx_account_id == acct_id)).one_or_none()


def link_account(
    session: Session, statement_import: StatementImport, account: Account
) -> list[ImportRow]:
    """Attach ``account`` to the import and materialize its rows.

    For OFX files the statement's ``ACCTID`` is remembered on the account so
    later files from the same institution link automatically. A previous
    holder of the same ``ACCTID`` loses the link.
    """

    if ImportKind(statement_import.kind) is ImportKind.OFX:
        acct_id = ofx.extract_account_id(statement_import.raw_file_str)
        if acct_id and account.ofx_account_id != acct_id:
            previous = session.scalars(
                select(Account).where(Account.ofx_account_id == acct_id)
            ).one_or_none()
            if previous is not None:
                previous.ofx_account_id = None
                session.flush()
            account.ofx_account_id = acct_id

    statement_import.account = account
    session.flush()
    return generate_rows(session, statement_import)


def quick_import(
    session: Session, content: bytes | str, *, settings: ImportSettings
) -> StatementImport:
    """Create an OFX import and auto-link it when its ``ACCTID`` is known.

    Rows are only materialized when a linked account was found; otherwise the
    caller must pick an account with :func:`link_account`.
    """

    statement_import = create_import(session, content, settings=settings, kind=ImportKind.OFX)
    account = find_linked_account(session, statement_import)
    if account is not None:
        statement_import.account = account
        session.flush()
        generate_rows(session, statement_import)
    return statement_import


def publish(session: Session, statement_import: StatementImport) -> PublishResult:
    """Create ledger entries for the import's unmatched rows and place the anchor.

    Runs inside a savepoint: on any failure no entry, category, tag or anchor
    change survives; the import is marked ``failed`` and the error re-raised.
    """

    if statement_import.account is None:
        raise ValueError(f"Import {statement_import.id} has no account; link one before publishing")
    if statement_import.status == "complete":
        raise ValueError(f"Import {statement_import.id} is already published")

    log = import_logger(_logger, statement_import.id)
    try:
        with session.begin_nested():
            result = _publish(session, statement_import)
    except Exception as e:
        statement_import.status = "failed"
        statement_import.error = str(e)
        session.flush()
        log.error("publish failed: %s", e)
        raise

    statement_import.status = "complete"
    statement_import.error = None
    session.flush()
    log.info(
        "published %d entr%s, skipped %d matched row(s)",
        result.entries_created,
        "y" if result.entries_created == 1 else "ies",
        result.rows_skipped,
    )
    return result


def _publish(session: Session, statement_import: StatementImport) -> PublishResult:
    account = statement_import.account
    assert account is not None
    rows = load_rows(session, statement_import)

    known_categories: tuple[ParsedCategory, ...] = ()
    known_tags: tuple[ParsedTag, ...] = ()
    if ImportKind(statement_import.kind) is ImportKind.QIF:
        known_categories = tuple(qif.parse_categories(statement_import.raw_file_str))
        known_tags = tuple(qif.parse_tags(statement_import.raw_file_str))
    categories = resolve_categories(session, row_categories(rows), known=known_categories)
    tags = resolve_tags(session, row_tags(rows), known=known_tags)

    entries: list[LedgerEntry] = []
    skipped = 0
    for row in rows:
        if row.matched:
            skipped += 1
            continue
        entry_date = row_date(row.date, statement_import.date_format)
        amount = signed_amount(row.amount, statement_import.signage_convention)
        if entry_date is None or amount is None:
            raise ValueError(
                f"Import row {row.id} has an invalid date or amount: {row.date!r}, {row.amount!r}"
            )
        entries.append(
            LedgerEntry(
                account_id=account.id,
                kind="transaction",
                date=entry_date,
                amount=amount,
                name=row.name,
                currency=row.currency or statement_import.default_currency,
                notes=row.notes or None,
                external_id=row.external_id or None,
                import_id=statement_import.id,
                category=categories.get(row.category.strip()) if row.category else None,
                tags=[
                    tags[label]
                    for label in dict.fromkeys(t.strip() for t in row.tags_list)
                    if label in tags
                ],
            )
        )
    session.add_all(entries)
    session.flush()

    anchor_change = apply_anchor_change(session, statement_import)
    return PublishResult(
        entries_created=len(entries),
        rows_skipped=skipped,
        anchor_change=anchor_change,
    )


__all__ = [
    "UNRECOGNIZED_FILE_MESSAGE",
    "PublishResult",
    "detect_kind",
    "create_import",
    "find_linked_account",
    "link_account",
    "quick_import",
    "publish",
]
