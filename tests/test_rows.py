from decimal import Decimal
from pathlib import Path

import pytest
from ledger_db.models.ledger import ImportRow
from sqlalchemy import func, select
from statement_import.importer import create_import, link_account
from statement_import.models import SignageConvention
from statement_import.rows import (
    generate_rows,
    row_categories,
    row_date,
    row_tags,
    signed_amount,
)
from statement_import.settings import ImportSettings

from tests.helpers.db import add_account, add_entry

_DATA = Path(__file__).resolve().parent / "data"


def _row_values(rows: list[ImportRow]) -> list[tuple[str, ...]]:
    return [
        (r.date, r.amount, r.currency, r.name, r.notes, r.category, r.tags, r.external_id)
        for r in rows
    ]


# ---- QIF ---------------------------------------------------------------------


def test_qif_rows_use_import_default_currency(session):
    account = add_account(session)
    imp = create_import(
        session,
        (_DATA / "sample.qif").read_bytes(),
        settings=ImportSettings(default_currency="CAD"),
    )

    rows = link_account(session, imp, account)

    assert _row_values(rows) == [
        ("2020-06-04", "-99.00", "CAD", "Frais Eval", "", "Fees & Charges", "", ""),
        ("2021-03-29", "-28500.00", "CAD", "Virement", "", "", "", ""),
        ("2020-10-01", "500.00", "CAD", "Payment received", "", "Food & Dining", "EUROPE2025", ""),
    ]
    assert all(r.account == "" and r.ticker == "" and r.qty == "" for r in rows)


def test_qif_tags_are_pipe_joined(session):
    account = add_account(session)
    imp = create_import(
        session, (_DATA / "opening_balance.qif").read_bytes(), settings=ImportSettings()
    )

    rows = link_account(session, imp, account)

    corner = next(r for r in rows if r.name == "Corner Store")
    assert corner.category == "Groceries"
    assert corner.tags == "ERRANDS|WEEKLY"
    assert corner.tags_list == ["ERRANDS", "WEEKLY"]
    # The synthetic opening-balance record never becomes a row
    assert [r.name for r in rows] == ["Corner Store", "Payroll"]


def test_qif_payee_falls_back_to_default_row_name(session):
    account = add_account(session)
    imp = create_import(
        session,
        "!Type:Bank\nD1/5'24\nT-3.25\nMno payee here\n^\n",
        settings=ImportSettings(default_row_name="Unnamed"),
    )

    (row,) = link_account(session, imp, account)

    assert row.name == "Unnamed"
    assert row.notes == "no payee here"


def test_qif_rows_are_not_auto_matched(session):
    account = add_account(session)
    add_entry(session, account, on="2020-06-04", amount="99.00")
    imp = create_import(session, (_DATA / "sample.qif").read_bytes(), settings=ImportSettings())

    rows = link_account(session, imp, account)

    assert not any(r.matched for r in rows)


# ---- OFX ---------------------------------------------------------------------


def test_ofx_rows_carry_file_currency_and_fitid(session):
    account = add_account(session, currency="EUR")
    imp = create_import(
        session,
        (_DATA / "statement_xml.ofx").read_bytes(),
        settings=ImportSettings(default_currency="GBP"),
    )

    rows = link_account(session, imp, account)

    assert _row_values(rows) == [
        ("2024-03-10", "-12.50", "EUR", "Coffee Shop", "", "", "", "20240310001"),
    ]


def test_ofx_rows_keep_memo_as_notes(session):
    account = add_account(session)
    imp = create_import(
        session, (_DATA / "statement_sgml.qfx").read_bytes(), settings=ImportSettings()
    )

    rows = link_account(session, imp, account)

    assert [(r.name, r.notes) for r in rows] == [
        ("Grocery Store", "Weekly groceries"),
        ("Paycheck deposit", "Paycheck deposit"),
    ]
    assert all(r.currency == "USD" and r.category == "" and r.tags == "" for r in rows)


def test_ofx_rows_are_auto_matched_on_materialization(session):
    account = add_account(session)
    existing = add_entry(
        session, account, on="2024-01-20", amount="0.01", external_id="20240120001"
    )
    imp = create_import(
        session, (_DATA / "statement_sgml.qfx").read_bytes(), settings=ImportSettings()
    )

    rows = link_account(session, imp, account)

    assert [r.matched_entry_id for r in rows] == [None, existing.id]


# ---- Re-materialization ------------------------------------------------------


def test_generate_rows_replaces_previous_rows(session):
    account = add_account(session)
    imp = create_import(session, (_DATA / "sample.qif").read_bytes(), settings=ImportSettings())
    first = _row_values(link_account(session, imp, account))

    second = _row_values(generate_rows(session, imp))
    third = _row_values(generate_rows(session, imp))

    assert first == second == third
    count = session.scalar(
        select(func.count()).select_from(ImportRow).where(ImportRow.import_id == imp.id)
    )
    assert count == 3
    assert len(imp.rows) == 3


def test_row_categories_and_tags_are_distinct_and_sorted(session):
    account = add_account(session)
    content = (
        "!Type:Bank\n"
        "D1/1'24\nT-1\nPA\nLFood/TRIP:WORK\n^\n"
        "D1/2'24\nT-2\nPB\nLFood/WORK\n^\n"
        "D1/3'24\nT-3\nPC\nLAuto\n^\n"
        "D1/4'24\nT-4\nPD\nL[Savings]\n^\n"
    )
    imp = create_import(session, content, settings=ImportSettings())

    rows = link_account(session, imp, account)

    assert row_categories(rows) == ["Auto", "Food"]
    assert row_tags(rows) == ["TRIP", "WORK"]


# ---- Value helpers -----------------------------------------------------------


@pytest.mark.parametrize(
    ("amount", "convention", "expected"),
    [
        ("-45.00", SignageConvention.INFLOWS_POSITIVE, Decimal("45.00")),
        ("2500.00", "inflows_positive", Decimal("-2500.00")),
        ("-45.00", SignageConvention.INFLOWS_NEGATIVE, Decimal("-45.00")),
        ("abc", "inflows_positive", None),
        ("NaN", "inflows_positive", None),
        ("", "inflows_positive", None),
        (None, "inflows_positive", None),
    ],
)
def test_signed_amount(amount, convention, expected):
    assert signed_amount(amount, convention) == expected


def test_row_date():
    assert str(row_date("2024-01-15")) == "2024-01-15"
    assert str(row_date("15/01/2024", "%d/%m/%Y")) == "2024-01-15"
    assert row_date("2024-13-01") is None
    assert row_date("") is None
