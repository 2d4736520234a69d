from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from statement_import import qif
from statement_import.models import OpeningBalanceEntry, ParsedTransaction

_DATA = Path(__file__).resolve().parent / "data"
SAMPLE_QIF = (_DATA / "sample.qif").read_text(encoding="utf-8")
OPENING_QIF = (_DATA / "opening_balance.qif").read_text(encoding="utf-8")


# ---- Detection ---------------------------------------------------------------


def test_is_valid_accepts_qif():
    assert qif.is_valid(SAMPLE_QIF)
    assert qif.is_valid(SAMPLE_QIF.encode("utf-8"))


@pytest.mark.parametrize(
    "content",
    [
        "<OFX><STMTTRN></STMTTRN></OFX>",
        "date,amount,name\n2024-01-01,100,Coffee",
        None,
        "",
        b"",
    ],
)
def test_is_valid_rejects_non_qif(content):
    assert not qif.is_valid(content)


def test_is_valid_never_raises_on_malformed_bytes():
    assert qif.is_valid(b"\xff\xfe!Type:Bank\n\x81")


def test_account_type_extracts_transaction_section():
    assert qif.account_type(SAMPLE_QIF) == "CCard"


def test_account_type_skips_tag_and_cat_sections():
    content = "!Type:Tag\nNMyTag\n^\n!Type:Cat\nNMycat\n^\n!Type:Bank\nD1/1'24\nT100.00\nPTest\n^\n"
    assert qif.account_type(content) == "Bank"


def test_account_type_absent_when_only_metadata():
    assert qif.account_type("!Type:Cat\nNFood\n^\n") is None


# ---- Transactions ------------------------------------------------------------


def test_parse_returns_every_transaction():
    transactions = qif.parse(SAMPLE_QIF)

    assert len(transactions) == 3
    assert all(isinstance(t, ParsedTransaction) for t in transactions)


def test_parse_decodes_dates():
    dates = [t.date for t in qif.parse(SAMPLE_QIF)]
    assert dates == ["2020-06-04", "2021-03-29", "2020-10-01"]


def test_parse_strips_thousands_separators_exactly():
    transactions = qif.parse(SAMPLE_QIF)

    assert transactions[0].amount == "-99.00"
    assert transactions[1].amount == "-28500.00"
    assert Decimal(transactions[1].amount) == Decimal("-28500.00")


def test_parse_extracts_payee_memo_and_flags():
    first = qif.parse(SAMPLE_QIF)[0]

    assert first.payee == "Frais Eval"
    assert first.memo is None
    assert first.check_num == "TXFR"
    assert first.cleared == "*"
    assert first.external_id is None
    assert first.currency is None


def test_parse_category_tags_and_transfers():
    transactions = qif.parse(SAMPLE_QIF)

    assert (transactions[0].category, transactions[0].tags) == ("Fees & Charges", ())
    # [TD - Minimum chequing] is a transfer reference
    assert (transactions[1].category, transactions[1].tags) == ("", ())
    assert (transactions[2].category, transactions[2].tags) == ("Food & Dining", ("EUROPE2025",))


def test_parse_excludes_opening_balance_record():
    payees = [t.payee for t in qif.parse(OPENING_QIF)]

    assert payees == ["Corner Store", "Payroll"]


def test_parse_uses_u_amount_when_t_missing():
    content = "!Type:Bank\nD1/2'24\nU-1,000.5\nPRent\n^\n"
    assert qif.parse(content)[0].amount == "-1000.5"


def test_parse_drops_records_with_bad_date_or_amount():
    content = (
        "!Type:Bank\n"
        "D13/45'24\nT10.00\nPBad date\n^\n"
        "D2024-01-02\nT10.00\nPWrong shape\n^\n"
        "D1/2'24\nT12abc\nPBad amount\n^\n"
        "D1/2'24\nPNo amount\n^\n"
        "D1/3'24\nT1.00\nPKept\n^\n"
    )

    assert [t.payee for t in qif.parse(content)] == ["Kept"]


def test_parse_keeps_unterminated_last_record_and_skips_empty_ones():
    content = "!Type:Cash\n^\n\n^\nD1/5'24\nT-3.25\nPTail"

    transactions = qif.parse(content)

    assert len(transactions) == 1
    assert transactions[0].payee == "Tail"


def test_parse_handles_crlf_line_endings():
    content = "!Type:Bank\r\nD1/5'24\r\nT-3.25\r\nPCRLF\r\n^\r\n"
    assert qif.parse(content)[0].payee == "CRLF"


def test_parse_handles_lone_cr_line_endings():
    # Classic Mac Quicken exports end lines with a bare carriage return
    content = (
        b"!Type:Bank\rD1/ 1'20\rT50\rPOpening Balance\r^\r"
        b"D6/ 4'20\rT-10.00\rPCoffee\r^\r"
    )

    assert qif.account_type(content) == "Bank"
    (tx,) = qif.parse(content)
    assert (tx.date, tx.amount, tx.payee) == ("2020-06-04", "-10.00", "Coffee")
    assert qif.parse_opening_balance(content) == OpeningBalanceEntry(
        date=date(2020, 1, 1), amount=Decimal("50")
    )


def test_parse_multiple_tags():
    content = "!Type:Bank\nD1/5'24\nT-3.25\nLTravel / TRIP : WORK :  \n^\n"

    tx = qif.parse(content)[0]

    assert tx.category == "Travel"
    assert tx.tags == ("TRIP", "WORK")


def test_parse_returns_empty_for_invalid_content():
    assert qif.parse("not a qif file") == []
    assert qif.parse(None) == []


# ---- Field decoding ----------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("6/ 4'20", "2020-06-04"),
        ("3/29'21", "2021-03-29"),
        ("12/31'1999", "1999-12-31"),
        ("06/04/2020", "2020-06-04"),
        ("2/30'21", None),
        ("06-04-2020", None),
        ("", None),
    ],
)
def test_parse_qif_date(raw, expected):
    assert qif.parse_qif_date(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("-28,500.00", "-28500.00"),
        ("1,234", "1234"),
        (" 12.5 ", "12.5"),
        ("$12.00", None),
        ("--1", None),
        ("", None),
    ],
)
def test_parse_qif_amount(raw, expected):
    assert qif.parse_qif_amount(raw) == expected


def test_split_category_and_tags():
    assert qif.split_category_and_tags("Food & Dining/EUROPE2025") == (
        "Food & Dining",
        ("EUROPE2025",),
    )
    assert qif.split_category_and_tags("[TD - Minimum chequing]") == ("", ())
    assert qif.split_category_and_tags("[Savings]/TAG") == ("", ())
    assert qif.split_category_and_tags("Food & Dining:Restaurants") == (
        "Food & Dining:Restaurants",
        (),
    )
    assert qif.split_category_and_tags(None) == ("", ())


# ---- Opening balance ---------------------------------------------------------


def test_parse_opening_balance():
    ob = qif.parse_opening_balance(OPENING_QIF)

    assert ob is not None
    assert ob.date == date(2020, 1, 1)
    assert ob.amount == Decimal("1250.00")


def test_parse_opening_balance_absent():
    assert qif.parse_opening_balance(SAMPLE_QIF) is None


def test_parse_opening_balance_with_bad_date_is_absent_and_still_excluded():
    content = "!Type:Bank\nDsoon\nT100\nPOpening Balance\n^\nD1/2'24\nT5\nPReal\n^\n"

    assert qif.parse_opening_balance(content) is None
    assert [t.payee for t in qif.parse(content)] == ["Real"]


# ---- Categories and tags -----------------------------------------------------


def test_parse_categories_with_income_flags():
    categories = {c.name: c for c in qif.parse_categories(SAMPLE_QIF)}

    assert set(categories) == {"Food & Dining", "Food & Dining:Restaurants", "Salary"}
    assert categories["Salary"].income
    assert not categories["Food & Dining"].income
    assert categories["Food & Dining"].description == "Food and dining expenses"


def test_parse_categories_income_requires_no_expense_flag():
    content = "!Type:Cat\nNBoth\nI\nE\n^\nNNeither\n^\nDNo name\n^\n"

    categories = qif.parse_categories(content)

    assert [(c.name, c.income) for c in categories] == [("Both", False), ("Neither", False)]


def test_parse_tags():
    tags = {t.name: t for t in qif.parse_tags(SAMPLE_QIF)}

    assert set(tags) == {"EUROPE2025", "NYC2023"}
    assert tags["NYC2023"].description == "Voyage NYC 2023"
    assert tags["EUROPE2025"].description is None
