"""OFX/QFX parser for both the SGML and the XML dialect.

- SGML (older): leaf elements have no closing tag, e.g. ``<TRNAMT>-45.00``
- XML (newer): every element is closed, e.g. ``<TRNAMT>-45.00</TRNAMT>``

Both dialects close aggregate elements (``<STMTTRN>...</STMTTRN>``), so
transaction blocks are located with one non-greedy, case-insensitive match
and leaf values are read with a single extraction primitive
(:func:`extract_field`) that tolerates but does not require a closing tag.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

from .encoding import normalize_encoding, normalize_line_endings
from .logging_setup import get_logger
from .models import ParsedTransaction

_logger = get_logger("statement_import.ofx")

DEFAULT_CURRENCY = "USD"
# Display name when a transaction carries neither NAME nor MEMO.
DEFAULT_TRANSACTION_NAME = "Imported transaction"

_OFX_OPEN_RE = re.compile(r"<OFX>", re.IGNORECASE)
_STMTTRN_OPEN_RE = re.compile(r"<STMTTRN>", re.IGNORECASE)
_STMTTRN_BLOCK_RE = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)
_AMOUNT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


@lru_cache(maxsize=64)
def _field_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"<{re.escape(name)}[^>]*>\s*([^<\r\n]+)", re.IGNORECASE)


def extract_field(block: str | None, name: str) -> str | None:
    """Return the trimmed text value of the first ``<name>`` element in ``block``.

    The value runs up to the next ``<`` or line break, so the same primitive
    reads ``<NAME>Coffee`` (SGML) and ``<NAME>Coffee</NAME>`` (XML).
    """

    if not block:
        return None
    m = _field_pattern(name).search(block)
    if not m:
        return None
    value = m.group(1).strip()
    return value or None


def parse_ofx_date(value: str | None) -> str | None:
    """Decode ``YYYYMMDD[HHMMSS[.XXX[-offset:TZ]]]`` into ISO ``YYYY-MM-DD``.

    Only the first eight characters matter; the time and zone are ignored.
    """

    if not value:
        return None
    try:
        return datetime.strptime(value[:8], "%Y%m%d").date().isoformat()
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class OfxDocument:
    """Normalized OFX text starting at the first ``<OFX>`` tag.

    Any SGML header block before ``<OFX>`` is dropped.
    """

    body: str

    @classmethod
    def load(cls, content: bytes | str | None) -> OfxDocument | None:
        if not content:
            return None
        text = normalize_line_endings(normalize_encoding(content, fmt="ofx"))
        m = _OFX_OPEN_RE.search(text)
        if not m:
            return None
        return cls(body=text[m.start() :])

    @property
    def currency(self) -> str:
        return extract_field(self.body, "CURDEF") or DEFAULT_CURRENCY

    @property
    def account_id(self) -> str | None:
        return extract_field(self.body, "ACCTID")

    @property
    def bank_name(self) -> str | None:
        return extract_field(self.body, "ORG") or extract_field(self.body, "BANKID")

    def transaction_blocks(self) -> list[str]:
        return [m.group(1) for m in _STMTTRN_BLOCK_RE.finditer(self.body)]

    def transactions(self) -> list[ParsedTransaction]:
        currency = self.currency
        parsed: list[ParsedTransaction] = []
        blocks = self.transaction_blocks()
        for block in blocks:
            trn = _build_transaction(block, currency)
            if trn is not None:
                parsed.append(trn)
        if len(parsed) != len(blocks):
            _logger.debug(
                "OFX: dropped %d transaction block(s) missing a date or amount",
                len(blocks) - len(parsed),
            )
        return parsed


def parse_ofx_amount(value: str | None) -> str | None:
    """Return ``TRNAMT`` as an exact decimal string, or ``None`` if it is not one.

    A leading ``+`` is dropped; ``"N/A"`` or ``"1.234,56"`` yield ``None``.
    """

    if not value:
        return None
    cleaned = value.strip()
    if not _AMOUNT_RE.fullmatch(cleaned):
        return None
    return cleaned.removeprefix("+")


def _build_transaction(block: str, currency: str) -> ParsedTransaction | None:
    iso_date = parse_ofx_date(extract_field(block, "DTPOSTED"))
    amount = parse_ofx_amount(extract_field(block, "TRNAMT"))
    if iso_date is None or amount is None:
        return None

    memo = extract_field(block, "MEMO")
    return ParsedTransaction(
        date=iso_date,
        amount=amount,
        payee=extract_field(block, "NAME") or memo or DEFAULT_TRANSACTION_NAME,
        memo=memo,
        external_id=extract_field(block, "FITID"),
        currency=currency,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_valid(content: bytes | str | None) -> bool:
    """Return True if ``content`` has an ``<OFX>`` tag and a ``<STMTTRN>`` block."""

    if not content:
        return False
    text = normalize_encoding(content, fmt="ofx")
    return bool(_OFX_OPEN_RE.search(text) and _STMTTRN_OPEN_RE.search(text))


def parse(content: bytes | str | None) -> list[ParsedTransaction]:
    """Parse every ``<STMTTRN>`` block into a :class:`ParsedTransaction`.

    Blocks missing a decodable ``DTPOSTED`` or a decimal ``TRNAMT`` are dropped.
    """

    if not is_valid(content):
        return []
    doc = OfxDocument.load(content)
    return doc.transactions() if doc is not None else []


def extract_account_id(content: bytes | str | None) -> str | None:
    """Return the statement's ``ACCTID`` (used to auto-link repeated imports)."""

    doc = OfxDocument.load(content)
    return doc.account_id if doc is not None else None


def extract_bank_name(content: bytes | str | None) -> str | None:
    """Return ``<ORG>``, falling back to ``<BANKID>``; display use only."""

    doc = OfxDocument.load(content)
    return doc.bank_name if doc is not None else None


def extract_currency(content: bytes | str | None) -> str:
    """Return the statement default currency (``CURDEF``), ``USD`` if absent."""

    doc = OfxDocument.load(content)
    return doc.currency if doc is not None else DEFAULT_CURRENCY


__all__ = [
    "DEFAULT_CURRENCY",
    "DEFAULT_TRANSACTION_NAME",
    "OfxDocument",
    "is_valid",
    "parse",
    "extract_field",
    "parse_ofx_date",
    "parse_ofx_amount",
    "extract_account_id",
    "extract_bank_name",
    "extract_currency",
]
