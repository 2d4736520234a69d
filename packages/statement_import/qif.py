"""QIF (Quicken Interchange Format) parser.

A QIF file is a sequence of sections, each introduced by a ``!Type:<name>``
header line. Records inside a section end with a line holding only ``^``.
Every other line is a single-letter field code immediately followed by its
value.

Sections handled
----------------
- ``!Type:Tag``: tag definitions (``N`` name, ``D`` description)
- ``!Type:Cat``: category definitions (``N``, ``D``, ``I`` income flag,
  ``E`` expense flag)
- any other type (``CCard``, ``Bank``, ``Cash``, ``Oth L``...): transactions

Transaction field codes
-----------------------
``D`` date, ``T``/``U`` amount, ``P`` payee, ``M`` memo, ``L`` category or
``[Transfer account]`` with optional ``/tag:tag`` suffix, ``N`` check number,
``C`` cleared status.

Records are split into raw :class:`QifRecord` mappings and then classified
once into a typed variant (transaction, opening balance, category, tag).
A record whose date or amount does not decode is dropped, never defaulted.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .encoding import normalize_encoding, normalize_line_endings
from .logging_setup import get_logger
from .models import OpeningBalanceEntry, ParsedCategory, ParsedTag, ParsedTransaction

_logger = get_logger("statement_import.qif")

# Quicken's synthetic starting-balance record; not a real movement.
OPENING_BALANCE_PAYEE = "Opening Balance"

# Section types that hold metadata rather than account transactions.
METADATA_SECTIONS = frozenset({"tag", "cat"})

_TYPE_HEADER_RE = re.compile(r"^!Type:(.+)", re.IGNORECASE | re.MULTILINE)
# M/D'YY, M/ D'YY (2-digit year means 20YY; 4-digit used literally)
_QUOTE_DATE_RE = re.compile(r"(\d{1,2})/\s*(\d{1,2})'(\d{2,4})")
# MM/DD/YYYY
_SLASH_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_AMOUNT_RE = re.compile(r"-?\d+(?:\.\d*)?")


@dataclass(frozen=True, slots=True)
class QifRecord:
    """Raw field-code view of one ``^``-terminated record.

    Bare flag fields such as ``I`` or ``E`` are kept with an empty value so
    their presence can be tested.
    """

    fields: Mapping[str, str]

    def get(self, code: str) -> str | None:
        value = self.fields.get(code)
        return value if value else None

    def has(self, code: str) -> bool:
        return code in self.fields


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_valid(content: bytes | str | None) -> bool:
    """Return True if ``content`` looks like a QIF file.

    Checked on the raw value so undecodable bytes never raise.
    """

    if not content:
        return False
    if isinstance(content, bytes):
        return b"!Type:" in content
    return "!Type:" in content


def account_type(content: bytes | str | None) -> str | None:
    """Return the transaction section type (e.g. ``"CCard"``, ``"Bank"``).

    ``Tag`` and ``Cat`` sections are metadata and are skipped.
    """

    text = _prepare(content)
    if text is None:
        return None
    for m in _TYPE_HEADER_RE.finditer(text):
        name = m.group(1).strip()
        if name and name.lower() not in METADATA_SECTIONS:
            return name
    return None


def parse(content: bytes | str | None) -> list[ParsedTransaction]:
    """Parse every transaction, excluding the ``Opening Balance`` record."""

    return [e for e in _transaction_section_entries(content) if isinstance(e, ParsedTransaction)]


def parse_opening_balance(content: bytes | str | None) -> OpeningBalanceEntry | None:
    """Return the file's ``Opening Balance`` record as a balance declaration.

    ``None`` when the transaction section has no such record or when its
    date or amount does not decode.
    """

    for record in _transaction_section_records(content):
        if _is_opening_balance(record):
            return _build_opening_balance(record)
    return None


def parse_categories(content: bytes | str | None) -> list[ParsedCategory]:
    """Parse the ``!Type:Cat`` section; records without a name are skipped."""

    categories: list[ParsedCategory] = []
    for record in _records(_section(content, "Cat")):
        name = record.get("N")
        if not name:
            continue
        categories.append(
            ParsedCategory(
                name=name,
                description=record.get("D"),
                income=record.has("I") and not record.has("E"),
            )
        )
    return categories


def parse_tags(content: bytes | str | None) -> list[ParsedTag]:
    """Parse the ``!Type:Tag`` section; records without a name are skipped."""

    tags: list[ParsedTag] = []
    for record in _records(_section(content, "Tag")):
        name = record.get("N")
        if not name:
            continue
        tags.append(ParsedTag(name=name, description=record.get("D")))
    return tags


# ---------------------------------------------------------------------------
# Field decoding
# ---------------------------------------------------------------------------


def parse_qif_date(value: str | None) -> str | None:
    """Decode a QIF date into ISO ``YYYY-MM-DD``.

    Examples: ``6/ 4'20`` -> ``2020-06-04``; ``3/29'21`` -> ``2021-03-29``;
    ``06/04/2020`` -> ``2020-06-04``. Anything else, including impossible
    calendar dates, returns ``None``.
    """

    if not value:
        return None
    s = value.strip()
    try:
        if m := _QUOTE_DATE_RE.fullmatch(s):
            month, day, raw_year = int(m.group(1)), int(m.group(2)), m.group(3)
            year = 2000 + int(raw_year) if len(raw_year) == 2 else int(raw_year)
            return date(year, month, day).isoformat()
        if m := _SLASH_DATE_RE.fullmatch(s):
            return date(int(m.group(3)), int(m.group(1)), int(m.group(2))).isoformat()
    except ValueError:
        return None
    return None


def parse_qif_amount(value: str | None) -> str | None:
    """Strip thousands separators and return the exact decimal string.

    ``"-28,500.00"`` -> ``"-28500.00"``. Returns ``None`` unless the cleaned
    value is ``-?digits[.digits]``.
    """

    if not value:
        return None
    cleaned = value.replace(",", "").strip()
    return cleaned if _AMOUNT_RE.fullmatch(cleaned) else None


def split_category_and_tags(l_field: str | None) -> tuple[str, tuple[str, ...]]:
    """Split an ``L`` field into ``(category, tags)``.

    ``"Food & Dining/EUROPE2025"`` -> ``("Food & Dining", ("EUROPE2025",))``;
    ``"[TD - Chequing]"`` is a transfer reference -> ``("", ())``.
    """

    if not l_field or not l_field.strip():
        return "", ()
    if l_field.startswith("["):
        return "", ()

    category, sep, tag_part = l_field.partition("/")
    tags: tuple[str, ...] = ()
    if sep and tag_part.strip():
        tags = tuple(t.strip() for t in tag_part.split(":") if t.strip())
    return category.strip(), tags


# ---------------------------------------------------------------------------
# Sections, records, classification
# ---------------------------------------------------------------------------


def _prepare(content: bytes | str | None) -> str | None:
    if not is_valid(content):
        return None
    return normalize_line_endings(normalize_encoding(content, fmt="qif"))


def _section(content: bytes | str | None, type_name: str) -> str | None:
    """Return the body of the named section, up to the next header or EOF."""

    text = _prepare(content)
    if text is None:
        return None
    pattern = re.compile(
        rf"^!Type:{re.escape(type_name)}[ \t]*\n(.*?)(?=^!Type:|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )
    m = pattern.search(text)
    return m.group(1) if m else None


def _records(section: str | None) -> Iterator[QifRecord]:
    if not section:
        return
    current: dict[str, str] = {}
    for line in section.split("\n"):
        if not line.strip():
            continue
        if line.strip() == "^":
            if current:
                yield QifRecord(current)
            current = {}
            continue
        current[line[0]] = line[1:].strip()
    # Unterminated last record
    if current:
        yield QifRecord(current)


def _transaction_section_records(content: bytes | str | None) -> Iterator[QifRecord]:
    type_name = account_type(content)
    if type_name is None:
        return
    yield from _records(_section(content, type_name))


def _transaction_section_entries(
    content: bytes | str | None,
) -> Iterator[ParsedTransaction | OpeningBalanceEntry]:
    dropped = 0
    for record in _transaction_section_records(content):
        entry: ParsedTransaction | OpeningBalanceEntry | None
        if _is_opening_balance(record):
            entry = _build_opening_balance(record)
        else:
            entry = _build_transaction(record)
        if entry is None:
            dropped += 1
            continue
        yield entry
    if dropped:
        _logger.debug("QIF: dropped %d record(s) with an invalid date or amount", dropped)


def _is_opening_balance(record: QifRecord) -> bool:
    payee = record.get("P")
    return payee is not None and payee.strip() == OPENING_BALANCE_PAYEE


def _record_amount(record: QifRecord) -> str | None:
    return parse_qif_amount(record.get("T") or record.get("U"))


def _build_transaction(record: QifRecord) -> ParsedTransaction | None:
    iso_date = parse_qif_date(record.get("D"))
    amount = _record_amount(record)
    if iso_date is None or amount is None:
        return None

    category, tags = split_category_and_tags(record.get("L"))
    return ParsedTransaction(
        date=iso_date,
        amount=amount,
        payee=record.get("P"),
        memo=record.get("M"),
        category=category,
        tags=tags,
        check_num=record.get("N"),
        cleared=record.get("C"),
    )


def _build_opening_balance(record: QifRecord) -> OpeningBalanceEntry | None:
    iso_date = parse_qif_date(record.get("D"))
    amount = _record_amount(record)
    if iso_date is None or amount is None:
        return None
    return OpeningBalanceEntry(date=date.fromisoformat(iso_date), amount=Decimal(amount))


__all__ = [
    "OPENING_BALANCE_PAYEE",
    "QifRecord",
    "is_valid",
    "account_type",
    "parse",
    "parse_opening_balance",
    "parse_categories",
    "parse_tags",
    "parse_qif_date",
    "parse_qif_amount",
    "split_category_and_tags",
]
