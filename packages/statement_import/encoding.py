"""Transcode raw upload bytes to UTF-8 text before any parsing.

Bank exports arrive with no reliable encoding. Quicken writes QIF in
Windows-1252; OFX SGML headers usually declare ``CHARSET:1252`` but some
institutions emit UTF-8 regardless. The strategy is:

1. Treat the input as bytes with no assumed encoding.
2. If the bytes are already valid UTF-8, return them decoded as-is (never
   double-transcode).
3. Otherwise pick the source encoding: the OFX ``CHARSET:`` declaration when
   recognized, else Windows-1252 (always Windows-1252 for QIF).
4. Decode lossily, dropping bytes the source encoding cannot represent.

The result is always valid text; nothing here raises on malformed input.
"""

from __future__ import annotations

import re
from typing import Literal, TypeAlias, overload

SourceFormat: TypeAlias = Literal["ofx", "qif"]

_CHARSET_RE = re.compile(rb"\bCHARSET:(\S+)", re.IGNORECASE)
_LATIN1_RE = re.compile(r"(?:iso-)?8859-1", re.IGNORECASE)

_FALLBACK_ENCODING = "cp1252"


def resolve_source_encoding(raw: bytes, *, fmt: SourceFormat = "ofx") -> str:
    """Return the codec name to decode non-UTF-8 ``raw`` bytes with.

    Only OFX carries a declaration. ``1252`` maps to Windows-1252 and
    ``8859-1``/``iso-8859-1`` to Latin-1; anything else (or nothing) falls
    back to Windows-1252.
    """

    if fmt != "ofx":
        return _FALLBACK_ENCODING
    m = _CHARSET_RE.search(raw)
    if not m:
        return _FALLBACK_ENCODING
    declared = m.group(1).decode("ascii", errors="ignore")
    if declared == "1252":
        return "cp1252"
    if _LATIN1_RE.fullmatch(declared):
        return "latin-1"
    return _FALLBACK_ENCODING


@overload
def normalize_encoding(content: None, *, fmt: SourceFormat = ...) -> None: ...
@overload
def normalize_encoding(content: bytes | str, *, fmt: SourceFormat = ...) -> str: ...


def normalize_encoding(content: bytes | str | None, *, fmt: SourceFormat = "ofx") -> str | None:
    """Return ``content`` as valid text.

    ``None`` is returned unchanged; ``str`` input is already text and passes
    through. Bytes that are valid UTF-8 are decoded without transcoding.
    """

    if content is None:
        return None
    if isinstance(content, str):
        return content

    raw = bytes(content)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass

    return raw.decode(resolve_source_encoding(raw, fmt=fmt), errors="ignore")


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and lone CR line endings to ``\\n``."""

    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "SourceFormat",
    "normalize_encoding",
    "normalize_line_endings",
    "resolve_source_encoding",
]
