"""Tabular decoder for delimited receivables exports.

Turns raw upload text into rows of string fields:
- Byte-order marker stripping
- Delimiter auto-detection (',' or ';') from the first logical line
- Quoted fields with embedded delimiters, newlines and doubled quotes
- Blank line removal

The scanner is a two-state automaton (unquoted / quoted) over a single pass
of characters, so delimiters and newlines inside quoted spans stay literal.
"""

import logging
from enum import Enum

from services.shared.errors import FormatError

logger = logging.getLogger(__name__)

BOM = "\ufeff"
QUOTE = '"'
COMMA = ","
SEMICOLON = ";"

RawRow = list[str]


class _State(Enum):
    UNQUOTED = "unquoted"
    QUOTED = "quoted"


def _toggle(state: _State) -> _State:
    return _State.QUOTED if state is _State.UNQUOTED else _State.UNQUOTED


def detect_delimiter(text: str) -> str:
    """Detect the field delimiter from the first logical line.

    Counts commas and semicolons outside quoted spans up to the first
    unquoted newline. A doubled quote is an escaped literal and does not
    change the quoted state.

    Args:
        text: Raw file text (BOM already removed)

    Returns:
        ';' if it occurs more often than ',' on the first line, else ','
    """
    state = _State.UNQUOTED
    counts = {COMMA: 0, SEMICOLON: 0}
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == QUOTE:
            if i + 1 < length and text[i + 1] == QUOTE:
                i += 2
                continue
            state = _toggle(state)
        elif state is _State.UNQUOTED:
            if ch in counts:
                counts[ch] += 1
            elif ch == "\n":
                break
        i += 1

    return SEMICOLON if counts[SEMICOLON] > counts[COMMA] else COMMA


def split_rows(text: str, delimiter: str) -> list[RawRow]:
    """Split text into rows of fields with a single-pass quote-aware scanner.

    Args:
        text: Raw file text (BOM already removed)
        delimiter: Field delimiter

    Returns:
        Rows in input order, blank lines included
    """
    rows: list[RawRow] = []
    row: RawRow = []
    field: list[str] = []
    state = _State.UNQUOTED
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]
        if ch == QUOTE:
            if state is _State.QUOTED and i + 1 < length and text[i + 1] == QUOTE:
                field.append(QUOTE)
                i += 2
                continue
            state = _toggle(state)
        elif state is _State.QUOTED:
            field.append(ch)
        elif ch == delimiter:
            row.append("".join(field))
            field = []
        elif ch == "\n":
            row.append("".join(field))
            rows.append(row)
            row = []
            field = []
        elif ch != "\r":
            field.append(ch)
        i += 1

    # Input without a trailing newline still yields its last row
    if field or row:
        row.append("".join(field))
        rows.append(row)

    return rows


def is_blank(row: RawRow) -> bool:
    """Check whether every field of a row is empty after trimming."""
    return "".join(row).strip() == ""


def decode(raw: str | bytes) -> list[RawRow]:
    """Decode an uploaded delimited file into rows of string fields.

    Args:
        raw: File content as text, or UTF-8 bytes (BOM tolerated)

    Returns:
        Non-blank rows; the first row is the header

    Raises:
        FormatError: If fewer than two non-blank rows remain
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    if text.startswith(BOM):
        text = text[len(BOM) :]

    delimiter = detect_delimiter(text)
    rows = [row for row in split_rows(text, delimiter) if not is_blank(row)]

    if len(rows) < 2:
        raise FormatError()

    logger.info(f"Decoded {len(rows)} rows using delimiter {delimiter!r}")
    return rows
