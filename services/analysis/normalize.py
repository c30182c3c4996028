"""Locale-tolerant parsing of numeric and date cells.

Handles both US format (1000.50) and European/Indonesian format
(1.000,50 or 1000,50). Day-first dates (D/M/YYYY, D-M-YYYY) are
recognized explicitly; anything else goes through dateutil.

Both parsers return None instead of raising, so callers decide the
fallback value.
"""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

_CURRENCY_MARKERS = re.compile(r"rp\.?|idr|[$€£\s]", re.IGNORECASE)
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")

# Accepted range of decimal exponents (1e-15 .. 1e15) for money cells
MAX_MAGNITUDE = 15


def parse_number(value: str | None) -> Decimal | None:
    """Parse a money cell to Decimal.

    Args:
        value: Cell text (e.g., "Rp 1.500.000,00", "250,5", "$1200")

    Returns:
        Decimal value, or None if blank, no leading number is found, or the
        value lies outside 1e-15 .. 1e15 in magnitude
    """
    if not value or not value.strip():
        return None

    cleaned = _CURRENCY_MARKERS.sub("", value)
    if "." in cleaned and "," in cleaned:
        # 1.000,00: dot groups thousands, comma marks decimals
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".", 1)

    match = _NUMERIC_PREFIX.match(cleaned)
    if not match:
        logger.debug(f"Could not parse number: {value!r}")
        return None

    try:
        number = Decimal(match.group(0))
    except InvalidOperation:
        logger.debug(f"Could not parse number: {value!r}")
        return None

    if not number.is_zero() and abs(number.adjusted()) > MAX_MAGNITUDE:
        logger.debug(f"Number out of range: {value!r}")
        return None
    return number


def parse_date(value: str | None) -> date | None:
    """Parse a date cell.

    D/M/YYYY and D-M-YYYY are read day-first; other formats are handed
    to dateutil (month-first for ambiguous input).

    Args:
        value: Cell text (e.g., "5/3/2024", "2024-03-05", "Mar 5, 2024")

    Returns:
        Parsed date, or None if blank or not a valid calendar date
    """
    if not value or not value.strip():
        return None

    value = value.strip()
    try:
        match = _DAY_FIRST_DATE.match(value)
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day)
        return date_parser.parse(value).date()
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse date: {value!r}")
        return None
