"""Fuzzy header resolution for loosely structured receivables exports.

Each semantic field owns an ordered set of keywords covering common
English and Indonesian column names. A header matches when its normalized
text contains any keyword; the first matching header wins. Fields are
resolved independently, so one physical column may serve two fields.
"""

import logging
import re
from enum import Enum

from services.shared.errors import SchemaError

logger = logging.getLogger(__name__)


class InvoiceField(str, Enum):
    """Semantic columns the analyzer understands."""

    CUSTOMER_NAME = "customer name"
    INVOICE_NUMBER = "invoice number"
    INVOICE_DATE = "invoice date"
    DUE_DATE = "due date"
    AMOUNT = "amount"
    PAYMENT = "payment"
    OUTSTANDING = "outstanding"


HEADER_SYNONYMS: dict[InvoiceField, tuple[str, ...]] = {
    InvoiceField.CUSTOMER_NAME: (
        "customer", "client", "name", "pelanggan", "nama", "buyer", "konsumen",
    ),
    InvoiceField.INVOICE_NUMBER: (
        "invoice", "inv_num", "ref", "faktur", "nomor", "no.", "no_faktur", "bukti",
    ),
    InvoiceField.INVOICE_DATE: (
        "invoice_date", "date", "inv_date", "tanggal", "tgl", "tgl_faktur", "transaksi",
    ),
    InvoiceField.DUE_DATE: ("due", "due_date", "jatuh_tempo", "tgl_jatuh_tempo", "expire"),
    InvoiceField.AMOUNT: (
        "amount", "total", "inv_amt", "jumlah", "nilai", "harga", "dpp", "tagihan", "nominal",
    ),
    InvoiceField.PAYMENT: (
        "payment", "paid", "bayar", "pembayaran", "lunas", "potongan", "received",
    ),
    InvoiceField.OUTSTANDING: (
        "outstanding", "balance", "sisa", "saldo", "tunggakan", "belum_bayar",
    ),
}

REQUIRED_FIELDS = (InvoiceField.CUSTOMER_NAME, InvoiceField.AMOUNT)

_SURROUNDING_QUOTES = re.compile(r'^"|"$')


def clean_cell(value: str) -> str:
    """Trim a cell and drop one leading and one trailing double quote."""
    return _SURROUNDING_QUOTES.sub("", value.strip())


def normalize_header(value: str) -> str:
    """Normalize a header cell for keyword matching."""
    return clean_cell(value).lower()


def find_column(headers: list[str], keywords: tuple[str, ...]) -> int | None:
    """Index of the first header containing any keyword, or None."""
    for index, header in enumerate(headers):
        if any(keyword in header for keyword in keywords):
            return index
    return None


def resolve_columns(header_row: list[str]) -> dict[InvoiceField, int]:
    """Map semantic fields onto header positions.

    Args:
        header_row: Raw header cells

    Returns:
        Column index per resolved field; unresolved optional fields are absent

    Raises:
        SchemaError: If the customer name or amount column cannot be located
    """
    headers = [normalize_header(cell) for cell in header_row]
    columns: dict[InvoiceField, int] = {}

    for field, keywords in HEADER_SYNONYMS.items():
        index = find_column(headers, keywords)
        if index is not None:
            columns[field] = index

    for field in REQUIRED_FIELDS:
        if field not in columns:
            raise SchemaError(field.value, HEADER_SYNONYMS[field])

    logger.info(
        "Resolved columns: "
        + ", ".join(f"{field.value}={headers[index]!r}" for field, index in columns.items())
    )
    return columns
