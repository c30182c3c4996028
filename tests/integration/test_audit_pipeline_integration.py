"""Integration tests for the full receivables audit pipeline.

Runs realistic exports end to end: bytes on disk -> decoder -> analyzer
-> assistant queries, without mocking any stage.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from services.analysis.schema import AgingBucket, AnomalyType, InvoiceStatus
from services.analysis.service import AuditService
from services.assistant.tools import ToolContext, dispatch_tool_call
from services.shared.config import Settings

REFERENCE_DATE = date(2024, 6, 30)

# Spreadsheet export: BOM, CRLF, quoted commas and an escaped quote
ENGLISH_EXPORT = (
    "\ufeffInvoice No,Customer Name,Invoice Date,Due Date,Amount,Amount Paid,Balance\r\n"
    'INV-001,"Acme, Inc",2024-01-02,2024-02-01,"12500.00",0,12500\r\n'
    'INV-002,"The ""Best"" Shop",2024-05-01,2024-05-31,3000,1000,2500\r\n'
    "INV-003,Globex,2024-06-10,2024-07-10,800,0,800\r\n"
    "INV-004,Initech,2024-03-01,2024-03-31,450,400,50\r\n"
    "\r\n"
)

# Accounting package export from Indonesia: semicolons, Rp amounts, day-first dates
INDONESIAN_EXPORT = (
    "No_Faktur;Nama Pelanggan;Tgl_Faktur;Jatuh_Tempo;Total Tagihan;Pembayaran;Sisa\n"
    "F-101;PT Sinar;02/01/2024;01/02/2024;Rp 5.000.000,00;Rp 0;Rp 5.000.000,00\n"
    "F-102;CV Harapan;15/04/2024;15/05/2024;Rp 2.000.000,00;Rp 500.000,00;Rp 1.000.000,00\n"
    "F-102;CV Harapan;20/04/2024;20/05/2024;Rp 750.000,00;Rp 750.000,00;Rp 0\n"
    "F-104;Toko Abadi;bukan tanggal;30/06/2024;Rp -100.000,00;Rp 0;Rp -100.000,00\n"
)


@pytest.fixture
def audit_service() -> AuditService:
    """Create audit service with default settings."""
    return AuditService(Settings())


def write_export(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_bytes(content.encode("utf-8"))
    return path


def test_english_spreadsheet_export(audit_service: AuditService, tmp_path: Path) -> None:
    """Test a comma-delimited export with quoting and CRLF line endings."""
    path = write_export(tmp_path, "receivables.csv", ENGLISH_EXPORT)

    dataset = audit_service.analyze_file(path, REFERENCE_DATE)

    names = [invoice.customer_name for invoice in dataset.invoices]
    assert names == ["Acme, Inc", 'The "Best" Shop', "Globex", "Initech"]

    acme = dataset.invoices[0]
    assert acme.amount == Decimal("12500.00")
    assert acme.status == InvoiceStatus.OPEN
    assert acme.days_overdue == 150

    assert [(a.type, a.id, a.value) for a in dataset.anomalies] == [
        (AnomalyType.RECONCILIATION_ERROR, "INV-002", Decimal("500")),
    ]
    assert dataset.invoices[1].outstanding == Decimal("2000")

    globex = dataset.invoices[2]
    assert globex.status == InvoiceStatus.PARTIAL
    assert globex.days_overdue == 0

    initech = dataset.invoices[3]
    assert initech.status == InvoiceStatus.PAID

    assert [entry.amount for entry in dataset.aging] == [
        Decimal("800"),
        Decimal("2000"),
        Decimal("0"),
        Decimal("0"),
        Decimal("12500.00"),
    ]
    assert dataset.summary.total_receivables == Decimal("15350.00")


def test_indonesian_accounting_export(audit_service: AuditService, tmp_path: Path) -> None:
    """Test a semicolon-delimited Indonesian export end to end."""
    path = write_export(tmp_path, "piutang.csv", INDONESIAN_EXPORT)

    dataset = audit_service.analyze_file(path, REFERENCE_DATE)

    assert [invoice.id for invoice in dataset.invoices] == ["F-101", "F-102", "F-102", "F-104"]

    sinar = dataset.invoices[0]
    assert sinar.amount == Decimal("5000000.00")
    assert sinar.due_date == date(2024, 2, 1)
    assert sinar.status == InvoiceStatus.OPEN
    assert sinar.days_overdue == 150

    assert [(a.type, a.id) for a in dataset.anomalies] == [
        (AnomalyType.RECONCILIATION_ERROR, "F-102"),
        (AnomalyType.DUPLICATE_ID, "F-102"),
        (AnomalyType.NEGATIVE_AMOUNT, "F-104"),
        (AnomalyType.DATA_QUALITY, "F-104"),
    ]
    assert dataset.invoices[1].outstanding == Decimal("1500000.00")

    abadi = dataset.invoices[3]
    assert abadi.invoice_date == REFERENCE_DATE
    assert abadi.status == InvoiceStatus.PAID

    aging = {entry.bucket: entry for entry in dataset.aging}
    assert aging[AgingBucket.OVER_90].amount == Decimal("5000000.00")
    assert aging[AgingBucket.DAYS_31_60].amount == Decimal("1500000.00")

    summary = dataset.summary
    assert summary.total_receivables == Decimal("6400000.00")
    assert summary.customer_count == 3
    assert summary.risk_score == 100


def test_assistant_queries_over_pipeline_result(
    audit_service: AuditService, tmp_path: Path
) -> None:
    """Test assistant tools answer from the analyzed dataset."""
    path = write_export(tmp_path, "piutang.csv", INDONESIAN_EXPORT)
    context = ToolContext(dataset=audit_service.analyze_file(path, REFERENCE_DATE))

    details = dispatch_tool_call("getCustomerDetails", {"name": "harapan"}, context)
    assert details["invoice_count"] == 2
    assert details["total_outstanding"] == "1500000.00"

    anomalies = dispatch_tool_call("getAnomalies", {}, context)
    assert len(anomalies) == 4

    summary = dispatch_tool_call("getAuditSummary", {}, context)
    assert summary == context.dataset.summary.model_dump(mode="json")
