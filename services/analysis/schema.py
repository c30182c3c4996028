"""Receivables audit data models.

Normalized output of one analysis pass: invoices, aging schedule,
anomaly findings and summary KPIs. All models are created fresh per
upload and never mutated after the pipeline returns.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class InvoiceStatus(str, Enum):
    """Settlement status derived from the outstanding balance."""

    PAID = "PAID"  # Outstanding at or below materiality threshold
    PARTIAL = "PARTIAL"  # Balance remains but not yet past due
    OPEN = "OPEN"  # Balance remains and past due


class AnomalyType(str, Enum):
    """Types of data-quality and fraud findings."""

    DUPLICATE_ID = "DUPLICATE_ID"
    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    RECONCILIATION_ERROR = "RECONCILIATION_ERROR"
    UNUSUAL_HIGH_VALUE = "UNUSUAL_HIGH_VALUE"
    DATA_QUALITY = "DATA_QUALITY"


class Severity(str, Enum):
    """Anomaly severity."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class AgingBucket(str, Enum):
    """Aging schedule buckets in reporting order."""

    CURRENT = "CURRENT"
    DAYS_1_30 = "1-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    OVER_90 = ">90"

    @property
    def label(self) -> str:
        """Dashboard display label."""
        return _BUCKET_LABELS[self]

    @classmethod
    def for_days_overdue(cls, days_overdue: int) -> "AgingBucket":
        """Pick the bucket for a number of days past due."""
        if days_overdue <= 0:
            return cls.CURRENT
        if days_overdue <= 30:
            return cls.DAYS_1_30
        if days_overdue <= 60:
            return cls.DAYS_31_60
        if days_overdue <= 90:
            return cls.DAYS_61_90
        return cls.OVER_90


_BUCKET_LABELS = {
    AgingBucket.CURRENT: "Belum Jatuh Tempo",
    AgingBucket.DAYS_1_30: "1-30 Hari",
    AgingBucket.DAYS_31_60: "31-60 Hari",
    AgingBucket.DAYS_61_90: "61-90 Hari",
    AgingBucket.OVER_90: "> 90 Hari",
}


class Invoice(BaseModel):
    """One normalized receivable."""

    id: str = Field(..., description="Invoice number, or positional INV-<row> placeholder")
    customer_name: str = Field(..., description="Customer/buyer name")
    invoice_date: date = Field(..., description="Date invoice was issued")
    due_date: date = Field(..., description="Payment due date")
    amount: Decimal = Field(..., description="Billed amount (may be negative)")
    payment_amount: Decimal = Field(Decimal("0"), description="Payments received")
    outstanding: Decimal = Field(..., description="Reconciled open balance")
    status: InvoiceStatus
    days_overdue: int = Field(0, ge=0, description="Whole days past due, 0 when paid")


class Anomaly(BaseModel):
    """A single audit finding."""

    id: str = Field(..., description="Invoice id the finding refers to")
    type: AnomalyType
    description: str
    severity: Severity
    value: Decimal | None = Field(None, description="Amount involved, when meaningful")


class AgingReportEntry(BaseModel):
    """Outstanding total and invoice count for one aging bucket."""

    bucket: AgingBucket
    amount: Decimal = Decimal("0")
    count: int = 0


class AuditSummary(BaseModel):
    """Headline KPIs projected from invoices and anomalies."""

    total_receivables: Decimal
    total_overdue: Decimal
    dso: int = Field(..., description="Days Sales Outstanding, rounded")
    risk_score: int = Field(..., ge=0, le=100)
    invoice_count: int
    customer_count: int


class AuditDataset(BaseModel):
    """Complete result of one analysis pass."""

    invoices: list[Invoice]
    aging: list[AgingReportEntry]
    anomalies: list[Anomaly]
    summary: AuditSummary
