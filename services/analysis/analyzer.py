"""Receivables audit analyzer.

Maps decoded rows onto the invoice schema and applies the audit rules:

Per row (in order, independently triggerable):
  1. RECONCILIATION_ERROR - recorded outstanding differs from amount - payment
  2. DUPLICATE_ID - invoice number seen before (placeholder ids exempt)
  3. NEGATIVE_AMOUNT - billed amount below zero
  4. Status and days overdue derivation

Post-pass:
  5. UNUSUAL_HIGH_VALUE - amount above mean + 3 sigma (needs >= 6 invoices)

Then buckets open balances into the aging schedule and derives KPIs
(total receivables, total overdue, DSO, composite risk score).

Value-level defects never abort the run: unparseable numbers become 0,
unparseable dates become the reference date, and each is recorded as a
low-severity DATA_QUALITY finding.
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from statistics import mean, pstdev

from pydantic import BaseModel, Field

from services.analysis.headers import InvoiceField, clean_cell, resolve_columns
from services.analysis.normalize import parse_date, parse_number
from services.analysis.schema import (
    AgingBucket,
    AgingReportEntry,
    Anomaly,
    AnomalyType,
    AuditDataset,
    AuditSummary,
    Invoice,
    InvoiceStatus,
    Severity,
)
from services.ingest.decoder import RawRow
from services.shared.errors import FormatError

logger = logging.getLogger(__name__)

UNNAMED_CUSTOMER = "Unnamed"
ZERO = Decimal("0")


class AnalyzerConfig(BaseModel):
    """Thresholds for the audit rules."""

    # Absolute tolerance (currency units) for reconciliation
    reconciliation_tolerance: Decimal = Decimal("1.0")

    # Balances at or below this count as settled
    materiality_threshold: Decimal = Decimal("100")

    # Outlier detector: flag amounts above mean + sigma * stddev
    outlier_sigma: Decimal = Decimal("3")
    outlier_min_samples: int = Field(6, ge=1)

    # DSO and risk score weights
    dso_period_days: int = Field(365, gt=0)
    dso_risk_threshold: Decimal = Field(Decimal("60"), ge=0)
    dso_penalty: int = Field(10, ge=0)
    high_severity_penalty: int = Field(10, ge=0)

    # Record DATA_QUALITY findings for degraded values and skipped rows
    flag_data_quality: bool = True


def placeholder_id(row_index: int) -> str:
    """Positional invoice id used when the id cell is blank."""
    return f"INV-{row_index}"


def _round_half_up(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def _cell(cells: list[str], index: int | None) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index]


class ReceivablesAnalyzer:
    """Turns decoded rows into a normalized audit dataset.

    Holds configuration only; every call to analyze() works on its own
    local state, so one instance can be shared freely.

    Attributes:
        config: Audit rule thresholds
    """

    def __init__(self, config: AnalyzerConfig | None = None) -> None:
        """Initialize analyzer.

        Args:
            config: Audit rule thresholds (defaults to the standard rules)
        """
        self.config = config or AnalyzerConfig()

    def analyze(self, rows: list[RawRow], reference_date: date | None = None) -> AuditDataset:
        """Analyze decoded rows.

        Args:
            rows: Decoded rows, header first
            reference_date: Audit date for overdue calculation (defaults to today)

        Returns:
            Normalized dataset with invoices, aging, anomalies and summary

        Raises:
            FormatError: If there is no header or no data row
            SchemaError: If the customer name or amount column is missing
        """
        if len(rows) < 2:
            raise FormatError()

        today = reference_date or date.today()
        header = rows[0]
        columns = resolve_columns(header)

        invoices: list[Invoice] = []
        anomalies: list[Anomaly] = []
        seen_ids: set[str] = set()

        for row_index, raw_row in enumerate(rows[1:], start=1):
            cells = [clean_cell(cell) for cell in raw_row]
            if len(cells) < len(header) and len(cells) < 2:
                logger.warning(f"Skipping malformed row {row_index}: {len(cells)} field(s)")
                self._flag_data_quality(
                    anomalies,
                    f"ROW-{row_index}",
                    f"Row {row_index} skipped: expected {len(header)} fields, got {len(cells)}",
                )
                continue

            invoice = self._normalize_row(cells, row_index, columns, seen_ids, today, anomalies)
            invoices.append(invoice)

        self._detect_high_values(invoices, anomalies)
        aging = self._build_aging(invoices)
        summary = self._summarize(invoices, aging, anomalies)

        logger.info(
            f"Analyzed {summary.invoice_count} invoices for {summary.customer_count} customers: "
            f"{len(anomalies)} anomalies, risk score {summary.risk_score}"
        )
        return AuditDataset(invoices=invoices, aging=aging, anomalies=anomalies, summary=summary)

    def _normalize_row(
        self,
        cells: list[str],
        row_index: int,
        columns: dict[InvoiceField, int],
        seen_ids: set[str],
        today: date,
        anomalies: list[Anomaly],
    ) -> Invoice:
        """Build one invoice and record its row-level anomalies."""
        config = self.config
        placeholder = placeholder_id(row_index)
        invoice_id = _cell(cells, columns.get(InvoiceField.INVOICE_NUMBER)) or placeholder

        def number(field: InvoiceField) -> Decimal:
            raw = _cell(cells, columns.get(field))
            value = parse_number(raw)
            if value is None:
                if raw:
                    self._flag_data_quality(
                        anomalies, invoice_id, f"Unreadable {field.value} {raw!r} treated as 0"
                    )
                return ZERO
            return value

        def day(field: InvoiceField) -> date:
            raw = _cell(cells, columns.get(field))
            value = parse_date(raw)
            if value is None:
                if raw:
                    self._flag_data_quality(
                        anomalies,
                        invoice_id,
                        f"Unreadable {field.value} {raw!r} replaced with {today.isoformat()}",
                    )
                return today
            return value

        amount = number(InvoiceField.AMOUNT)
        payment = number(InvoiceField.PAYMENT) if InvoiceField.PAYMENT in columns else ZERO
        computed = amount - payment
        has_outstanding = InvoiceField.OUTSTANDING in columns
        outstanding = number(InvoiceField.OUTSTANDING) if has_outstanding else computed

        # 1. Reconciliation
        if has_outstanding:
            discrepancy = abs(outstanding - computed)
            if discrepancy > config.reconciliation_tolerance:
                anomalies.append(
                    Anomaly(
                        id=invoice_id,
                        type=AnomalyType.RECONCILIATION_ERROR,
                        description=(
                            f"Recorded outstanding {outstanding} does not match "
                            f"computed {computed} (amount - payment)"
                        ),
                        severity=Severity.MEDIUM,
                        value=discrepancy,
                    )
                )
                outstanding = computed

        # 2. Duplicate id
        if invoice_id in seen_ids and invoice_id != placeholder:
            anomalies.append(
                Anomaly(
                    id=invoice_id,
                    type=AnomalyType.DUPLICATE_ID,
                    description=f"Duplicate invoice id detected: {invoice_id}",
                    severity=Severity.HIGH,
                )
            )
        seen_ids.add(invoice_id)

        # 3. Negative amount
        if amount < 0:
            anomalies.append(
                Anomaly(
                    id=invoice_id,
                    type=AnomalyType.NEGATIVE_AMOUNT,
                    description=f"Negative invoice amount {amount}",
                    severity=Severity.HIGH,
                    value=amount,
                )
            )

        # 4. Dates, overdue and status
        invoice_date = today
        if InvoiceField.INVOICE_DATE in columns:
            invoice_date = day(InvoiceField.INVOICE_DATE)
        due_date = invoice_date
        if InvoiceField.DUE_DATE in columns:
            due_date = day(InvoiceField.DUE_DATE)
        days_past_due = (today - due_date).days

        if outstanding <= config.materiality_threshold:
            status = InvoiceStatus.PAID
            days_overdue = 0
        else:
            status = InvoiceStatus.OPEN if days_past_due > 0 else InvoiceStatus.PARTIAL
            days_overdue = max(days_past_due, 0)

        return Invoice(
            id=invoice_id,
            customer_name=_cell(cells, columns[InvoiceField.CUSTOMER_NAME]) or UNNAMED_CUSTOMER,
            invoice_date=invoice_date,
            due_date=due_date,
            amount=amount,
            payment_amount=payment,
            outstanding=outstanding,
            status=status,
            days_overdue=days_overdue,
        )

    def _flag_data_quality(self, anomalies: list[Anomaly], anomaly_id: str, message: str) -> None:
        if not self.config.flag_data_quality:
            return
        logger.debug(f"Data quality issue for {anomaly_id}: {message}")
        anomalies.append(
            Anomaly(
                id=anomaly_id,
                type=AnomalyType.DATA_QUALITY,
                description=message,
                severity=Severity.LOW,
            )
        )

    def _detect_high_values(self, invoices: list[Invoice], anomalies: list[Anomaly]) -> None:
        """Flag invoices whose amount is a statistical outlier.

        Uses the population standard deviation over all invoice amounts.
        Skipped entirely when the sample is too small.
        """
        if len(invoices) < self.config.outlier_min_samples:
            return

        amounts = [invoice.amount for invoice in invoices]
        average = mean(amounts)
        threshold = average + self.config.outlier_sigma * pstdev(amounts, average)

        for invoice in invoices:
            if invoice.amount > threshold and invoice.amount > 0:
                anomalies.append(
                    Anomaly(
                        id=invoice.id,
                        type=AnomalyType.UNUSUAL_HIGH_VALUE,
                        description=(
                            f"Invoice amount {invoice.amount:,} is far above "
                            f"the average of {average:,.2f}"
                        ),
                        severity=Severity.MEDIUM,
                        value=invoice.amount,
                    )
                )

    def _build_aging(self, invoices: list[Invoice]) -> list[AgingReportEntry]:
        """Bucket material open balances by days overdue."""
        entries = {bucket: AgingReportEntry(bucket=bucket) for bucket in AgingBucket}

        for invoice in invoices:
            if invoice.outstanding <= self.config.materiality_threshold:
                continue
            entry = entries[AgingBucket.for_days_overdue(invoice.days_overdue)]
            entry.amount += invoice.outstanding
            entry.count += 1

        return list(entries.values())

    def _summarize(
        self,
        invoices: list[Invoice],
        aging: list[AgingReportEntry],
        anomalies: list[Anomaly],
    ) -> AuditSummary:
        """Derive headline KPIs."""
        config = self.config
        total_receivables = sum((invoice.outstanding for invoice in invoices), ZERO)
        total_overdue = sum(
            (invoice.outstanding for invoice in invoices if invoice.days_overdue > 0), ZERO
        )
        total_billed = sum((invoice.amount for invoice in invoices), ZERO)

        dso = ZERO
        if total_receivables > 0:
            dso = total_receivables / (total_billed or Decimal(1)) * config.dso_period_days

        over_90 = next(entry for entry in aging if entry.bucket is AgingBucket.OVER_90)
        long_overdue_ratio = over_90.amount / (total_receivables or Decimal(1))
        high_findings = sum(1 for anomaly in anomalies if anomaly.severity is Severity.HIGH)

        risk = (
            long_overdue_ratio * 100
            + config.high_severity_penalty * high_findings
            + (config.dso_penalty if dso > config.dso_risk_threshold else 0)
        )

        return AuditSummary(
            total_receivables=total_receivables,
            total_overdue=total_overdue,
            dso=_round_half_up(dso),
            risk_score=min(100, max(0, _round_half_up(risk))),
            invoice_count=len(invoices),
            customer_count=len({invoice.customer_name for invoice in invoices}),
        )


def analyze(
    rows: list[RawRow],
    reference_date: date | None = None,
    config: AnalyzerConfig | None = None,
) -> AuditDataset:
    """Analyze decoded rows with a one-off analyzer.

    Args:
        rows: Decoded rows, header first
        reference_date: Audit date for overdue calculation (defaults to today)
        config: Audit rule thresholds

    Returns:
        Normalized audit dataset
    """
    return ReceivablesAnalyzer(config).analyze(rows, reference_date)
