"""Run a receivables audit on a CSV export from the command line.

Decodes the file, applies the audit rules and writes the normalized
dataset (or just the summary) as JSON.

Usage:
    python -m scripts.audit_receivables data/piutang.csv
    python -m scripts.audit_receivables data/piutang.csv --summary-only
    python -m scripts.audit_receivables data/piutang.csv --reference-date 2024-06-30 \\
        --output reports/audit.json
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

from services.analysis.schema import AuditDataset
from services.analysis.service import AuditService
from services.shared.config import get_settings
from services.shared.errors import AuditError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(description="Audit an accounts-receivable CSV export")
    parser.add_argument("csv_file", type=Path, help="Path to the CSV export")
    parser.add_argument(
        "--reference-date",
        type=date.fromisoformat,
        default=None,
        help="Audit date for overdue calculation (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Print summary KPIs and aging only",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write JSON to this file instead of stdout",
    )
    return parser


def render(dataset: AuditDataset, summary_only: bool = False) -> dict[str, Any]:
    """Convert a dataset to a JSON-compatible dict.

    Args:
        dataset: Audit result
        summary_only: Drop the invoice and anomaly lists and label the aging buckets

    Returns:
        JSON-compatible dict
    """
    if summary_only:
        payload = dataset.model_dump(mode="json", include={"summary", "aging"})
        for rendered, entry in zip(payload["aging"], dataset.aging, strict=True):
            rendered["label"] = entry.bucket.label
        return payload
    return dataset.model_dump(mode="json")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Process exit code (0 on success, 1 on audit or file error)
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    service = AuditService(settings)
    try:
        dataset = service.analyze_file(args.csv_file, args.reference_date)
    except (AuditError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    payload = json.dumps(render(dataset, args.summary_only), indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info(f"Saved audit of {dataset.summary.invoice_count} invoices to {args.output}")
    else:
        print(payload)

    return 0


if __name__ == "__main__":
    sys.exit(main())
