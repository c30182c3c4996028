"""Receivables audit pipeline.

Runs one uploaded file through the decoder and the analyzer:
raw bytes -> rows of fields -> normalized audit dataset.

Stateless between calls: every upload is processed independently.
"""

import logging
import time
from datetime import date
from pathlib import Path

from services.analysis.analyzer import ReceivablesAnalyzer
from services.analysis.schema import AuditDataset
from services.ingest.decoder import decode
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class AuditService:
    """Decode-and-analyze pipeline configured from settings."""

    def __init__(self, settings: Settings) -> None:
        """Initialize audit service.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.analyzer = ReceivablesAnalyzer(settings.analyzer_config())

    def analyze_content(
        self, content: str | bytes, reference_date: date | None = None
    ) -> AuditDataset:
        """Analyze an in-memory delimited file.

        Args:
            content: File content as text or UTF-8 bytes
            reference_date: Audit date (defaults to today)

        Returns:
            Normalized audit dataset

        Raises:
            FormatError: If the file is empty or has no data rows
            SchemaError: If a required column is missing
        """
        start = time.perf_counter()
        rows = decode(content)
        dataset = self.analyzer.analyze(rows, reference_date)
        duration = time.perf_counter() - start

        logger.info(
            f"Audit completed in {duration:.3f}s: {dataset.summary.invoice_count} invoices, "
            f"{len(dataset.anomalies)} anomalies"
        )
        return dataset

    def analyze_file(self, path: Path, reference_date: date | None = None) -> AuditDataset:
        """Analyze a delimited file on disk.

        Args:
            path: Path to CSV file
            reference_date: Audit date (defaults to today)

        Returns:
            Normalized audit dataset

        Raises:
            FileNotFoundError: If the file doesn't exist
            FormatError: If the file is empty or has no data rows
            SchemaError: If a required column is missing
        """
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")

        logger.info(f"Analyzing {path.name}")
        return self.analyze_content(path.read_bytes(), reference_date)
