"""Prometheus metrics for API service.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Receivables upload and analysis metrics
- Anomaly findings by type
- Assistant tool calls

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Upload metrics
audit_uploads_total = Counter(
    "audit_uploads_total",
    "Total receivables files submitted for analysis",
    ["status"],  # success, format_error, schema_error
)

audit_upload_size_bytes = Histogram(
    "audit_upload_size_bytes",
    "Receivables upload size in bytes",
    buckets=(1024, 10240, 102400, 1048576, 10485760),  # 1KB to 10MB
)

# Analysis metrics
audit_processing_duration_seconds = Histogram(
    "audit_processing_duration_seconds",
    "Decode and analysis duration in seconds",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0),
)

audit_invoices_analyzed_total = Counter(
    "audit_invoices_analyzed_total",
    "Total invoices normalized across all analyses",
)

audit_anomalies_total = Counter(
    "audit_anomalies_total",
    "Total anomalies detected",
    ["type", "severity"],
)

# Assistant metrics
assistant_tool_calls_total = Counter(
    "assistant_tool_calls_total",
    "Total assistant tool calls",
    ["tool", "status"],  # success, error
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
