"""FastAPI application for receivables audit.

Production-ready API with:
- Health and readiness checks for Kubernetes
- CSV upload validation
- Synchronous decode + analysis pipeline
- Stateless assistant tool queries over a returned dataset
- Structured error responses
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import time
from datetime import date
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, Query, Request, Response, UploadFile, status
from pydantic import BaseModel, Field

from services.analysis.schema import AuditDataset
from services.analysis.service import AuditService
from services.api import metrics
from services.assistant.tools import ToolContext, ToolRegistry, dispatch_tool_call
from services.shared.config import get_settings
from services.shared.errors import FormatError, SchemaError

ALLOWED_SUFFIXES = {".csv", ".txt"}

settings = get_settings()
app = FastAPI(
    title="Receivables Audit",
    description="Accounts-receivable audit API: aging, anomalies and risk KPIs from CSV exports",
    version=settings.service_version,
)

audit_service = AuditService(settings)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class ToolCallRequest(BaseModel):
    """Assistant tool call against a previously returned dataset."""

    dataset: AuditDataset
    args: dict[str, Any] = Field(default_factory=dict)


class ToolListResponse(BaseModel):
    """Names of the available assistant tools."""

    tools: list[str]


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Returns:
        Readiness status
    """
    return ReadinessResponse(ready=True)


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post("/api/v1/receivables/analyze", response_model=AuditDataset, tags=["Receivables"])
async def analyze_receivables(
    file: UploadFile = File(..., description="Delimited receivables export (CSV)"),  # noqa: B008
    reference_date: date | None = Query(
        None,
        description="Audit date for overdue calculation (YYYY-MM-DD, defaults to today)",
    ),
) -> AuditDataset:
    """Upload a receivables export and return the normalized audit dataset.

    The file is decoded (delimiter auto-detected, `,` or `;`), columns are
    matched by header keywords (English or Indonesian), and the audit rules
    are applied. Nothing is stored.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/receivables/analyze" \\
      -F "file=@piutang.csv"
    ```

    ## Error Handling

    - Returns 400 if the file is missing, empty, of the wrong type, or has no data rows
    - Returns 413 if the file exceeds the configured upload limit
    - Returns 422 if the customer name or amount column cannot be found

    Args:
        file: CSV file to analyze (required)
        reference_date: Audit date (optional, default: today)

    Returns:
        Invoices, aging schedule, anomalies and summary KPIs

    Raises:
        HTTPException: If the file is invalid or a required column is missing
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No filename provided")

    if Path(file.filename).suffix.lower() not in ALLOWED_SUFFIXES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type: {file.filename}. Only CSV files are supported.",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_bytes} byte upload limit",
        )

    metrics.audit_upload_size_bytes.observe(len(content))

    start = time.time()
    try:
        dataset = audit_service.analyze_content(content, reference_date)
    except FormatError as e:
        metrics.audit_uploads_total.labels(status="format_error").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except SchemaError as e:
        metrics.audit_uploads_total.labels(status="schema_error").inc()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    metrics.audit_processing_duration_seconds.observe(time.time() - start)
    metrics.audit_uploads_total.labels(status="success").inc()
    metrics.audit_invoices_analyzed_total.inc(dataset.summary.invoice_count)
    for anomaly in dataset.anomalies:
        metrics.audit_anomalies_total.labels(
            type=anomaly.type.value, severity=anomaly.severity.value
        ).inc()

    return dataset


@app.get("/api/v1/assistant/tools", response_model=ToolListResponse, tags=["Assistant"])
def list_tools() -> ToolListResponse:
    """List assistant tools that can be called.

    Returns:
        Registered tool names
    """
    return ToolListResponse(tools=ToolRegistry.list_tools())


@app.post("/api/v1/assistant/tools/{tool_name}", tags=["Assistant"])
def call_tool(tool_name: str, request: ToolCallRequest) -> Any:
    """Run a read-only assistant query over a dataset.

    The dataset is supplied by the caller (as returned by the analyze
    endpoint); the server keeps no state between requests. Unknown tools
    and bad arguments are reported as `{"error": ...}` with status 200,
    matching what the assistant session expects.

    Args:
        tool_name: getAuditSummary, getAgingReport, getAnomalies or getCustomerDetails
        request: Dataset plus tool arguments

    Returns:
        JSON tool result
    """
    context = ToolContext(
        dataset=request.dataset, customer_limit=settings.audit_customer_detail_limit
    )
    result = dispatch_tool_call(tool_name, request.args, context)

    failed = isinstance(result, dict) and "error" in result
    metrics.assistant_tool_calls_total.labels(
        tool=tool_name, status="error" if failed else "success"
    ).inc()
    return result
