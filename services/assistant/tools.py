"""Read-only dataset queries exposed to the conversational audit assistant.

Four lookups over a finished AuditDataset:
- getAuditSummary: headline KPIs
- getAgingReport: the five-bucket aging schedule
- getAnomalies: all findings in detection order
- getCustomerDetails: invoices for a customer (case-insensitive substring)

Queries never mutate the dataset, so repeated calls return equal results.
Tool calls are dispatched by name through ToolRegistry.
"""

import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from services.analysis.schema import (
    AgingReportEntry,
    Anomaly,
    AuditDataset,
    AuditSummary,
    Invoice,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_LIMIT = 5


class CustomerDetails(BaseModel):
    """Result of a customer lookup.

    Attributes:
        found: Whether any invoice matched
        invoice_count: Number of matching invoices (before the limit)
        total_outstanding: Sum of outstanding over all matches
        invoices: First matching invoices, capped at the limit
    """

    found: bool
    invoice_count: int
    total_outstanding: Decimal
    invoices: list[Invoice]


def get_summary(dataset: AuditDataset) -> AuditSummary:
    """Headline KPIs of the audit."""
    return dataset.summary


def get_aging_report(dataset: AuditDataset) -> list[AgingReportEntry]:
    """Aging schedule in bucket order."""
    return list(dataset.aging)


def get_anomalies(dataset: AuditDataset) -> list[Anomaly]:
    """All anomalies in detection order."""
    return list(dataset.anomalies)


def get_customer_details(
    dataset: AuditDataset, name: str, limit: int = DEFAULT_CUSTOMER_LIMIT
) -> CustomerDetails:
    """Find invoices whose customer name contains the query.

    Args:
        dataset: Audit dataset to search
        name: Case-insensitive substring of the customer name
        limit: Maximum number of invoices to return

    Returns:
        Match count, aggregate outstanding and the first matching invoices
    """
    needle = name.lower()
    matches = [
        invoice for invoice in dataset.invoices if needle in invoice.customer_name.lower()
    ]
    return CustomerDetails(
        found=bool(matches),
        invoice_count=len(matches),
        total_outstanding=sum((invoice.outstanding for invoice in matches), Decimal("0")),
        invoices=matches[:limit],
    )


class ToolContext(BaseModel):
    """Data a tool call runs against.

    Attributes:
        dataset: Audit dataset the assistant is discussing
        customer_limit: Maximum invoices returned by getCustomerDetails
    """

    dataset: AuditDataset
    customer_limit: int = DEFAULT_CUSTOMER_LIMIT


ToolHandler = Callable[[ToolContext, dict[str, Any]], Any]


def _customer_details_tool(context: ToolContext, args: dict[str, Any]) -> CustomerDetails:
    name = args.get("name")
    if not isinstance(name, str):
        raise ValueError("Argument 'name' is required")
    return get_customer_details(context.dataset, name, context.customer_limit)


class ToolRegistry:
    """Registry of assistant tools by name.

    Maps the tool names announced to the assistant to query functions.
    Supports runtime registration of new tools.
    """

    _tools: dict[str, ToolHandler] = {
        "getAuditSummary": lambda context, args: get_summary(context.dataset),
        "getAgingReport": lambda context, args: get_aging_report(context.dataset),
        "getAnomalies": lambda context, args: get_anomalies(context.dataset),
        "getCustomerDetails": _customer_details_tool,
    }

    @classmethod
    def register(cls, name: str, handler: ToolHandler) -> None:
        """Register a new tool.

        Args:
            name: Tool name as called by the assistant
            handler: Callable taking (context, args)
        """
        cls._tools[name] = handler
        logger.info(f"Registered assistant tool: {name}")

    @classmethod
    def get_handler(cls, name: str) -> ToolHandler:
        """Get tool handler by name.

        Raises:
            ValueError: If tool not found in registry
        """
        if name not in cls._tools:
            available = ", ".join(cls._tools.keys())
            raise ValueError(f"Unknown tool: '{name}'. Available tools: {available}")
        return cls._tools[name]

    @classmethod
    def list_tools(cls) -> list[str]:
        """List all registered tool names."""
        return list(cls._tools.keys())


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_jsonable(item) for item in result]
    return result


def dispatch_tool_call(name: str, args: dict[str, Any] | None, context: ToolContext) -> Any:
    """Execute a tool call from the assistant.

    Any failure, including an unknown tool name, is reported back to the
    assistant as {"error": message} rather than raised, so one bad call
    doesn't end the session.

    Args:
        name: Tool name
        args: Tool arguments (may be None)
        context: Dataset and query limits

    Returns:
        JSON-compatible tool result
    """
    args = args or {}
    try:
        handler = ToolRegistry.get_handler(name)
        result = handler(context, args)
    except Exception as e:
        logger.warning(f"Tool call {name} failed: {e}")
        return {"error": str(e)}

    return _to_jsonable(result)
