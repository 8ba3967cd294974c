"""Pydantic models and value objects for the HVAC records search system."""

from hvac_search.models.auth import ROLE_HIERARCHY, Principal, Role
from hvac_search.models.error import ErrorDebug, ErrorResponse
from hvac_search.models.intent import (
    EntityIntent,
    RoutingDecision,
    SearchAllArgs,
    SearchArgs,
    SearchCustomersArgs,
    SearchEquipmentArgs,
    SearchIntent,
    SearchInvoicesArgs,
    ToolCall,
    ToolExecutionResult,
)
from hvac_search.models.query import (
    EntityCard,
    ResultMetadata,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from hvac_search.models.search import RawHit
from hvac_search.models.visualization import ChartDescriptor, ChartPoint, Visualization

__all__ = [
    # Auth models
    "Principal",
    "Role",
    "ROLE_HIERARCHY",
    # Intent models
    "SearchIntent",
    "SearchArgs",
    "SearchAllArgs",
    "SearchInvoicesArgs",
    "SearchCustomersArgs",
    "SearchEquipmentArgs",
    "EntityIntent",
    "ToolCall",
    "RoutingDecision",
    "ToolExecutionResult",
    # Query models
    "SearchRequest",
    "ResultMetadata",
    "SearchResult",
    "EntityCard",
    "SearchResponse",
    "RawHit",
    # Visualization models
    "ChartPoint",
    "ChartDescriptor",
    "Visualization",
    # Error models
    "ErrorDebug",
    "ErrorResponse",
]
