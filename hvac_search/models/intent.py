"""Search intents, their argument schemas, and pipeline hand-off values."""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hvac_search.models.query import SearchResult

RecordType = Literal[
    "invoice",
    "expense",
    "gl_entry",
    "contact",
    "deal",
    "activity",
    "campaign",
    "lead",
    "stock_item",
    "regional_summary",
]
PaymentStatus = Literal["paid", "outstanding", "overdue"]
ServiceType = Literal[
    "emergency_repair",
    "scheduled_repair",
    "preventive_maintenance",
    "installation_new",
    "retrofit",
    "diagnostic",
]
FiscalQuarter = Literal["Q1", "Q2", "Q3", "Q4"]
CustomerType = Literal[
    "office_building",
    "retail_store",
    "warehouse",
    "hospital",
    "school",
    "data_center",
    "restaurant",
    "hotel",
    "manufacturing_plant",
    "shopping_mall",
    "municipal_building",
    "sports_arena",
    "senior_living",
    "apartment_complex",
]
EquipmentType = Literal[
    "rooftop_unit",
    "split_system",
    "chiller",
    "boiler",
    "furnace",
    "heat_pump",
    "air_handler",
    "vrf_system",
    "package_unit",
]
EquipmentCondition = Literal["excellent", "good", "fair", "poor", "critical"]
WarrantyStatus = Literal["active", "expired"]


class SearchArgs(BaseModel):
    """Arguments shared by every search tool."""

    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, description="Search text (never empty)")
    top_k: int | None = Field(default=None, description="Requested result count")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        """Treat null and blank optional arguments as absent."""
        if not isinstance(data, dict):
            return data
        return {
            key: value
            for key, value in data.items()
            if key == "query" or not (value is None or (isinstance(value, str) and not value.strip()))
        }

    @field_validator("top_k", mode="before")
    @classmethod
    def coerce_top_k(cls, v: Any) -> int | None:
        """Floor any numeric count; zero, negative or non-numeric values mean the intent default.

        Range capping happens later against the request ceiling.
        """
        if isinstance(v, str):
            try:
                v = float(v.strip())
            except ValueError:
                return None
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if isinstance(v, float) and not math.isfinite(v):
            return None
        v = math.floor(v)
        return v if v >= 1 else None


class SearchAllArgs(SearchArgs):
    """Arguments for the cross-domain search."""

    record_type: RecordType | None = None
    region: str | None = None
    vendor: str | None = None


class SearchInvoicesArgs(SearchArgs):
    """Arguments for invoice and service transaction search."""

    payment_status: PaymentStatus | None = None
    service_type: ServiceType | None = None
    fiscal_year: str | None = None
    fiscal_quarter: FiscalQuarter | None = None
    vendor: str | None = None
    amount_min: float | None = Field(default=None, ge=0.0)
    amount_max: float | None = Field(default=None, ge=0.0)

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def coerce_fiscal_year(cls, v: Any) -> Any:
        """Accept 2024 as well as "2024"."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    @model_validator(mode="after")
    def check_amount_range(self) -> "SearchInvoicesArgs":
        """Ensure amount_min <= amount_max when both are set."""
        if (
            self.amount_min is not None
            and self.amount_max is not None
            and self.amount_min > self.amount_max
        ):
            raise ValueError("amount_min must be <= amount_max")
        return self


class SearchCustomersArgs(SearchArgs):
    """Arguments for customer and facility search."""

    customer_type: CustomerType | None = None
    city: str | None = None
    state: str | None = None


class SearchEquipmentArgs(SearchArgs):
    """Arguments for HVAC equipment search."""

    equipment_type: EquipmentType | None = None
    manufacturer: str | None = None
    condition: EquipmentCondition | None = None
    warranty_status: WarrantyStatus | None = None


class SearchIntent(str, Enum):
    """Closed catalog of search tools the router may select."""

    SEARCH_ALL = "search_all"
    SEARCH_INVOICES = "search_invoices"
    SEARCH_CUSTOMERS = "search_customers"
    SEARCH_EQUIPMENT = "search_equipment"

    @property
    def default_top_k(self) -> int:
        """Default result count when the tool call does not set top_k."""
        return 25 if self is SearchIntent.SEARCH_ALL else 10

    @property
    def args_model(self) -> type[SearchArgs]:
        """Pydantic model validating this intent's arguments."""
        return _ARGS_MODELS[self]


_ARGS_MODELS: dict[SearchIntent, type[SearchArgs]] = {
    SearchIntent.SEARCH_ALL: SearchAllArgs,
    SearchIntent.SEARCH_INVOICES: SearchInvoicesArgs,
    SearchIntent.SEARCH_CUSTOMERS: SearchCustomersArgs,
    SearchIntent.SEARCH_EQUIPMENT: SearchEquipmentArgs,
}


class EntityIntent(str, Enum):
    """Entity-level view requested by the query wording."""

    VENDOR = "vendor"
    CUSTOMER = "customer"
    EQUIPMENT = "equipment"
    NONE = "none"


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation chosen by the router.

    ``arguments`` already carries a non-empty ``query``.
    """

    id: str
    intent: SearchIntent
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def query(self) -> str:
        return self.arguments["query"]


@dataclass(frozen=True)
class RoutingDecision:
    """Output of the tool-selection call.

    Either ``tool_calls`` is non-empty, or ``answer`` holds the direct reply.
    ``assistant_message`` is replayed verbatim to the summarization call.
    """

    tool_calls: tuple[ToolCall, ...] = ()
    answer: str | None = None
    assistant_message: dict[str, Any] | None = None

    @property
    def needs_retrieval(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class ToolExecutionResult:
    """Result of executing one tool call, handed to the summarization stage."""

    tool_call: ToolCall
    filters_applied: dict[str, Any] = field(default_factory=dict)
    results: tuple[SearchResult, ...] = ()
    error: str | None = None

    def to_tool_message(self) -> dict[str, Any]:
        """Render as a chat ``tool`` message answering the tool call."""
        if self.error is not None:
            payload: dict[str, Any] = {
                "error": self.error,
                "results": [],
                "count": 0,
            }
        else:
            payload = {
                "results": [
                    {
                        "id": r.id,
                        "score": r.score,
                        "text": r.text,
                        **r.metadata.model_dump(exclude_none=True, exclude_defaults=True),
                    }
                    for r in self.results
                ],
                "count": len(self.results),
                "filters_applied": self.filters_applied,
            }
        return {
            "role": "tool",
            "tool_call_id": self.tool_call.id,
            "content": json.dumps(payload, indent=2, default=str),
        }
