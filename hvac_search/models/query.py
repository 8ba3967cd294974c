"""Search request/response Pydantic models."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hvac_search.models.visualization import Visualization

DEFAULT_MAX_RESULTS = 25
MIN_RESULTS = 1
MAX_RESULTS = 100


def clamp_max_results(value: Any) -> int:
    """Coerce a requested result count into [MIN_RESULTS, MAX_RESULTS].

    ``None``, ``0``, a blank string or NaN select the default; infinities
    clamp to the nearest bound.

    Raises:
        ValueError: If value is not numeric
    """
    if value is None:
        return DEFAULT_MAX_RESULTS
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return DEFAULT_MAX_RESULTS
        try:
            value = float(value)
        except ValueError:
            raise ValueError("maxResults must be a number") from None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("maxResults must be a number")
    if value == 0:
        return DEFAULT_MAX_RESULTS
    if isinstance(value, float):
        if math.isnan(value):
            return DEFAULT_MAX_RESULTS
        if math.isinf(value):
            return MAX_RESULTS if value > 0 else MIN_RESULTS
        value = int(value)
    return max(MIN_RESULTS, min(MAX_RESULTS, value))


class SearchRequest(BaseModel):
    """Natural-language search request."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(description="Free-text question")
    max_results: int = Field(
        default=DEFAULT_MAX_RESULTS,
        alias="maxResults",
        description="Result ceiling, clamped to [1, 100]",
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Reject blank queries."""
        v = v.strip()
        if not v:
            raise ValueError("Missing required field: query")
        return v

    @field_validator("max_results", mode="before")
    @classmethod
    def validate_max_results(cls, v: Any) -> int:
        """Clamp instead of rejecting out-of-range counts."""
        return clamp_max_results(v)


class ResultMetadata(BaseModel):
    """Canonical metadata for a normalized search result.

    The base fields are always present; every other field is optional and
    only populated for the record types that carry it.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    # Required base fields
    date: str = ""
    vendor: str = ""
    amount: float = 0.0
    account: str = ""
    opco_id: str = ""
    role_required: str = "employee"

    # Common
    company_name: str = ""
    region: str = ""
    state: str = ""
    city: str | None = None
    domain: str = ""
    record_type: str = ""

    # Financial
    payment_status: str | None = None
    service_type: str | None = None
    invoice_number: str | None = None
    fiscal_year: str | None = None
    fiscal_quarter: str | None = None
    vendor_id: str | None = None

    # Accounting
    category: str | None = None
    description: str | None = None
    account_name: str | None = None
    debit: float | None = None
    credit: float | None = None

    # CRM
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    title: str | None = None
    status: str | None = None
    customer_type: str | None = None
    deal_name: str | None = None
    deal_value: float | None = None
    stage: str | None = None
    activity_type: str | None = None
    lead_source: str | None = None
    lead_score: float | None = None

    # Equipment
    equipment_type: str | None = None
    condition: str | None = None
    warranty_status: str | None = None

    # Inventory
    sku: str | None = None
    item_name: str | None = None
    manufacturer: str | None = None
    quantity_on_hand: float | None = None
    unit_cost: float | None = None
    total_value: float | None = None
    warehouse_location: str | None = None
    needs_reorder: bool | None = None

    # Marketing
    campaign_name: str | None = None
    channel: str | None = None
    budget: float | None = None
    leads_generated: int | None = None

    # Regional
    year: str | None = None
    quarter: str | None = None
    total_revenue: float | None = None

    # Vendor entity aggregation
    entity_type: str | None = None
    vendor_name: str | None = None
    invoice_count: int | None = None
    total_amount: float | None = None
    avg_amount: float | None = None
    last_service_date: str | None = None
    services: str | None = None
    paid_count: int | None = None
    outstanding_count: int | None = None
    payment_rate: str | None = None


class SearchResult(BaseModel):
    """Normalized search result."""

    id: str
    text: str = ""
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)
    score: float = Field(ge=0.0, le=1.0, description="Relevance score between 0 and 1")


class EntityCard(SearchResult):
    """Synthetic result summarizing a group of records (one vendor)."""

    @model_validator(mode="after")
    def check_counts(self) -> "EntityCard":
        """Enforce the aggregation arithmetic."""
        meta = self.metadata
        count = meta.invoice_count or 0
        if count < 1:
            raise ValueError("entity card must summarize at least one record")
        if (meta.paid_count or 0) + (meta.outstanding_count or 0) != count:
            raise ValueError("paid_count + outstanding_count must equal invoice_count")
        total = meta.total_amount or 0.0
        if meta.avg_amount is None or not math.isclose(
            meta.avg_amount * count, total, rel_tol=1e-9, abs_tol=1e-6
        ):
            raise ValueError("avg_amount must equal total_amount / invoice_count")
        return self


class SearchResponse(BaseModel):
    """Search response with summary, sources, and chart data."""

    answer: str
    sources: list[SearchResult] = Field(default_factory=list)
    visualization: Visualization | None = None
    entity_type: str | None = Field(
        default=None, description="Entity view applied: vendor, customer, equipment"
    )
    processing_time: float = Field(
        default=0.0, ge=0.0, description="Processing time in seconds (non-negative)"
    )
