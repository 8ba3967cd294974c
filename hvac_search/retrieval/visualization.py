"""Chart descriptors derived from a final result set.

A single pass over the results fills independent accumulators; each one that
sees at least two distinct known categories becomes a chart. The chart list
is then capped by type priority.
"""

import logging
import re
from collections import Counter, defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

from hvac_search.models.intent import EntityIntent
from hvac_search.models.query import SearchResult
from hvac_search.models.visualization import ChartDescriptor, ChartPoint, ChartType, Visualization

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARTS = 4

# Lower rank survives truncation first
TYPE_PRIORITY: dict[str, int] = {"map": 0, "pie": 1, "bar": 2, "line": 3}

MIN_CATEGORIES = 2
MIN_MONTHS = 3

UNKNOWN_LABELS = frozenset({"", "unknown", "n/a", "none", "null"})

REGIONAL_PATTERNS = (
    r"\bregions?\b",
    r"\bregional\b",
    r"\b(by|per) state\b",
    r"\bgeograph\w*",
    r"\bmap\b",
    r"\b(north|south)(east|west)\b",
    r"\bmidwest\b",
    r"\b(west|east) coast\b",
    r"\bcompare\b.*\bstates\b",
    r"\bacross (the )?(country|states)\b",
    r"\bterritor(y|ies)\b",
)
REGIONAL_INTENT = re.compile("|".join(REGIONAL_PATTERNS))

ISO_MONTH = re.compile(r"^(\d{4})-(\d{1,2})(?:\D|$)")
US_DATE = re.compile(r"^(\d{1,2})/\d{1,2}/(\d{4})$")


def has_regional_intent(query: str) -> bool:
    """True when the wording asks for a geographic breakdown."""
    return bool(REGIONAL_INTENT.search(query.lower()))


def is_known(label: str | None) -> bool:
    return label is not None and label.strip().lower() not in UNKNOWN_LABELS


def humanize(label: str) -> str:
    return label.replace("_", " ")


@dataclass
class Accumulator:
    """Counts one categorical field across the result set."""

    key: str
    title: str
    chart_type: ChartType
    extract: Callable[[SearchResult], str | None]
    x_axis: str | None = None
    y_axis: str | None = None
    limit: int | None = None
    sort_by_value: bool = False
    relabel: Callable[[str], str] | None = None
    counts: Counter = field(default_factory=Counter)

    def add(self, result: SearchResult) -> None:
        value = self.extract(result)
        if value is None:
            return
        label = str(value).strip()
        if is_known(label):
            # Relabel before counting so display labels stay unique
            self.counts[self.relabel(label) if self.relabel else label] += 1

    def to_chart(self) -> ChartDescriptor | None:
        if len(self.counts) < MIN_CATEGORIES:
            return None
        items = list(self.counts.items())
        if self.sort_by_value:
            items.sort(key=lambda item: item[1], reverse=True)
        if self.limit is not None:
            items = items[: self.limit]
        return ChartDescriptor(
            type=self.chart_type,
            title=self.title,
            data=[
                ChartPoint(label=label, value=value) for label, value in items
            ],
            x_axis=self.x_axis,
            y_axis=self.y_axis,
        )


def _meta(name: str) -> Callable[[SearchResult], str | None]:
    return lambda result: getattr(result.metadata, name)


def _region(result: SearchResult) -> str | None:
    meta = result.metadata
    return meta.region if is_known(meta.region) else meta.state


def _reorder_status(result: SearchResult) -> str | None:
    meta = result.metadata
    if meta.record_type != "stock_item" and meta.domain != "inventory":
        return None
    return "Needs Reorder" if meta.needs_reorder else "Stock OK"


def _build_accumulators(regional: bool) -> list[Accumulator]:
    region = (
        Accumulator("region", "Results by Region", "map", _region,
                    x_axis="Region", y_axis="Count", sort_by_value=True)
        if regional
        else Accumulator("region", "Results by Region", "bar", _region,
                         x_axis="Region", y_axis="Count", limit=10, sort_by_value=True)
    )
    return [
        Accumulator("record_type", "Results by Record Type", "pie", _meta("record_type"),
                    relabel=humanize),
        region,
        Accumulator("vendor", "Top Vendors", "bar", _meta("vendor"),
                    x_axis="Vendor", y_axis="Count", limit=10, sort_by_value=True),
        Accumulator("payment_status", "Payment Status Distribution", "pie",
                    _meta("payment_status")),
        Accumulator("service_type", "Service Type Distribution", "bar", _meta("service_type"),
                    x_axis="Service Type", y_axis="Count", relabel=humanize),
        Accumulator("lead_source", "Lead Source Distribution", "pie", _meta("lead_source"),
                    relabel=humanize),
        Accumulator("stage", "Deals by Stage", "bar", _meta("stage"),
                    x_axis="Stage", y_axis="Count", relabel=humanize),
        Accumulator("channel", "Marketing Channel Distribution", "pie", _meta("channel"),
                    relabel=humanize),
        Accumulator("manufacturer", "Items by Manufacturer", "pie", _meta("manufacturer"),
                    limit=7, sort_by_value=True),
        Accumulator("warehouse", "Items by Warehouse", "bar", _meta("warehouse_location"),
                    x_axis="Warehouse", y_axis="Count"),
        Accumulator("condition", "Equipment Condition Distribution", "pie", _meta("condition")),
        Accumulator("equipment_type", "Equipment by Type", "bar", _meta("equipment_type"),
                    x_axis="Equipment Type", y_axis="Count", relabel=humanize),
        Accumulator("customer_type", "Customers by Facility Type", "pie", _meta("customer_type"),
                    relabel=humanize),
        Accumulator("reorder", "Reorder Status", "pie", _reorder_status),
    ]


# Accumulators promoted ahead of equal-priority charts for each entity view
ENTITY_EMPHASIS: dict[EntityIntent, frozenset[str]] = {
    EntityIntent.CUSTOMER: frozenset({"customer_type", "region", "lead_source", "stage"}),
    EntityIntent.EQUIPMENT: frozenset({"condition", "equipment_type", "manufacturer"}),
}


def month_key(date: str) -> str | None:
    """YYYY-MM for an ISO (2024-03-15) or US (03/15/2024) date, else None."""
    date = date.strip()
    match = ISO_MONTH.match(date)
    if match:
        year, month = match.groups()
    else:
        match = US_DATE.match(date)
        if not match:
            return None
        month, year = match.groups()
    if not 1 <= int(month) <= 12:
        return None
    return f"{year}-{int(month):02d}"


def monthly_amounts(results: list[SearchResult]) -> ChartDescriptor | None:
    """Line chart of summed amounts per YYYY-MM, when at least three months appear."""
    totals: dict[str, float] = defaultdict(float)
    for result in results:
        meta = result.metadata
        if meta.entity_type or meta.amount <= 0:
            continue
        month = month_key(meta.date)
        if month is None:
            continue
        totals[month] += meta.amount
    if len(totals) < MIN_MONTHS:
        return None
    return ChartDescriptor(
        type="line",
        title="Monthly Amounts",
        data=[ChartPoint(label=month, value=round(total, 2)) for month, total in sorted(totals.items())],
        x_axis="Month",
        y_axis="Amount ($)",
    )


def vendor_entity_charts(cards: list[SearchResult]) -> list[ChartDescriptor]:
    """Invoice count and total amount bars for aggregated vendor cards."""
    vendors = [c for c in cards if c.metadata.entity_type == "vendor"]
    if len(vendors) < MIN_CATEGORIES:
        return []

    def label(card: SearchResult) -> str:
        return card.metadata.vendor_name or card.metadata.vendor or "Unknown"

    return [
        ChartDescriptor(
            type="bar",
            title="Invoices by Vendor",
            data=[ChartPoint(label=label(c), value=c.metadata.invoice_count or 0) for c in vendors],
            x_axis="Vendor",
            y_axis="Invoice Count",
        ),
        ChartDescriptor(
            type="bar",
            title="Total Amount by Vendor",
            data=[
                ChartPoint(label=label(c), value=max(0.0, c.metadata.total_amount or 0.0))
                for c in vendors
            ],
            x_axis="Vendor",
            y_axis="Total Amount ($)",
        ),
    ]


def cap_charts(charts: list[ChartDescriptor], max_charts: int) -> list[ChartDescriptor]:
    """Keep at most max_charts, preferring map > pie > bar > line (stable)."""
    if len(charts) <= max_charts:
        return charts
    ranked = sorted(enumerate(charts), key=lambda item: (TYPE_PRIORITY[item[1].type], item[0]))
    keep = sorted(index for index, _ in ranked[:max_charts])
    return [charts[index] for index in keep]


def generate(
    results: list[SearchResult],
    entity_intent: EntityIntent,
    query: str,
    max_charts: int = DEFAULT_MAX_CHARTS,
) -> Visualization | None:
    """Build the chart set for a result set.

    Args:
        results: Final (possibly aggregated) results
        entity_intent: Entity view actually applied
        query: Original user query (gates the region map)
        max_charts: Chart cap

    Returns:
        Visualization, or None when no chart qualifies
    """
    if not results:
        return None

    aggregated = entity_intent is EntityIntent.VENDOR and any(
        r.metadata.entity_type == "vendor" for r in results
    )
    accumulators = _build_accumulators(has_regional_intent(query))
    for result in results:
        for accumulator in accumulators:
            accumulator.add(result)

    emphasis = ENTITY_EMPHASIS.get(entity_intent, frozenset())
    promoted: list[ChartDescriptor] = []
    regular: list[ChartDescriptor] = []
    for accumulator in accumulators:
        if aggregated and accumulator.key == "vendor":
            # Redundant with the per-vendor entity charts
            continue
        chart = accumulator.to_chart()
        if chart is None:
            continue
        (promoted if accumulator.key in emphasis else regular).append(chart)

    charts = vendor_entity_charts(results) if aggregated else []
    charts.extend(promoted)
    charts.extend(regular)

    line = monthly_amounts(results)
    if line is not None:
        charts.append(line)

    charts = cap_charts(charts, max_charts)
    if not charts:
        return None

    logger.debug(f"Generated {len(charts)} charts: {[c.title for c in charts]}")
    return Visualization(charts=charts)
