"""Entity-level views over line-level search results.

Detection is a deterministic regex classifier over the query text, kept
separate from the LLM router. Only vendor queries over invoice results are
collapsed into entity cards; customer and equipment records are already
entity-level and pass through unchanged.
"""

import logging
import re
from dataclasses import dataclass, field

from hvac_search.models.intent import EntityIntent
from hvac_search.models.query import EntityCard, ResultMetadata, SearchResult

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"

VENDOR_TERMS = re.compile(r"\b(vendor|vendors|supplier|suppliers|contractor|contractors)\b")
VENDOR_EXCLUSIONS = re.compile(r"\b(invoice|invoices|bill|bills|payment|payments)\b")
CUSTOMER_TERMS = re.compile(r"\b(customer|customers|client|clients|facility|facilities)\b")
EQUIPMENT_TERMS = re.compile(r"\b(equipment|unit|units|machine|machines|system|systems)\b")
INVOICE_TERMS = re.compile(r"\b(invoice|invoices)\b")


def detect_entity_intent(query: str) -> EntityIntent:
    """Classify whether the query asks for vendors, customers or equipment.

    "vendor invoices" is an invoice query, not a vendor query: each entity
    pattern is guarded by invoice-specific exclusions.
    """
    text = query.lower()
    if VENDOR_TERMS.search(text) and not VENDOR_EXCLUSIONS.search(text):
        return EntityIntent.VENDOR
    if CUSTOMER_TERMS.search(text) and not INVOICE_TERMS.search(text):
        return EntityIntent.CUSTOMER
    if EQUIPMENT_TERMS.search(text) and not INVOICE_TERMS.search(text):
        return EntityIntent.EQUIPMENT
    return EntityIntent.NONE


def slugify(name: str) -> str:
    """Lowercase the name and join whitespace runs with hyphens."""
    return re.sub(r"\s+", "-", name.strip().lower())


@dataclass
class _VendorGroup:
    name: str
    count: int = 0
    total: float = 0.0
    dates: list[str] = field(default_factory=list)
    services: set[str] = field(default_factory=set)
    statuses: list[str] = field(default_factory=list)
    best_score: float = 0.0

    def add(self, result: SearchResult) -> None:
        meta = result.metadata
        self.count += 1
        self.total += meta.total_amount or meta.amount or 0.0
        if meta.date:
            self.dates.append(meta.date)
        if meta.service_type:
            self.services.add(meta.service_type)
        if meta.payment_status:
            self.statuses.append(meta.payment_status)
        self.best_score = max(self.best_score, result.score)

    def to_card(self) -> EntityCard:
        paid = sum(1 for status in self.statuses if status == "paid")
        last_date = max(self.dates) if self.dates else ""
        return EntityCard(
            id=f"vendor-{slugify(self.name)}",
            text=f"{self.name}: {self.count} invoices, ${self.total:.2f} total",
            metadata=ResultMetadata(
                date=last_date,
                vendor=self.name,
                amount=self.total,
                account="aggregated",
                opco_id="all",
                role_required="employee",
                domain="financial",
                entity_type="vendor",
                vendor_name=self.name,
                invoice_count=self.count,
                total_amount=self.total,
                avg_amount=self.total / self.count,
                last_service_date=last_date,
                services=", ".join(sorted(self.services)),
                paid_count=paid,
                outstanding_count=self.count - paid,
                payment_rate=f"{paid / self.count * 100:.0f}%",
            ),
            score=self.best_score,
        )


def vendor_key(result: SearchResult) -> str:
    """Grouping key: vendor, then manufacturer, then the Unknown Vendor bucket."""
    meta = result.metadata
    return (meta.vendor or "").strip() or (meta.manufacturer or "").strip() or UNKNOWN_VENDOR


def aggregate_vendors(results: list[SearchResult]) -> list[EntityCard]:
    """Collapse results into one card per vendor, largest invoice count first.

    Groups are created only from observed results, so every card summarizes at
    least one record.
    """
    groups: dict[str, _VendorGroup] = {}
    for result in results:
        key = vendor_key(result)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _VendorGroup(name=key)
        group.add(result)

    cards = [group.to_card() for group in groups.values()]
    # Stable: ties keep first-seen order
    cards.sort(key=lambda card: card.metadata.invoice_count or 0, reverse=True)
    return cards


def aggregate(
    results: list[SearchResult], intent: EntityIntent
) -> tuple[list[SearchResult], EntityIntent]:
    """Apply the entity view requested by the query, if the data supports it.

    Returns:
        The (possibly aggregated) results and the entity intent actually
        applied. A vendor intent without financial results is discarded
        (NONE); customer and equipment intents pass results through.
    """
    if intent is not EntityIntent.VENDOR:
        return results, intent
    if not any(r.metadata.domain == "financial" for r in results):
        logger.info("Vendor view requested but no invoice results; skipping aggregation")
        return results, EntityIntent.NONE

    cards = aggregate_vendors(results)
    logger.info(f"✓ Aggregated {len(results)} results into {len(cards)} vendor cards")
    return list(cards), EntityIntent.VENDOR
