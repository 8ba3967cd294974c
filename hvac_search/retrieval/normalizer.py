"""Flatten raw vector-store hits into the uniform SearchResult shape."""

import logging
import math
from typing import Any

from hvac_search.models.query import ResultMetadata, SearchResult
from hvac_search.models.search import RawHit

logger = logging.getLogger(__name__)

# First non-empty value wins; each record type stores its headline amount differently
AMOUNT_PRIORITY = (
    "amount",
    "total_value",
    "deal_value",
    "budget",
    "total_revenue",
    "unit_cost",
)

TEXT_PRIORITY = ("text", "summary", "title")

FLOAT_FIELDS = frozenset({
    "debit", "credit", "deal_value", "lead_score", "quantity_on_hand", "unit_cost",
    "total_value", "budget", "total_revenue", "total_amount", "avg_amount",
})
INT_FIELDS = frozenset({"leads_generated", "invoice_count", "paid_count", "outstanding_count"})
BOOL_FIELDS = frozenset({"needs_reorder"})

BOOL_STRINGS = {
    "true": True, "yes": True, "y": True, "1": True,
    "false": False, "no": False, "n": False, "0": False,
}


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_int(value: Any) -> int | None:
    number = _to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return BOOL_STRINGS.get(value.strip().lower())
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _coerce_field(name: str, value: Any) -> Any:
    """Coerce one metadata value to its field type; None means drop the field."""
    if name in FLOAT_FIELDS:
        return _to_number(value)
    if name in INT_FIELDS:
        return _to_int(value)
    if name in BOOL_FIELDS:
        return _to_bool(value)
    return _text(value) or None


def best_amount(metadata: dict[str, Any]) -> float:
    """Pick the headline amount of a record (null, blank and zero count as empty)."""
    for name in AMOUNT_PRIORITY:
        number = _to_number(metadata.get(name))
        if number:
            return number
    return 0.0


def display_text(hit: RawHit) -> str:
    """Text shown for a hit: text, then summary, then title, then the stored document."""
    for name in TEXT_PRIORITY:
        value = _text(hit.metadata.get(name))
        if value:
            return value
    return _text(hit.document)


def normalize_hit(hit: RawHit) -> SearchResult:
    """Map one raw hit onto SearchResult, copying every known domain field."""
    meta = hit.metadata
    fields: dict[str, Any] = {}

    # Values that do not fit their field type are dropped rather than failing the hit
    for name, value in meta.items():
        if name not in ResultMetadata.model_fields:
            continue
        coerced = _coerce_field(name, value)
        if coerced is None:
            if value is not None and value != "":
                logger.debug(f"Dropping unparseable {name}={value!r} on hit {hit.id}")
            continue
        fields[name] = coerced

    if "lead_score" not in fields and _to_number(meta.get("score")) is not None:
        fields["lead_score"] = _to_number(meta.get("score"))

    fields.update(
        date=_text(meta.get("date")),
        vendor=_text(meta.get("vendor")) or _text(meta.get("manufacturer")),
        amount=best_amount(meta),
        account=_text(meta.get("account")) or _text(meta.get("category")),
        opco_id=_text(meta.get("opco_id")),
        role_required=_text(meta.get("role_required")) or "employee",
        company_name=_text(meta.get("company_name")),
        region=_text(meta.get("region")),
        state=_text(meta.get("state")),
        domain=_text(meta.get("domain")),
        record_type=_text(meta.get("record_type")),
    )

    return SearchResult(
        id=hit.id,
        text=display_text(hit),
        metadata=ResultMetadata.model_validate(fields),
        score=max(0.0, min(1.0, hit.score or 0.0)),
    )


def normalize(hits: list[RawHit]) -> list[SearchResult]:
    """Normalize hits, preserving their order."""
    results = [normalize_hit(hit) for hit in hits]
    logger.debug(f"Normalized {len(results)} hits")
    return results
