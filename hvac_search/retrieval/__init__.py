"""Filter construction, result shaping, and retry utilities for search."""

from hvac_search.retrieval.aggregation import aggregate, detect_entity_intent
from hvac_search.retrieval.filters import FilterBuilder, to_chroma_where, validate_filter
from hvac_search.retrieval.normalizer import normalize
from hvac_search.retrieval.retry import RetryOptions, retry_async
from hvac_search.retrieval.security import NoopPolicy, SecurityPolicy, TenantScopedPolicy
from hvac_search.retrieval.visualization import generate

__all__ = [
    "FilterBuilder",
    "NoopPolicy",
    "RetryOptions",
    "SecurityPolicy",
    "TenantScopedPolicy",
    "aggregate",
    "detect_entity_intent",
    "generate",
    "normalize",
    "retry_async",
    "to_chroma_where",
    "validate_filter",
]
