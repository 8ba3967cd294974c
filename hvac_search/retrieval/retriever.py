"""Embed-then-query retrieval with shared retry handling."""

import logging
import time
from typing import Any

from hvac_search.clients.openai_client import OpenAIClient
from hvac_search.models.intent import SearchIntent
from hvac_search.models.query import MAX_RESULTS, MIN_RESULTS
from hvac_search.models.search import RawHit
from hvac_search.retrieval.retry import RetryOptions, retry_async
from hvac_search.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


def effective_top_k(intent: SearchIntent, requested: int | None, ceiling: int) -> int:
    """Result count for one tool call.

    The tool's own top_k (or the intent default) capped by the request's
    result ceiling, always within [1, 100].
    """
    ceiling = max(MIN_RESULTS, min(MAX_RESULTS, ceiling))
    top_k = requested if requested and requested > 0 else intent.default_top_k
    return max(MIN_RESULTS, min(ceiling, top_k))


class VectorRetriever:
    """Runs one filtered similarity search for a query string.

    Both the embedding call and the vector query go through retry_async
    separately, so a transient vector-store failure does not repeat the
    embedding request.
    """

    def __init__(
        self,
        openai_client: OpenAIClient,
        vector_store: VectorStore,
        retry_options: RetryOptions | None = None,
    ):
        """Initialize retriever.

        Args:
            openai_client: Embedding gateway
            vector_store: Vector index adapter
            retry_options: Retry policy for both calls
        """
        self.openai_client = openai_client
        self.vector_store = vector_store
        self.retry_options = retry_options or RetryOptions()

    async def retrieve(
        self,
        query_text: str,
        filter: dict[str, Any],
        top_k: int,
    ) -> list[RawHit]:
        """Embed query_text and return the top_k hits matching filter.

        Args:
            query_text: Non-empty search string
            filter: Validated metadata filter
            top_k: Number of hits to request

        Returns:
            Hits ordered by similarity (descending)
        """
        start = time.perf_counter()

        logger.info(f"→ Embedding query: '{query_text[:100]}'")
        embedding = await retry_async(
            lambda: self.openai_client.embed_text(query_text),
            self.retry_options,
            operation_name="embed",
        )

        logger.info(f"→ Querying vector store (top_k={top_k}, filters={sorted(filter)})")
        hits = await retry_async(
            lambda: self.vector_store.query(embedding, filter, top_k),
            self.retry_options,
            operation_name="vector_query",
        )

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"✓ Retrieved {len(hits)} hits in {elapsed:.0f}ms")
        return hits
