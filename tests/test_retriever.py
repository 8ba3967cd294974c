"""Tests for embed-then-query retrieval."""

import pytest
from conftest import make_hit

from hvac_search.errors import RateLimitError
from hvac_search.models.intent import SearchIntent
from hvac_search.retrieval.retriever import VectorRetriever, effective_top_k
from hvac_search.retrieval.retry import RetryOptions


@pytest.mark.parametrize(
    "intent,requested,ceiling,expected",
    [
        (SearchIntent.SEARCH_ALL, None, 25, 25),
        (SearchIntent.SEARCH_INVOICES, None, 25, 10),
        (SearchIntent.SEARCH_INVOICES, None, 5, 5),
        (SearchIntent.SEARCH_CUSTOMERS, 40, 100, 40),
        (SearchIntent.SEARCH_EQUIPMENT, 40, 25, 25),
        (SearchIntent.SEARCH_ALL, 500, 1000, 100),
        (SearchIntent.SEARCH_ALL, None, 0, 1),
        (SearchIntent.SEARCH_INVOICES, -5, 25, 10),
        (SearchIntent.SEARCH_INVOICES, 0, 25, 10),
    ],
)
def test_effective_top_k(intent, requested, ceiling, expected):
    assert effective_top_k(intent, requested, ceiling) == expected


class TestVectorRetriever:
    """Test the retrieval stage."""

    @pytest.mark.asyncio
    async def test_retrieve(self, mock_openai, mock_vector_store, no_retry):
        hits = [make_hit("inv-1"), make_hit("inv-2", score=0.4)]
        mock_vector_store.query.return_value = hits
        retriever = VectorRetriever(mock_openai, mock_vector_store, no_retry)

        result = await retriever.retrieve("overdue invoices", {"vendor": {"$eq": "Carrier"}}, 10)

        assert result == hits
        mock_openai.embed_text.assert_awaited_once_with("overdue invoices")
        mock_vector_store.query.assert_awaited_once_with([0.1] * 1536, {"vendor": {"$eq": "Carrier"}}, 10)

    @pytest.mark.asyncio
    async def test_embedding_retried(self, mock_openai, mock_vector_store):
        mock_openai.embed_text.side_effect = [RateLimitError("slow down"), [0.2] * 1536]
        retriever = VectorRetriever(
            mock_openai, mock_vector_store, RetryOptions(max_retries=1, base_delay=0.0, max_delay=0.0)
        )

        await retriever.retrieve("chillers", {}, 5)

        assert mock_openai.embed_text.await_count == 2
        assert mock_vector_store.query.await_args.args[0] == [0.2] * 1536
