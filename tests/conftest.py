"""Pytest configuration and shared fixtures."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Deterministic settings for every test module, including hvac_search.main at import time
os.environ["OPENAI_API_KEY"] = "sk-test-fake-key-for-unit-tests-only"
os.environ["SECURITY_POLICY"] = "noop"
os.environ["DEMO_SESSION_TOKEN"] = "demo-session"
os.environ["LOG_LEVEL"] = "WARNING"

from hvac_search.config import reload_settings  # noqa: E402
from hvac_search.models.intent import RoutingDecision, SearchIntent, ToolCall  # noqa: E402
from hvac_search.models.query import ResultMetadata, SearchResult  # noqa: E402
from hvac_search.models.search import RawHit  # noqa: E402
from hvac_search.retrieval.retry import RetryOptions  # noqa: E402


@pytest.fixture
def fresh_settings():
    """Reload settings around a test that changes the environment."""
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def no_retry():
    """Retry policy without retries or delays."""
    return RetryOptions(max_retries=0, base_delay=0.0, max_delay=0.0)


def make_result(
    id: str,
    score: float = 0.5,
    text: str = "",
    **metadata,
) -> SearchResult:
    """Build a normalized result with the given metadata fields."""
    return SearchResult(id=id, text=text or id, metadata=ResultMetadata(**metadata), score=score)


def make_invoice(
    id: str,
    vendor: str,
    amount: float = 100.0,
    payment_status: str = "paid",
    date: str = "2024-01-15",
    score: float = 0.5,
    **extra,
) -> SearchResult:
    """Build a normalized invoice result."""
    return make_result(
        id,
        score=score,
        vendor=vendor,
        amount=amount,
        payment_status=payment_status,
        date=date,
        domain="financial",
        record_type="invoice",
        **extra,
    )


def make_hit(id: str, score: float = 0.8, **metadata) -> RawHit:
    """Build a raw vector-store hit."""
    return RawHit(id=id, score=score, metadata=metadata)


def tool_call_message(*calls: tuple[str, str], content: str | None = None) -> MagicMock:
    """Assistant message with tool calls given as (name, arguments JSON) pairs."""
    message = MagicMock()
    message.content = content
    message.tool_calls = []
    for i, (name, arguments) in enumerate(calls):
        call = MagicMock()
        call.id = f"call_{i}"
        call.function.name = name
        call.function.arguments = arguments
        message.tool_calls.append(call)
    return message


@pytest.fixture
def mock_openai():
    """OpenAI client double with async methods."""
    client = MagicMock()
    client.embed_text = AsyncMock(return_value=[0.1] * 1536)
    client.chat_with_tools = AsyncMock()
    client.generate = AsyncMock(return_value="Found 3 invoices.")
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_vector_store():
    """Vector store double returning no hits by default."""
    store = MagicMock()
    store.query = AsyncMock(return_value=[])
    store.describe = AsyncMock(
        return_value={
            "collection": "legacy-search",
            "location": "./data/vectordb",
            "count": 0,
            "expected_dimension": 1536,
            "index_dimension": None,
            "dimension_ok": True,
        }
    )
    return store


@pytest.fixture
def invoice_call():
    """A routed search_invoices call."""
    return ToolCall(
        id="call_0",
        intent=SearchIntent.SEARCH_INVOICES,
        arguments={"query": "overdue invoices", "payment_status": "overdue"},
    )


@pytest.fixture
def invoice_decision(invoice_call):
    """Routing decision holding a single invoice tool call."""
    return RoutingDecision(
        tool_calls=(invoice_call,),
        assistant_message={
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_0",
                    "type": "function",
                    "function": {
                        "name": "search_invoices",
                        "arguments": '{"query": "overdue invoices", "payment_status": "overdue"}',
                    },
                }
            ],
        },
    )
