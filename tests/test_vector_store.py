"""Tests for VectorStore implementation."""

from unittest.mock import MagicMock

import pytest

from hvac_search.errors import (
    AuthenticationError,
    DimensionMismatchError,
    FilterValidationError,
    ResourceNotFoundError,
    SearchError,
    TransientNetworkError,
    UpstreamTimeoutError,
)
from hvac_search.storage.vector_store import VectorRecord, VectorStore, translate_chroma_error


@pytest.fixture
def vector_store(tmp_path):
    """Create a temporary 4-dimensional vector store for testing."""
    return VectorStore(
        persist_directory=str(tmp_path / "vectordb"),
        collection_name="test_records",
        dimension=4,
    )


@pytest.fixture
def sample_records():
    """Invoices and a customer with simple orthogonal-ish embeddings."""
    return [
        VectorRecord(
            id="inv-1",
            embedding=[1.0, 0.0, 0.0, 0.0],
            metadata={
                "text": "Invoice INV-1 from Carrier",
                "vendor": "Carrier",
                "amount": 1500.0,
                "payment_status": "overdue",
                "domain": "financial",
                "record_type": "invoice",
                "fiscal_year": "2024",
            },
            document="Invoice INV-1 from Carrier",
        ),
        VectorRecord(
            id="inv-2",
            embedding=[0.9, 0.1, 0.0, 0.0],
            metadata={
                "vendor": "Trane",
                "amount": 300.0,
                "payment_status": "paid",
                "domain": "financial",
                "record_type": "invoice",
                "notes": None,
            },
        ),
        VectorRecord(
            id="cust-1",
            embedding=[0.0, 1.0, 0.0, 0.0],
            metadata={
                "company_name": "Phoenix General Hospital",
                "customer_type": "hospital",
                "domain": "crm",
                "record_type": "customer",
                "tags": ["priority", "west"],
            },
        ),
    ]


@pytest.mark.asyncio
async def test_upsert_and_count(vector_store, sample_records):
    """Test writing records and counting them."""
    written = await vector_store.upsert(sample_records)

    assert written == 3
    assert await vector_store.count() == 3


@pytest.mark.asyncio
async def test_upsert_empty_list(vector_store):
    with pytest.raises(ValueError, match="empty"):
        await vector_store.upsert([])


@pytest.mark.asyncio
async def test_query_orders_by_similarity(vector_store, sample_records):
    """Test that hits come back most similar first with scores in [0, 1]."""
    await vector_store.upsert(sample_records)

    hits = await vector_store.query([1.0, 0.0, 0.0, 0.0], top_k=3)

    assert [hit.id for hit in hits] == ["inv-1", "inv-2", "cust-1"]
    assert hits[0].score == pytest.approx(1.0, abs=1e-4)
    assert all(0.0 <= hit.score <= 1.0 for hit in hits)
    assert hits[0].metadata["vendor"] == "Carrier"
    assert hits[0].document == "Invoice INV-1 from Carrier"


@pytest.mark.asyncio
async def test_query_with_filter(vector_store, sample_records):
    """Test that multi-field filters are applied by the store."""
    await vector_store.upsert(sample_records)

    hits = await vector_store.query(
        [1.0, 0.0, 0.0, 0.0],
        filter={
            "domain": {"$eq": "financial"},
            "record_type": {"$eq": "invoice"},
            "payment_status": {"$eq": "overdue"},
        },
        top_k=10,
    )

    assert [hit.id for hit in hits] == ["inv-1"]


@pytest.mark.asyncio
async def test_query_with_amount_range(vector_store, sample_records):
    await vector_store.upsert(sample_records)

    hits = await vector_store.query(
        [1.0, 0.0, 0.0, 0.0],
        filter={"amount": {"$gte": 1000.0, "$lte": 2000.0}},
        top_k=10,
    )

    assert [hit.id for hit in hits] == ["inv-1"]


@pytest.mark.asyncio
async def test_metadata_sanitized_on_upsert(vector_store, sample_records):
    """Test that nulls are dropped and lists stored as strings."""
    await vector_store.upsert(sample_records)

    hits = await vector_store.query([0.0, 1.0, 0.0, 0.0], top_k=3)
    by_id = {hit.id: hit for hit in hits}

    assert "notes" not in by_id["inv-2"].metadata
    assert by_id["cust-1"].metadata["tags"] == "['priority', 'west']"


@pytest.mark.asyncio
async def test_query_dimension_mismatch(vector_store):
    with pytest.raises(DimensionMismatchError) as exc_info:
        await vector_store.query([0.1] * 1536, top_k=5)

    assert exc_info.value.details == {"expected": 4, "actual": 1536}


@pytest.mark.asyncio
async def test_upsert_dimension_mismatch(vector_store):
    with pytest.raises(DimensionMismatchError):
        await vector_store.upsert([VectorRecord(id="x", embedding=[0.1, 0.2])])


@pytest.mark.asyncio
@pytest.mark.parametrize("vector,top_k", [([], 5), ([0.1, 0.2, 0.3, 0.4], 0)])
async def test_query_invalid_arguments(vector_store, vector, top_k):
    with pytest.raises(ValueError):
        await vector_store.query(vector, top_k=top_k)


@pytest.mark.asyncio
async def test_describe(vector_store, sample_records):
    """Test collection diagnostics before and after seeding."""
    empty = await vector_store.describe()

    assert empty["count"] == 0
    assert empty["index_dimension"] is None
    assert empty["dimension_ok"] is True
    assert empty["collection"] == "test_records"

    await vector_store.upsert(sample_records)
    seeded = await vector_store.describe()

    assert seeded["count"] == 3
    assert seeded["index_dimension"] == 4
    assert seeded["expected_dimension"] == 4
    assert seeded["dimension_ok"] is True


@pytest.mark.asyncio
async def test_chroma_failure_translated(vector_store):
    """Test that errors raised inside the Chroma call become typed errors."""
    vector_store._collection = MagicMock()
    vector_store._collection.query.side_effect = ConnectionError("Connection reset by peer")

    with pytest.raises(TransientNetworkError) as exc_info:
        await vector_store.query([0.1, 0.2, 0.3, 0.4], top_k=5)

    assert exc_info.value.operation == "vector_query"


class TestTranslateChromaError:
    """Test Chroma exception mapping."""

    def _error(self, message, status_code=None):
        error = Exception(message)
        if status_code is not None:
            error.status_code = status_code
        return error

    def test_timeout(self):
        assert isinstance(translate_chroma_error(TimeoutError(), "vector_query"), UpstreamTimeoutError)

    def test_dimension(self):
        error = Exception("Collection expecting embedding with dimension of 1536, got 768")
        assert isinstance(translate_chroma_error(error, "vector_query"), DimensionMismatchError)

    def test_status_codes(self):
        assert isinstance(translate_chroma_error(self._error("nope", 401), "q"), AuthenticationError)
        assert isinstance(translate_chroma_error(self._error("gone", 404), "q"), ResourceNotFoundError)
        assert isinstance(translate_chroma_error(self._error("busy", 503), "q"), TransientNetworkError)

    def test_missing_collection_message(self):
        error = ValueError("Collection legacy-search does not exist.")
        assert isinstance(translate_chroma_error(error, "q"), ResourceNotFoundError)

    def test_bad_where_clause(self):
        error = ValueError("Expected where operator to be one of $eq, $ne, got $foo")
        assert isinstance(translate_chroma_error(error, "q"), FilterValidationError)

    def test_unknown(self):
        translated = translate_chroma_error(RuntimeError("odd"), "q")

        assert type(translated) is SearchError
        assert translated.status_code == 500
