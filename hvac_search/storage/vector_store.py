"""Vector database storage using ChromaDB."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from hvac_search.errors import (
    AuthenticationError,
    AuthorizationError,
    DimensionMismatchError,
    FilterValidationError,
    RateLimitError,
    ResourceNotFoundError,
    SearchError,
    TransientNetworkError,
    UpstreamTimeoutError,
)
from hvac_search.logging_config import log_operation_metrics
from hvac_search.models.search import RawHit
from hvac_search.retrieval.filters import to_chroma_where
from hvac_search.retrieval.retry import NETWORK_MESSAGE_MARKERS, error_status

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class VectorRecord:
    """A pre-computed record vector with its metadata (used for seeding)."""

    id: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    document: str | None = None


def translate_chroma_error(error: Exception, operation: str) -> SearchError:
    """Map a ChromaDB (or transport) exception onto the typed error hierarchy.

    Args:
        error: Exception raised by the Chroma client
        operation: Name of the failed operation

    Returns:
        Typed error carrying the operation name and original cause
    """
    if isinstance(error, SearchError):
        return error
    if isinstance(error, TimeoutError):
        return UpstreamTimeoutError(
            f"Vector store timed out during {operation}", operation=operation, cause=error
        )

    name = type(error).__name__
    message = str(error).lower()

    if "dimension" in message:
        return DimensionMismatchError(
            "Embedding dimension does not match the vector index", operation=operation, cause=error
        )

    status = error_status(error)
    if status == 401 or "Authentication" in name or "unauthorized" in message:
        return AuthenticationError(
            "Vector store rejected the credentials", operation=operation, cause=error
        )
    if status == 403 or "Authorization" in name or "forbidden" in message:
        return AuthorizationError(
            "Vector store denied access", operation=operation, cause=error
        )
    if status == 404 or "NotFound" in name or "does not exist" in message:
        return ResourceNotFoundError(
            "Vector collection not found", operation=operation, cause=error
        )
    if status == 429 or "rate limit" in message:
        return RateLimitError("Vector store rate limit exceeded", operation=operation, cause=error)
    if (
        (status is not None and status >= 500)
        or isinstance(error, ConnectionError)
        or any(marker in message for marker in NETWORK_MESSAGE_MARKERS)
    ):
        return TransientNetworkError(
            "Vector store unavailable", operation=operation, cause=error
        )
    if isinstance(error, ValueError) and "where" in message:
        return FilterValidationError(
            "Vector store rejected the metadata filter", operation=operation, cause=error
        )
    return SearchError(f"Vector store failed during {operation}", operation=operation, cause=error)


class VectorStore:
    """Query adapter over a pre-populated ChromaDB collection.

    Record vectors are produced elsewhere with the same embedding model the
    query path uses; this class only reads them (``upsert`` exists for seeding
    local collections and tests).
    """

    def __init__(
        self,
        persist_directory: str = "./data/vectordb",
        collection_name: str = "legacy-search",
        host: str | None = None,
        port: int = 8000,
        dimension: int = 1536,
        query_timeout: float = 15.0,
    ):
        """Initialize vector store.

        Args:
            persist_directory: Directory for persistent storage (local mode)
            collection_name: Name of the collection
            host: Remote Chroma host; when set, the HTTP client is used
            port: Remote Chroma port
            dimension: Vector dimension of the index
            query_timeout: Timeout in seconds for one Chroma call
        """
        import chromadb
        from chromadb.config import Settings as ChromaSettings

        self.persist_directory = persist_directory
        self.collection_name = collection_name
        self.host = host
        self.port = port
        self.dimension = dimension
        self.query_timeout = query_timeout

        chroma_settings = ChromaSettings(anonymized_telemetry=False)
        if host:
            self._client = chromadb.HttpClient(host=host, port=port, settings=chroma_settings)
            location = f"{host}:{port}"
        else:
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=chroma_settings,
            )
            location = persist_directory

        # Embeddings always come from OpenAI, so no embedding function is attached
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

        logger.info(
            f"Initialized VectorStore with collection '{collection_name}' at '{location}'"
        )

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        """Run a blocking Chroma call in a worker thread under the query timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func), timeout=self.query_timeout)
        except Exception as e:
            error = translate_chroma_error(e, operation)
            if error is e:
                raise
            raise error from e

    def validate_dimension(self, vector: list[float], operation: str = "vector_query") -> None:
        """Raise DimensionMismatchError unless vector matches the index dimension."""
        if len(vector) != self.dimension:
            raise DimensionMismatchError(
                f"Vector dimension mismatch: expected {self.dimension}, got {len(vector)}",
                operation=operation,
                details={"expected": self.dimension, "actual": len(vector)},
            )

    async def query(
        self,
        vector: list[float],
        filter: Mapping[str, Any] | None = None,
        top_k: int = 10,
    ) -> list[RawHit]:
        """Perform filtered similarity search.

        Args:
            vector: Query embedding vector
            filter: Flat metadata filter (``$eq/$gte/$lte/$in``)
            top_k: Number of results to return

        Returns:
            list[RawHit]: Hits ordered by similarity (descending)

        Raises:
            ValueError: If vector is empty or top_k is invalid
            SearchError: Typed translation of any Chroma failure
        """
        if not vector:
            raise ValueError("Query vector cannot be empty")
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        self.validate_dimension(vector)

        where = to_chroma_where(filter) if filter else None
        filter_keys = ",".join(sorted(filter)) if filter else None
        start = time.perf_counter()

        try:
            results = await self._run(
                "vector_query",
                lambda: self._collection.query(
                    query_embeddings=[vector],
                    n_results=top_k,
                    where=where,
                    include=["metadatas", "documents", "distances"],
                ),
            )
        except SearchError as e:
            log_operation_metrics(
                logger,
                "vector_query",
                (time.perf_counter() - start) * 1000,
                error=e,
                collection=self.collection_name,
                top_k=top_k,
                filters=filter_keys,
            )
            raise

        hits = []
        ids = results.get("ids") or [[]]
        if ids and ids[0]:
            metadatas = (results.get("metadatas") or [[]])[0]
            documents = (results.get("documents") or [[]])[0]
            distances = (results.get("distances") or [[]])[0]
            for i, record_id in enumerate(ids[0]):
                # Chroma cosine distance = 1 - cosine_similarity
                distance = distances[i] if i < len(distances) else 1.0
                score = max(0.0, min(1.0, 1.0 - distance))
                hits.append(
                    RawHit(
                        id=record_id,
                        score=score,
                        metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
                        document=documents[i] if i < len(documents) else None,
                    )
                )

        log_operation_metrics(
            logger,
            "vector_query",
            (time.perf_counter() - start) * 1000,
            collection=self.collection_name,
            top_k=top_k,
            filters=filter_keys,
            results=len(hits),
        )
        return hits

    async def upsert(self, records: list[VectorRecord]) -> int:
        """Insert or replace record vectors.

        Args:
            records: Records to store

        Returns:
            int: Number of records written

        Raises:
            ValueError: If records list is empty
        """
        if not records:
            raise ValueError("Cannot upsert empty records list")

        ids = []
        embeddings = []
        metadatas = []
        documents = []
        for record in records:
            self.validate_dimension(record.embedding, operation="upsert")
            ids.append(record.id)
            embeddings.append(record.embedding)
            documents.append(record.document or "")

            # Chroma accepts only str, int, float, bool metadata values (no None)
            metadata: dict[str, Any] = {}
            for key, value in record.metadata.items():
                if value is None:
                    continue
                elif isinstance(value, (str, int, float, bool)):
                    metadata[key] = value
                else:
                    metadata[key] = str(value)
            metadatas.append(metadata)

        await self._run(
            "upsert",
            lambda: self._collection.upsert(
                ids=ids,
                embeddings=embeddings,
                metadatas=metadatas,
                documents=documents,
            ),
        )
        logger.info(f"Upserted {len(ids)} records into '{self.collection_name}'")
        return len(ids)

    async def count(self) -> int:
        """Count records in the collection."""
        return await self._run("count", self._collection.count)

    async def index_dimension(self) -> int | None:
        """Dimension of the stored vectors, or None for an empty collection."""
        sample = await self._run("peek", lambda: self._collection.get(limit=1, include=["embeddings"]))
        embeddings = sample.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    async def describe(self) -> dict[str, Any]:
        """Collection diagnostics: name, location, count, and dimension check."""
        count = await self.count()
        stored_dimension = await self.index_dimension()
        return {
            "collection": self.collection_name,
            "location": f"{self.host}:{self.port}" if self.host else self.persist_directory,
            "count": count,
            "expected_dimension": self.dimension,
            "index_dimension": stored_dimension,
            "dimension_ok": stored_dimension is None or stored_dimension == self.dimension,
        }
