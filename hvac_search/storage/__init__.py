"""Vector database components."""

from hvac_search.storage.vector_store import VectorRecord, VectorStore

__all__ = [
    "VectorRecord",
    "VectorStore",
]
