"""Raw vector-store match shared by the storage and retrieval layers."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RawHit:
    """One match returned by a vector similarity query.

    Produced by the vector store per query and consumed immediately by
    the result normalizer; never persisted.

    Attributes:
        id: Record identifier in the index
        score: Similarity score in [0, 1] (higher is better)
        metadata: Record metadata exactly as stored (domain-specific keys)
        document: Stored document text, when the store keeps one
    """

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)
    document: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "score": self.score,
            "metadata": self.metadata,
            "document": self.document,
        }
