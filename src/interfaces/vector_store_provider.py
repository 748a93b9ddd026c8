"""Abstract base class for vector-store service providers.

Defines the contract for storing and reading embedded chunk vectors.  The
store is an external collaborator that may be down at any moment; callers
go through :class:`~src.services.retrieval.resilient_store.ResilientVectorStore`
which checks :meth:`IVectorStoreProvider.is_available` first and isolates
per-batch failures.

Vectors of different dimensions never share a collection: callers derive a
collection name per dimension and call :meth:`ensure_collection` before
writing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.rag import VectorRecord


class StoredVector:
    """A vector read back from the store with its scalar metadata."""

    __slots__ = ("chunk_id", "embedding", "metadata")

    def __init__(self, chunk_id: str, embedding: list[float], metadata: dict[str, Any]) -> None:
        self.chunk_id = chunk_id
        self.embedding = embedding
        self.metadata = metadata

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    def __repr__(self) -> str:
        return f"StoredVector(chunk_id={self.chunk_id!r}, dimension={self.dimension})"


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by ingestion and search.

    All data methods are async so network-backed stores never block the
    event loop.  ``filters`` are flat equality filters on record metadata,
    e.g. ``{"scope": "chat-42"}`` or ``{"document_id": "..."}``.
    """

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int) -> None:
        """Create collection *name* for vectors of *dimension* if missing.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the collection exists with a different dimension.
        """

    @abstractmethod
    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        """Insert or replace *records* in *collection*, keyed by chunk id.

        Returns
        -------
        int
            Number of records written.
        """

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        filters: dict[str, Any] | None = None,
        limit: int = 10,
    ) -> list[StoredVector]:
        """Return up to *limit* nearest candidates from the collection matching
        the vector's dimension, using the store's native index."""

    @abstractmethod
    async def fetch_scope(self, scope: str) -> list[StoredVector]:
        """Return every stored vector tagged with *scope*, across collections."""

    @abstractmethod
    async def delete_records(self, chunk_ids: list[str]) -> int:
        """Delete the given chunk ids from every collection; returns count removed."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> int:
        """Delete every vector belonging to *document_id*; returns count removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier for this store, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable right now.

        May perform a lightweight network round trip (heartbeat), so async
        callers should run it in a worker thread.
        """
