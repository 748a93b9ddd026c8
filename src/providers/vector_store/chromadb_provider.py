"""ChromaDB vector store provider adapter.

Wraps a ChromaDB client to implement :class:`IVectorStoreProvider`.  Runs
against local files (``chromadb.PersistentClient``) by default, or against
a Chroma server (``chromadb.HttpClient``) when ``CHROMADB_HOST`` is set.

Vectors of different dimensions live in different collections named
``<prefix>_<dimension>d`` (e.g. ``document_chunks_384d``), so a corpus
embedded locally and one embedded remotely can coexist without Chroma
rejecting mixed-dimension writes.  Only vectors and scalar metadata are
stored; chunk text lives in the document registry.
"""

from __future__ import annotations

import os
from typing import Any

# ChromaDB reads this before its telemetry client starts.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredVector
from src.models.rag import VectorRecord
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    All vectors are computed by the embedding adapter and passed explicitly,
    so ChromaDB's built-in embedding is never invoked.  Without this, ChromaDB
    downloads and loads its default ONNX model on collection creation.
    """

    def __init__(self) -> None:
        pass

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Vectors are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    @staticmethod
    def name() -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB, one collection per dimension.

    Parameters
    ----------
    persist_directory:
        Local storage path for the embedded (file) client.
    collection_prefix:
        Base collection name; the dimension is appended.
    host, port:
        When *host* is set, connect to a Chroma server instead.
    client:
        Pre-built client (tests inject ``chromadb.EphemeralClient()``).
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_prefix: str = "document_chunks",
        host: str = "",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._prefix = collection_prefix
        self._host = host
        self._port = port
        self._client = client
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Client / collection handling
    # ------------------------------------------------------------------

    def _get_client(self) -> Any:
        # Created lazily: an HTTP client contacts the server on construction,
        # and the server may be down when the application starts.
        if self._client is None:
            settings = chromadb.config.Settings(anonymized_telemetry=False)
            if self._host:
                self._client = chromadb.HttpClient(
                    host=self._host, port=self._port, settings=settings
                )
            else:
                self._client = chromadb.PersistentClient(
                    path=self._persist_directory, settings=settings
                )
        return self._client

    def collection_name(self, dimension: int) -> str:
        return f"{self._prefix}_{dimension}d"

    def _open_collection(self, name: str, dimension: int) -> Any:
        metadata = {"hnsw:space": "cosine", "dimension": dimension}
        client = self._get_client()
        try:
            return client.get_or_create_collection(
                name=name, metadata=metadata, embedding_function=_NoopEmbeddingFunction()
            )
        except ValueError:
            # The collection was persisted with a different embedding
            # function; open it with whatever Chroma has on record.
            return client.get_or_create_collection(name=name, metadata=metadata)

    def _own_collections(self) -> list[Any]:
        client = self._get_client()
        collections = []
        for entry in client.list_collections():
            # Older Chroma releases return Collection objects, newer ones names.
            name = getattr(entry, "name", entry)
            if not str(name).startswith(f"{self._prefix}_"):
                continue
            if name not in self._collections:
                self._collections[name] = client.get_collection(name=name)
            collections.append(self._collections[name])
        return collections

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self, name: str, dimension: int) -> None:
        try:
            collection = self._open_collection(name, dimension)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Cannot open collection '{name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        stored_dim = (collection.metadata or {}).get("dimension")
        if stored_dim is not None and int(stored_dim) != dimension:
            raise VectorStoreError(
                message=(
                    f"Collection '{name}' holds {stored_dim}-dim vectors, "
                    f"refusing {dimension}-dim writes"
                ),
                provider_name=self.get_provider_name(),
            )
        self._collections[name] = collection

    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        handle = self._collections.get(collection)
        if handle is None:
            raise VectorStoreError(
                message=f"Collection '{collection}' was not initialised",
                provider_name=self.get_provider_name(),
            )
        try:
            handle.upsert(
                ids=[r.chunk_id for r in records],
                embeddings=[r.embedding for r in records],
                metadatas=[r.store_metadata() for r in records],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("chromadb_upsert", collection=collection, count=len(records))
        return len(records)

    async def search(
        self,
        vector: list[float],
        filters: dict[str, Any] | None = None,
        limit: int = 10,
    ) -> list[StoredVector]:
        try:
            name = self.collection_name(len(vector))
            existing = {getattr(c, "name", c) for c in self._get_client().list_collections()}
            if name not in existing:
                return []
            handle = self._collections.get(name) or self._get_client().get_collection(name=name)
            count = handle.count()
            if count == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(limit, count),
                "include": ["embeddings", "metadatas"],
            }
            where = self._translate_filters(filters)
            if where:
                kwargs["where"] = where
            results = handle.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        embeddings = results["embeddings"][0] if results.get("embeddings") is not None else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        return [
            StoredVector(chunk_id, [float(x) for x in emb], dict(meta or {}))
            for chunk_id, emb, meta in zip(ids, embeddings, metadatas)
        ]

    async def fetch_scope(self, scope: str) -> list[StoredVector]:
        try:
            stored: list[StoredVector] = []
            for handle in self._own_collections():
                offset = 0
                while True:
                    page = handle.get(
                        where={"scope": scope},
                        include=["embeddings", "metadatas"],
                        limit=_PAGE_SIZE,
                        offset=offset,
                    )
                    ids = page["ids"] or []
                    embeddings = page["embeddings"] if page["embeddings"] is not None else []
                    metadatas = page["metadatas"] or [{}] * len(ids)
                    for chunk_id, emb, meta in zip(ids, embeddings, metadatas):
                        stored.append(
                            StoredVector(chunk_id, [float(x) for x in emb], dict(meta or {}))
                        )
                    if len(ids) < _PAGE_SIZE:
                        break
                    offset += _PAGE_SIZE
            return stored
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB scope fetch failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_records(self, chunk_ids: list[str]) -> int:
        if not chunk_ids:
            return 0
        try:
            deleted = 0
            for handle in self._own_collections():
                existing = handle.get(ids=chunk_ids, include=[])
                if existing["ids"]:
                    handle.delete(ids=existing["ids"])
                    deleted += len(existing["ids"])
            return deleted
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_records failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_document(self, document_id: str) -> int:
        try:
            deleted = 0
            for handle in self._own_collections():
                existing = handle.get(where={"document_id": document_id}, include=[])
                if existing["ids"]:
                    handle.delete(ids=existing["ids"])
                    deleted += len(existing["ids"])
            logger.info("chromadb_delete_document", document_id=document_id, deleted=deleted)
            return deleted
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._get_client().heartbeat()
            return True
        except Exception as exc:
            logger.warning("chromadb_unavailable", error=str(exc))
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _translate_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
        """Translate flat equality filters into a ChromaDB ``where`` clause."""
        if not filters:
            return None
        clauses = [{key: value} for key, value in filters.items() if value is not None]
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
