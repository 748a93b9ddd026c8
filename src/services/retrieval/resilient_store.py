"""Availability-aware, batch-isolated writes to the vector store.

The vector store is an external service that can be down when a document
is ingested.  Rather than failing the upload, :class:`ResilientVectorStore`
checks the store first:

* **unavailable** -> nothing is written, the report says ``degraded`` and
  the document still completes; search in that scope returns ``[]`` until
  the store is back and the document is reprocessed.
* **available** -> the dimension's collection is ensured, then records are
  upserted in batches (default 50).  A failed batch is recorded and the
  remaining batches still run.

Every write returns an :class:`IndexReport` with one
:class:`StoreBatchResult` per batch, which the ingestion service persists
on the Document.
"""

from __future__ import annotations

import asyncio

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import IndexReport, IndexStatus, StoreBatchResult
from src.models.rag import VectorRecord
from src.utils.errors import VectorStoreError
from src.utils.logging import get_logger

_DEFAULT_BATCH_SIZE = 50


class ResilientVectorStore:
    """Wraps an :class:`IVectorStoreProvider` with probing and batch isolation."""

    def __init__(
        self,
        store: IVectorStoreProvider,
        collection_prefix: str = "document_chunks",
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> None:
        self._store = store
        self._prefix = collection_prefix
        self._batch_size = max(1, batch_size)
        self._logger = get_logger(__name__)

    @property
    def store(self) -> IVectorStoreProvider:
        return self._store

    def collection_for(self, dimension: int) -> str:
        return f"{self._prefix}_{dimension}d"

    async def is_available(self) -> bool:
        """Check the store in a worker thread (the heartbeat may block on I/O)."""
        try:
            return await asyncio.to_thread(self._store.is_available)
        except Exception as exc:
            self._logger.warning("vector_store_availability_check_failed", error=str(exc))
            return False

    async def write(
        self, records: list[VectorRecord], batch_size: int | None = None
    ) -> IndexReport:
        """Store *records* (all of one dimension) and report per-batch outcomes."""
        if not records:
            return IndexReport(status=IndexStatus.INDEXED)

        if not await self.is_available():
            self._logger.warning(
                "vector_store_unavailable_degraded", record_count=len(records)
            )
            return IndexReport(
                status=IndexStatus.DEGRADED, reason="vector store unavailable"
            )

        dimensions = {r.dimension for r in records}
        if len(dimensions) != 1:
            raise VectorStoreError(
                message=f"Mixed vector dimensions in one write: {sorted(dimensions)}",
                provider_name=self._store.get_provider_name(),
            )
        dimension = dimensions.pop()
        collection = self.collection_for(dimension)

        try:
            await self._store.ensure_collection(collection, dimension)
        except VectorStoreError as exc:
            self._logger.error(
                "vector_store_collection_failed", collection=collection, error=str(exc)
            )
            return IndexReport(
                status=IndexStatus.DEGRADED, collection=collection, reason=str(exc)
            )

        size = max(1, batch_size or self._batch_size)
        batches: list[StoreBatchResult] = []
        for batch_index, start in enumerate(range(0, len(records), size)):
            batch = records[start : start + size]
            try:
                await self._store.upsert(collection, batch)
                batches.append(
                    StoreBatchResult(batch_index=batch_index, size=len(batch), stored=True)
                )
            except Exception as exc:
                self._logger.warning(
                    "vector_store_batch_failed",
                    collection=collection,
                    batch_index=batch_index,
                    size=len(batch),
                    error=str(exc),
                )
                batches.append(
                    StoreBatchResult(
                        batch_index=batch_index, size=len(batch), stored=False, error=str(exc)
                    )
                )

        stored = sum(1 for b in batches if b.stored)
        if stored == len(batches):
            status, reason = IndexStatus.INDEXED, None
        elif stored == 0:
            status, reason = IndexStatus.DEGRADED, "every batch failed"
        else:
            status = IndexStatus.PARTIAL
            reason = f"{len(batches) - stored} of {len(batches)} batches failed"

        report = IndexReport(
            status=status, collection=collection, batches=batches, reason=reason
        )
        self._logger.info(
            "vector_store_write_complete",
            collection=collection,
            status=status.value,
            records_stored=report.records_stored,
            batches=len(batches),
        )
        return report

    async def delete_records(self, chunk_ids: list[str]) -> int:
        """Best-effort removal of superseded vectors; 0 when the store is down."""
        if not chunk_ids or not await self.is_available():
            return 0
        try:
            return await self._store.delete_records(chunk_ids)
        except Exception as exc:
            self._logger.warning("vector_store_delete_failed", error=str(exc))
            return 0

    async def delete_document(self, document_id: str) -> int:
        """Best-effort removal of a document's vectors; 0 when the store is down."""
        if not await self.is_available():
            return 0
        try:
            return await self._store.delete_document(document_id)
        except Exception as exc:
            self._logger.warning(
                "vector_store_delete_failed", document_id=document_id, error=str(exc)
            )
            return 0
