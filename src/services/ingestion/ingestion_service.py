"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> chunk -> embed -> store -> commit**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the extraction chain, chunker, embedding service, resilient
vector store and document registry without any of them knowing about each
other.  One call to :meth:`IngestionService.process` runs every stage for
one Document revision, sequentially:

    1. ExtractionChain -- bytes -> Elements (never raises; a diagnostic
       element stands in when every method fails)
    2. TextChunker -- Elements -> ordered Chunks
    3. EmbeddingService -- chunk text -> vectors (remote, then local)
    4. ResilientVectorStore -- batched upserts, IndexReport
    5. IDocumentRegistry.replace_chunks -- atomic swap of the live chunk set

The Document moves ``pending -> processing -> completed | failed`` and is
persisted at each transition, so callers polling the registry always see
where a run stands.  Only exhaustion of a stage (every embedding provider
failed, nothing chunkable, the registry refused the commit) fails the
Document; per-method and per-batch failures are absorbed at their stage.

All dependencies are injected via constructor (Dependency Injection), so
providers can be swapped without changing this class.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.document_registry import IDocumentRegistry
from src.models.config import ChunkingStrategy, PipelineConfig
from src.models.document import Document, IndexReport, IndexStatus, ProcessingState
from src.models.rag import Chunk, EmbeddingResult, VectorRecord
from src.services.embedding_service import EmbeddingService
from src.services.extraction.extraction_chain import ExtractionChain
from src.services.ingestion.chunker import TextChunker
from src.services.retrieval.resilient_store import ResilientVectorStore
from src.utils.errors import DocumentNotFoundError, DocumentPipelineError, UnsupportedInputError
from src.utils.logging import bind_pipeline_context

logger = structlog.get_logger(logger_name=__name__)

_DELETED_ERROR = "Document was deleted during processing"


class IngestionService:
    """Runs one Document revision through extract -> chunk -> embed -> store.

    Parameters
    ----------
    extraction_chain:
        Ordered extraction methods with per-method timeouts.
    chunker:
        Splits extracted elements into ordered chunks.
    embedding_service:
        Vectorises chunk text, falling back from remote to local.
    vector_store:
        Availability-probing, batch-isolating wrapper around the vector store.
    registry:
        System of record for documents and their live chunks.
    config:
        Process-wide pipeline defaults; callers may pass a per-scope
        config to :meth:`process`.
    """

    def __init__(
        self,
        extraction_chain: ExtractionChain,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        vector_store: ResilientVectorStore,
        registry: IDocumentRegistry,
        config: PipelineConfig | None = None,
    ) -> None:
        self._extraction_chain = extraction_chain
        self._chunker = chunker
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._registry = registry
        self._config = config or PipelineConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process(
        self,
        document: Document,
        data: bytes,
        config: PipelineConfig | None = None,
    ) -> Document:
        """Process *document* (which must be PENDING) from its raw bytes.

        Returns the Document in a terminal state; it has already been
        persisted.  Stage failures, expected or not, are recorded on the
        returned Document as ``failed`` so it can be reprocessed, and are
        not raised.  A registry that cannot record the failure propagates.

        A document deleted while it is being processed stays deleted: no
        state is written back for it, and the returned Document is
        ``failed`` without being persisted.
        """
        cfg = config or self._config
        with bind_pipeline_context(document.id, document.scope, revision=document.revision):
            if not data:
                # Rejected before any stage runs.
                failed = document.transition(ProcessingState.FAILED, error="Upload is empty")
                await self._persist(failed)
                logger.warning("ingestion_rejected_empty_upload", filename=document.filename)
                return failed

            start = time.monotonic()
            processing = document.transition(ProcessingState.PROCESSING)
            if not await self._persist(processing):
                return processing.transition(ProcessingState.FAILED, error=_DELETED_ERROR)
            logger.info(
                "ingestion_started",
                filename=document.filename,
                size=document.size,
                content_kind=document.content_kind.value,
            )

            try:
                completed = await self._run_stages(processing, data, cfg)
            except DocumentNotFoundError:
                logger.info("ingestion_abandoned_document_deleted")
                return processing.transition(ProcessingState.FAILED, error=_DELETED_ERROR)
            except Exception as exc:
                failed = processing.transition(ProcessingState.FAILED, error=str(exc))
                await self._persist(failed)
                logger.error(
                    "ingestion_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    elapsed_seconds=round(time.monotonic() - start, 2),
                )
                return failed

            logger.info(
                "ingestion_completed",
                chunk_count=completed.chunk_count,
                extraction_method=completed.extraction_method,
                embedding_provider=completed.embedding_provider,
                index_status=completed.index_report.status.value
                if completed.index_report
                else None,
                elapsed_seconds=round(time.monotonic() - start, 2),
            )
            return completed

    async def _persist(self, document: Document) -> bool:
        """Write *document* unless it has been deleted; True when written."""
        if await self._registry.get(document.id) is None:
            logger.info("ingestion_document_deleted", state=document.processing_state.value)
            return False
        await self._registry.put(document)
        return True

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run_stages(
        self, document: Document, data: bytes, cfg: PipelineConfig
    ) -> Document:
        # Step 1: extract.
        outcome = await self._extraction_chain.extract(
            data,
            document.filename,
            document.content_type,
            kind=document.content_kind,
            config=cfg.extraction,
        )
        if not outcome.succeeded:
            logger.warning("ingestion_using_diagnostic_element", errors=outcome.errors)

        # Step 2: chunk.
        strategy = cfg.chunking.strategy
        if strategy == ChunkingStrategy.AUTO:
            strategy = self._chunker.detect_strategy(
                TextChunker.join_elements(outcome.elements), document.content_kind
            )
        chunks = self._chunker.chunk(
            outcome.elements,
            document.id,
            strategy=strategy,
            kind=document.content_kind,
            config=cfg.chunking,
        )
        if not chunks:
            raise UnsupportedInputError("No chunkable text was extracted")

        # Steps 3-4: embed and store, unless the store is down.
        previous_chunk_ids = [c.id for c in await self._registry.get_chunks(document.id)]
        embedding: EmbeddingResult | None = None
        if await self._vector_store.is_available():
            embedding = await self._embedding_service.embed([c.content for c in chunks])
            report = await self._vector_store.write(
                self._vector_records(document, chunks, embedding),
                batch_size=cfg.retrieval.store_batch_size,
            )
        else:
            logger.warning("ingestion_store_unavailable_skipping_embedding")
            report = IndexReport(status=IndexStatus.DEGRADED, reason="vector store unavailable")

        # Step 5: commit the new chunk set in one registry transaction.
        completed = document.model_copy(
            update={
                "chunk_count": len(chunks),
                "extraction_method": outcome.method,
                "extraction_errors": dict(outcome.errors),
                "chunking_strategy": strategy.value,
                "embedding_provider": embedding.provider if embedding else None,
                "embedding_dimension": embedding.dimension if embedding else None,
                "index_report": report,
            }
        ).transition(ProcessingState.COMPLETED)
        try:
            await self._registry.replace_chunks(completed, chunks)
        except DocumentNotFoundError:
            # Deleted while we were working; the new vectors belong to nobody.
            await self._vector_store.delete_records([c.id for c in chunks])
            raise
        except Exception as exc:
            # The new vectors will never be hydrated; drop them if we can.
            await self._vector_store.delete_records([c.id for c in chunks])
            raise DocumentPipelineError(
                message=f"Registry commit failed: {exc}",
                provider_name=self._registry.get_provider_name(),
            ) from exc

        # The previous revision's vectors are no longer live; clean them up.
        if previous_chunk_ids:
            removed = await self._vector_store.delete_records(previous_chunk_ids)
            logger.debug("ingestion_previous_vectors_removed", count=removed)
        return completed

    @staticmethod
    def _vector_records(
        document: Document, chunks: list[Chunk], embedding: EmbeddingResult
    ) -> list[VectorRecord]:
        return [
            VectorRecord(
                chunk_id=chunk.id,
                embedding=vector,
                document_id=document.id,
                position=chunk.position,
                scope=document.scope,
                provider=embedding.provider,
            )
            for chunk, vector in zip(chunks, embedding.vectors)
        ]
