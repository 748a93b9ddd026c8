"""Consumer-facing document service: upload, search, list, delete, reprocess.

This is the single entry point outer surfaces (the CLI, a web handler, the
agent tool, the context assembler) use.  It owns no pipeline logic itself:

* uploads are registered, their raw bytes retained on disk, and handed to
  :class:`~src.services.ingestion.ingestion_service.IngestionService`;
* searches embed the query with the provider each document was embedded
  with, run :class:`~src.services.retrieval.vector_search.VectorSearchEngine`
  per provider, and merge the hits;
* deletes cascade registry -> vectors -> raw file;
* reprocessing starts a new revision from the retained raw bytes.

Every operation resolves the scope's effective configuration through
:class:`~src.config.loader.ScopedConfigResolver`, so per-scope overrides
apply to chunking, extraction and retrieval alike.
"""

from __future__ import annotations

import uuid

from src.config.loader import ScopedConfigResolver
from src.interfaces.document_registry import IDocumentRegistry
from src.models.content import resolve_content_kind
from src.models.document import Document, UploadedFile
from src.models.rag import RankedChunk
from src.providers.file_store.local_file_store import LocalFileStore
from src.services.embedding_service import EmbeddingService
from src.services.ingestion.ingestion_service import IngestionService
from src.services.retrieval.resilient_store import ResilientVectorStore
from src.services.retrieval.vector_search import VectorSearchEngine
from src.utils.errors import (
    DocumentNotFoundError,
    DocumentPipelineError,
    UnsupportedInputError,
)
from src.utils.logging import get_logger


class DocumentService:
    """Manage documents within scopes and search their content.

    Parameters
    ----------
    registry:
        Document and chunk system of record.
    ingestion_service:
        Runs the extract -> chunk -> embed -> store pipeline.
    embedding_service:
        Embeds search queries with the corpus's provider.
    search_engine:
        Ranks a scope's vectors against a query vector.
    vector_store:
        Used for best-effort vector deletion.
    config_resolver:
        Resolves each scope's effective pipeline configuration.
    file_store:
        Optional raw-upload store; without it documents cannot be reprocessed.
    """

    def __init__(
        self,
        registry: IDocumentRegistry,
        ingestion_service: IngestionService,
        embedding_service: EmbeddingService,
        search_engine: VectorSearchEngine,
        vector_store: ResilientVectorStore,
        config_resolver: ScopedConfigResolver,
        file_store: LocalFileStore | None = None,
    ) -> None:
        self._registry = registry
        self._ingestion = ingestion_service
        self._embedding = embedding_service
        self._search_engine = search_engine
        self._vector_store = vector_store
        self._config_resolver = config_resolver
        self._file_store = file_store
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Upload / reprocess
    # ------------------------------------------------------------------

    async def upload_document(self, file: UploadedFile, scope: str) -> Document:
        """Register *file* in *scope* and run it through the pipeline.

        Returns the Document in its terminal state (``completed`` or
        ``failed``).  Pipeline failures are reported on the Document.
        """
        document = Document(
            id=str(uuid.uuid4()),
            filename=file.filename,
            size=file.size,
            content_type=file.content_type,
            content_kind=resolve_content_kind(file.content_type, file.filename),
            scope=scope,
        )

        if self._file_store is not None and file.data:
            try:
                storage_path = await self._file_store.save(
                    scope, document.id, file.filename, file.data
                )
                document = document.model_copy(update={"storage_path": storage_path})
            except OSError as exc:
                # Ingestion still runs; only reprocessing is lost.
                self._logger.warning(
                    "upload_retention_failed", document_id=document.id, error=str(exc)
                )

        await self._registry.put(document)
        self._logger.info(
            "document_uploaded",
            document_id=document.id,
            scope=scope,
            filename=file.filename,
            size=file.size,
            content_kind=document.content_kind.value,
        )
        return await self._ingestion.process(
            document, file.data, config=self._config_resolver.resolve(scope)
        )

    async def reprocess_document(self, document_id: str) -> Document:
        """Run a stored upload through the pipeline again as a new revision.

        The previous chunk set stays searchable until the new one commits.

        Raises
        ------
        DocumentNotFoundError
            Unknown document id.
        InvalidStateTransitionError
            The document is still being processed.
        UnsupportedInputError
            The raw upload was not retained or is gone.
        """
        document = await self.get_document(document_id)
        pending = document.begin_revision()

        if self._file_store is None or not document.storage_path:
            raise UnsupportedInputError(
                f"Document {document_id} has no retained upload to reprocess"
            )
        try:
            data = await self._file_store.load(document.storage_path)
        except FileNotFoundError as exc:
            raise UnsupportedInputError(
                f"Raw upload for document {document_id} is missing: {document.storage_path}"
            ) from exc

        await self._registry.put(pending)
        self._logger.info(
            "document_reprocessing", document_id=document_id, revision=pending.revision
        )
        return await self._ingestion.process(
            pending, data, config=self._config_resolver.resolve(document.scope)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document:
        document = await self._registry.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def list_documents(self, scope: str) -> list[Document]:
        """Return every document in *scope*, oldest first, failed ones included."""
        documents = []
        for document_id in await self._registry.list_ids(scope):
            document = await self._registry.get(document_id)
            if document is not None:
                documents.append(document)
        return documents

    async def search_documents(
        self, query: str, scope: str, limit: int | None = None
    ) -> list[RankedChunk]:
        """Return the chunks in *scope* most similar to *query*, best first.

        Each document's vectors are only compared with a query embedded by
        the same provider.  A scope whose documents were embedded by
        different providers is searched once per provider and the hits are
        merged by score.  Returns ``[]`` when nothing clears the similarity
        floor, nothing is indexed, or the vector store is unavailable.
        """
        query = query.strip()
        if not query:
            return []

        retrieval = self._config_resolver.resolve(scope).retrieval
        limit = retrieval.default_limit if limit is None else limit
        if limit <= 0:
            return []

        providers: list[str] = []
        for document in await self.list_documents(scope):
            # Documents mid-reprocess keep their previous provider and chunk set.
            if document.embedding_provider and document.chunk_count > 0:
                if document.embedding_provider not in providers:
                    providers.append(document.embedding_provider)
        if not providers:
            self._logger.debug("search_no_indexed_documents", scope=scope)
            return []

        merged: dict[str, RankedChunk] = {}
        for provider in providers:
            try:
                query_embedding = await self._embedding.embed_query(query, provider=provider)
            except DocumentPipelineError as exc:
                self._logger.warning(
                    "search_query_embedding_failed", provider=provider, error=str(exc)
                )
                continue
            hits = await self._search_engine.search(
                query_embedding.vectors[0],
                scope,
                limit=limit,
                provider=provider,
                config=retrieval,
            )
            for hit in hits:
                merged.setdefault(hit.chunk.id, hit)

        results = sorted(
            merged.values(),
            key=lambda r: (-r.score, r.chunk.position, r.chunk.id),
        )[:limit]
        self._logger.info(
            "document_search_complete",
            scope=scope,
            providers=providers,
            results=len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> Document:
        """Delete a document, its chunks, its vectors and its raw upload.

        The registry row goes first, so the document disappears from
        listings and search immediately; vector and file cleanup are best
        effort.

        Raises
        ------
        DocumentNotFoundError
            Unknown document id.
        """
        document = await self.get_document(document_id)
        await self._registry.delete(document_id)
        vectors_removed = await self._vector_store.delete_document(document_id)

        file_removed = False
        if self._file_store is not None and document.storage_path:
            try:
                file_removed = await self._file_store.delete(document.storage_path)
            except OSError as exc:
                self._logger.warning(
                    "upload_delete_failed", document_id=document_id, error=str(exc)
                )

        self._logger.info(
            "document_deleted",
            document_id=document_id,
            scope=document.scope,
            vectors_removed=vectors_removed,
            file_removed=file_removed,
        )
        return document
