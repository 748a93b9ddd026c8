"""Composition root for the document pipeline.

Wires together all providers and services via dependency injection.
Configuration comes from ``.env`` / environment variables (``Settings``)
and ``config/config.yaml`` (per-scope overrides).

Outer surfaces (the CLI in ``src/cli/documents.py``, or a web handler)
call :func:`build_components` once per process, ``await``
:func:`initialize_components` and then use ``components["document_service"]``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.config.loader import ScopedConfigResolver
from src.config.settings import Settings
from src.interfaces.document_registry import IDocumentRegistry
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.extraction_method import IExtractionMethod
from src.models.config import ExtractionMethodName, PipelineConfig
from src.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from src.providers.embedding.local_model_provider import LocalModelEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)
from src.providers.extraction.basic_provider import BasicExtractor
from src.providers.extraction.ollama_vision_provider import OllamaVisionExtractor
from src.providers.extraction.pure_python_provider import PurePythonExtractor
from src.providers.extraction.pymupdf_provider import PyMuPDFExtractor
from src.providers.extraction.unstructured_api_provider import UnstructuredAPIExtractor
from src.providers.file_store.local_file_store import LocalFileStore
from src.providers.registry.memory_document_registry import MemoryDocumentRegistry
from src.providers.registry.sqlite_document_registry import SQLiteDocumentRegistry
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.context_assembler import ContextAssembler
from src.services.document_service import DocumentService
from src.services.embedding_service import EmbeddingService
from src.services.extraction.extraction_chain import ExtractionChain
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.retrieval.resilient_store import ResilientVectorStore
from src.services.retrieval.vector_search import VectorSearchEngine
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# HTTP timeout for extraction services.  The per-method budget in
# ExtractionConfig.timeout_seconds is what actually bounds an attempt.
_HTTP_TIMEOUT_SECONDS = 30.0


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_local_embedding_provider(app_settings: Settings) -> LocalModelEmbeddingProvider:
    """Pick the in-process embedding backend (fastembed by default)."""
    if app_settings.local_embedding_backend == "sentence_transformers":
        return SentenceTransformerEmbeddingProvider(app_settings.local_embedding_model)
    return FastEmbedEmbeddingProvider(app_settings.local_embedding_model)


def _build_remote_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    """Build the remote provider in ``remote`` mode.

    It is built even without an API key: it then reports itself unavailable
    and every request falls back to the local model.
    """
    if app_settings.embedding_mode != "remote":
        return None
    return OpenAIEmbeddingProvider(settings=app_settings)


def _build_extraction_methods(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> list[IExtractionMethod]:
    """Construct every extraction method; the configured order picks among them."""
    return [
        UnstructuredAPIExtractor(
            http_client=http_client,
            api_url=app_settings.unstructured_api_url,
            method_name=ExtractionMethodName.UNSTRUCTURED_HOSTED.value,
            api_key=app_settings.unstructured_api_key,
            requires_api_key=True,
            strategy=app_settings.unstructured_strategy,
        ),
        UnstructuredAPIExtractor(
            http_client=http_client,
            api_url=app_settings.unstructured_local_url,
            method_name=ExtractionMethodName.UNSTRUCTURED_LOCAL.value,
            strategy=app_settings.unstructured_strategy,
        ),
        PyMuPDFExtractor(),
        PurePythonExtractor(),
        OllamaVisionExtractor(
            http_client=http_client,
            base_url=app_settings.ollama_base_url,
            model=app_settings.ollama_vision_model,
        ),
        BasicExtractor(),
    ]


def _build_registry(app_settings: Settings) -> IDocumentRegistry:
    if app_settings.registry_db_path == ":memory:":
        return MemoryDocumentRegistry()
    return SQLiteDocumentRegistry(db_path=app_settings.registry_db_path)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components.  Nothing here touches the
    network or disk; call :func:`initialize_components` before use.
    """
    s = custom_settings or Settings()
    resolver = ScopedConfigResolver.from_settings(s)
    defaults: PipelineConfig = resolver.default

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=_HTTP_TIMEOUT_SECONDS)

    # -- Persistence --
    registry = _build_registry(s)
    file_store = LocalFileStore(root=s.upload_dir)
    chroma = ChromaDBProvider(
        persist_directory=s.chromadb_persist_dir,
        collection_prefix=s.chromadb_collection,
        host=s.chromadb_host,
        port=s.chromadb_port,
    )
    vector_store = ResilientVectorStore(
        store=chroma,
        collection_prefix=s.chromadb_collection,
        batch_size=defaults.retrieval.store_batch_size,
    )

    # -- Embeddings --
    embedding_service = EmbeddingService(
        local_provider=_build_local_embedding_provider(s),
        remote_provider=_build_remote_embedding_provider(s),
        mode=s.embedding_mode,
    )

    # -- Pipeline --
    extraction_chain = ExtractionChain(
        methods=_build_extraction_methods(s, http_client), config=defaults.extraction
    )
    chunker = TextChunker(config=defaults.chunking)
    ingestion_service = IngestionService(
        extraction_chain=extraction_chain,
        chunker=chunker,
        embedding_service=embedding_service,
        vector_store=vector_store,
        registry=registry,
        config=defaults,
    )
    search_engine = VectorSearchEngine(
        vector_store=chroma, registry=registry, config=defaults.retrieval
    )
    document_service = DocumentService(
        registry=registry,
        ingestion_service=ingestion_service,
        embedding_service=embedding_service,
        search_engine=search_engine,
        vector_store=vector_store,
        config_resolver=resolver,
        file_store=file_store,
    )
    context_assembler = ContextAssembler(
        document_service=document_service,
        max_context_chunks=defaults.retrieval.max_context_chunks,
        config_resolver=resolver,
    )

    _logger.info(
        "components_built",
        embedding_mode=s.embedding_mode,
        local_embedding_backend=s.local_embedding_backend,
        extraction_methods=[m.value for m in defaults.extraction.methods],
        chromadb_host=s.chromadb_host or None,
    )

    return {
        "settings": s,
        "config_resolver": resolver,
        "http_client": http_client,
        "registry": registry,
        "file_store": file_store,
        "vector_store": vector_store,
        "embedding_service": embedding_service,
        "extraction_chain": extraction_chain,
        "ingestion_service": ingestion_service,
        "search_engine": search_engine,
        "document_service": document_service,
        "context_assembler": context_assembler,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create registry tables.  Idempotent."""
    await components["registry"].initialize()


async def close_components(components: dict[str, Any]) -> None:
    """Release network resources held by the components."""
    await components["http_client"].aclose()
