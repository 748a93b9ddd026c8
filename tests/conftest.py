"""Shared pytest fixtures for the document pipeline test suite."""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from typing import Any

import pytest

from src.config.loader import ScopedConfigResolver
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.extraction_method import IExtractionMethod
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredVector
from src.models.content import ContentKind
from src.models.rag import Element, VectorRecord
from src.providers.extraction.basic_provider import BasicExtractor
from src.providers.registry.memory_document_registry import MemoryDocumentRegistry
from src.services.document_service import DocumentService
from src.services.embedding_service import EmbeddingService
from src.services.extraction.extraction_chain import ExtractionChain
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.retrieval.resilient_store import ResilientVectorStore
from src.services.retrieval.vector_search import VectorSearchEngine
from src.utils.errors import ProviderUnavailableError, VectorStoreError

_TOKEN = re.compile(r"[a-z0-9]+")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class VocabularyEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embedding for tests.

    Each distinct token gets its own axis the first time it is seen, so two
    texts with no words in common have cosine similarity exactly 0 and a
    text compared with itself scores 1.
    """

    def __init__(self, name: str = "local_vocab", dimension: int = 384) -> None:
        self._name = name
        self._dimension = dimension
        self._vocabulary: dict[str, int] = {}
        self.available = True
        self.error: Exception | None = None
        self.embed_calls = 0

    def _axis(self, token: str) -> int:
        if token not in self._vocabulary:
            self._vocabulary[token] = len(self._vocabulary) % self._dimension
        return self._vocabulary[token]

    def vector(self, text: str) -> list[float]:
        values = [0.0] * self._dimension
        for token in _TOKEN.findall(text.lower()):
            values[self._axis(token)] += 1.0
        norm = math.sqrt(sum(v * v for v in values))
        return [v / norm for v in values] if norm else values

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls += 1
        if self.error is not None:
            raise self.error
        return [self.vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self.available


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector store with an availability switch.

    ``failing_batches`` holds upsert call indexes (0-based) that raise, to
    exercise per-batch isolation.
    """

    def __init__(self) -> None:
        self.available = True
        self.failing_batches: set[int] = set()
        self.upsert_calls = 0
        self.collections: dict[str, dict[str, Any]] = {}

    async def ensure_collection(self, name: str, dimension: int) -> None:
        existing = self.collections.get(name)
        if existing is not None and existing["dimension"] != dimension:
            raise VectorStoreError(f"{name} holds {existing['dimension']}-dim vectors")
        self.collections.setdefault(name, {"dimension": dimension, "records": {}})

    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        call = self.upsert_calls
        self.upsert_calls += 1
        if call in self.failing_batches:
            raise VectorStoreError(f"simulated failure of batch {call}")
        store = self.collections[collection]["records"]
        for record in records:
            store[record.chunk_id] = StoredVector(
                record.chunk_id, list(record.embedding), record.store_metadata()
            )
        return len(records)

    async def search(
        self,
        vector: list[float],
        filters: dict[str, Any] | None = None,
        limit: int = 10,
    ) -> list[StoredVector]:
        filters = filters or {}
        matches = [
            stored
            for collection in self.collections.values()
            for stored in collection["records"].values()
            if stored.dimension == len(vector)
            and all(stored.metadata.get(k) == v for k, v in filters.items())
        ]
        matches.sort(key=lambda s: -sum(a * b for a, b in zip(s.embedding, vector)))
        return matches[:limit]

    async def fetch_scope(self, scope: str) -> list[StoredVector]:
        return [
            stored
            for collection in self.collections.values()
            for stored in collection["records"].values()
            if stored.metadata.get("scope") == scope
        ]

    async def delete_records(self, chunk_ids: list[str]) -> int:
        removed = 0
        for collection in self.collections.values():
            for chunk_id in chunk_ids:
                if collection["records"].pop(chunk_id, None) is not None:
                    removed += 1
        return removed

    async def delete_document(self, document_id: str) -> int:
        removed = 0
        for collection in self.collections.values():
            doomed = [
                cid
                for cid, stored in collection["records"].items()
                if stored.metadata.get("document_id") == document_id
            ]
            for cid in doomed:
                del collection["records"][cid]
            removed += len(doomed)
        return removed

    def record_count(self) -> int:
        return sum(len(c["records"]) for c in self.collections.values())

    def get_provider_name(self) -> str:
        return "memory_store"

    def is_available(self) -> bool:
        return self.available


class FailingExtractor(IExtractionMethod):
    """Extraction method that always fails like an unreachable service."""

    def __init__(self, name: str) -> None:
        self._name = name
        self.calls = 0

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        self.calls += 1
        raise ProviderUnavailableError("connection refused", provider_name=self._name)

    def supports(self, kind: ContentKind) -> bool:
        return kind != ContentKind.UNSUPPORTED

    def get_method_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


def make_paragraph(length: int, word: str) -> str:
    """Return a paragraph of exactly *length* characters built from sentences."""
    sentences = []
    index = 0
    while sum(len(s) for s in sentences) < length:
        sentences.append(f"The {word} passage sentence {index} adds detail. ")
        index += 1
    text = "".join(sentences)[: length - 1]
    if text.endswith(" "):
        text = text[:-1] + "x"
    return text + "."


SAMPLE_DOCUMENT = (
    "Photosynthesis converts sunlight into chemical energy inside plant leaves. "
    "Chlorophyll absorbs red and blue light while reflecting green light.\n\n"
    "The Calvin cycle fixes carbon dioxide into sugars. Enzymes such as "
    "rubisco drive the fixation step in the chloroplast stroma.\n\n"
    "Volcanic eruptions release ash and sulfur dioxide into the atmosphere. "
    "Large eruptions can cool global temperatures for several years."
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults only: no .env file, no API keys."""
    return Settings(_env_file=None, openai_api_key="", unstructured_api_key="")


@pytest.fixture
def local_embedder() -> VocabularyEmbeddingProvider:
    return VocabularyEmbeddingProvider(name="local_vocab", dimension=384)


@pytest.fixture
def remote_embedder() -> VocabularyEmbeddingProvider:
    return VocabularyEmbeddingProvider(name="remote_vocab", dimension=1536)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def registry() -> MemoryDocumentRegistry:
    return MemoryDocumentRegistry()


@pytest.fixture
def build_document_service(
    test_settings: Settings,
    local_embedder: VocabularyEmbeddingProvider,
    vector_store: InMemoryVectorStore,
    registry: MemoryDocumentRegistry,
) -> Callable[..., DocumentService]:
    """Factory assembling a DocumentService over the in-memory fakes."""

    def _build(
        extraction_methods: list[IExtractionMethod] | None = None,
        remote: IEmbeddingProvider | None = None,
        mode: str = "local",
        yaml_config: dict[str, Any] | None = None,
        file_store: Any = None,
    ) -> DocumentService:
        resolver = ScopedConfigResolver(test_settings, yaml_config or {})
        defaults = resolver.default
        chain = ExtractionChain(
            methods=extraction_methods if extraction_methods is not None else [BasicExtractor()],
            config=defaults.extraction,
        )
        embedding_service = EmbeddingService(
            local_provider=local_embedder, remote_provider=remote, mode=mode
        )
        resilient = ResilientVectorStore(vector_store, batch_size=50)
        ingestion = IngestionService(
            extraction_chain=chain,
            chunker=TextChunker(defaults.chunking),
            embedding_service=embedding_service,
            vector_store=resilient,
            registry=registry,
            config=defaults,
        )
        return DocumentService(
            registry=registry,
            ingestion_service=ingestion,
            embedding_service=embedding_service,
            search_engine=VectorSearchEngine(vector_store, registry, defaults.retrieval),
            vector_store=resilient,
            config_resolver=resolver,
            file_store=file_store,
        )

    return _build
