"""Public interface definitions for every external collaborator.

Business logic in ``src/services/`` talks only to these abstract base
classes.  Concrete adapters live in ``src/providers/`` and are wired
together in ``src/main.py``, which means a collaborator can be swapped by
changing one factory, unit tests can inject fakes, and several providers
can be tried in priority order.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IExtractionMethod      →  UnstructuredAPIExtractor (hosted, local),
                              PyMuPDFExtractor, PurePythonExtractor,
                              BasicExtractor
    IEmbeddingProvider     →  FastEmbedEmbeddingProvider,
                              SentenceTransformerEmbeddingProvider,
                              OpenAIEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
    IDocumentRegistry      →  SQLiteDocumentRegistry, MemoryDocumentRegistry
"""

from src.interfaces.document_registry import IDocumentRegistry
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.extraction_method import IExtractionMethod
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredVector

__all__ = [
    "IDocumentRegistry",
    "IEmbeddingProvider",
    "IExtractionMethod",
    "IVectorStoreProvider",
    "StoredVector",
]
