"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  It keeps one collection
per embedding dimension and supports both local persistence
(CHROMADB_PERSIST_DIR) and a remote Chroma server (CHROMADB_HOST).

To swap ChromaDB for another vector database, create a new class
implementing IVectorStoreProvider and register it in main.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
