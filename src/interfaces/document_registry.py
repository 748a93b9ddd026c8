"""Abstract base class for the document registry.

The registry is the system of record for documents and their chunks.  The
vector store only holds vectors; search hydrates hits from the registry, so
a chunk that is not in the registry's live set is never returned even if a
stale vector for it still exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import Document
from src.models.rag import Chunk


# Concrete implementations (src/providers/registry/):
#   SQLiteDocumentRegistry  - aiosqlite, persistent
#   MemoryDocumentRegistry  - in-process dicts (tests, ephemeral sessions)
class IDocumentRegistry(ABC):
    """Contract for document and chunk persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / storage if needed.  Idempotent."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if unknown."""

    @abstractmethod
    async def put(self, document: Document) -> None:
        """Insert or replace the document record."""

    @abstractmethod
    async def list_ids(self, scope: str) -> list[str]:
        """Return ids of documents in *scope*, oldest first."""

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete the document and all its chunks.  Returns ``False`` if unknown."""

    @abstractmethod
    async def replace_chunks(self, document: Document, chunks: list[Chunk]) -> None:
        """Atomically swap the document's chunk set for *chunks* and store *document*.

        Readers observe either the old set or the new set, never a mix.
        ``document.chunk_count`` must equal ``len(chunks)``.
        """

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[Chunk]:
        """Return the document's live chunks ordered by position."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier for this registry backend."""
