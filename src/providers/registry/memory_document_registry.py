"""In-memory document registry.

Plain dicts behind the :class:`IDocumentRegistry` contract.  Used by tests
and by short-lived sessions that do not need documents to survive a restart.
Chunk-set replacement is a single dict assignment, so readers never observe
a partially replaced set.
"""

from __future__ import annotations

from src.interfaces.document_registry import IDocumentRegistry
from src.models.document import Document
from src.models.rag import Chunk
from src.utils.errors import DocumentNotFoundError


class MemoryDocumentRegistry(IDocumentRegistry):
    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, list[Chunk]] = {}

    async def initialize(self) -> None:
        return None

    def get_provider_name(self) -> str:
        return "memory_registry"

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def put(self, document: Document) -> None:
        self._documents[document.id] = document

    async def list_ids(self, scope: str) -> list[str]:
        in_scope = [d for d in self._documents.values() if d.scope == scope]
        in_scope.sort(key=lambda d: (d.created_at, d.id))
        return [d.id for d in in_scope]

    async def delete(self, document_id: str) -> bool:
        self._chunks.pop(document_id, None)
        return self._documents.pop(document_id, None) is not None

    async def replace_chunks(self, document: Document, chunks: list[Chunk]) -> None:
        if document.chunk_count != len(chunks):
            raise ValueError(
                f"chunk_count {document.chunk_count} does not match {len(chunks)} chunks"
            )
        if document.id not in self._documents:
            raise DocumentNotFoundError(f"Document {document.id} is not registered")
        self._chunks[document.id] = sorted(chunks, key=lambda c: c.position)
        self._documents[document.id] = document

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        return list(self._chunks.get(document_id, []))
