"""Injects retrieved document context into a chat conversation.

Given the conversation so far and the scope it belongs to, searches the
scope's documents with the latest user utterance and, when anything clears
the similarity floor, inserts exactly one ``system`` message immediately
before the last user message:

    Relevant information from attached documents:
    ---
    <chunk text>
    (Source: report.pdf, Page: 3, Relevance: 72.41%)

The input list is never mutated; a new list is returned.  Search failures
leave the conversation unchanged.
"""

from __future__ import annotations

import uuid

from src.config.loader import ScopedConfigResolver
from src.models.conversation import ChatMessage, MessageRole
from src.models.rag import RankedChunk
from src.services.document_service import DocumentService
from src.utils.logging import get_logger

_CONTEXT_HEADER = "Relevant information from attached documents:\n"
_DEFAULT_MAX_CHUNKS = 10


class ContextAssembler:
    """Prepend retrieved document context to the latest user turn.

    The number of chunks injected is ``retrieval.max_context_chunks`` of the
    conversation's scope when a config resolver is supplied, and
    *max_context_chunks* otherwise.
    """

    def __init__(
        self,
        document_service: DocumentService,
        max_context_chunks: int = _DEFAULT_MAX_CHUNKS,
        config_resolver: ScopedConfigResolver | None = None,
    ) -> None:
        self._documents = document_service
        self._max_chunks = max(1, max_context_chunks)
        self._config_resolver = config_resolver
        self._logger = get_logger(__name__)

    async def assemble(self, messages: list[ChatMessage], scope: str) -> list[ChatMessage]:
        """Return *messages* with a context system message inserted, if relevant."""
        result = list(messages)
        last_user = _last_user_index(result)
        if last_user is None or not result[last_user].content.strip():
            return result

        max_chunks = self._max_chunks_for(scope)
        try:
            hits = await self._documents.search_documents(
                result[last_user].content, scope, limit=max_chunks
            )
        except Exception as exc:
            self._logger.warning("context_search_failed", scope=scope, error=str(exc))
            return result
        if not hits:
            return result

        result.insert(
            last_user,
            ChatMessage(
                id=f"context-{uuid.uuid4()}",
                role=MessageRole.SYSTEM,
                content=format_context(hits[:max_chunks]),
            ),
        )
        self._logger.info("context_injected", scope=scope, chunks=min(len(hits), max_chunks))
        return result

    def _max_chunks_for(self, scope: str) -> int:
        if self._config_resolver is None:
            return self._max_chunks
        return self._config_resolver.resolve(scope).retrieval.max_context_chunks


def format_context(hits: list[RankedChunk]) -> str:
    """Render ranked chunks as the context system message body."""
    blocks = [
        f"---\n{hit.chunk.content}\n"
        f"(Source: {hit.document_name}, "
        f"Page: {hit.chunk.metadata.page_number or 'N/A'}, "
        f"Relevance: {hit.score * 100:.2f}%)\n"
        for hit in hits
    ]
    return _CONTEXT_HEADER + "\n".join(blocks)


def _last_user_index(messages: list[ChatMessage]) -> int | None:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == MessageRole.USER:
            return index
    return None
