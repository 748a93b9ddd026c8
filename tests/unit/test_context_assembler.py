"""Unit tests for context injection into chat conversations."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.loader import ScopedConfigResolver
from src.config.settings import Settings
from src.models.conversation import ChatMessage, MessageRole
from src.models.rag import Chunk, ChunkMetadata, RankedChunk
from src.services.context_assembler import ContextAssembler, format_context


def _hit(content: str, score: float, page: int | None = None, name: str = "report.pdf"):
    return RankedChunk(
        chunk=Chunk(
            id=f"c-{content[:4]}",
            document_id="doc-1",
            content=content,
            position=0,
            metadata=ChunkMetadata(page_number=page),
        ),
        score=score,
        document_name=name,
    )


def _service(hits=None, error: Exception | None = None) -> MagicMock:
    service = MagicMock()
    service.search_documents = AsyncMock(return_value=hits or [], side_effect=error)
    return service


CONVERSATION = [
    ChatMessage(role=MessageRole.SYSTEM, content="You are helpful."),
    ChatMessage(role=MessageRole.USER, content="What is the Calvin cycle?"),
    ChatMessage(role=MessageRole.ASSISTANT, content="Let me check."),
    ChatMessage(role=MessageRole.USER, content="How does it fix carbon?"),
]


class TestFormatContext:
    def test_block_layout(self) -> None:
        text = format_context(
            [_hit("Carbon is fixed by rubisco.", 0.72414, page=3), _hit("Sugars form.", 0.5)]
        )

        assert text == (
            "Relevant information from attached documents:\n"
            "---\nCarbon is fixed by rubisco.\n"
            "(Source: report.pdf, Page: 3, Relevance: 72.41%)\n"
            "\n"
            "---\nSugars form.\n"
            "(Source: report.pdf, Page: N/A, Relevance: 50.00%)\n"
        )


class TestContextAssembler:
    @pytest.mark.asyncio
    async def test_inserts_before_last_user_message(self) -> None:
        service = _service([_hit("Carbon is fixed by rubisco.", 0.8, page=2)])
        assembler = ContextAssembler(service, max_context_chunks=4)

        result = await assembler.assemble(CONVERSATION, "chat-1")

        assert len(result) == 5
        context = result[3]
        assert context.role == MessageRole.SYSTEM
        assert context.id.startswith("context-")
        assert "Carbon is fixed by rubisco." in context.content
        assert result[4] == CONVERSATION[3]
        service.search_documents.assert_awaited_once_with(
            "How does it fix carbon?", "chat-1", limit=4
        )

    @pytest.mark.asyncio
    async def test_input_list_is_not_mutated(self) -> None:
        messages = list(CONVERSATION)
        await ContextAssembler(_service([_hit("x", 0.9)])).assemble(messages, "chat-1")
        assert messages == CONVERSATION

    @pytest.mark.asyncio
    async def test_caps_number_of_chunks(self) -> None:
        hits = [_hit(f"chunk number {i}", 0.9 - i * 0.1) for i in range(5)]
        assembler = ContextAssembler(_service(hits), max_context_chunks=2)

        result = await assembler.assemble(CONVERSATION, "chat-1")

        assert result[3].content.count("---\n") == 2
        assert "chunk number 2" not in result[3].content

    @pytest.mark.asyncio
    async def test_scope_overrides_number_of_chunks(self) -> None:
        hits = [_hit(f"chunk number {i}", 0.9 - i * 0.1) for i in range(5)]
        service = _service(hits)
        resolver = ScopedConfigResolver(
            Settings(_env_file=None, max_context_chunks=4),
            {"scopes": {"legal-team": {"retrieval": {"max_context_chunks": 2}}}},
        )
        assembler = ContextAssembler(service, config_resolver=resolver)

        scoped = await assembler.assemble(CONVERSATION, "legal-team")
        other = await assembler.assemble(CONVERSATION, "chat-1")

        assert scoped[3].content.count("---\n") == 2
        assert other[3].content.count("---\n") == 4
        assert service.search_documents.await_args_list[0].kwargs["limit"] == 2
        assert service.search_documents.await_args_list[1].kwargs["limit"] == 4

    @pytest.mark.asyncio
    async def test_no_hits_leaves_conversation_unchanged(self) -> None:
        result = await ContextAssembler(_service([])).assemble(CONVERSATION, "chat-1")
        assert result == CONVERSATION

    @pytest.mark.asyncio
    async def test_search_failure_leaves_conversation_unchanged(self) -> None:
        assembler = ContextAssembler(_service(error=RuntimeError("store exploded")))
        assembler._logger = MagicMock()

        result = await assembler.assemble(CONVERSATION, "chat-1")

        assert result == CONVERSATION
        assembler._logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_without_user_message_nothing_is_searched(self) -> None:
        service = _service([_hit("x", 0.9)])
        messages = [ChatMessage(role=MessageRole.SYSTEM, content="You are helpful.")]

        result = await ContextAssembler(service).assemble(messages, "chat-1")

        assert result == messages
        service.search_documents.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_user_message_is_ignored(self) -> None:
        service = _service([_hit("x", 0.9)])
        messages = [ChatMessage(role=MessageRole.USER, content="   ")]

        assert await ContextAssembler(service).assemble(messages, "chat-1") == messages
        service.search_documents.assert_not_awaited()
