"""Unit tests for the document search agent tool."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.rag import Chunk, ChunkMetadata, RankedChunk
from src.tools.document_search_tool import DocumentSearchTool


def _service(hits=None, error: Exception | None = None) -> MagicMock:
    service = MagicMock()
    service.search_documents = AsyncMock(return_value=hits or [], side_effect=error)
    return service


def _hit(score: float) -> RankedChunk:
    return RankedChunk(
        chunk=Chunk(
            id="c1",
            document_id="doc-1",
            content="Rubisco fixes carbon.",
            position=0,
            metadata=ChunkMetadata(page_number=4),
        ),
        score=score,
        document_name="biology.pdf",
    )


class TestDefinition:
    def test_function_schema(self) -> None:
        definition = DocumentSearchTool.definition()
        function = definition["function"]

        assert definition["type"] == "function"
        assert function["name"] == "search_documents"
        params = function["parameters"]
        assert "title" not in params
        assert params["required"] == ["query"]
        assert params["properties"]["limit"]["default"] == 5
        assert params["properties"]["limit"]["maximum"] == 50


class TestRun:
    @pytest.mark.asyncio
    async def test_results_payload(self) -> None:
        service = _service([_hit(0.812345)])
        tool = DocumentSearchTool(service, scope="chat-9")

        payload = await tool.run('{"query": "carbon fixation", "limit": 3}')

        assert payload == {
            "success": True,
            "results": [
                {
                    "document_name": "biology.pdf",
                    "content": "Rubisco fixes carbon.",
                    "page_number": 4,
                    "relevance_score": 0.8123,
                }
            ],
            "message": "Found 1 relevant document sections.",
        }
        service.search_documents.assert_awaited_once_with("carbon fixation", "chat-9", limit=3)

    @pytest.mark.asyncio
    async def test_dict_arguments_use_default_limit(self) -> None:
        service = _service([])
        payload = await DocumentSearchTool(service, "chat-9").run({"query": "anything"})

        assert payload == {
            "success": True,
            "results": [],
            "message": "No relevant documents found for your query.",
        }
        service.search_documents.assert_awaited_once_with("anything", "chat-9", limit=5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "arguments",
        ["not json", {"query": ""}, {"query": "x", "limit": 500}, {}],
    )
    async def test_bad_arguments_fail_softly(self, arguments) -> None:
        service = _service([_hit(0.9)])
        payload = await DocumentSearchTool(service, "chat-9").run(arguments)

        assert payload["success"] is False
        assert payload["message"] == "Failed to search documents. Please try again."
        service.search_documents.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_failure_is_reported_not_raised(self) -> None:
        tool = DocumentSearchTool(_service(error=RuntimeError("boom")), "chat-9")
        payload = await tool.run({"query": "carbon"})

        assert payload == {
            "success": False,
            "results": [],
            "message": "Failed to search documents. Please try again.",
        }
