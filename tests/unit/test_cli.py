"""Unit tests for the documents CLI (src.cli.documents)."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli import documents as cli
from src.config.settings import Settings
from src.models.document import Document, IndexReport, IndexStatus, ProcessingState
from src.models.rag import Chunk, ChunkMetadata, RankedChunk
from src.utils.errors import DocumentNotFoundError


def _document(state: ProcessingState = ProcessingState.COMPLETED, **fields) -> Document:
    base = {
        "id": "doc-1",
        "filename": "notes.md",
        "size": 42,
        "scope": "chat-1",
        "processing_state": state,
        "chunk_count": 3,
        "index_report": IndexReport(status=IndexStatus.INDEXED),
    }
    base.update(fields)
    return Document(**base)


def _service() -> MagicMock:
    service = MagicMock()
    for name in (
        "upload_document",
        "search_documents",
        "list_documents",
        "get_document",
        "delete_document",
        "reprocess_document",
    ):
        setattr(service, name, AsyncMock())
    return service


class TestParser:
    def test_upload_arguments(self) -> None:
        args = cli._build_parser().parse_args(
            ["upload", "--scope", "chat-1", "--content-type", "text/plain", "a.txt", "b.md"]
        )
        assert args.command == "upload"
        assert args.files == ["a.txt", "b.md"]
        assert args.scope == "chat-1"
        assert args.content_type == "text/plain"

    def test_search_arguments(self) -> None:
        args = cli._build_parser().parse_args(
            ["search", "carbon fixation", "--scope", "chat-1", "--limit", "3"]
        )
        assert (args.query, args.scope, args.limit) == ("carbon fixation", "chat-1", 3)

    def test_scope_is_required(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["list"])

    def test_every_command_has_a_handler(self) -> None:
        assert set(cli._HANDLERS) == {"upload", "search", "list", "show", "delete", "reprocess"}

    def test_main_without_command_prints_help(self, capsys) -> None:
        assert cli.main([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestHandlers:
    @pytest.mark.asyncio
    async def test_upload_reads_file_and_guesses_type(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "notes.md"
        path.write_text("# Notes\nSome text.", encoding="utf-8")
        service = _service()
        service.upload_document.return_value = _document()

        code = await cli._handle_upload(
            Namespace(files=[str(path)], scope="chat-1", content_type=""), service
        )

        assert code == 0
        uploaded, scope = service.upload_document.await_args.args
        assert scope == "chat-1"
        assert uploaded.filename == "notes.md"
        assert uploaded.data == b"# Notes\nSome text."
        assert "doc-1  notes.md  completed  chunks=3  index=indexed  rev=1" in (
            capsys.readouterr().out
        )

    @pytest.mark.asyncio
    async def test_upload_reports_missing_and_failed_files(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        service = _service()
        service.upload_document.return_value = _document(
            ProcessingState.FAILED, error="Upload is empty", index_report=None, chunk_count=0
        )

        code = await cli._handle_upload(
            Namespace(files=[str(tmp_path / "absent.txt"), str(path)], scope="s", content_type=""),
            service,
        )

        captured = capsys.readouterr()
        assert code == 1
        assert "is not a file" in captured.err
        assert "Error: Upload is empty" in captured.out
        assert service.upload_document.await_count == 1

    @pytest.mark.asyncio
    async def test_search_prints_ranked_hits(self, capsys) -> None:
        service = _service()
        service.search_documents.return_value = [
            RankedChunk(
                chunk=Chunk(
                    id="c1",
                    document_id="doc-1",
                    content="Rubisco   fixes\ncarbon.",
                    position=0,
                    metadata=ChunkMetadata(page_number=2),
                ),
                score=0.5,
                document_name="bio.pdf",
            )
        ]

        code = await cli._handle_search(
            Namespace(query="carbon", scope="chat-1", limit=None), service
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "1. bio.pdf (page 2, score 0.5000)" in out
        assert "   Rubisco fixes carbon." in out

    @pytest.mark.asyncio
    async def test_search_without_hits(self, capsys) -> None:
        service = _service()
        service.search_documents.return_value = []

        await cli._handle_search(Namespace(query="q", scope="chat-1", limit=2), service)

        assert "No relevant documents found." in capsys.readouterr().out
        service.search_documents.assert_awaited_once_with("q", "chat-1", limit=2)

    @pytest.mark.asyncio
    async def test_list_empty_scope(self, capsys) -> None:
        service = _service()
        service.list_documents.return_value = []

        assert await cli._handle_list(Namespace(scope="chat-5"), service) == 0
        assert "No documents in scope 'chat-5'." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_show_prints_json(self, capsys) -> None:
        service = _service()
        service.get_document.return_value = _document()

        await cli._handle_show(Namespace(document_id="doc-1"), service)

        assert '"id": "doc-1"' in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_reprocess_failure_exit_code(self, capsys) -> None:
        service = _service()
        service.reprocess_document.return_value = _document(
            ProcessingState.FAILED, error="No embedding provider succeeded", revision=2
        )

        assert await cli._handle_reprocess(Namespace(document_id="doc-1"), service) == 1
        assert "rev=2" in capsys.readouterr().out


class TestRun:
    @pytest.mark.asyncio
    async def test_pipeline_errors_become_exit_code(self, capsys) -> None:
        service = _service()
        service.delete_document.side_effect = DocumentNotFoundError("Document 'nope' not found")
        components = {"document_service": service}

        with (
            patch("src.main.build_components", return_value=components),
            patch("src.main.initialize_components", new=AsyncMock()),
            patch("src.main.close_components", new=AsyncMock()) as close,
        ):
            code = await cli._run(
                Namespace(command="delete", document_id="nope"), Settings(_env_file=None)
            )

        assert code == 1
        assert "Document 'nope' not found" in capsys.readouterr().err
        close.assert_awaited_once_with(components)
