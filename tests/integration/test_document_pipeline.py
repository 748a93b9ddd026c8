"""Integration tests for the full document pipeline.

Upload -> extract -> chunk -> embed -> store -> search, wired through
DocumentService with the real chain, chunker, embedding service, resilient
store, search engine and registry.  Only the leaves are fakes: the
bag-of-words embedder and the in-memory vector store from conftest.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.interfaces.extraction_method import IExtractionMethod
from src.models.content import ContentKind
from src.models.conversation import ChatMessage, MessageRole
from src.models.document import IndexStatus, ProcessingState, UploadedFile
from src.models.rag import Element
from src.providers.extraction.basic_provider import BasicExtractor
from src.providers.file_store.local_file_store import LocalFileStore
from src.services.context_assembler import ContextAssembler
from src.utils.errors import DocumentNotFoundError, UnsupportedInputError
from src.utils.text_segmentation import paragraph_elements
from tests.conftest import SAMPLE_DOCUMENT, FailingExtractor, make_paragraph

SCOPE = "chat-42"

# One chunk per paragraph of SAMPLE_DOCUMENT.
PARAGRAPH_CHUNKS = {"pipeline": {"chunking": {"chunk_size": 200, "chunk_overlap": 0}}}


def _text_file(text: str = SAMPLE_DOCUMENT, name: str = "biology.txt") -> UploadedFile:
    return UploadedFile(filename=name, content_type="text/plain", data=text.encode("utf-8"))


class _GatedExtractor(IExtractionMethod):
    """Blocks inside extract() until the test releases it."""

    def __init__(self, name: str = "unstructured_local") -> None:
        self._name = name
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def extract(self, data: bytes, filename: str, kind: ContentKind) -> list[Element]:
        self.started.set()
        await self.release.wait()
        return paragraph_elements(data.decode("utf-8"))

    def supports(self, kind: ContentKind) -> bool:
        return True

    def get_method_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return True


# ======================================================================
# Upload and search
# ======================================================================


class TestUploadAndSearch:
    @pytest.mark.asyncio
    async def test_round_trip(self, build_document_service, registry, vector_store) -> None:
        service = build_document_service(yaml_config=PARAGRAPH_CHUNKS)

        document = await service.upload_document(_text_file(), SCOPE)

        assert document.processing_state == ProcessingState.COMPLETED
        assert document.chunk_count == 3
        assert document.extraction_method == "basic"
        assert document.chunking_strategy == "semantic"
        assert document.embedding_provider == "local_vocab"
        assert document.embedding_dimension == 384
        assert document.index_report.status == IndexStatus.INDEXED
        assert vector_store.record_count() == 3
        assert await registry.get(document.id) == document

        hits = await service.search_documents("rubisco carbon dioxide sugars", SCOPE)

        assert [h.chunk.content for h in hits] == [SAMPLE_DOCUMENT.split("\n\n")[1]]
        assert hits[0].document_name == "biology.txt"
        assert 0.2 <= hits[0].score <= 1.0

    @pytest.mark.asyncio
    async def test_paragraph_packing(self, build_document_service, registry) -> None:
        paragraphs = [
            make_paragraph(600, "alpha"),
            make_paragraph(400, "bravo"),
            make_paragraph(900, "charlie"),
        ]
        text = "\n\n".join(paragraphs)
        service = build_document_service()

        document = await service.upload_document(_text_file(text, "long.txt"), SCOPE)

        chunks = await registry.get_chunks(document.id)
        assert document.chunk_count == 2
        assert [c.position for c in chunks] == [0, 1]
        assert chunks[0].content.startswith("The alpha passage")
        # Only the separator joining the last paragraph is uncounted.
        assert all(len(c.content) <= 1000 + len("\n\n") for c in chunks)
        # The second chunk opens with an overlap tail taken from the bravo paragraph.
        assert chunks[1].content.startswith("The bravo passage")
        assert chunks[1].content.endswith(make_paragraph(900, "charlie"))

    @pytest.mark.asyncio
    async def test_chunking_is_deterministic(self, build_document_service, registry) -> None:
        service = build_document_service()

        first = await service.upload_document(_text_file(), SCOPE)
        second = await service.upload_document(_text_file(), SCOPE)

        first_chunks = [c.content for c in await registry.get_chunks(first.id)]
        second_chunks = [c.content for c in await registry.get_chunks(second.id)]
        assert first_chunks == second_chunks

    @pytest.mark.asyncio
    async def test_scopes_are_isolated(self, build_document_service) -> None:
        service = build_document_service(yaml_config=PARAGRAPH_CHUNKS)
        await service.upload_document(_text_file(), "chat-a")

        assert await service.search_documents("Calvin cycle", "chat-b") == []
        assert await service.search_documents("Calvin cycle", "chat-a") != []
        assert [d.filename for d in await service.list_documents("chat-a")] == ["biology.txt"]
        assert await service.list_documents("chat-b") == []

    @pytest.mark.asyncio
    async def test_blank_query_returns_nothing(self, build_document_service) -> None:
        service = build_document_service()
        await service.upload_document(_text_file(), SCOPE)

        assert await service.search_documents("   ", SCOPE) == []
        assert await service.search_documents("Calvin", SCOPE, limit=0) == []

    @pytest.mark.asyncio
    async def test_context_assembly_end_to_end(self, build_document_service) -> None:
        service = build_document_service(yaml_config=PARAGRAPH_CHUNKS)
        await service.upload_document(_text_file(), SCOPE)
        messages = [ChatMessage(role=MessageRole.USER, content="rubisco carbon dioxide sugars")]

        result = await ContextAssembler(service).assemble(messages, SCOPE)

        assert len(result) == 2
        assert result[0].role == MessageRole.SYSTEM
        assert "The Calvin cycle fixes carbon dioxide into sugars." in result[0].content
        assert "(Source: biology.txt, Page: N/A, Relevance:" in result[0].content
        assert result[1] == messages[0]


# ======================================================================
# Degradation and fallback
# ======================================================================


class TestDegradation:
    @pytest.mark.asyncio
    async def test_unreachable_extraction_service_falls_back(self, build_document_service) -> None:
        service = build_document_service(
            extraction_methods=[FailingExtractor("unstructured_local"), BasicExtractor()]
        )

        document = await service.upload_document(_text_file(), SCOPE)

        assert document.processing_state == ProcessingState.COMPLETED
        assert document.extraction_method == "basic"
        assert "connection refused" in document.extraction_errors["unstructured_local"]

    @pytest.mark.asyncio
    async def test_exhausted_extraction_indexes_diagnostic(
        self, build_document_service, registry
    ) -> None:
        service = build_document_service(
            extraction_methods=[FailingExtractor("unstructured_local"), FailingExtractor("pymupdf")]
        )
        upload = UploadedFile(
            filename="scan.pdf", content_type="application/pdf", data=b"%PDF-1.4 broken"
        )

        document = await service.upload_document(upload, SCOPE)

        assert document.processing_state == ProcessingState.COMPLETED
        assert document.extraction_method is None
        assert set(document.extraction_errors) == {"unstructured_local", "pymupdf"}
        chunks = await registry.get_chunks(document.id)
        assert len(chunks) == 1
        assert "scan.pdf" in chunks[0].content

    @pytest.mark.asyncio
    async def test_store_down_completes_degraded(
        self, build_document_service, vector_store, local_embedder
    ) -> None:
        vector_store.available = False
        service = build_document_service()

        document = await service.upload_document(_text_file(), SCOPE)

        assert document.processing_state == ProcessingState.COMPLETED
        assert document.chunk_count > 0
        assert document.index_report.status == IndexStatus.DEGRADED
        assert document.embedding_provider is None
        assert local_embedder.embed_calls == 0
        assert vector_store.upsert_calls == 0
        assert await service.search_documents("Calvin cycle", SCOPE) == []

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_local(
        self, build_document_service, remote_embedder, vector_store
    ) -> None:
        remote_embedder.available = False
        service = build_document_service(
            remote=remote_embedder, mode="remote", yaml_config=PARAGRAPH_CHUNKS
        )

        local_doc = await service.upload_document(_text_file(), SCOPE)
        remote_embedder.available = True
        remote_doc = await service.upload_document(_text_file(name="copy.txt"), SCOPE)

        assert local_doc.embedding_provider == "local_vocab"
        assert local_doc.embedding_dimension == 384
        assert remote_doc.embedding_provider == "remote_vocab"
        assert remote_doc.embedding_dimension == 1536
        assert set(vector_store.collections) == {"document_chunks_384d", "document_chunks_1536d"}

        # Each document is searched with the provider that embedded it.
        hits = await service.search_documents("Calvin cycle rubisco", SCOPE, limit=10)
        assert {h.document_name for h in hits} == {"biology.txt", "copy.txt"}

    @pytest.mark.asyncio
    async def test_partial_store_failure_keeps_document(
        self, build_document_service, vector_store
    ) -> None:
        text = "\n\n".join(make_paragraph(150, f"w{i}") for i in range(60))
        vector_store.failing_batches = {0}
        service = build_document_service(yaml_config=PARAGRAPH_CHUNKS)

        document = await service.upload_document(_text_file(text, "many.txt"), SCOPE)

        assert document.processing_state == ProcessingState.COMPLETED
        assert document.chunk_count == 60
        assert document.index_report.status == IndexStatus.PARTIAL
        assert document.index_report.records_stored == 10
        assert vector_store.record_count() == 10

    @pytest.mark.asyncio
    async def test_empty_upload_fails(self, build_document_service) -> None:
        service = build_document_service()

        document = await service.upload_document(
            UploadedFile(filename="empty.txt", content_type="text/plain", data=b""), SCOPE
        )

        assert document.processing_state == ProcessingState.FAILED
        assert document.error == "Upload is empty"
        assert [d.id for d in await service.list_documents(SCOPE)] == [document.id]


# ======================================================================
# Lifecycle: per-scope config, reprocess, delete
# ======================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_scope_config_overrides_chunking(self, build_document_service) -> None:
        service = build_document_service(
            yaml_config={
                "scopes": {
                    "legal": {
                        "chunking": {"strategy": "fixed", "chunk_size": 100, "chunk_overlap": 0}
                    }
                }
            }
        )

        legal = await service.upload_document(_text_file(), "legal")
        default = await service.upload_document(_text_file(), SCOPE)

        assert legal.chunking_strategy == "fixed"
        assert legal.chunk_count > 3
        assert default.chunking_strategy == "semantic"
        assert default.chunk_count == 1

    @pytest.mark.asyncio
    async def test_reprocess_creates_new_revision(
        self, build_document_service, registry, vector_store, tmp_path: Path
    ) -> None:
        vector_store.available = False
        service = build_document_service(
            yaml_config=PARAGRAPH_CHUNKS, file_store=LocalFileStore(root=tmp_path)
        )
        first = await service.upload_document(_text_file(), SCOPE)
        old_ids = [c.id for c in await registry.get_chunks(first.id)]
        assert first.index_report.status == IndexStatus.DEGRADED

        vector_store.available = True
        second = await service.reprocess_document(first.id)

        assert second.id == first.id
        assert second.revision == 2
        assert second.processing_state == ProcessingState.COMPLETED
        assert second.index_report.status == IndexStatus.INDEXED
        new_ids = [c.id for c in await registry.get_chunks(first.id)]
        assert set(new_ids).isdisjoint(old_ids)
        assert vector_store.record_count() == len(new_ids)
        assert await service.search_documents("Calvin cycle", SCOPE) != []

    @pytest.mark.asyncio
    async def test_reprocess_replaces_previous_vectors(
        self, build_document_service, registry, vector_store, tmp_path: Path
    ) -> None:
        service = build_document_service(
            yaml_config=PARAGRAPH_CHUNKS, file_store=LocalFileStore(root=tmp_path)
        )
        document = await service.upload_document(_text_file(), SCOPE)
        assert vector_store.record_count() == 3

        await service.reprocess_document(document.id)

        live = {c.id for c in await registry.get_chunks(document.id)}
        stored = set(vector_store.collections["document_chunks_384d"]["records"])
        assert stored == live

    @pytest.mark.asyncio
    async def test_reprocess_without_retained_upload(self, build_document_service) -> None:
        service = build_document_service()
        document = await service.upload_document(_text_file(), SCOPE)

        with pytest.raises(UnsupportedInputError):
            await service.reprocess_document(document.id)
        with pytest.raises(DocumentNotFoundError):
            await service.reprocess_document("no-such-document")

    @pytest.mark.asyncio
    async def test_delete_cascades(
        self, build_document_service, registry, vector_store, tmp_path: Path
    ) -> None:
        service = build_document_service(file_store=LocalFileStore(root=tmp_path))
        document = await service.upload_document(_text_file(), SCOPE)
        assert Path(document.storage_path).exists()

        deleted = await service.delete_document(document.id)

        assert deleted.id == document.id
        assert await registry.get(document.id) is None
        assert await registry.get_chunks(document.id) == []
        assert vector_store.record_count() == 0
        assert not Path(document.storage_path).exists()
        assert await service.search_documents("Calvin cycle", SCOPE) == []
        with pytest.raises(DocumentNotFoundError):
            await service.get_document(document.id)

    @pytest.mark.asyncio
    async def test_delete_during_processing_stays_deleted(
        self, build_document_service, registry, vector_store
    ) -> None:
        extractor = _GatedExtractor()
        service = build_document_service(
            extraction_methods=[extractor], yaml_config=PARAGRAPH_CHUNKS
        )

        upload = asyncio.create_task(service.upload_document(_text_file(), SCOPE))
        await extractor.started.wait()
        [document_id] = await registry.list_ids(SCOPE)
        await service.delete_document(document_id)
        extractor.release.set()
        result = await upload

        assert result.processing_state == ProcessingState.FAILED
        assert "deleted" in result.error
        assert await registry.get(document_id) is None
        assert await service.list_documents(SCOPE) == []
        assert vector_store.record_count() == 0

    @pytest.mark.asyncio
    async def test_unexpected_stage_error_leaves_document_reprocessable(
        self, build_document_service, registry, tmp_path: Path, monkeypatch
    ) -> None:
        service = build_document_service(
            yaml_config=PARAGRAPH_CHUNKS, file_store=LocalFileStore(root=tmp_path)
        )
        monkeypatch.setattr(
            registry, "get_chunks", AsyncMock(side_effect=RuntimeError("database is locked"))
        )

        failed = await service.upload_document(_text_file(), SCOPE)

        assert failed.processing_state == ProcessingState.FAILED
        assert failed.error == "database is locked"
        stored = await registry.get(failed.id)
        assert stored.processing_state == ProcessingState.FAILED

        monkeypatch.undo()
        recovered = await service.reprocess_document(failed.id)

        assert recovered.processing_state == ProcessingState.COMPLETED
        assert recovered.revision == 2
        assert recovered.chunk_count == 3

