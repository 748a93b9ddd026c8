"""Unit tests for the document registries and the raw upload file store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from src.interfaces.document_registry import IDocumentRegistry
from src.models.document import Document, ProcessingState
from src.models.rag import Chunk, ChunkMetadata
from src.providers.file_store.local_file_store import LocalFileStore
from src.providers.registry.memory_document_registry import MemoryDocumentRegistry
from src.providers.registry.sqlite_document_registry import SQLiteDocumentRegistry
from src.utils.errors import DocumentNotFoundError

_T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _document(document_id: str, scope: str = "chat-1", minutes: int = 0, **fields) -> Document:
    return Document(
        id=document_id,
        filename=f"{document_id}.md",
        size=10,
        scope=scope,
        created_at=_T0 + timedelta(minutes=minutes),
        **fields,
    )


def _chunks(document_id: str, count: int, prefix: str = "c") -> list[Chunk]:
    return [
        Chunk(
            id=f"{document_id}-{prefix}{i}",
            document_id=document_id,
            content=f"chunk {i} of {document_id}",
            position=i,
            metadata=ChunkMetadata(section="Intro", page_number=i + 1),
        )
        for i in range(count)
    ]


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def any_registry(request, tmp_path: Path) -> IDocumentRegistry:
    if request.param == "memory":
        registry: IDocumentRegistry = MemoryDocumentRegistry()
    else:
        registry = SQLiteDocumentRegistry(db_path=tmp_path / "registry" / "documents.db")
    await registry.initialize()
    return registry


# ======================================================================
# Registry contract (run against both backends)
# ======================================================================


class TestDocumentRegistry:
    @pytest.mark.asyncio
    async def test_put_and_get_round_trip(self, any_registry) -> None:
        document = _document("d1", content_type="text/markdown")
        await any_registry.put(document)

        assert await any_registry.get("d1") == document
        assert await any_registry.get("missing") is None

    @pytest.mark.asyncio
    async def test_put_replaces_existing_record(self, any_registry) -> None:
        document = _document("d1")
        await any_registry.put(document)
        await any_registry.put(document.transition(ProcessingState.PROCESSING))

        stored = await any_registry.get("d1")
        assert stored.processing_state == ProcessingState.PROCESSING

    @pytest.mark.asyncio
    async def test_list_ids_is_scoped_and_ordered(self, any_registry) -> None:
        await any_registry.put(_document("late", minutes=5))
        await any_registry.put(_document("early", minutes=1))
        await any_registry.put(_document("elsewhere", scope="chat-2"))

        assert await any_registry.list_ids("chat-1") == ["early", "late"]
        assert await any_registry.list_ids("chat-2") == ["elsewhere"]
        assert await any_registry.list_ids("chat-3") == []

    @pytest.mark.asyncio
    async def test_replace_chunks_swaps_the_whole_set(self, any_registry) -> None:
        await any_registry.put(_document("d1"))
        first = _document("d1", chunk_count=3)
        await any_registry.replace_chunks(first, _chunks("d1", 3))

        second = _document("d1", chunk_count=2, revision=2)
        await any_registry.replace_chunks(second, _chunks("d1", 2, prefix="r"))

        chunks = await any_registry.get_chunks("d1")
        assert [c.id for c in chunks] == ["d1-r0", "d1-r1"]
        assert chunks[1].metadata.page_number == 2
        assert (await any_registry.get("d1")).revision == 2

    @pytest.mark.asyncio
    async def test_replace_chunks_rejects_count_mismatch(self, any_registry) -> None:
        await any_registry.put(_document("d1"))
        await any_registry.replace_chunks(_document("d1", chunk_count=2), _chunks("d1", 2))

        with pytest.raises(ValueError):
            await any_registry.replace_chunks(_document("d1", chunk_count=5), _chunks("d1", 1))
        # The previous set is untouched.
        assert len(await any_registry.get_chunks("d1")) == 2

    @pytest.mark.asyncio
    async def test_replace_chunks_requires_registered_document(self, any_registry) -> None:
        with pytest.raises(DocumentNotFoundError):
            await any_registry.replace_chunks(
                _document("ghost", chunk_count=1), _chunks("ghost", 1)
            )

    @pytest.mark.asyncio
    async def test_delete_cascades_to_chunks(self, any_registry) -> None:
        await any_registry.put(_document("d1"))
        await any_registry.replace_chunks(_document("d1", chunk_count=2), _chunks("d1", 2))

        assert await any_registry.delete("d1") is True
        assert await any_registry.get("d1") is None
        assert await any_registry.get_chunks("d1") == []
        assert await any_registry.delete("d1") is False


class TestSQLiteRegistryPersistence:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "documents.db"
        first = SQLiteDocumentRegistry(db_path=path)
        await first.initialize()
        await first.put(_document("d1"))
        await first.replace_chunks(_document("d1", chunk_count=1), _chunks("d1", 1))

        reopened = SQLiteDocumentRegistry(db_path=path)
        await reopened.initialize()

        assert (await reopened.get("d1")).chunk_count == 1
        assert [c.content for c in await reopened.get_chunks("d1")] == ["chunk 0 of d1"]


# ======================================================================
# LocalFileStore
# ======================================================================


class TestLocalFileStore:
    @pytest.mark.asyncio
    async def test_save_load_delete(self, tmp_path: Path) -> None:
        store = LocalFileStore(root=tmp_path)
        path = await store.save("chat-1", "d1", "report.pdf", b"%PDF-1.4")

        assert Path(path) == tmp_path / "chat-1" / "d1_report.pdf"
        assert await store.load(path) == b"%PDF-1.4"
        assert await store.delete(path) is True
        assert await store.delete(path) is False
        with pytest.raises(FileNotFoundError):
            await store.load(path)

    def test_path_components_are_sanitised(self, tmp_path: Path) -> None:
        store = LocalFileStore(root=tmp_path)
        path = store.path_for("team/../x", "d1", "../../etc/passwd")

        assert path.parent.parent == tmp_path
        assert path.name == "d1_passwd"
