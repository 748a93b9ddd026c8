"""SQLite-backed document registry.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IDocumentRegistry).
# Pattern: Adapter pattern - wraps SQLite behind the IDocumentRegistry ABC
#          so the persistence backend can be swapped without touching
#          the ingestion or search services.
#
# Database: ``data/documents.db`` - the system of record for documents
# and their chunk text.  Vectors live in the vector store; search
# hydrates hits from here.
#
# Two tables:
#   - ``documents``  one row per upload, the Document model as JSON plus
#                    the columns we filter on (scope, created_at)
#   - ``chunks``     one row per live chunk, keyed by chunk id
#
# ``replace_chunks`` swaps a document's chunk set inside one transaction,
# so a reader sees either the old set or the new one, never a mix.
#
# Uses ``aiosqlite`` for async I/O and ``PRAGMA journal_mode=WAL`` for
# concurrent read safety.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.document_registry import IDocumentRegistry
from src.models.document import Document
from src.models.rag import Chunk, ChunkMetadata
from src.utils.errors import DocumentNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_DOCUMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS documents (
    document_id  TEXT PRIMARY KEY,
    scope        TEXT NOT NULL,
    payload      TEXT NOT NULL,
    created_at   TEXT NOT NULL
);
"""

_CREATE_CHUNKS_TABLE = """\
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id     TEXT PRIMARY KEY,
    document_id  TEXT NOT NULL REFERENCES documents(document_id),
    position     INTEGER NOT NULL,
    content      TEXT NOT NULL,
    metadata     TEXT NOT NULL
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_documents_scope ON documents(scope, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, position);",
]

# ── DML ───────────────────────────────────────────────────────────────

_UPSERT_DOCUMENT = """\
INSERT INTO documents (document_id, scope, payload, created_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(document_id)
DO UPDATE SET scope = excluded.scope, payload = excluded.payload;
"""

_INSERT_CHUNK = """\
INSERT INTO chunks (chunk_id, document_id, position, content, metadata)
VALUES (?, ?, ?, ?, ?);
"""


class SQLiteDocumentRegistry(IDocumentRegistry):
    """SQLite-backed registry of documents and their live chunks."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            # WAL mode enables concurrent readers while a writer is active.
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_DOCUMENTS_TABLE)
            await db.execute(_CREATE_CHUNKS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_registry_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_registry"

    # ── Documents ──────────────────────────────────────────────────────

    async def get(self, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT payload FROM documents WHERE document_id = ?;", (document_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return Document.model_validate_json(row[0])

    async def put(self, document: Document) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPSERT_DOCUMENT, _document_params(document))
            await db.commit()

    async def list_ids(self, scope: str) -> list[str]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT document_id FROM documents WHERE scope = ? "
                "ORDER BY created_at, document_id;",
                (scope,),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def delete(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM chunks WHERE document_id = ?;", (document_id,))
            cursor = await db.execute(
                "DELETE FROM documents WHERE document_id = ?;", (document_id,)
            )
            await db.commit()
            removed = cursor.rowcount > 0
        if removed:
            logger.info("document_deleted", document_id=document_id)
        return removed

    # ── Chunks ─────────────────────────────────────────────────────────

    async def replace_chunks(self, document: Document, chunks: list[Chunk]) -> None:
        if document.chunk_count != len(chunks):
            raise ValueError(
                f"chunk_count {document.chunk_count} does not match {len(chunks)} chunks"
            )
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT 1 FROM documents WHERE document_id = ?;", (document.id,)
            )
            if await cursor.fetchone() is None:
                raise DocumentNotFoundError(f"Document {document.id} is not registered")
            # Everything below commits together or not at all.
            try:
                await db.execute("DELETE FROM chunks WHERE document_id = ?;", (document.id,))
                await db.executemany(
                    _INSERT_CHUNK,
                    [
                        (
                            chunk.id,
                            document.id,
                            chunk.position,
                            chunk.content,
                            chunk.metadata.model_dump_json(),
                        )
                        for chunk in chunks
                    ],
                )
                await db.execute(_UPSERT_DOCUMENT, _document_params(document))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.debug("chunks_replaced", document_id=document.id, chunk_count=len(chunks))

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT chunk_id, position, content, metadata FROM chunks "
                "WHERE document_id = ? ORDER BY position;",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [
            Chunk(
                id=row[0],
                document_id=document_id,
                position=row[1],
                content=row[2],
                metadata=ChunkMetadata.model_validate_json(row[3]),
            )
            for row in rows
        ]


def _document_params(document: Document) -> tuple[str, str, str, str]:
    return (
        document.id,
        document.scope,
        document.model_dump_json(),
        document.created_at.isoformat(),
    )
