"""Domain models - re-exports all public model classes.

Submodules by concern:
    - config.py        - PipelineConfig and its per-stage sections
    - content.py       - ContentKind resolution for uploads
    - conversation.py  - ChatMessage for context assembly
    - document.py      - Document lifecycle, IndexReport
    - rag.py           - Element, Chunk, VectorRecord, RankedChunk
"""

from __future__ import annotations

from src.models.config import (
    ChunkingConfig,
    ChunkingStrategy,
    ExtractionConfig,
    ExtractionMethodName,
    PipelineConfig,
    RetrievalConfig,
)
from src.models.content import TEXT_LIKE_KINDS, ContentKind, resolve_content_kind
from src.models.conversation import ChatMessage, MessageRole
from src.models.document import (
    Document,
    IndexReport,
    IndexStatus,
    ProcessingState,
    StoreBatchResult,
    UploadedFile,
)
from src.models.rag import (
    Chunk,
    ChunkMetadata,
    Element,
    EmbeddingResult,
    ExtractionOutcome,
    RankedChunk,
    VectorRecord,
)

__all__ = [
    "TEXT_LIKE_KINDS",
    "ChatMessage",
    "Chunk",
    "ChunkMetadata",
    "ChunkingConfig",
    "ChunkingStrategy",
    "ContentKind",
    "Document",
    "Element",
    "EmbeddingResult",
    "ExtractionConfig",
    "ExtractionMethodName",
    "ExtractionOutcome",
    "IndexReport",
    "IndexStatus",
    "MessageRole",
    "PipelineConfig",
    "ProcessingState",
    "RankedChunk",
    "RetrievalConfig",
    "StoreBatchResult",
    "UploadedFile",
    "VectorRecord",
    "resolve_content_kind",
]
