"""Retrieval data models: elements, chunks, vectors and ranked results.

Flow of data through the pipeline:

    bytes --extraction--> Element[] --chunker--> Chunk[]
          --embedding--> VectorRecord[] --vector store--> RankedChunk[]

All models are frozen (immutable).  A Chunk belongs to exactly one Document;
a VectorRecord belongs to exactly one Chunk and remembers which embedding
provider produced it, because vectors from different providers (or with
different dimensions) are never compared.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Element - one structural unit produced by an extraction method.
# ---------------------------------------------------------------------------
class Element(BaseModel):
    """A structural text unit (paragraph, title, table, ...) from extraction."""

    model_config = ConfigDict(frozen=True)

    text: str
    type: str = Field(default="NarrativeText", description='Element type, e.g. "Title".')
    page_number: int | None = Field(default=None, ge=1)


class ExtractionOutcome(BaseModel):
    """Result of running the extraction chain over one upload.

    ``method`` names the extraction method that produced ``elements``;
    ``None`` means every method failed and ``elements`` holds a single
    diagnostic element.  ``errors`` maps method name to its failure text.
    """

    model_config = ConfigDict(frozen=True)

    elements: list[Element]
    method: str | None = None
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.method is not None


# ---------------------------------------------------------------------------
# Chunk - the unit of embedding and retrieval.
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Provenance of a chunk within its source document."""

    model_config = ConfigDict(frozen=True)

    section: str | None = Field(default=None, description="Nearest heading, if any.")
    page_number: int | None = Field(default=None, ge=1)
    element_type: str | None = None
    # Offsets into the joined extracted text.  Set by the fixed strategy,
    # whose chunks are raw slices and can be stitched back together.
    start_offset: int | None = Field(default=None, ge=0)
    end_offset: int | None = Field(default=None, ge=0)


class Chunk(BaseModel):
    """A contiguous fragment of a document's extracted text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique chunk identifier (UUID).")
    document_id: str
    content: str
    position: int = Field(ge=0, description="Ordinal position within the document.")
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


# ---------------------------------------------------------------------------
# VectorRecord - what the vector store holds for one chunk.
# ---------------------------------------------------------------------------
class VectorRecord(BaseModel):
    """Embedding of one chunk plus the fields needed to filter and guard it."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    embedding: list[float] = Field(repr=False)
    document_id: str
    position: int = Field(ge=0)
    scope: str
    provider: str = Field(description="Embedding provider that produced the vector.")

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    def store_metadata(self) -> dict[str, Any]:
        """Flat scalar metadata as vector stores expect it."""
        return {
            "document_id": self.document_id,
            "position": self.position,
            "scope": self.scope,
            "provider": self.provider,
            "dimension": self.dimension,
        }


class EmbeddingResult(BaseModel):
    """Vectors for a batch of texts and the provider that actually made them.

    ``fallback_used`` is True when the preferred remote provider failed and
    the local model answered instead; ``errors`` carries the remote failure.
    """

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]] = Field(repr=False)
    provider: str
    dimension: int = Field(ge=1)
    fallback_used: bool = False
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# RankedChunk - one search hit.
# ---------------------------------------------------------------------------
class RankedChunk(BaseModel):
    """A chunk returned by vector search with its cosine similarity."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(ge=-1.0, le=1.0, description="Cosine similarity to the query.")
    document_name: str = ""
