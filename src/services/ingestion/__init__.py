"""Document ingestion pipeline.

Orchestrates the full pipeline: **extract -> chunk -> embed -> store**.

1. **Extract** (services/extraction/ExtractionChain) -- ordered extraction
   methods turn raw upload bytes into Elements.

2. **Chunk** (chunker.py / TextChunker) -- splits the Elements into
   ordered chunks using the fixed, semantic, markdown or code strategy.

3. **Embed** (services/embedding_service.py) -- remote-first or local
   vectorisation with fallback.

4. **Store** (services/retrieval/ResilientVectorStore) -- batched,
   availability-aware writes to the vector store, then an atomic swap of
   the Document's live chunk set in the registry.

The IngestionService class orchestrates the stages for one Document.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "IngestionService",
    "TextChunker",
]
