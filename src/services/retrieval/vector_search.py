"""Vector similarity search over one scope's chunks.

Scores every candidate vector against the query with cosine similarity
(numpy), drops candidates that cannot be compared with the query, applies
the similarity floor and returns the top hits hydrated from the document
registry.

Candidate generation has two modes:

* ``scan`` (default) reads every vector tagged with the scope via
  ``fetch_scope`` and ranks them in process.  Exact, and fast enough for
  per-conversation corpora.
* ``index`` asks the store's native ANN index for nearest neighbours
  (``IVectorStoreProvider.search``) and re-scores them here, so the
  comparability guard and the floor behave identically in both modes.

Only vectors with the query's dimension (and, when a provider is named,
from that provider) are compared.  Anything else is excluded, never scored,
and the exclusion count is logged.

Hits whose chunk id is not in the registry's live chunk set (a stale vector
left behind by an interrupted reprocess or delete) are skipped.
"""

from __future__ import annotations

import asyncio
from typing import Any

import numpy as np

from src.interfaces.document_registry import IDocumentRegistry
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredVector
from src.models.config import RetrievalConfig
from src.models.document import Document
from src.models.rag import Chunk, RankedChunk
from src.utils.errors import VectorStoreError
from src.utils.logging import get_logger

# How many extra neighbours to request from the native index, since some
# will be filtered out by the floor or the live-set check.
_INDEX_OVERFETCH = 4


def cosine_similarities(query: list[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against every row of *matrix*.

    Rows (or a query) with zero norm score 0.0.  Results are clipped to
    [-1, 1] to absorb floating point drift.
    """
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denom > 0, (matrix @ q) / denom, 0.0)
    return np.clip(scores, -1.0, 1.0)


class VectorSearchEngine:
    """Rank a scope's chunks against a query vector."""

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        registry: IDocumentRegistry,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._store = vector_store
        self._registry = registry
        self._config = config or RetrievalConfig()
        self._logger = get_logger(__name__)

    async def search(
        self,
        query_vector: list[float],
        scope: str,
        limit: int | None = None,
        provider: str | None = None,
        config: RetrievalConfig | None = None,
    ) -> list[RankedChunk]:
        """Return at most *limit* chunks, best first.

        Ordering is strictly by descending score; ties are broken by chunk
        position, then chunk id, so results are deterministic.  Returns
        ``[]`` when the store is unavailable or nothing clears the floor.
        """
        cfg = config or self._config
        limit = cfg.default_limit if limit is None else limit
        if limit <= 0 or not query_vector:
            return []

        if not await asyncio.to_thread(self._store.is_available):
            self._logger.warning("vector_search_store_unavailable", scope=scope)
            return []

        try:
            candidates = await self._candidates(query_vector, scope, limit, provider, cfg)
        except VectorStoreError as exc:
            self._logger.warning("vector_search_store_error", scope=scope, error=str(exc))
            return []

        comparable = self._comparable(candidates, len(query_vector), scope, provider)
        if not comparable:
            return []

        matrix = np.asarray([c.embedding for c in comparable], dtype=np.float64)
        scores = cosine_similarities(query_vector, matrix)

        above_floor = [
            (float(score), candidate)
            for score, candidate in zip(scores, comparable)
            if score >= cfg.min_similarity
        ]
        above_floor.sort(
            key=lambda pair: (
                -pair[0],
                int(pair[1].metadata.get("position", 0)),
                pair[1].chunk_id,
            )
        )

        results = await self._hydrate(above_floor, limit)
        self._logger.info(
            "vector_search_complete",
            scope=scope,
            candidates=len(comparable),
            above_floor=len(above_floor),
            returned=len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _candidates(
        self,
        query_vector: list[float],
        scope: str,
        limit: int,
        provider: str | None,
        cfg: RetrievalConfig,
    ) -> list[StoredVector]:
        if cfg.search_mode == "index":
            filters: dict[str, Any] = {"scope": scope}
            if provider:
                filters["provider"] = provider
            return await self._store.search(
                query_vector, filters=filters, limit=limit * _INDEX_OVERFETCH
            )
        return await self._store.fetch_scope(scope)

    def _comparable(
        self,
        candidates: list[StoredVector],
        dimension: int,
        scope: str,
        provider: str | None,
    ) -> list[StoredVector]:
        kept: list[StoredVector] = []
        mismatched = 0
        for candidate in candidates:
            if candidate.metadata.get("scope") != scope:
                continue
            if candidate.dimension != dimension or (
                provider is not None and candidate.metadata.get("provider") != provider
            ):
                mismatched += 1
                continue
            kept.append(candidate)
        if mismatched:
            self._logger.warning(
                "vector_search_mismatched_candidates",
                scope=scope,
                query_dimension=dimension,
                provider=provider,
                mismatched_candidates=mismatched,
            )
        return kept

    async def _hydrate(
        self, scored: list[tuple[float, StoredVector]], limit: int
    ) -> list[RankedChunk]:
        """Turn scored vectors into RankedChunks, skipping chunks that are not live."""
        live: dict[str, dict[str, Chunk]] = {}
        documents: dict[str, Document | None] = {}
        results: list[RankedChunk] = []
        stale = 0

        for score, candidate in scored:
            if len(results) >= limit:
                break
            document_id = str(candidate.metadata.get("document_id", ""))
            if document_id not in documents:
                documents[document_id] = await self._registry.get(document_id)
                live[document_id] = {
                    c.id: c for c in await self._registry.get_chunks(document_id)
                }
            document = documents[document_id]
            chunk = live[document_id].get(candidate.chunk_id)
            if document is None or chunk is None:
                stale += 1
                continue
            results.append(
                RankedChunk(chunk=chunk, score=score, document_name=document.filename)
            )

        if stale:
            self._logger.debug("vector_search_stale_hits_skipped", count=stale)
        return results
