"""Shared lazy-loading machinery for in-process embedding models.

Local models are expensive to load (hundreds of MB of weights) and are
shared by every request in the process.  :class:`LocalModelEmbeddingProvider`
loads the model on first use with single-flight semantics: concurrent first
callers wait on one ``asyncio.Lock`` while a single worker thread loads the
weights, then all of them use the same model.  Nobody proceeds before the
model is ready and the weights are never loaded twice.

Inference is CPU-bound and synchronous, so it also runs in a worker thread
to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import Any

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_BATCH_LIMIT = 64  # Conservative batch size for CPU inference


class LocalModelEmbeddingProvider(IEmbeddingProvider):
    """Base class for local models with single-flight lazy initialisation."""

    def __init__(self, model_name: str, dimension: int) -> None:
        self._model_name = model_name
        self._dimension = dimension
        self._model: Any = None  # Lazy-loaded
        self._load_lock = asyncio.Lock()
        self._load_count = 0

    # ------------------------------------------------------------------
    # Subclass hooks (run in a worker thread)
    # ------------------------------------------------------------------

    @abstractmethod
    def _load_model(self) -> Any:
        """Load and return the model object."""

    @abstractmethod
    def _encode(self, model: Any, texts: list[str]) -> list[list[float]]:
        """Embed one batch of texts with a loaded model."""

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def load_count(self) -> int:
        """How many times the model weights were loaded (1 after warm-up)."""
        return self._load_count

    async def ensure_loaded(self) -> None:
        """Load the model once, no matter how many callers race to it."""
        if self._model is not None:
            return
        async with self._load_lock:
            # Another caller may have finished loading while we waited.
            if self._model is not None:
                return
            logger.info("local_embedding_model_loading", model=self._model_name)
            try:
                model = await asyncio.to_thread(self._load_model)
            except Exception as exc:
                raise EmbeddingError(
                    message=f"Failed to load model '{self._model_name}': {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            self._load_count += 1
            self._model = model
            logger.info(
                "local_embedding_model_loaded",
                model=self._model_name,
                dimension=self._dimension,
            )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors, splitting into CPU-friendly batches."""
        if not texts:
            return []

        await self.ensure_loaded()

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _BATCH_LIMIT):
                batch = texts[start : start + _BATCH_LIMIT]
                all_embeddings.extend(await asyncio.to_thread(self._encode, self._model, batch))
            return all_embeddings
        except Exception as exc:
            raise EmbeddingError(
                message=f"Local embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension
