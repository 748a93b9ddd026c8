"""Local sentence-transformers embedding provider adapter.

Wraps the ``sentence-transformers`` library to run any HuggingFace
embedding model locally on CPU/GPU with no API key.  Heavier than the
fastembed backend (it pulls in PyTorch); select it with
``LOCAL_EMBEDDING_BACKEND=sentence_transformers``.

Default model: ``sentence-transformers/all-MiniLM-L6-v2`` (384 dimensions).
"""

from __future__ import annotations

from typing import Any

from src.providers.embedding.local_model_provider import LocalModelEmbeddingProvider

# Known model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-mpnet-base-v2": 768,
    "BAAI/bge-base-en-v1.5": 768,
    "intfloat/e5-base-v2": 768,
}

_DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbeddingProvider(LocalModelEmbeddingProvider):
    """Embedding provider backed by a local sentence-transformers model."""

    def __init__(self, model_name: str | None = None) -> None:
        model_name = model_name or _DEFAULT_MODEL
        super().__init__(model_name, _MODEL_DIMENSIONS.get(model_name, 384))

    def _load_model(self) -> Any:
        from sentence_transformers import SentenceTransformer

        return SentenceTransformer(self._model_name)

    def _encode(self, model: Any, texts: list[str]) -> list[list[float]]:
        vectors = model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return vectors.tolist()

    def get_provider_name(self) -> str:
        return f"sentence_transformer_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if sentence-transformers is installed."""
        try:
            import sentence_transformers  # noqa: F401

            return True
        except ImportError:
            return False
