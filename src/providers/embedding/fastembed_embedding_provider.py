"""Local ONNX-based embedding provider using fastembed.

Wraps the ``fastembed`` library using ONNX Runtime, so **no PyTorch
dependency is required**.  Fully free, runs on CPU with a small RAM
footprint.  This is the default local provider.

Default model: ``sentence-transformers/all-MiniLM-L6-v2`` (384 dimensions).
"""

from __future__ import annotations

from typing import Any

from src.providers.embedding.local_model_provider import LocalModelEmbeddingProvider

# Known model dimensions for fastembed-supported models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "intfloat/multilingual-e5-large": 1024,
}

_DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class FastEmbedEmbeddingProvider(LocalModelEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    Downloads model weights on first run (~90MB for MiniLM), then caches
    them locally.
    """

    def __init__(self, model_name: str | None = None) -> None:
        model_name = model_name or _DEFAULT_MODEL
        super().__init__(model_name, _MODEL_DIMENSIONS.get(model_name, 384))

    def _load_model(self) -> Any:
        from fastembed import TextEmbedding

        return TextEmbedding(model_name=self._model_name)

    def _encode(self, model: Any, texts: list[str]) -> list[list[float]]:
        # fastembed returns a generator of numpy arrays
        return [vector.tolist() for vector in model.embed(texts)]

    def get_provider_name(self) -> str:
        return f"fastembed_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        try:
            import fastembed  # noqa: F401

            return True
        except ImportError:
            return False
