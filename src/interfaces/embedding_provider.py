"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap a local ONNX/PyTorch model or a remote
OpenAI-compatible embeddings API.  Providers are interchangeable, but their
vectors are not: each provider's name and dimension are recorded alongside
every stored vector so that queries are only ever compared with vectors
produced the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (src/providers/embedding/):
#   FastEmbedEmbeddingProvider           - all-MiniLM-L6-v2 via ONNX, 384 dims (local default)
#   SentenceTransformerEmbeddingProvider - all-MiniLM-L6-v2 via PyTorch, 384 dims
#   OpenAIEmbeddingProvider              - text-embedding-3-small, 1536 dims (remote)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the embedding adapter."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the embedding call fails.
        src.utils.errors.ProviderUnavailableError
            If the provider is not configured or cannot be reached.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider instance.  Example values:
        ``384`` (all-MiniLM-L6-v2), ``1536`` (text-embedding-3-small).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a stable identifier for this provider and model.

        The value is persisted on documents and vector records, so it must
        not change between releases for the same model.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and can be used.

        Checks credentials or library presence only; must not generate an
        embedding.
        """
