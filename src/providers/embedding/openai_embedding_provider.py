"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible endpoints (TogetherAI, Azure
proxies, local gateways) via a custom ``base_url`` and model name.

Requests are split into batches of at most ``embedding_batch_size`` texts
(default 50) with a short pause between batches so large documents do not
trip per-minute rate limits.  Failures are translated into the pipeline's
error taxonomy so the embedding adapter can decide whether to fall back to
the local model.
"""

from __future__ import annotations

import asyncio

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError, ProviderUnavailableError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}

_DEFAULT_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  When
    ``openai_base_url`` is configured, the client points at that URL.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)
        self._batch_size = max(1, settings.embedding_batch_size)
        self._batch_delay = max(0.0, settings.embedding_batch_delay_seconds)
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            client_kwargs: dict = {"api_key": self._api_key}
            if self._base_url:
                client_kwargs["base_url"] = self._base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        return self._client

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors in batches of ``embedding_batch_size``.

        Raises
        ------
        ProviderUnavailableError
            No API key, bad credentials, or the endpoint is unreachable.
        RateLimitError
            The account's quota or rate limit was exceeded.
        EmbeddingError
            Any other API failure.
        """
        if not texts:
            return []
        if not self._api_key:
            raise ProviderUnavailableError(
                message="No API key configured", provider_name=self.get_provider_name()
            )

        client = self._get_client()
        all_embeddings: list[list[float]] = []
        try:
            for start in range(0, len(texts), self._batch_size):
                if start and self._batch_delay:
                    await asyncio.sleep(self._batch_delay)
                batch = texts[start : start + self._batch_size]
                response = await client.embeddings.create(input=batch, model=self._model)
                all_embeddings.extend(item.embedding for item in response.data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise ProviderUnavailableError(
                message=f"Credentials rejected: {exc}", provider_name=self.get_provider_name()
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"Quota or rate limit exceeded: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIConnectionError as exc:
            # APITimeoutError is a subclass of APIConnectionError.
            raise ProviderUnavailableError(
                message=f"Endpoint unreachable: {exc}", provider_name=self.get_provider_name()
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"Embeddings API error: {exc}", provider_name=self.get_provider_name()
            ) from exc

        if len(all_embeddings) != len(texts):
            raise EmbeddingError(
                message=f"Expected {len(texts)} vectors, got {len(all_embeddings)}",
                provider_name=self.get_provider_name(),
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        prefix = "openai-compatible" if self._base_url else "openai"
        return f"{prefix}_{self._model.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
