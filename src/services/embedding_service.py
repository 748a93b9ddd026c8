"""Embedding adapter: remote-first or local-only vectorisation with fallback.

Owns one local provider (FastEmbed or sentence-transformers, loaded once per
process with single-flight initialisation) and, optionally, one remote
OpenAI-compatible provider.

In ``remote`` mode the remote provider is tried first; any failure
(missing key, rejected credentials, network error, exhausted quota) falls
back to the local model for that request.  The returned
:class:`EmbeddingResult` names the provider that actually produced the
vectors so the caller can persist it on the Document.  Vectors from
different providers are never mixed within one result.

Query embeddings must come from the same provider as the corpus they are
compared with, so :meth:`EmbeddingService.embed_query` accepts the provider
name recorded on the Document and never falls back to a different one.
Query vectors are cached per (provider, text).
"""

from __future__ import annotations

from cachetools import LRUCache

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.rag import EmbeddingResult
from src.utils.errors import DocumentPipelineError, EmbeddingError, ProviderUnavailableError
from src.utils.logging import get_logger

_DEFAULT_QUERY_CACHE_SIZE = 512


class EmbeddingService:
    """Vectorise chunk and query text through the configured providers."""

    def __init__(
        self,
        local_provider: IEmbeddingProvider,
        remote_provider: IEmbeddingProvider | None = None,
        mode: str = "local",
        query_cache_size: int = _DEFAULT_QUERY_CACHE_SIZE,
    ) -> None:
        self._local = local_provider
        self._remote = remote_provider
        self._mode = mode
        self._query_cache: LRUCache[tuple[str, str], list[float]] = LRUCache(
            maxsize=query_cache_size
        )
        self._logger = get_logger(__name__)

        if mode == "remote" and remote_provider is None:
            self._logger.warning("embedding_remote_mode_without_provider")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def local_provider(self) -> IEmbeddingProvider:
        return self._local

    @property
    def mode(self) -> str:
        return self._mode

    def provider_order(self) -> list[IEmbeddingProvider]:
        """Providers to try for ingestion, in preference order."""
        if self._mode == "remote" and self._remote is not None:
            return [self._remote, self._local]
        return [self._local]

    def get_provider(self, name: str) -> IEmbeddingProvider | None:
        """Return the configured provider called *name*, if any."""
        for provider in (self._local, self._remote):
            if provider is not None and provider.get_provider_name() == name:
                return provider
        return None

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> EmbeddingResult:
        """Embed *texts* with the first provider that succeeds.

        Raises
        ------
        EmbeddingError
            If every provider failed.  The message lists each failure.
        """
        order = self.provider_order()
        errors: list[str] = []

        for index, provider in enumerate(order):
            name = provider.get_provider_name()
            if not provider.is_available():
                errors.append(f"[{name}] provider not available")
                self._logger.warning("embedding_provider_unavailable", provider=name)
                continue

            try:
                vectors = await provider.embed(texts)
                dimension = _checked_dimension(vectors, len(texts), provider)
            except Exception as exc:
                errors.append(_describe(exc, name))
                self._logger.warning(
                    "embedding_provider_failed",
                    provider=name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue

            fallback_used = index > 0
            if fallback_used:
                self._logger.info(
                    "embedding_fallback_used", provider=name, remote_errors=errors
                )
            return EmbeddingResult(
                vectors=vectors,
                provider=name,
                dimension=dimension,
                fallback_used=fallback_used,
                errors=errors,
            )

        raise EmbeddingError(
            message="All embedding providers failed: " + "; ".join(errors),
            provider_name=order[-1].get_provider_name(),
        )

    async def embed_query(self, text: str, provider: str | None = None) -> EmbeddingResult:
        """Embed a search query, optionally pinned to the corpus's provider.

        Raises
        ------
        ProviderUnavailableError
            *provider* is named but not configured or not available.
        EmbeddingError
            The provider failed to embed the query.
        """
        if provider is None:
            result = await self.embed([text])
            self._query_cache[(result.provider, text)] = result.vectors[0]
            return result

        cached = self._query_cache.get((provider, text))
        if cached is not None:
            return EmbeddingResult(vectors=[cached], provider=provider, dimension=len(cached))

        target = self.get_provider(provider)
        if target is None or not target.is_available():
            raise ProviderUnavailableError(
                message=f"Embedding provider '{provider}' is not available for queries",
                provider_name=provider,
            )
        vector = await target.embed_single(text)
        if not vector:
            raise EmbeddingError(message="Empty query vector", provider_name=provider)
        self._query_cache[(provider, text)] = vector
        return EmbeddingResult(vectors=[vector], provider=provider, dimension=len(vector))


def _checked_dimension(
    vectors: list[list[float]], expected_count: int, provider: IEmbeddingProvider
) -> int:
    """Return the common vector length, rejecting short or ragged output."""
    name = provider.get_provider_name()
    if len(vectors) != expected_count:
        raise EmbeddingError(
            message=f"Expected {expected_count} vectors, got {len(vectors)}",
            provider_name=name,
        )
    if not vectors:
        return provider.get_dimension()
    dimension = len(vectors[0])
    if dimension == 0 or any(len(v) != dimension for v in vectors):
        raise EmbeddingError(message="Inconsistent vector dimensions", provider_name=name)
    return dimension


def _describe(exc: Exception, provider_name: str) -> str:
    if isinstance(exc, DocumentPipelineError) and exc.provider_name:
        return str(exc)
    return f"[{provider_name}] {exc}"
