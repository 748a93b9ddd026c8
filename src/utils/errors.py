"""Custom exception hierarchy for the document pipeline.

All application exceptions inherit from :class:`DocumentPipelineError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "unstructured_local", "openai", "chromadb") caused the
failure.

The hierarchy is organized by pipeline stage:

    DocumentPipelineError  (base -- catch-all for any pipeline error)
    +-- ExtractionError              (file bytes -> Elements)
    +-- EmbeddingError               (text -> vectors)
    +-- VectorStoreError             (vector writes / reads)
    +-- ProviderUnavailableError     (external service down / unreachable)
    +-- RateLimitError               (provider quota exceeded)
    +-- ConfigurationError           (startup / missing config)
    +-- InvalidStateTransitionError  (processing state would regress)
    +-- DocumentNotFoundError        (unknown document id)
    +-- UnsupportedInputError        (empty upload, nothing chunkable)

Transient failures (ProviderUnavailableError, RateLimitError, timeouts) make
the caller move on to the next method or provider.  UnsupportedInputError is
terminal for a document: it is marked failed and never retried automatically.
"""


class DocumentPipelineError(Exception):
    """Base exception for all document pipeline errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    ``__str__`` prefixes the provider name in brackets for structured log
    output, e.g. ``[openai_text-embedding-3-small] Rate limit exceeded``.
    Subclasses only set ``default_message``.
    """

    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, provider_name: str | None = None) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Stage errors
# ---------------------------------------------------------------------------


class ExtractionError(DocumentPipelineError):
    """An extraction method could not produce any elements."""

    default_message = "Text extraction failed"


class EmbeddingError(DocumentPipelineError):
    """An embedding provider failed to vectorise a batch, or every provider did."""

    default_message = "Embedding generation failed"


class VectorStoreError(DocumentPipelineError):
    default_message = "Vector store operation failed"


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------


class ProviderUnavailableError(DocumentPipelineError):
    """An external service or provider is unreachable or not configured.

    The extraction chain and the embedding service catch this to try the
    next method or provider in the configured order.
    """

    default_message = "External service is unavailable"


class RateLimitError(DocumentPipelineError):
    default_message = "Rate limit exceeded"


# ---------------------------------------------------------------------------
# Lifecycle / configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(DocumentPipelineError):
    """Invalid settings or ``config.yaml`` content."""

    default_message = "Invalid or missing configuration"


class InvalidStateTransitionError(DocumentPipelineError):
    """A document's processing state would move backwards or skip a step."""

    default_message = "Invalid processing state transition"


class DocumentNotFoundError(DocumentPipelineError):
    default_message = "Document not found"


class UnsupportedInputError(DocumentPipelineError):
    """Malformed input: an empty upload, or content with nothing to chunk."""

    default_message = "Unsupported or empty input"
