"""Utility modules for the document pipeline.

Available utility modules:

- **errors** -- Exception hierarchy rooted at DocumentPipelineError; each
  pipeline stage raises its own subclass so callers can handle failures
  granularly without broad ``except Exception`` blocks.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_segmentation** (not re-exported here, it depends on the models
  package) -- paragraph and heading segmentation shared by the extractors.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentPipelineError,
    EmbeddingError,
    ExtractionError,
    InvalidStateTransitionError,
    ProviderUnavailableError,
    RateLimitError,
    UnsupportedInputError,
    VectorStoreError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import bind_pipeline_context, configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "DocumentPipelineError",
    "EmbeddingError",
    "ExtractionError",
    "InvalidStateTransitionError",
    "ProviderUnavailableError",
    "RateLimitError",
    "UnsupportedInputError",
    "VectorStoreError",
    "bind_pipeline_context",
    "configure_logging",
    "get_logger",
]
