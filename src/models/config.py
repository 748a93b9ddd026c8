"""Pipeline configuration structs.

Every per-scope tunable of the ingestion and retrieval pipeline lives in one
:class:`PipelineConfig`, built from :class:`~src.config.settings.Settings`
and optionally overridden per scope by ``config/config.yaml`` (see
:class:`~src.config.loader.ScopedConfigResolver`).  Services receive the
struct; they never read environment variables themselves.  Unknown keys are
rejected, so an override the pipeline would never read fails loudly.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkingStrategy(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    AUTO = "auto"
    FIXED = "fixed"
    SEMANTIC = "semantic"
    MARKDOWN = "markdown"
    CODE = "code"


class ExtractionMethodName(str, Enum):  # noqa: UP042
    """Extraction methods in their default priority order."""

    UNSTRUCTURED_HOSTED = "unstructured_hosted"
    UNSTRUCTURED_LOCAL = "unstructured_local"
    PYMUPDF = "pymupdf"
    PURE_PYTHON = "pure_python"
    OLLAMA_VISION = "ollama_vision"
    BASIC = "basic"


DEFAULT_EXTRACTION_ORDER: tuple[ExtractionMethodName, ...] = tuple(ExtractionMethodName)


class ExtractionConfig(BaseModel):
    """Ordered extraction methods and the per-method time budget.

    Connection details for the hosted and local services are process-wide
    and live in ``Settings``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    methods: list[ExtractionMethodName] = Field(
        default_factory=lambda: list(DEFAULT_EXTRACTION_ORDER),
        description="Methods to try, in order.  BASIC is always appended if missing.",
    )
    timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("methods")
    @classmethod
    def _basic_is_last_resort(
        cls, methods: list[ExtractionMethodName]
    ) -> list[ExtractionMethodName]:
        if ExtractionMethodName.BASIC not in methods:
            methods = [*methods, ExtractionMethodName.BASIC]
        return methods


class ChunkingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: ChunkingStrategy = ChunkingStrategy.AUTO
    chunk_size: int = Field(default=1000, ge=1, description="Maximum chunk length in characters.")
    chunk_overlap: int = Field(default=200, ge=0)
    snap_lookahead: int = Field(
        default=50, ge=0, description="How far past the window end a whitespace snap may reach."
    )
    code_tail_lines: int = Field(default=3, ge=0)


class RetrievalConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    min_similarity: float = Field(default=0.2, ge=-1.0, le=1.0)
    default_limit: int = Field(default=5, ge=1)
    max_context_chunks: int = Field(default=10, ge=1)
    store_batch_size: int = Field(default=50, ge=1)
    search_mode: str = Field(default="scan", description='"scan" (full scan) or "index".')


class PipelineConfig(BaseModel):
    """Everything one pipeline run needs to know, resolved for one scope."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
