"""Document lifecycle models.

A :class:`Document` is the registry record for one uploaded file.  Like every
model in this package it is frozen; state changes produce new instances via
:meth:`Document.transition` (which enforces the lifecycle) or
``model_copy(update={...})`` for plain field updates.

Lifecycle:
    PENDING -> PROCESSING -> COMPLETED
                          -> FAILED
    PENDING -> FAILED                 (input rejected before processing)

Within one revision the state never moves backwards.  Reprocessing is an
explicit user action that starts a new revision at PENDING
(:meth:`Document.begin_revision`).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.content import ContentKind
from src.utils.errors import InvalidStateTransitionError


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProcessingState(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Processing state of a document within its current revision."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.FAILED)


_ALLOWED_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.PENDING: frozenset({ProcessingState.PROCESSING, ProcessingState.FAILED}),
    ProcessingState.PROCESSING: frozenset({ProcessingState.COMPLETED, ProcessingState.FAILED}),
    ProcessingState.COMPLETED: frozenset(),
    ProcessingState.FAILED: frozenset(),
}


class IndexStatus(str, Enum):  # noqa: UP042
    """How completely a document's vectors reached the vector store."""

    INDEXED = "indexed"    # every batch stored
    PARTIAL = "partial"    # some batches failed
    DEGRADED = "degraded"  # store unavailable or nothing stored; search yields []


# ---------------------------------------------------------------------------
# Vector write reporting
# ---------------------------------------------------------------------------
class StoreBatchResult(BaseModel):
    """Outcome of one upsert batch against the vector store."""

    model_config = ConfigDict(frozen=True)

    batch_index: int = Field(ge=0)
    size: int = Field(ge=0, description="Number of records in the batch.")
    stored: bool = Field(description="True when the store acknowledged the batch.")
    error: str | None = Field(default=None, description="Error text for a failed batch.")


class IndexReport(BaseModel):
    """Aggregate of all batch results for one document's vector write.

    Returned to the caller of the write and persisted on the Document so a
    partially indexed document can be told apart from a fully indexed one.
    """

    model_config = ConfigDict(frozen=True)

    status: IndexStatus
    collection: str | None = Field(default=None, description="Collection written to.")
    batches: list[StoreBatchResult] = Field(default_factory=list)
    reason: str | None = Field(
        default=None, description="Why indexing was degraded, when it was."
    )

    @property
    def records_stored(self) -> int:
        return sum(b.size for b in self.batches if b.stored)

    @property
    def failed_batches(self) -> list[StoreBatchResult]:
        return [b for b in self.batches if not b.stored]


# ---------------------------------------------------------------------------
# Document - the registry record for one upload.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """Registry record for one uploaded file and its processing outcome."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique document identifier (UUID).")
    filename: str
    size: int = Field(ge=0, description="Upload size in bytes.")
    content_type: str = Field(default="", description="MIME type declared by the uploader.")
    content_kind: ContentKind = ContentKind.UNSUPPORTED
    scope: str = Field(description="Conversation or workspace the document belongs to.")
    chunk_count: int = Field(default=0, ge=0)
    processing_state: ProcessingState = ProcessingState.PENDING
    error: str | None = Field(default=None, description="Last error when FAILED.")
    revision: int = Field(default=1, ge=1, description="Incremented on every reprocess.")
    # Which extraction method / chunking strategy / embedding provider
    # produced the live chunk set.
    extraction_method: str | None = None
    extraction_errors: dict[str, str] = Field(
        default_factory=dict, description="Per-method failures from the last extraction."
    )
    chunking_strategy: str | None = None
    embedding_provider: str | None = None
    embedding_dimension: int | None = Field(default=None, ge=1)
    index_report: IndexReport | None = None
    storage_path: str | None = Field(
        default=None, description="Where the raw upload is kept for reprocessing."
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def transition(self, new_state: ProcessingState, error: str | None = None) -> Document:
        """Return a copy in *new_state*, refusing any backwards move.

        Raises:
            InvalidStateTransitionError: If *new_state* is not reachable
                from the current state within this revision.
        """
        if new_state not in _ALLOWED_TRANSITIONS[self.processing_state]:
            raise InvalidStateTransitionError(
                message=(
                    f"Document {self.id} cannot move from "
                    f"{self.processing_state.value} to {new_state.value}"
                )
            )
        return self.model_copy(
            update={
                "processing_state": new_state,
                "error": error if new_state == ProcessingState.FAILED else None,
                "updated_at": _utcnow(),
            }
        )

    def begin_revision(self) -> Document:
        """Start a new processing revision at PENDING (explicit reprocess only).

        The previous revision's chunk set stays live until the new one is
        committed, so ``chunk_count`` and the provider fields are kept.
        """
        if not self.processing_state.is_terminal:
            raise InvalidStateTransitionError(
                message=(
                    f"Document {self.id} is still {self.processing_state.value}; "
                    "only completed or failed documents can be reprocessed"
                )
            )
        return self.model_copy(
            update={
                "processing_state": ProcessingState.PENDING,
                "error": None,
                "revision": self.revision + 1,
                "updated_at": _utcnow(),
            }
        )


class UploadedFile(BaseModel):
    """Raw upload handed to the pipeline by an outer surface (CLI, web handler)."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str = ""
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)
