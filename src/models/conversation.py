"""Chat message model consumed by the context assembler."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class MessageRole(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    id: str | None = None
