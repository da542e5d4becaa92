"""Pydantic models for API requests and responses."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from lablens.models import ChatMessage, MediaType


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    IGNORED = "ignored"
    ERROR = "error"


class ChatRequest(BaseModel):
    """Request payload for the chat streaming endpoint.

    Attributes:
        message: User's question or prompt.
    """

    message: str = Field(..., min_length=1)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class ExplainRequest(BaseModel):
    """Request to explain a term shown in the analysis view."""

    term: str = Field(..., min_length=1)

    @field_validator("term", mode="before")
    @classmethod
    def strip_term(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class StreamChunk(BaseModel):
    """A chunk of streamed response data.

    Attributes:
        content: Full assistant message accumulated so far.
        done: Whether this is the final chunk.
        status: Current processing status.
        error: Error message if something went wrong.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    error: str | None = None


class UploadResponse(BaseModel):
    """Response after a report upload has been normalized.

    Attributes:
        slot: Which report was set (latest or previous).
        filename: Name of the uploaded file.
        media_type: Canonical kind (image or pdf).
        size: Size in bytes after normalization.
        pages: Page count for PDF documents, when readable.
    """

    slot: str
    filename: str
    media_type: MediaType
    size: int
    pages: int | None = None


class TranscriptResponse(BaseModel):
    """Current chat transcript and whether a reply is in flight."""

    messages: list[ChatMessage]
    pending: bool


class SessionResponse(BaseModel):
    """Snapshot of what the session currently holds."""

    latest: str | None = None
    previous: str | None = None
    has_result: bool = False
    analyzing: bool = False
