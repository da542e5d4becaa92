"""Service interface between the core and the generative model.

The core never talks to a model client directly. AnalysisContract and
ChatSession receive a GenerativeService at construction, which lets tests
substitute a scripted fake for Gemini.
"""

from collections.abc import AsyncIterator
from typing import Annotated, Any, Literal, Protocol

from pydantic import BaseModel, Field


class ServiceError(Exception):
    """Raised when the model service fails (network, quota, or model error)."""

    pass


class TextPart(BaseModel):
    """Plain instruction text inside a request."""

    kind: Literal["text"] = "text"
    text: str


class InlinePart(BaseModel):
    """Inline file attachment, base64 encoded."""

    kind: Literal["inline"] = "inline"
    data: str
    mime_type: str


RequestPart = Annotated[TextPart | InlinePart, Field(discriminator="kind")]


class AnalysisRequest(BaseModel):
    """Single-shot multimodal request expecting a JSON document back.

    Attributes:
        model: Model identifier.
        system_instruction: Persona and style rules.
        parts: Ordered content parts (instructions and inline files).
        response_mime_type: Format the response must use.
        response_schema: Schema the JSON response must conform to.
    """

    model: str
    system_instruction: str
    parts: list[RequestPart]
    response_mime_type: str = "application/json"
    response_schema: dict[str, Any]


class ServiceTurn(BaseModel):
    """One replayed turn in the service's own role vocabulary."""

    role: Literal["user", "model"]
    text: str


class ConversationRequest(BaseModel):
    """Chat turn with replayed history; the service keeps no memory.

    Attributes:
        model: Model identifier.
        system_instruction: Persona rules embedding the context digest.
        history: Prior turns, oldest first.
        message: The new user message.
    """

    model: str
    system_instruction: str
    history: list[ServiceTurn] = Field(default_factory=list)
    message: str


class TextChunk(BaseModel):
    """Streaming increment carrying response text."""

    kind: Literal["text"] = "text"
    value: str


class OtherChunk(BaseModel):
    """Streaming increment without text (metadata, tool calls, ...)."""

    kind: Literal["other"] = "other"
    raw: Any = None


ServiceChunk = Annotated[TextChunk | OtherChunk, Field(discriminator="kind")]


class GenerativeService(Protocol):
    """Capabilities the core needs from a generative model."""

    @property
    def model_name(self) -> str: ...

    async def generate(self, request: AnalysisRequest) -> str:
        """Return the raw response body for an analysis request."""
        ...

    def stream(self, request: ConversationRequest) -> AsyncIterator[TextChunk | OtherChunk]:
        """Yield response increments for a chat turn, in delivery order."""
        ...
