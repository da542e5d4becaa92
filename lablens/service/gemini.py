"""Gemini implementation of the generative service.

Maps AnalysisRequest and ConversationRequest onto google-genai calls and
resolves raw stream chunks into TextChunk or OtherChunk once, here, so that
consumers never inspect client response objects.
"""

import base64
import logging
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types

from lablens.service.base import (
    AnalysisRequest,
    ConversationRequest,
    InlinePart,
    OtherChunk,
    RequestPart,
    ServiceError,
    TextChunk,
)
from lablens.service.config import ServiceConfig, get_service_config

logger = logging.getLogger(__name__)


def _to_part(part: RequestPart) -> types.Part:
    if isinstance(part, InlinePart):
        return types.Part.from_bytes(data=base64.b64decode(part.data), mime_type=part.mime_type)
    return types.Part.from_text(text=part.text)


def resolve_chunk(chunk: Any) -> TextChunk | OtherChunk:
    """Classify a raw client stream chunk."""
    text = getattr(chunk, "text", None)
    if isinstance(text, str):
        return TextChunk(value=text)
    return OtherChunk(raw=chunk)


class GeminiService:
    """Generative service backed by the google-genai async client.

    Wraps the client with:
    - Explicit configuration instead of a process-wide client
    - JSON-mode requests with a response schema for analysis
    - Stateless streaming chat with replayed history
    - ServiceError for every client failure
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Optional service configuration.
                    Loads from environment if not provided.
            client: Optional pre-built client, mainly for tests.
        """
        self._config = config or get_service_config()
        self._client = client or genai.Client(api_key=self._config.api_key)

    @property
    def model_name(self) -> str:
        return self._config.model_name

    async def generate(self, request: AnalysisRequest) -> str:
        """Send a single-shot analysis request.

        Args:
            request: The analysis request.

        Returns:
            Raw response text (expected to be a JSON document).

        Raises:
            ServiceError: If the call fails.
        """
        config = types.GenerateContentConfig(
            system_instruction=request.system_instruction,
            response_mime_type=request.response_mime_type,
            response_schema=request.response_schema,
            temperature=self._config.temperature,
        )
        contents = [types.Content(role="user", parts=[_to_part(p) for p in request.parts])]

        try:
            response = await self._client.aio.models.generate_content(
                model=request.model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.error(f"Analysis request failed: {e}")
            raise ServiceError(f"Analysis request failed: {e}") from e

        return response.text or ""

    async def stream(self, request: ConversationRequest) -> AsyncIterator[TextChunk | OtherChunk]:
        """Stream a chat turn.

        Args:
            request: Chat turn with replayed history.

        Yields:
            Resolved chunks in delivery order.

        Raises:
            ServiceError: If the call fails before or during streaming.
        """
        contents = [
            types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
            for turn in request.history
        ]
        contents.append(
            types.Content(role="user", parts=[types.Part.from_text(text=request.message)])
        )
        config = types.GenerateContentConfig(
            system_instruction=request.system_instruction,
            temperature=self._config.temperature,
        )

        try:
            response_stream = await self._client.aio.models.generate_content_stream(
                model=request.model,
                contents=contents,
                config=config,
            )
            async for chunk in response_stream:
                yield resolve_chunk(chunk)
        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            raise ServiceError(f"Chat stream failed: {e}") from e


# Module-level singleton instance
_service: GeminiService | None = None


def get_service() -> GeminiService:
    """Get or create the global Gemini service.

    Returns:
        The GeminiService instance.
    """
    global _service
    if _service is None:
        _service = GeminiService()
    return _service
