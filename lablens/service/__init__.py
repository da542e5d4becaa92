"""Generative model service for analysis and chat.

Responsibilities:
    - Service interface the core depends on (GenerativeService)
    - Request and stream-chunk types at the service boundary
    - Gemini implementation on google-genai
    - Environment-driven configuration

Keeps the model client out of the core so tests can inject a fake.
"""

from lablens.service.base import (
    AnalysisRequest,
    ConversationRequest,
    GenerativeService,
    InlinePart,
    OtherChunk,
    ServiceChunk,
    ServiceError,
    ServiceTurn,
    TextChunk,
    TextPart,
)
from lablens.service.config import ServiceConfig, get_service_config
from lablens.service.gemini import GeminiService, get_service

__all__ = [
    "AnalysisRequest",
    "ConversationRequest",
    "GeminiService",
    "GenerativeService",
    "InlinePart",
    "OtherChunk",
    "ServiceChunk",
    "ServiceConfig",
    "ServiceError",
    "ServiceTurn",
    "TextChunk",
    "TextPart",
    "get_service",
    "get_service_config",
]
