"""LabLens - plain-language lab report analysis with a grounded chat assistant.

Combines FastAPI for HTTP streaming, Google Gemini for document analysis,
Pillow for image normalization, and Pydantic for data validation.

Components:
    - ingest: Upload normalization into canonical transport units
    - analysis: Structured request/response contract and display helpers
    - chat: Streaming conversational session grounded in the analysis
    - service: Gemini client behind an injectable service interface
    - orchestrator: Session state composing the components above
    - api: HTTP endpoints and streaming responses
    - models: Domain models and request/response schemas
"""

__version__ = "0.1.0"
