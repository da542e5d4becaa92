"""Unit tests for individual components in isolation.

Coverage:
    - ingest/: Type policy, image bounding and PDF size ceiling
    - analysis/: Request construction, response parsing, sanitization
    - chat/: Session state machine, streaming accumulation, grounding
    - orchestrator: Slots, analysis lifecycle, reset and routing
    - service/: Configuration and Gemini request mapping
"""
