"""FastAPI endpoints for LabLens.

HTTP and streaming routes driving the single session orchestrator.
Supports Server-Sent Events for real-time chat streaming.

Endpoints:
    - GET /health: Service health status
    - POST/DELETE /reports/{slot}: Upload or clear the latest/previous report
    - POST/GET /analysis: Run or fetch the analysis
    - GET /chat, POST /chat/stream, POST /chat/explain: Grounded chat
    - POST /export: Download via the configured exporter
    - GET /session, POST /session/reset: Session snapshot and reset
"""

from lablens.api.app import app, create_app

__all__ = ["app", "create_app"]
