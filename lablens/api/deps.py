"""Shared dependencies for API routes."""

from lablens.orchestrator import SessionOrchestrator
from lablens.service.gemini import get_service

# Module-level singleton: the service runs exactly one session.
_orchestrator: SessionOrchestrator | None = None


def get_orchestrator() -> SessionOrchestrator:
    """Get or create the session orchestrator.

    Returns:
        The SessionOrchestrator instance.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = SessionOrchestrator(get_service())
    return _orchestrator
