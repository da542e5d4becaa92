"""FastAPI application for LabLens.

Wires the report and chat routers around the single in-memory session.
Nothing is persisted: reports, the analysis and the chat transcript live in
the orchestrator for as long as the process runs.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lablens import __version__
from lablens.api.chat import router as chat_router
from lablens.api.routes import router as reports_router
from lablens.ingest.normalizer import MAX_DIMENSION, MAX_FILE_SIZE

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed browser origins from LABLENS_CORS_ORIGINS (comma separated)."""
    raw = os.getenv("LABLENS_CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the upload limits on startup.

    The Gemini client is created lazily on the first analysis, so the
    service starts even before an API key is configured.
    """
    logger.info(
        f"LabLens {__version__} ready: images bounded to {MAX_DIMENSION}px, "
        f"PDFs up to {MAX_FILE_SIZE // (1024 * 1024)}MB"
    )
    yield
    logger.info("LabLens stopped, session state discarded")


def create_app() -> FastAPI:
    """Build the LabLens application.

    Returns:
        Application with report, analysis, chat and health routes.
    """
    application = FastAPI(
        title="LabLens API",
        description=(
            "Plain-language lab report analysis. Normalizes uploaded report scans, "
            "requests a structured health summary from Gemini, and streams a "
            "grounded follow-up conversation."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    origins = _cors_origins()
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    application.include_router(reports_router)
    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Liveness check; does not contact Gemini."""
        return {"status": "healthy", "service": "lablens", "version": __version__}

    return application


app = create_app()
