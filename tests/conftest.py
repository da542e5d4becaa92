"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - fake_service: Scripted stand-in for the Gemini service
    - analysis_payload: Service response document for a two-report analysis
    - analysis_result: The same payload parsed into an AnalysisResult
    - image_file / pdf_file: Canonical files ready for analysis
    - orchestrator: Session orchestrator wired to the fake service
    - async_client: HTTPX client for API testing
"""

import asyncio
import io
import json
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from lablens.api.app import create_app
from lablens.api.deps import get_orchestrator
from lablens.models import AnalysisResult, CanonicalFile, MediaType
from lablens.orchestrator import SessionOrchestrator
from lablens.service.base import (
    AnalysisRequest,
    ConversationRequest,
    OtherChunk,
    TextChunk,
)


class FakeService:
    """Generative service double with scripted responses.

    Attributes:
        analysis_response: Body returned by generate().
        analysis_error: Raised by generate() when set.
        chunks: Increments yielded by stream(); strings become TextChunks.
        stream_error: Raised by stream() after the chunks when set.
        hold: When set, stream() waits on it after the first chunk.
    """

    model_name = "fake-model"

    def __init__(self) -> None:
        self.analysis_response: str = "{}"
        self.analysis_error: Exception | None = None
        self.chunks: list[str | TextChunk | OtherChunk] = []
        self.stream_error: Exception | None = None
        self.hold: asyncio.Event | None = None
        self.analysis_requests: list[AnalysisRequest] = []
        self.chat_requests: list[ConversationRequest] = []

    async def generate(self, request: AnalysisRequest) -> str:
        self.analysis_requests.append(request)
        if self.analysis_error is not None:
            raise self.analysis_error
        return self.analysis_response

    async def stream(self, request: ConversationRequest) -> AsyncIterator[TextChunk | OtherChunk]:
        self.chat_requests.append(request)
        for index, chunk in enumerate(self.chunks):
            yield TextChunk(value=chunk) if isinstance(chunk, str) else chunk
            if index == 0 and self.hold is not None:
                await self.hold.wait()
        if self.stream_error is not None:
            raise self.stream_error


def make_image_bytes(width: int, height: int, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Render a solid image of the given size."""
    color: Any = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def sample_payload() -> dict[str, Any]:
    return {
        "patientName": "Jordan Avery Lee",
        "age": "42",
        "gender": "Female",
        "collectionDate": "2026-09-30",
        "labId": "LAB-88213",
        "hospitalName": "Riverside Diagnostics",
        "doctorName": "Dr. Patel",
        "summary": "Your **sugar** trend is worth a chat",
        "bottomLine": {
            "main": "Mostly good news with one focus area",
            "good": ["Cholesterol improved", "Kidney markers steady"],
            "watch": ["Fasting glucose above range"],
        },
        "executiveSummary": (
            "Your heart health results look fantastic. "
            "For your next goal, let us bring your blood sugar into a more comfortable range."
        ),
        "biomarkers": [
            {
                "name": "Fasting Glucose",
                "currentValue": 120,
                "previousValue": 100,
                "unit": "mg/dL",
                "status": "high",
                "range": "70 - 100",
                "analogy": "Like a bathtub filling a little faster than it drains",
                "explanation": "Your fasting sugar is above the target range.",
            },
            {
                "name": "LDL Cholesterol",
                "currentValue": 95,
                "previousValue": 130,
                "unit": "mg/dL",
                "status": "normal",
                "range": "0 - 100",
                "analogy": "Fewer delivery trucks clogging the road",
                "explanation": "Your LDL dropped into the target range.",
            },
            {
                "name": "Creatinine",
                "currentValue": 0.9,
                "unit": "mg/dL",
                "status": "normal",
                "range": "0.6 - 1.1",
                "analogy": "A steady filter",
                "explanation": "Your kidneys are filtering well.",
            },
        ],
        "lifestyle": {
            "diet": "Swap sugary drinks for water.",
            "sleep": "Aim for seven hours.",
            "exercise": "Walk after dinner.",
        },
        "doctorQuestions": [
            {
                "question": "Since my sugar is a bit high, what food changes should I try first?",
                "why": "To help me make the most effective changes right away.",
            },
            {
                "question": "When should I recheck my glucose?",
                "why": "To know if my changes are working.",
            },
            {
                "question": "Is my cholesterol improvement enough to keep my current plan?",
                "why": "To keep doing what works.",
            },
        ],
    }


@pytest.fixture
def analysis_payload() -> dict[str, Any]:
    """Return a complete service response document."""
    return sample_payload()


@pytest.fixture
def analysis_result(analysis_payload: dict[str, Any]) -> AnalysisResult:
    """Return the sample payload parsed into an AnalysisResult."""
    return AnalysisResult.model_validate(analysis_payload)


@pytest.fixture
def fake_service(analysis_payload: dict[str, Any]) -> FakeService:
    """Create a fake service answering with the sample analysis."""
    service = FakeService()
    service.analysis_response = json.dumps(analysis_payload)
    service.chunks = ["Hel", "lo"]
    return service


@pytest.fixture
def image_file() -> CanonicalFile:
    """Return a small canonical image."""
    return CanonicalFile.from_bytes(make_image_bytes(64, 32, "JPEG"), MediaType.IMAGE, "latest.jpg")


@pytest.fixture
def pdf_file() -> CanonicalFile:
    """Return a canonical PDF used as the comparison report."""
    return CanonicalFile.from_bytes(b"%PDF-1.4\n%minimal\n", MediaType.PDF, "previous.pdf")


@pytest.fixture
def orchestrator(fake_service: FakeService) -> SessionOrchestrator:
    """Create an orchestrator wired to the fake service."""
    return SessionOrchestrator(fake_service)


@pytest.fixture
async def async_client(orchestrator: SessionOrchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient whose app uses the test orchestrator.
    """
    app = create_app()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
