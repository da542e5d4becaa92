"""Session orchestration: the state behind one person's visit.

Holds the latest and previous report, the last analysis result and the chat
session opened for it. Routes explain-term requests from the result view into
the chat session and delegates export to an injected renderer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from lablens.analysis.contract import AnalysisContract
from lablens.analysis.presentation import sanitize_result
from lablens.chat.session import ChatSession, ChatTurn
from lablens.ingest.normalizer import normalize
from lablens.models import AnalysisResult, CanonicalFile, RawUpload
from lablens.service.base import GenerativeService

logger = logging.getLogger(__name__)

Normalizer = Callable[[RawUpload], Awaitable[CanonicalFile]]


class ReportSlot(str, Enum):
    """Which of the two reports an upload fills."""

    LATEST = "latest"
    PREVIOUS = "previous"


class ExportedReport(BaseModel):
    """Rendered analysis ready for download."""

    content: bytes
    media_type: str
    filename: str


class ReportExporter(Protocol):
    """Renders an analysis for download. Implemented by the presentation layer."""

    async def export(self, result: AnalysisResult, *, source_name: str) -> ExportedReport: ...


class OrchestratorError(Exception):
    """Base class for session orchestration failures."""

    pass


class MissingReportError(OrchestratorError):
    """Analysis was requested before a latest report was set."""

    pass


class AnalysisInProgressError(OrchestratorError):
    """An analysis is already running for this session."""

    pass


class AnalysisFailedError(OrchestratorError):
    """The analysis call or its response failed. Prior state is untouched."""

    pass


class NoAnalysisError(OrchestratorError):
    """The operation needs an analysis result and there is none."""

    pass


class ExportUnavailableError(OrchestratorError):
    """No exporter is configured for this session."""

    pass


class SessionOrchestrator:
    """Composes ingestion, analysis and chat for a single session.

    Not safe for multiple users: one instance is one session.
    """

    def __init__(
        self,
        service: GenerativeService,
        *,
        normalizer: Normalizer = normalize,
        exporter: ReportExporter | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            service: Generative service for analysis and chat.
            normalizer: Upload normalizer, replaceable in tests.
            exporter: Optional renderer used by export().
        """
        self._service = service
        self._contract = AnalysisContract(service)
        self._normalizer = normalizer
        self._exporter = exporter

        self._files: dict[ReportSlot, CanonicalFile | None] = {
            ReportSlot.LATEST: None,
            ReportSlot.PREVIOUS: None,
        }
        self._result: AnalysisResult | None = None
        self._chat: ChatSession | None = None
        self._analyzing = False
        self._normalizing: dict[ReportSlot, asyncio.Task[CanonicalFile]] = {}
        self._upload_seq: dict[ReportSlot, int] = {slot: 0 for slot in ReportSlot}
        # Bumped on reset so late completions do not resurrect cleared state.
        self._generation = 0

    @property
    def latest(self) -> CanonicalFile | None:
        return self._files[ReportSlot.LATEST]

    @property
    def previous(self) -> CanonicalFile | None:
        return self._files[ReportSlot.PREVIOUS]

    @property
    def result(self) -> AnalysisResult | None:
        return self._result

    @property
    def chat(self) -> ChatSession | None:
        return self._chat

    @property
    def analyzing(self) -> bool:
        return self._analyzing

    def set_latest(self, file: CanonicalFile | None) -> None:
        self._files[ReportSlot.LATEST] = file

    def set_previous(self, file: CanonicalFile | None) -> None:
        self._files[ReportSlot.PREVIOUS] = file

    def set_report(self, slot: ReportSlot, file: CanonicalFile | None) -> None:
        self._files[slot] = file

    async def upload(self, slot: ReportSlot, file: RawUpload) -> CanonicalFile:
        """Normalize an upload and store it in a slot.

        Both slots may be normalizing at the same time. If the same slot is
        uploaded twice concurrently, the later upload wins.

        Raises:
            NormalizationError: If the file is rejected; the slot keeps its
                previous content.
        """
        generation = self._generation
        self._upload_seq[slot] += 1
        seq = self._upload_seq[slot]
        task = asyncio.ensure_future(self._normalizer(file))
        self._normalizing[slot] = task
        try:
            canonical = await task
        finally:
            if self._normalizing.get(slot) is task:
                del self._normalizing[slot]

        if generation != self._generation:
            logger.info(f"Discarding {slot.value} upload finished after reset")
        elif seq != self._upload_seq[slot]:
            logger.info(f"Discarding {slot.value} upload superseded by a newer one")
        else:
            self._files[slot] = canonical
            logger.info(f"Set {slot.value} report: {canonical.name}")
        return canonical

    async def start_analysis(self) -> AnalysisResult:
        """Analyze the stored reports.

        Waits for any in-flight normalization first. On success the result
        replaces the previous one and a fresh chat session is opened for it.

        Raises:
            MissingReportError: If no latest report is set.
            AnalysisInProgressError: If an analysis is already running.
            AnalysisFailedError: If the service or its response failed.
        """
        if self._analyzing:
            raise AnalysisInProgressError("An analysis is already running")

        if self._normalizing:
            await asyncio.gather(*self._normalizing.values(), return_exceptions=True)

        latest, previous = self.latest, self.previous
        if latest is None:
            raise MissingReportError("Upload your latest report before starting the analysis")
        if self._analyzing:
            raise AnalysisInProgressError("An analysis is already running")

        generation = self._generation
        self._analyzing = True
        try:
            result = await self._contract.analyze(latest, previous)
        except Exception as e:
            logger.error(f"Analysis failed: {e}")
            raise AnalysisFailedError("Something went wrong. Please try again.") from e
        finally:
            self._analyzing = False

        if generation != self._generation:
            logger.info("Discarding analysis finished after reset")
            return result

        self._result = result
        self._chat = ChatSession(self._service, result)
        logger.info(f"Analysis complete: {len(result.biomarkers or [])} biomarkers")
        return result

    def reset(self) -> None:
        """Clear both reports, the result and the chat session together."""
        self._generation += 1
        self._files = {ReportSlot.LATEST: None, ReportSlot.PREVIOUS: None}
        self._result = None
        self._chat = None
        logger.info("Session reset")

    def explain_term(self, term: str) -> ChatTurn | None:
        """Ask the chat session to explain a term from the result view.

        Returns:
            The turn to drive, or None if the request was dropped.

        Raises:
            NoAnalysisError: If there is no analysis to chat about.
        """
        if self._chat is None:
            raise NoAnalysisError("Run an analysis before asking about it")
        return self._chat.explain(term)

    async def export(self) -> ExportedReport:
        """Render the current result through the injected exporter.

        Raises:
            NoAnalysisError: If there is no result to export.
            ExportUnavailableError: If no exporter is configured.
        """
        if self._result is None:
            raise NoAnalysisError("Run an analysis before exporting it")
        if self._exporter is None:
            raise ExportUnavailableError("Export is not available")

        source_name = self.latest.name if self.latest is not None else ""
        return await self._exporter.export(sanitize_result(self._result), source_name=source_name)
