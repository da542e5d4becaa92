"""Report upload, analysis, export and reset endpoints.

Translates orchestrator and ingestion errors into HTTP status codes with a
user-facing detail message.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, status

from lablens.analysis.presentation import sanitize_result
from lablens.api.deps import get_orchestrator
from lablens.ingest.normalizer import (
    DecodeFailureError,
    FileTooLargeError,
    NormalizationError,
    UnsupportedTypeError,
    inspect_pdf,
)
from lablens.models import AnalysisResult, MediaType, RawUpload
from lablens.models.schemas import SessionResponse, UploadResponse
from lablens.orchestrator import (
    AnalysisFailedError,
    AnalysisInProgressError,
    ExportUnavailableError,
    MissingReportError,
    NoAnalysisError,
    ReportSlot,
    SessionOrchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])

Orchestrator = Annotated[SessionOrchestrator, Depends(get_orchestrator)]

_NORMALIZATION_STATUS: dict[type[NormalizationError], int] = {
    UnsupportedTypeError: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    FileTooLargeError: status.HTTP_413_CONTENT_TOO_LARGE,
    DecodeFailureError: status.HTTP_400_BAD_REQUEST,
}


def _validate_filename(filename: str | None) -> str:
    """Validate that the upload carries a filename.

    Raises:
        HTTPException: 400 if the filename is missing.
    """
    if not filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )
    return filename


@router.post("/reports/{slot}", response_model=UploadResponse)
async def upload_report(
    slot: ReportSlot,
    file: UploadFile,
    orchestrator: Orchestrator,
) -> UploadResponse:
    """Upload the latest or previous lab report.

    Accepts one image or PDF file, normalizes it and stores it in the slot.

    Raises:
        400: Missing filename, empty or undecodable file.
        413: PDF exceeds the 35MB limit.
        415: File is neither an image nor a PDF.
    """
    filename = _validate_filename(file.filename)
    upload = RawUpload(name=filename, content_type=file.content_type or "", data=await file.read())

    try:
        canonical = await orchestrator.upload(slot, upload)
    except NormalizationError as e:
        logger.warning(f"Rejected {slot.value} upload {filename}: {e}")
        raise HTTPException(
            status_code=_NORMALIZATION_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
            detail=str(e),
        ) from e

    pages = None
    if canonical.media_type is MediaType.PDF:
        pages = await asyncio.to_thread(inspect_pdf, upload.data)

    return UploadResponse(
        slot=slot.value,
        filename=canonical.name,
        media_type=canonical.media_type,
        size=canonical.size,
        pages=pages,
    )


@router.delete("/reports/{slot}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_report(slot: ReportSlot, orchestrator: Orchestrator) -> None:
    """Clear a report slot."""
    orchestrator.set_report(slot, None)


@router.post("/analysis", response_model=AnalysisResult, response_model_by_alias=True)
async def start_analysis(orchestrator: Orchestrator) -> AnalysisResult:
    """Analyze the uploaded reports.

    Returns:
        The sanitized analysis result.

    Raises:
        400: No latest report uploaded.
        409: An analysis is already running.
        502: The analysis service failed.
    """
    try:
        result = await orchestrator.start_analysis()
    except MissingReportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except AnalysisInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except AnalysisFailedError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return sanitize_result(result)


@router.get("/analysis", response_model=AnalysisResult, response_model_by_alias=True)
async def get_analysis(orchestrator: Orchestrator) -> AnalysisResult:
    """Return the current analysis result, sanitized for display."""
    if orchestrator.result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No analysis yet")
    return sanitize_result(orchestrator.result)


@router.post("/export")
async def export_report(orchestrator: Orchestrator) -> Response:
    """Render the current analysis through the configured exporter.

    Raises:
        409: No analysis to export.
        501: No exporter configured.
    """
    try:
        report = await orchestrator.export()
    except NoAnalysisError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ExportUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=str(e)) from e

    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get("/session", response_model=SessionResponse)
async def get_session(orchestrator: Orchestrator) -> SessionResponse:
    """Summarize what the session currently holds."""
    return SessionResponse(
        latest=orchestrator.latest.name if orchestrator.latest else None,
        previous=orchestrator.previous.name if orchestrator.previous else None,
        has_result=orchestrator.result is not None,
        analyzing=orchestrator.analyzing,
    )


@router.post("/session/reset", response_model=SessionResponse)
async def reset_session(orchestrator: Orchestrator) -> SessionResponse:
    """Clear reports, result and chat in one step."""
    orchestrator.reset()
    return SessionResponse()
