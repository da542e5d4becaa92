"""Structured request/response contract for single-shot report analysis.

build_request() assembles the multimodal request: persona rules, ordered
content parts and the JSON schema the response must follow.
parse_response() turns the service's JSON body into an AnalysisResult.

Parsing is lenient by default: a body that is empty or not a JSON object is
treated as an empty document and yields a result with no required fields
populated. Pass strict=True to raise ContractViolation for missing required
fields instead. Missing descriptive text on a biomarker or doctor question
counts as a missing field, not a malformed one. A field that is present but
malformed always raises.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from lablens.models import AnalysisResult, CanonicalFile
from lablens.service.base import (
    AnalysisRequest,
    GenerativeService,
    InlinePart,
    TextPart,
)

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_INSTRUCTION = """You are the Lab Interpreter, a document analyst for LabLens.
Read every value on the clinical reports you are given and turn them into a warm, plain-language summary.

TONE AND WORDING:
- Never use technical jargon such as metabolic markers, clinical profile, optimized, indexing, grounding, or data objects.
- Use friendly, conversational language, for example: Your blood sugar is a bit higher than we would like.
- Preferred phrases: Above the target range, A focus area for your next checkup, Developing trend, Room for optimization.
- Prohibited words: critical, urgent, immediate attention, notably high, dangerously, alarming, abnormal, bad.
- Never use bold markers (**), hash symbols (#), or quotation marks inside any text field.
- Output only plain text sentences.

EXECUTIVE SUMMARY:
- Exactly two sentences.
- Sentence one: a big win, for example: Your heart health results look fantastic and show great progress.
- Sentence two: a big focus, for example: For your next goal, let us focus on bringing your blood sugar levels into a more comfortable range.

QUESTIONS FOR MY DOCTOR:
- Write 3 to 4 simple questions in the first person (I, my), as a patient seeking advice.
- question: for example, Since my sugar is a bit high, what are the first few food changes you would like me to try?
- why: explains why this helps, for example, To help me make the most effective changes to my diet right away.

Output must be strictly valid JSON."""

SINGLE_REPORT_INSTRUCTION = "Single report analysis."
COMPARISON_INSTRUCTION = "Compare with the past record for trends."
EXTRACTION_INSTRUCTION = (
    "Focus on extracting patient metadata and clinical results accurately "
    "without using technical jargon."
)
PREVIOUS_REPORT_MARKER = "PREVIOUS REPORT:"


def _string() -> dict[str, Any]:
    return {"type": "STRING"}


def _string_list() -> dict[str, Any]:
    return {"type": "ARRAY", "items": _string()}


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "patientName": _string(),
        "age": _string(),
        "gender": _string(),
        "collectionDate": _string(),
        "labId": _string(),
        "hospitalName": _string(),
        "doctorName": _string(),
        "summary": _string(),
        "bottomLine": {
            "type": "OBJECT",
            "properties": {
                "main": _string(),
                "good": _string_list(),
                "watch": _string_list(),
            },
            "required": ["main", "good", "watch"],
        },
        "executiveSummary": _string(),
        "biomarkers": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": _string(),
                    "currentValue": {"type": "NUMBER"},
                    "previousValue": {"type": "NUMBER"},
                    "unit": _string(),
                    "status": {"type": "STRING", "enum": ["high", "low", "normal"]},
                    "range": _string(),
                    "analogy": _string(),
                    "explanation": _string(),
                },
                "required": [
                    "name",
                    "currentValue",
                    "unit",
                    "status",
                    "range",
                    "analogy",
                    "explanation",
                ],
            },
        },
        "lifestyle": {
            "type": "OBJECT",
            "properties": {
                "diet": _string(),
                "sleep": _string(),
                "exercise": _string(),
            },
            "required": ["diet", "sleep", "exercise"],
        },
        "doctorQuestions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "question": _string(),
                    "why": _string(),
                },
                "required": ["question", "why"],
            },
        },
    },
    "required": [
        "summary",
        "bottomLine",
        "executiveSummary",
        "biomarkers",
        "lifestyle",
        "doctorQuestions",
    ],
}


class ContractViolation(Exception):
    """Raised when a service response does not match the analysis schema.

    Attributes:
        missing: Wire names of absent required fields, if that was the cause.
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


def _inline(file: CanonicalFile) -> InlinePart:
    return InlinePart(data=file.data, mime_type=file.mime_type)


def build_request(
    latest: CanonicalFile,
    previous: CanonicalFile | None = None,
    *,
    model: str,
) -> AnalysisRequest:
    """Build the analysis request for one or two reports.

    Args:
        latest: The most recent report, always attached first.
        previous: Optional older report to compare against.
        model: Model identifier.

    Returns:
        AnalysisRequest with ordered parts and the response schema.
    """
    mode = COMPARISON_INSTRUCTION if previous is not None else SINGLE_REPORT_INSTRUCTION
    parts: list[TextPart | InlinePart] = [
        TextPart(text=f"Analyze the medical report. {mode}\n{EXTRACTION_INSTRUCTION}"),
        _inline(latest),
    ]
    if previous is not None:
        parts.append(TextPart(text=PREVIOUS_REPORT_MARKER))
        parts.append(_inline(previous))

    return AnalysisRequest(
        model=model,
        system_instruction=ANALYSIS_SYSTEM_INSTRUCTION,
        parts=parts,
        response_schema=RESPONSE_SCHEMA,
    )


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`").strip()
        if text.lower().startswith("json"):
            text = text[4:].strip()
    return text


def _load_document(raw: str | None) -> dict[str, Any]:
    text = _strip_code_fence(raw or "")
    if not text:
        logger.warning("Empty analysis response, treating as empty document")
        return {}
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Analysis response is not valid JSON, treating as empty document: {e}")
        return {}
    if not isinstance(document, dict):
        logger.warning(
            f"Analysis response is a JSON {type(document).__name__}, treating as empty document"
        )
        return {}
    return document


def parse_response(raw: str | None, *, strict: bool = False) -> AnalysisResult:
    """Parse the service response into an AnalysisResult.

    Args:
        raw: Raw response body.
        strict: Raise when required fields are missing.

    Returns:
        The parsed result; empty when the body holds no JSON object.

    Raises:
        ContractViolation: If a present field is malformed, or (strict only)
            a required field is absent.
    """
    document = _load_document(raw)

    try:
        result = AnalysisResult.model_validate(document)
    except ValidationError as e:
        raise ContractViolation(f"Analysis response does not match schema: {e}") from e

    missing = result.missing_fields()
    if missing:
        if strict:
            raise ContractViolation(
                f"Analysis response is missing required fields: {', '.join(missing)}",
                missing=missing,
            )
        logger.warning(f"Analysis response is missing required fields: {', '.join(missing)}")

    return result


class AnalysisContract:
    """Runs report analysis against an injected generative service."""

    def __init__(self, service: GenerativeService, *, strict: bool = False) -> None:
        self._service = service
        self._strict = strict

    def build_request(
        self,
        latest: CanonicalFile,
        previous: CanonicalFile | None = None,
    ) -> AnalysisRequest:
        return build_request(latest, previous, model=self._service.model_name)

    def parse_response(self, raw: str | None) -> AnalysisResult:
        return parse_response(raw, strict=self._strict)

    async def analyze(
        self,
        latest: CanonicalFile,
        previous: CanonicalFile | None = None,
    ) -> AnalysisResult:
        """Analyze one report, optionally against a previous one.

        Raises:
            ServiceError: If the service call fails.
            ContractViolation: If the response does not match the schema.
        """
        request = self.build_request(latest, previous)
        logger.info(
            f"Requesting analysis of {latest.name}"
            + (f" compared with {previous.name}" if previous else "")
        )
        raw = await self._service.generate(request)
        result = self.parse_response(raw)

        # Without a comparison document any previous value is not grounded.
        if previous is None:
            result = result.without_previous_values()
        return result
