"""Unit tests for the analysis request/response contract."""

import json

import pytest
import pytest_check as check

from lablens.analysis.contract import (
    ANALYSIS_SYSTEM_INSTRUCTION,
    PREVIOUS_REPORT_MARKER,
    RESPONSE_SCHEMA,
    AnalysisContract,
    ContractViolation,
    build_request,
    parse_response,
)
from lablens.models import CanonicalFile
from lablens.service.base import InlinePart, ServiceError, TextPart
from tests.conftest import FakeService


class TestBuildRequest:
    """Tests for request construction."""

    def test_single_report_parts(self, image_file: CanonicalFile) -> None:
        """Without a previous file: instruction text then the latest file."""
        request = build_request(image_file, model="m")

        check.equal(len(request.parts), 2)
        check.is_instance(request.parts[0], TextPart)
        check.is_in("Single report analysis", request.parts[0].text)
        check.is_instance(request.parts[1], InlinePart)
        check.equal(request.parts[1].data, image_file.data)
        check.equal(request.parts[1].mime_type, "image/jpeg")

    def test_comparison_parts_order(
        self, image_file: CanonicalFile, pdf_file: CanonicalFile
    ) -> None:
        """With a previous file: marker text then the previous file, after the latest."""
        request = build_request(image_file, pdf_file, model="m")

        check.equal(len(request.parts), 4)
        check.is_in("Compare with the past record", request.parts[0].text)
        check.equal(request.parts[1].data, image_file.data)
        check.equal(request.parts[2].text, PREVIOUS_REPORT_MARKER)
        check.equal(request.parts[3].data, pdf_file.data)
        check.equal(request.parts[3].mime_type, "application/pdf")

    def test_carries_persona_and_schema(self, image_file: CanonicalFile) -> None:
        """Request carries the model, system instruction and JSON schema."""
        request = build_request(image_file, model="gemini-test")

        check.equal(request.model, "gemini-test")
        check.equal(request.system_instruction, ANALYSIS_SYSTEM_INSTRUCTION)
        check.equal(request.response_mime_type, "application/json")
        check.equal(request.response_schema, RESPONSE_SCHEMA)

    def test_persona_rules(self) -> None:
        """Persona covers markup, alarming words, summary length and questions."""
        check.is_in("EXACTLY TWO SENTENCES", ANALYSIS_SYSTEM_INSTRUCTION.upper())
        check.is_in("3 to 4", ANALYSIS_SYSTEM_INSTRUCTION)
        check.is_in("first person", ANALYSIS_SYSTEM_INSTRUCTION)
        check.is_in("alarming", ANALYSIS_SYSTEM_INSTRUCTION)
        check.is_in("(#)", ANALYSIS_SYSTEM_INSTRUCTION)

    def test_schema_required_fields(self) -> None:
        """Schema marks the required top-level and biomarker fields."""
        check.equal(
            RESPONSE_SCHEMA["required"],
            ["summary", "bottomLine", "executiveSummary", "biomarkers", "lifestyle", "doctorQuestions"],
        )
        marker = RESPONSE_SCHEMA["properties"]["biomarkers"]["items"]
        check.is_not_in("previousValue", marker["required"])
        check.is_in("currentValue", marker["required"])
        check.equal(
            RESPONSE_SCHEMA["properties"]["bottomLine"]["required"], ["main", "good", "watch"]
        )


class TestParseResponse:
    """Tests for response parsing."""

    def test_parses_complete_document(self, analysis_payload: dict) -> None:
        """A valid document parses into a full result."""
        result = parse_response(json.dumps(analysis_payload))

        check.equal(result.patient_name, "Jordan Avery Lee")
        check.equal(len(result.biomarkers or []), 3)
        check.equal(result.missing_fields(), [])

    @pytest.mark.parametrize("raw", ["", None, "not json", "[1, 2]", '"text"', "{broken"])
    def test_malformed_body_yields_empty_result(self, raw: str | None) -> None:
        """Empty or non-object bodies give a result with nothing populated."""
        result = parse_response(raw)

        check.is_none(result.summary)
        check.is_none(result.biomarkers)
        check.is_none(result.bottom_line)
        check.equal(len(result.missing_fields()), 6)

    def test_strips_markdown_fence(self, analysis_payload: dict) -> None:
        """A fenced JSON body is still parsed."""
        raw = "```json\n" + json.dumps(analysis_payload) + "\n```"

        assert parse_response(raw).summary == analysis_payload["summary"]

    def test_malformed_field_raises(self, analysis_payload: dict) -> None:
        """A biomarker without currentValue raises ContractViolation."""
        del analysis_payload["biomarkers"][0]["currentValue"]

        with pytest.raises(ContractViolation, match="does not match schema"):
            parse_response(json.dumps(analysis_payload))

    def test_strict_mode_raises_on_missing_fields(self, analysis_payload: dict) -> None:
        """Strict parsing lists the missing required fields."""
        del analysis_payload["doctorQuestions"]

        with pytest.raises(ContractViolation) as exc_info:
            parse_response(json.dumps(analysis_payload), strict=True)

        assert exc_info.value.missing == ["doctorQuestions"]

    def test_strict_mode_raises_on_empty_body(self) -> None:
        """Strict parsing does not fall back to an empty result."""
        with pytest.raises(ContractViolation):
            parse_response("", strict=True)

    def test_lenient_mode_tolerates_missing_optional_fields(self, analysis_payload: dict) -> None:
        """Patient metadata may be absent."""
        for key in ("patientName", "labId", "doctorName"):
            del analysis_payload[key]

        result = parse_response(json.dumps(analysis_payload))

        check.is_none(result.patient_name)
        check.equal(result.missing_fields(), [])

    def test_lenient_mode_tolerates_missing_marker_text(self, analysis_payload: dict) -> None:
        """A biomarker without an analogy is kept and reported, not rejected."""
        del analysis_payload["biomarkers"][0]["analogy"]

        result = parse_response(json.dumps(analysis_payload))

        check.equal(len(result.biomarkers or []), 3)
        check.equal((result.biomarkers or [])[0].analogy, "")
        check.equal(result.missing_fields(), ["biomarkers[0].analogy"])

    def test_strict_mode_rejects_missing_marker_text(self, analysis_payload: dict) -> None:
        del analysis_payload["doctorQuestions"][0]["why"]

        with pytest.raises(ContractViolation) as exc_info:
            parse_response(json.dumps(analysis_payload), strict=True)

        assert exc_info.value.missing == ["doctorQuestions[0].why"]


class TestAnalysisContract:
    """Tests for AnalysisContract.analyze."""

    async def test_sends_request_through_service(
        self, fake_service: FakeService, image_file: CanonicalFile, pdf_file: CanonicalFile
    ) -> None:
        """analyze builds the request with the service's model and parses the reply."""
        contract = AnalysisContract(fake_service)

        result = await contract.analyze(image_file, pdf_file)

        check.equal(len(fake_service.analysis_requests), 1)
        check.equal(fake_service.analysis_requests[0].model, "fake-model")
        check.equal((result.biomarkers or [])[0].previous_value, 100)

    async def test_clears_previous_values_without_comparison(
        self, fake_service: FakeService, image_file: CanonicalFile
    ) -> None:
        """Previous values are dropped when no comparison file was sent."""
        result = await AnalysisContract(fake_service).analyze(image_file)

        assert all(b.previous_value is None for b in result.biomarkers or [])

    async def test_service_error_propagates(
        self, fake_service: FakeService, image_file: CanonicalFile
    ) -> None:
        """Service failures reach the caller unchanged."""
        fake_service.analysis_error = ServiceError("quota exceeded")

        with pytest.raises(ServiceError, match="quota"):
            await AnalysisContract(fake_service).analyze(image_file)

    async def test_empty_response_is_lenient(
        self, fake_service: FakeService, image_file: CanonicalFile
    ) -> None:
        """An empty service body yields an empty result by default."""
        fake_service.analysis_response = ""

        result = await AnalysisContract(fake_service).analyze(image_file)

        assert result.summary is None

    async def test_strict_contract_rejects_empty_response(
        self, fake_service: FakeService, image_file: CanonicalFile
    ) -> None:
        """A strict contract raises on an empty body."""
        fake_service.analysis_response = ""

        with pytest.raises(ContractViolation):
            await AnalysisContract(fake_service, strict=True).analyze(image_file)
