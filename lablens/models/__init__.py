"""Pydantic domain models shared by every component.

Wire names follow the analysis service's camelCase vocabulary through field
aliases; Python code uses the snake_case attribute names.

Models:
    - MediaType: The two accepted upload kinds
    - RawUpload: An uploaded file before normalization
    - CanonicalFile: Normalized, transport-ready upload
    - Biomarker: One measured lab value with range and explanation
    - AnalysisResult: Structured health summary returned by the service
    - ChatMessage: Individual message in the conversation
"""

import base64
import binascii
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class MediaType(str, Enum):
    """Kinds of canonical file accepted for analysis."""

    IMAGE = "image"
    PDF = "pdf"

    @property
    def mime_type(self) -> str:
        """MIME type sent to the service for this kind."""
        return _MIME_TYPES[self]


# Every image is re-encoded to JPEG during normalization.
_MIME_TYPES = {
    MediaType.IMAGE: "image/jpeg",
    MediaType.PDF: "application/pdf",
}


class RawUpload(BaseModel):
    """A file as received from the upload boundary.

    Attributes:
        name: Original file name.
        content_type: Declared MIME type (may be empty).
        data: Raw file bytes.
    """

    name: str
    content_type: str = ""
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class CanonicalFile(BaseModel):
    """Normalized upload ready for transport to the analysis service.

    Immutable once created. Replaced wholesale on re-upload.

    Attributes:
        data: Base64-encoded file content.
        media_type: Image or PDF.
        name: Original file name.
    """

    model_config = ConfigDict(frozen=True)

    data: str = Field(..., min_length=1)
    media_type: MediaType
    name: str

    @field_validator("data")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Ensure data decodes to non-empty binary."""
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("data must be valid base64") from e
        if not decoded:
            raise ValueError("data must not be empty")
        return v

    @classmethod
    def from_bytes(cls, content: bytes, media_type: MediaType, name: str) -> "CanonicalFile":
        return cls(
            data=base64.b64encode(content).decode("ascii"),
            media_type=media_type,
            name=name,
        )

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @property
    def mime_type(self) -> str:
        return self.media_type.mime_type

    @property
    def size(self) -> int:
        """Decoded size in bytes."""
        return len(self.raw_bytes())


class BiomarkerStatus(str, Enum):
    """Reading of a marker against its reference range."""

    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"
    OTHER = "other"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class Biomarker(_WireModel):
    """A single measured lab value.

    Attributes:
        name: Marker name as printed on the report.
        current_value: Value from the latest report.
        previous_value: Value from the comparison report, if one was supplied.
        unit: Measurement unit.
        status: Normal, high, low, or other.
        range: Reference range as text, e.g. "70 - 100".
        analogy: Everyday comparison for the marker.
        explanation: Plain-language explanation of the reading.

    Only name and current_value are structural. The descriptive fields
    default to empty and are reported by AnalysisResult.missing_fields().
    """

    name: str
    current_value: float
    previous_value: float | None = None
    unit: str = ""
    status: BiomarkerStatus = BiomarkerStatus.OTHER
    range: str = ""
    analogy: str = ""
    explanation: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: object) -> object:
        """Map unrecognised status strings to OTHER."""
        if isinstance(v, str):
            normalized = v.strip().lower()
            if normalized in {s.value for s in BiomarkerStatus}:
                return normalized
            return BiomarkerStatus.OTHER
        return v

    @computed_field(alias="percentChange")  # type: ignore[prop-decorator]
    @property
    def percent_change(self) -> float | None:
        """Change from previous to current in percent, None if not computable."""
        if self.previous_value is None or self.previous_value == 0:
            return None
        return (self.current_value - self.previous_value) / self.previous_value * 100


class BottomLine(_WireModel):
    """Wins versus watch-items, independent of per-marker detail."""

    main: str = ""
    good: list[str] = Field(default_factory=list)
    watch: list[str] = Field(default_factory=list)

    @field_validator("good", "watch", mode="before")
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return [] if v is None else v


class Lifestyle(_WireModel):
    """Diet, sleep and exercise guidance."""

    diet: str = ""
    sleep: str = ""
    exercise: str = ""


class DoctorQuestion(_WireModel):
    """First-person question to bring to the next visit."""

    question: str
    why: str = ""


# Top-level fields the service must return, by wire name.
REQUIRED_FIELDS = (
    "summary",
    "bottomLine",
    "executiveSummary",
    "biomarkers",
    "lifestyle",
    "doctorQuestions",
)
_REQUIRED_BOTTOM_LINE = ("main", "good", "watch")
_REQUIRED_LIFESTYLE = ("diet", "sleep", "exercise")
_REQUIRED_BIOMARKER = ("unit", "status", "range", "analogy", "explanation")
_REQUIRED_QUESTION = ("why",)


class AnalysisResult(_WireModel):
    """Structured health summary for one analysis run.

    Required fields are typed optional so that a lenient parse of an empty
    or malformed response can still be represented; missing_fields()
    reports what is absent.
    """

    patient_name: str | None = None
    age: str | None = None
    gender: str | None = None
    collection_date: str | None = None
    lab_id: str | None = None
    hospital_name: str | None = None
    doctor_name: str | None = None

    summary: str | None = None
    bottom_line: BottomLine | None = None
    executive_summary: str | None = None
    biomarkers: list[Biomarker] | None = None
    lifestyle: Lifestyle | None = None
    doctor_questions: list[DoctorQuestion] | None = None

    def missing_fields(self) -> list[str]:
        """Return wire names of required fields absent from this result."""
        missing: list[str] = []
        for wire_name in REQUIRED_FIELDS:
            field_name = _field_name(wire_name)
            if getattr(self, field_name) is None:
                missing.append(wire_name)

        if self.bottom_line is not None:
            missing.extend(
                f"bottomLine.{name}"
                for name in _REQUIRED_BOTTOM_LINE
                if name not in self.bottom_line.model_fields_set
            )
        if self.lifestyle is not None:
            missing.extend(
                f"lifestyle.{name}"
                for name in _REQUIRED_LIFESTYLE
                if name not in self.lifestyle.model_fields_set
            )
        for index, marker in enumerate(self.biomarkers or []):
            missing.extend(
                f"biomarkers[{index}].{name}"
                for name in _REQUIRED_BIOMARKER
                if name not in marker.model_fields_set
            )
        for index, question in enumerate(self.doctor_questions or []):
            missing.extend(
                f"doctorQuestions[{index}].{name}"
                for name in _REQUIRED_QUESTION
                if name not in question.model_fields_set
            )
        return missing

    def without_previous_values(self) -> "AnalysisResult":
        """Copy with every biomarker's previous_value cleared."""
        if not self.biomarkers:
            return self
        markers = [b.model_copy(update={"previous_value": None}) for b in self.biomarkers]
        return self.model_copy(update={"biomarkers": markers})


def _field_name(wire_name: str) -> str:
    for name, info in AnalysisResult.model_fields.items():
        if info.alias == wire_name:
            return name
    raise KeyError(wire_name)


class ChatRole(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single chat message in the conversation.

    Attributes:
        role: The speaker, user or assistant.
        content: The message text.
    """

    role: ChatRole
    content: str = ""
