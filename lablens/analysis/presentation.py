"""Display helpers shared by every surface that shows analysis text.

The model is told not to emit markup, but stray asterisks, hashes and quotes
still appear. clean_text() removes them and must be applied to every free-text
field wherever it is shown, so the rule lives here rather than in the views.
"""

import re

from lablens.models import AnalysisResult, Biomarker

_MARKUP = re.compile(r"[*#]")
_EDGE_QUOTES = re.compile(r"^[\"']|[\"']$")
_QUOTES = re.compile(r"[\"']")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def clean_text(text: object) -> str:
    """Strip markup characters and quotation marks from display text."""
    if not text:
        return ""
    value = _MARKUP.sub("", str(text))
    value = _EDGE_QUOTES.sub("", value)
    value = _QUOTES.sub("", value)
    return value.strip()


def _clean_biomarker(marker: Biomarker) -> Biomarker:
    return marker.model_copy(
        update={
            "name": clean_text(marker.name),
            "unit": clean_text(marker.unit),
            "range": clean_text(marker.range),
            "analogy": clean_text(marker.analogy),
            "explanation": clean_text(marker.explanation),
        }
    )


def sanitize_result(result: AnalysisResult) -> AnalysisResult:
    """Return a display copy with every free-text field cleaned.

    Absent fields stay absent; numeric values and list order are untouched.
    """
    update: dict[str, object] = {}

    for field in (
        "patient_name",
        "age",
        "gender",
        "collection_date",
        "lab_id",
        "hospital_name",
        "doctor_name",
        "summary",
        "executive_summary",
    ):
        value = getattr(result, field)
        if value is not None:
            update[field] = clean_text(value)

    if result.bottom_line is not None:
        bottom_line = result.bottom_line
        update["bottom_line"] = bottom_line.model_copy(
            update={
                "main": clean_text(bottom_line.main),
                "good": [clean_text(item) for item in bottom_line.good],
                "watch": [clean_text(item) for item in bottom_line.watch],
            }
        )

    if result.lifestyle is not None:
        lifestyle = result.lifestyle
        update["lifestyle"] = lifestyle.model_copy(
            update={
                "diet": clean_text(lifestyle.diet),
                "sleep": clean_text(lifestyle.sleep),
                "exercise": clean_text(lifestyle.exercise),
            }
        )

    if result.biomarkers is not None:
        update["biomarkers"] = [_clean_biomarker(b) for b in result.biomarkers]

    if result.doctor_questions is not None:
        update["doctor_questions"] = [
            q.model_copy(update={"question": clean_text(q.question), "why": clean_text(q.why)})
            for q in result.doctor_questions
        ]

    return result.model_copy(update=update)


def format_change(percent: float | None) -> str | None:
    """Describe a percent change, e.g. "20.0% Increase"."""
    if percent is None:
        return None
    direction = "Increase" if percent >= 0 else "Decrease"
    return f"{abs(percent):.1f}% {direction}"


def range_bounds(range_text: str) -> tuple[float | None, float | None]:
    """Extract the (low, high) numeric bounds from a reference range string.

    "70 - 100" gives (70.0, 100.0). A single number is an upper bound
    ("< 200") unless it is prefixed with ">".
    """
    if not range_text:
        return None, None
    cleaned = range_text.replace("\u2013", "-").replace("\u2014", "-")
    numbers = _NUMBER.findall(cleaned)
    if len(numbers) >= 2:
        return float(numbers[0]), float(numbers[1])
    if len(numbers) == 1:
        if cleaned.lstrip().startswith(">"):
            return float(numbers[0]), None
        return None, float(numbers[0])
    return None, None


def patient_first_name(result: AnalysisResult, default: str = "there") -> str:
    name = clean_text(result.patient_name)
    return name.split(" ")[0] if name else default
