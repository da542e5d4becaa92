"""Report analysis: the service contract and its display helpers.

Responsibilities:
    - Request construction with persona rules and response schema
    - Lenient or strict parsing of the JSON response into AnalysisResult
    - Text sanitization and derived values for display
"""

from lablens.analysis.contract import (
    AnalysisContract,
    ContractViolation,
    build_request,
    parse_response,
)
from lablens.analysis.presentation import clean_text, format_change, range_bounds, sanitize_result

__all__ = [
    "AnalysisContract",
    "ContractViolation",
    "build_request",
    "clean_text",
    "format_change",
    "parse_response",
    "range_bounds",
    "sanitize_result",
]
