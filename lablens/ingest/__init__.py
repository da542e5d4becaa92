"""Upload ingestion for lab report files.

Turns an uploaded image or PDF into a canonical, transport-ready unit.

Responsibilities:
    - Type policy: only images and PDF documents are accepted
    - Image bounding to 2048px and JPEG re-encoding with Pillow
    - Raw size ceiling for PDF documents
    - Page count inspection with pypdf for upload feedback
"""

from lablens.ingest.normalizer import (
    MAX_DIMENSION,
    MAX_FILE_SIZE,
    DecodeFailureError,
    FileTooLargeError,
    NormalizationError,
    UnsupportedTypeError,
    inspect_pdf,
    normalize,
)

__all__ = [
    "MAX_DIMENSION",
    "MAX_FILE_SIZE",
    "DecodeFailureError",
    "FileTooLargeError",
    "NormalizationError",
    "UnsupportedTypeError",
    "inspect_pdf",
    "normalize",
]
