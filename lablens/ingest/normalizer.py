"""Upload normalization into canonical transport units.

Images are decoded with Pillow, bounded to MAX_DIMENSION on the longer side
and re-encoded as JPEG. PDF documents pass through unmodified under a raw
size ceiling. Anything else is rejected before any binary work happens.
"""

import asyncio
import io
import logging
import mimetypes

from PIL import Image, ImageOps, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from lablens.models import CanonicalFile, MediaType, RawUpload

logger = logging.getLogger(__name__)

# Constants
MAX_FILE_SIZE = 35 * 1024 * 1024  # 35MB, applies to non-image files
MAX_DIMENSION = 2048
JPEG_QUALITY = 80
PDF_CONTENT_TYPE = "application/pdf"


class NormalizationError(Exception):
    """Raised when an upload cannot be turned into a canonical file.

    The message is safe to show to the person who uploaded the file.
    """

    pass


class UnsupportedTypeError(NormalizationError):
    """File is neither an image nor a PDF document."""

    pass


class FileTooLargeError(NormalizationError):
    """Non-image file exceeds MAX_FILE_SIZE."""

    pass


class DecodeFailureError(NormalizationError):
    """File content could not be decoded or re-encoded."""

    pass


def detect_media_type(file: RawUpload) -> MediaType:
    """Classify an upload as image or PDF.

    The declared content type wins; the filename extension is only consulted
    when no content type was sent.

    Raises:
        UnsupportedTypeError: If the file is neither kind.
    """
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if not content_type:
        content_type = (mimetypes.guess_type(file.name)[0] or "").lower()

    if content_type.startswith("image/"):
        return MediaType.IMAGE
    if content_type == PDF_CONTENT_TYPE:
        return MediaType.PDF

    raise UnsupportedTypeError("Please upload a PDF or an Image.")


def scaled_dimensions(width: int, height: int, max_dim: int = MAX_DIMENSION) -> tuple[int, int]:
    """Fit dimensions within max_dim, preserving aspect ratio.

    The longer side becomes exactly max_dim when either side exceeds it.
    Dimensions already within bounds are returned unchanged.
    """
    if width <= max_dim and height <= max_dim:
        return width, height
    if width >= height:
        return max_dim, max(1, round(height * max_dim / width))
    return max(1, round(width * max_dim / height)), max_dim


def compress_image(content: bytes) -> bytes:
    """Decode, bound and re-encode an image as JPEG.

    Args:
        content: Raw image bytes in any format Pillow can read.

    Returns:
        JPEG bytes at JPEG_QUALITY.

    Raises:
        DecodeFailureError: If the image cannot be decoded or encoded.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            image = ImageOps.exif_transpose(img)
            size = scaled_dimensions(*image.size)
            if size != image.size:
                image = image.resize(size, Image.Resampling.LANCZOS)
            if image.mode != "RGB":
                image = image.convert("RGB")

            output = io.BytesIO()
            image.save(output, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeFailureError("Failed to process the file.") from e

    return output.getvalue()


def _validate_pdf_size(file: RawUpload) -> None:
    if file.size > MAX_FILE_SIZE:
        size_mb = file.size / (1024 * 1024)
        raise FileTooLargeError(
            f"This PDF is too large ({size_mb:.1f}MB, maximum 35MB). "
            "Please try a smaller scan."
        )


async def normalize(file: RawUpload) -> CanonicalFile:
    """Normalize an uploaded file into a canonical transport unit.

    Args:
        file: The uploaded file.

    Returns:
        CanonicalFile with base64 data and its media type.

    Raises:
        UnsupportedTypeError: If the file is neither image nor PDF.
        FileTooLargeError: If a PDF exceeds MAX_FILE_SIZE.
        DecodeFailureError: If the file is empty or an image cannot be processed.
    """
    media_type = detect_media_type(file)

    if not file.data:
        raise DecodeFailureError("Empty file provided")

    if media_type is MediaType.IMAGE:
        content = await asyncio.to_thread(compress_image, file.data)
    else:
        _validate_pdf_size(file)
        content = file.data

    canonical = CanonicalFile.from_bytes(content, media_type, file.name)
    logger.info(
        f"Normalized {file.name} as {media_type.value} "
        f"({file.size} -> {len(content)} bytes)"
    )
    return canonical


def inspect_pdf(content: bytes) -> int | None:
    """Return the page count of a PDF, or None when it cannot be read.

    Informational only: an unreadable document is still passed through to
    the analysis service, which may cope with it.
    """
    try:
        return len(PdfReader(io.BytesIO(content)).pages)
    except PdfReadError as e:
        logger.warning(f"Could not read PDF structure: {e}")
    except Exception as e:
        logger.warning(f"Failed to inspect PDF: {e}")
    return None
