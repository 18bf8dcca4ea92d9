"""Certificate document validation.

Only PDF documents are stored. Images are refused: converting them to a
document is not supported.
"""

import logging

import fitz  # PyMuPDF

from certmint.core.exceptions import ValidationError

log = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def page_count(data: bytes) -> int:
    """Number of pages in a PDF, raising ValidationError if it does not parse."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return doc.page_count
    except (RuntimeError, ValueError) as e:
        log.info(f"Rejected document: {e}")
        raise ValidationError("Invalid PDF file") from e


def normalize_document(data: bytes, content_type: str) -> tuple[bytes, str]:
    """Validate an uploaded document and return (bytes, content type) to store."""
    content_type = (content_type or "").split(";")[0].strip().lower()

    if content_type.startswith("image/"):
        raise ValidationError(f"Unsupported file type: {content_type} (upload a PDF)")
    if content_type != PDF_CONTENT_TYPE:
        raise ValidationError(f"Unsupported file type: {content_type or 'unknown'}")
    if not data:
        raise ValidationError("Invalid PDF file")
    if page_count(data) < 1:
        raise ValidationError("Invalid PDF file")

    return data, PDF_CONTENT_TYPE
