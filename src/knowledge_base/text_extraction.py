"""Text extraction for uploaded files, one extractor per media type."""

import io
from collections.abc import Callable
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from src.utils.logging import get_logger

from .errors import InputValidationError, UnsupportedMediaTypeError

logger = get_logger(__name__)

PDF = "application/pdf"
TXT = "text/plain"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ALLOWED_MEDIA_TYPES = (PDF, TXT, DOC, DOCX)


def placeholder_text(media_type: str, filename: str) -> str:
    """Text stored when a file's content could not be extracted."""
    if media_type == PDF:
        return f"PDF document: {filename}. Content extraction not implemented in this demo."
    return (
        f"Document: {filename}. "
        "Content extraction for this file type not implemented in this demo."
    )


def extract_plain_text(content: bytes) -> str:
    """Decode UTF-8 text, replacing invalid bytes."""
    return content.decode("utf-8", errors="replace")


def extract_pdf_text(content: bytes) -> str:
    """Extract text from every page of a PDF with pypdf.

    Raises:
        InputValidationError: If the bytes are not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PdfReadError as e:
        raise InputValidationError(f"Could not read PDF: {e}") from e
    return "\n\n".join(pages)


def extract_docx_text(content: bytes) -> str:
    """Extract paragraph and table text from a DOCX document.

    Raises:
        InputValidationError: If the bytes are not a readable DOCX package.
    """
    try:
        doc = Document(io.BytesIO(content))
    except (BadZipFile, PackageNotFoundError, KeyError, ValueError) as e:
        raise InputValidationError(f"Could not read DOCX: {e}") from e

    lines = [para.text.strip() for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def extract_legacy_doc_text(content: bytes) -> str:
    """Legacy .doc files are accepted but not parsed."""
    return ""


EXTRACTORS: dict[str, Callable[[bytes], str]] = {
    TXT: extract_plain_text,
    PDF: extract_pdf_text,
    DOCX: extract_docx_text,
    DOC: extract_legacy_doc_text,
}


def extract_text(content: bytes, media_type: str, filename: str) -> str:
    """Extract plain text from an uploaded file.

    When an extractor yields only whitespace (scanned PDF, legacy .doc), a
    placeholder noting that extraction was not performed is returned instead.

    Args:
        content: Raw file bytes.
        media_type: Declared MIME type.
        filename: Original file name, used in the placeholder.

    Returns:
        Extracted text or the placeholder.

    Raises:
        UnsupportedMediaTypeError: If the media type is not PDF, TXT, DOC or DOCX.
        InputValidationError: If the file is corrupt.

    Examples:
        >>> extract_text(b"Servo basics.", "text/plain", "notes.txt")
        'Servo basics.'
    """
    extractor = EXTRACTORS.get(media_type)
    if extractor is None:
        raise UnsupportedMediaTypeError(media_type)

    text = extractor(content)
    if not text.strip():
        logger.warning(
            "text_extraction_empty",
            filename=filename,
            media_type=media_type,
        )
        return placeholder_text(media_type, filename)

    logger.info(
        "text_extracted",
        filename=filename,
        media_type=media_type,
        text_length=len(text),
    )
    return text
