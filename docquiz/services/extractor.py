"""Text extraction for PDF, DOCX, and TXT documents."""
import io
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

import pdfplumber
from docx import Document as DocxDocument
from docx.table import Table

from docquiz.exceptions import (
    EmptyDocumentError,
    ExtractionFailedError,
    UnsupportedMediaTypeError,
)
from docquiz.models.session import Document
from docquiz.utils.logger import logger


PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TXT = "text/plain"

EXTENSION_MEDIA_TYPES = {
    ".pdf": PDF,
    ".docx": DOCX,
    ".txt": TXT,
}


def resolve_media_type(media_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Normalize a declared media type, falling back to the file extension.

    Args:
        media_type: Declared content type, possibly with parameters
        filename: Original filename, used when the declared type is unknown

    Returns:
        One of the supported media types

    Raises:
        UnsupportedMediaTypeError: If neither source names a supported format
    """
    declared = (media_type or "").split(";")[0].strip().lower()
    if declared in TOKEN_READERS:
        return declared

    if filename:
        by_extension = EXTENSION_MEDIA_TYPES.get(Path(filename).suffix.lower())
        if by_extension:
            return by_extension

    raise UnsupportedMediaTypeError(
        f"Unsupported document type: {declared or 'unknown'}. "
        f"Supported formats: {', '.join(sorted(EXTENSION_MEDIA_TYPES))}"
    )


def iter_pdf_tokens(content: bytes) -> Iterator[str]:
    """Yield every word pdfplumber finds, page by page."""
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            for word in page.extract_words():
                yield word["text"]


def iter_docx_tokens(content: bytes) -> Iterator[str]:
    """Yield paragraph and table cell texts in document order."""
    doc = DocxDocument(io.BytesIO(content))

    for block in doc.iter_inner_content():
        if isinstance(block, Table):
            for row in block.rows:
                for cell in row.cells:
                    yield cell.text
        else:
            yield block.text


def iter_txt_tokens(content: bytes) -> Iterator[str]:
    # Strict decoding; invalid bytes raise UnicodeDecodeError
    text = content.decode("utf-8-sig")
    yield from text.split()


TOKEN_READERS: Dict[str, Callable[[bytes], Iterator[str]]] = {
    PDF: iter_pdf_tokens,
    DOCX: iter_docx_tokens,
    TXT: iter_txt_tokens,
}


def extract_text(document: Document) -> str:
    """
    Extract plain text from a document.

    Tokens are kept in the order the parser reports them and joined with a
    single space. Blank tokens are skipped.

    Args:
        document: Uploaded document with its declared media type

    Returns:
        Extracted text, never empty

    Raises:
        UnsupportedMediaTypeError: If the media type is not supported
        EmptyDocumentError: If the document has no bytes or no text
        ExtractionFailedError: If the parser fails
    """
    media_type = resolve_media_type(document.media_type, document.filename)

    if not document.content:
        raise EmptyDocumentError("Document is empty.")

    reader = TOKEN_READERS[media_type]
    tokens = []
    try:
        for token in reader(document.content):
            if token and token.strip():
                tokens.append(token)
    except Exception as e:
        logger.error(
            f"Error extracting text from {document.filename or 'document'}: {str(e)}",
            extra={"media_type": media_type},
        )
        raise ExtractionFailedError(f"Failed to extract text from document: {str(e)}") from e

    text = " ".join(tokens)
    if not text.strip():
        raise EmptyDocumentError("Document contains no extractable text.")

    logger.info(
        f"Extracted {len(tokens)} text fragments from {document.filename or 'document'}",
        extra={"media_type": media_type, "text_length": len(text)},
    )
    return text
