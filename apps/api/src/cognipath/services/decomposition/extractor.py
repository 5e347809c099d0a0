from __future__ import annotations

from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from cognipath.errors import ExtractionFailure

_PARSE_ERRORS = (
    PyPdfError,
    ValueError,
    KeyError,
    IndexError,
    TypeError,
    AttributeError,
    OSError,
)


def _read_pages(data: bytes) -> list[str]:
    reader = PdfReader(BytesIO(data))
    if reader.is_encrypted:
        raise ExtractionFailure("PDF file is encrypted")
    return [(page.extract_text() or "").strip() for page in reader.pages]


def extract_pdf_text(data: bytes) -> str:
    if not data:
        raise ExtractionFailure("PDF file is empty")

    try:
        page_texts = _read_pages(data)
    except _PARSE_ERRORS as exc:
        raise ExtractionFailure(f"PDF could not be parsed: {exc}") from exc

    text = "\n\n".join(page_text for page_text in page_texts if page_text)
    if not text:
        raise ExtractionFailure("PDF contains no extractable text")
    return text
