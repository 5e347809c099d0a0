from io import BytesIO

import pytest
from pypdf import PdfWriter

from cognipath.errors import ExtractionFailure
from cognipath.services.decomposition.extractor import extract_pdf_text


def _text_pdf(*page_texts: str) -> bytes:
    """Build a minimal PDF with one Helvetica text line per page."""
    page_count = len(page_texts)
    font_id = 3 + 2 * page_count
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        (
            "<< /Type /Pages /Kids ["
            + " ".join(f"{3 + 2 * index} 0 R" for index in range(page_count))
            + f"] /Count {page_count} >>"
        ).encode("ascii"),
    ]
    for index, text in enumerate(page_texts):
        content_id = 4 + 2 * index
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 {font_id} 0 R >> >> /Contents {content_id} 0 R >>"
            ).encode("ascii")
        )
        stream = f"BT /F1 18 Tf 72 720 Td ({text}) Tj ET".encode("ascii")
        objects.append(
            b"<< /Length " + str(len(stream)).encode("ascii") + b" >>\nstream\n"
            + stream
            + b"\nendstream"
        )
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    output = BytesIO()
    output.write(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(output.tell())
        output.write(f"{number} 0 obj\n".encode("ascii") + body + b"\nendobj\n")

    xref_offset = output.tell()
    output.write(f"xref\n0 {len(objects) + 1}\n".encode("ascii"))
    output.write(b"0000000000 65535 f \n")
    for offset in offsets:
        output.write(f"{offset:010d} 00000 n \n".encode("ascii"))
    output.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n".encode("ascii")
    )
    return output.getvalue()


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    output = BytesIO()
    writer.write(output)
    return output.getvalue()


def test_extract_pdf_text_reads_pages_in_order() -> None:
    text = extract_pdf_text(_text_pdf("Cell biology basics", "Mitosis and meiosis"))

    assert "Cell biology basics" in text
    assert "Mitosis and meiosis" in text
    assert text.index("Cell biology basics") < text.index("Mitosis and meiosis")


def test_extract_pdf_text_rejects_empty_input() -> None:
    with pytest.raises(ExtractionFailure, match="empty"):
        extract_pdf_text(b"")


def test_extract_pdf_text_rejects_corrupt_input() -> None:
    with pytest.raises(ExtractionFailure, match="could not be parsed"):
        extract_pdf_text(b"this is definitely not a pdf document")


def test_extract_pdf_text_rejects_pdf_without_text() -> None:
    with pytest.raises(ExtractionFailure, match="no extractable text"):
        extract_pdf_text(_blank_pdf())
