import io

import pdfplumber
import pymupdf

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import PdfExtractionError


def join_pages(pages: list[str]) -> str:
    """Join page texts with a blank line, dropping pages with no text."""
    return "\n\n".join(page.strip() for page in pages if page and page.strip())


class PdfPlumberExtractor(BaseTextExtractor):
    """Extracts the text layer of a PDF using pdfplumber."""

    name = "pdfplumber"

    def extract(self, data: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber extraction failed: {exc}") from exc
        return join_pages(pages)


class PyMuPdfExtractor(BaseTextExtractor):
    """Extracts the text layer of a PDF using PyMuPDF."""

    name = "pymupdf"

    def extract(self, data: bytes) -> str:
        try:
            with pymupdf.open(stream=data, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                if doc.needs_pass:
                    raise PdfExtractionError("PDF is encrypted")
                pages = [page.get_text() for page in doc]
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"pymupdf extraction failed: {exc}") from exc
        return join_pages(pages)
