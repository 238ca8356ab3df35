import io

from docx import Document as open_docx

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import ExtractionError
from app.extraction.plain_text import normalize_whitespace


class DocxExtractor(BaseTextExtractor):
    """Extracts paragraph and table text from DOCX using python-docx."""

    name = "docx"

    def extract(self, data: bytes) -> str:
        try:
            document = open_docx(io.BytesIO(data))
            parts = [paragraph.text for paragraph in document.paragraphs]
            for table in document.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if cells:
                        parts.append("\t".join(cells))
        except Exception as exc:
            raise ExtractionError(f"DOCX extraction failed: {exc}") from exc
        return normalize_whitespace("\n".join(parts))
