from app.config.settings import Settings
from app.extraction.base import BaseTextExtractor
from app.extraction.docx import DocxExtractor
from app.extraction.epub import EpubExtractor
from app.extraction.html import HtmlExtractor
from app.extraction.ocr import OcrExtractor
from app.extraction.pdf import PdfPlumberExtractor, PyMuPdfExtractor
from app.extraction.pipeline import ExtractionPipeline
from app.extraction.plain_text import PlainTextExtractor

PDF_MIME_TYPES = ("application/pdf", "application/x-pdf")
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
EPUB_MIME_TYPE = "application/epub+zip"
HTML_MIME_TYPES = ("text/html", "application/xhtml+xml")
IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/tiff", "image/bmp", "image/gif")


class ExtractionPipelineFactory:
    """Creates the extraction pipeline based on settings."""

    PDF_ENGINES: dict[str, type[BaseTextExtractor]] = {
        "pdfplumber": PdfPlumberExtractor,
        "pymupdf": PyMuPdfExtractor,
    }

    @classmethod
    def create_pdf_extractor(cls, settings: Settings) -> BaseTextExtractor:
        engine = settings.pdf_engine.lower()
        extractor_cls = cls.PDF_ENGINES.get(engine)
        if extractor_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.PDF_ENGINES)}"
            )
        return extractor_cls()

    @classmethod
    def create(cls, settings: Settings) -> ExtractionPipeline:
        pdf = cls.create_pdf_extractor(settings)
        html = HtmlExtractor()
        extractors: dict[str, BaseTextExtractor] = {
            "text/plain": PlainTextExtractor(),
            DOCX_MIME_TYPE: DocxExtractor(),
            EPUB_MIME_TYPE: EpubExtractor(),
        }
        extractors.update({mime: html for mime in HTML_MIME_TYPES})
        extractors.update({mime: pdf for mime in PDF_MIME_TYPES})
        ocr = OcrExtractor(
            language=settings.ocr_language,
            timeout_seconds=settings.ocr_timeout_seconds,
            dpi=settings.ocr_dpi,
        )
        return ExtractionPipeline(
            extractors=extractors,
            ocr=ocr,
            ocr_mime_types=frozenset(PDF_MIME_TYPES + IMAGE_MIME_TYPES),
            timeout_seconds=settings.extraction_timeout_seconds,
        )
