import io
from collections.abc import Iterator

import pymupdf
import pytesseract
from PIL import Image, ImageSequence, UnidentifiedImageError

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import (
    ExtractionError,
    ExtractionTimeoutError,
    OcrUnavailableError,
)
from app.extraction.pdf import join_pages

PDF_MAGIC = b"%PDF-"


class OcrExtractor(BaseTextExtractor):
    """Recognizes text in images and rendered PDF pages with Tesseract.

    PDF input is rasterized page by page with PyMuPDF at ``dpi``; any other
    input is opened with Pillow, and every frame of multi-frame images
    (TIFF, GIF) is recognized.
    """

    name = "tesseract"

    def __init__(self, language: str = "eng", timeout_seconds: int = 60, dpi: int = 200) -> None:
        self._language = language
        self._timeout_seconds = timeout_seconds
        self._dpi = dpi

    def extract(self, data: bytes) -> str:
        images = self._pdf_pages(data) if data.startswith(PDF_MAGIC) else self._image_frames(data)
        try:
            pages = [self._recognize(image) for image in images]
        except (ExtractionError, OcrUnavailableError, ExtractionTimeoutError):
            raise
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionError(f"Cannot decode image for OCR: {exc}") from exc
        return join_pages(pages)

    def _recognize(self, image: Image.Image) -> str:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        try:
            return pytesseract.image_to_string(
                image,
                lang=self._language,
                timeout=self._timeout_seconds,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrUnavailableError(f"Tesseract is not installed: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise ExtractionError(f"Tesseract failed: {exc}") from exc
        except RuntimeError as exc:
            # pytesseract signals its timeout with a bare RuntimeError
            raise ExtractionTimeoutError(
                f"OCR exceeded {self._timeout_seconds}s: {exc}"
            ) from exc

    def _image_frames(self, data: bytes) -> Iterator[Image.Image]:
        try:
            image = Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionError(f"Cannot decode image for OCR: {exc}") from exc
        with image:
            for frame in ImageSequence.Iterator(image):
                yield frame.copy()

    def _pdf_pages(self, data: bytes) -> Iterator[Image.Image]:
        try:
            doc = pymupdf.open(stream=data, filetype="pdf")  # type: ignore[no-untyped-call]
        except Exception as exc:
            raise ExtractionError(f"Cannot open PDF for OCR: {exc}") from exc
        with doc:
            for page in doc:
                pixmap = page.get_pixmap(dpi=self._dpi)
                yield Image.open(io.BytesIO(pixmap.tobytes("png")))
