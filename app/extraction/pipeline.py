from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import (
    ExtractionError,
    ExtractionTimeoutError,
    UnsupportedFormatError,
)
from app.extraction.models import PROVENANCE_NATIVE, PROVENANCE_OCR, ExtractionResult
from app.logging.logger import Log


def normalize_mime_type(mime_type: str) -> str:
    """Lower-case a mime type and drop parameters such as ``charset``."""
    return mime_type.split(";", 1)[0].strip().lower()


class ExtractionPipeline:
    """Dispatches bytes to a native extractor by mime type, falling back to OCR.

    Order per document:
        1. native extractor for the mime type, if one is registered;
        2. OCR when the mime type is OCR-capable and the native step produced
           no text (empty, whitespace-only, or failed);
        3. an empty native result is kept when OCR fails.
    """

    def __init__(
        self,
        extractors: dict[str, BaseTextExtractor],
        ocr: BaseTextExtractor | None,
        ocr_mime_types: frozenset[str],
        timeout_seconds: float | None = None,
        max_workers: int = 4,
    ) -> None:
        self._extractors = {normalize_mime_type(k): v for k, v in extractors.items()}
        self._ocr = ocr
        self._ocr_mime_types = frozenset(normalize_mime_type(m) for m in ocr_mime_types)
        self._timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="extraction"
        )

    def extract(self, data: bytes, mime_type: str) -> ExtractionResult:
        """Extract text, bounded by the pipeline timeout when one is set.

        Raises:
            UnsupportedFormatError: if nothing handles ``mime_type``.
            ExtractionError: if every applicable extractor failed.
            ExtractionTimeoutError: if extraction ran past the timeout.
            OcrUnavailableError: if OCR was needed but Tesseract is missing.
        """
        if self._timeout_seconds is None:
            return self._extract(data, mime_type)
        future = self._executor.submit(self._extract, data, mime_type)
        try:
            return future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ExtractionTimeoutError(
                f"Extraction of {mime_type} exceeded {self._timeout_seconds}s"
            ) from exc

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _extract(self, data: bytes, mime_type: str) -> ExtractionResult:
        mime = normalize_mime_type(mime_type)
        native = self._extractors.get(mime)
        ocr = self._ocr if mime in self._ocr_mime_types else None
        if native is None and ocr is None:
            raise UnsupportedFormatError(f"No extractor for mime type '{mime}'")

        errors: list[str] = []
        native_text: str | None = None
        if native is not None:
            try:
                native_text = native.extract(data)
            except ExtractionError as exc:
                errors.append(f"{native.name}: {exc}")
                Log.warning(f"Native extraction with {native.name} failed: {exc}")
            if native_text is not None and native_text.strip():
                return ExtractionResult(native_text, PROVENANCE_NATIVE, native.name, errors)

        if ocr is None:
            if native is not None and native_text is not None:
                return ExtractionResult(native_text, PROVENANCE_NATIVE, native.name, errors)
            raise ExtractionError(f"All extractors failed for '{mime}'", errors)

        Log.info(f"Falling back to OCR for '{mime}'")
        try:
            ocr_text = ocr.extract(data)
        except ExtractionError as exc:
            errors.append(f"{ocr.name}: {exc}")
            if native is not None and native_text is not None:
                Log.warning(f"OCR failed, keeping empty native text: {exc}")
                return ExtractionResult(native_text, PROVENANCE_NATIVE, native.name, errors)
            raise ExtractionError(f"All extractors failed for '{mime}'", errors) from exc
        return ExtractionResult(ocr_text, PROVENANCE_OCR, ocr.name, errors)
