import io
import textwrap

import pymupdf
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from app.extraction.plain_text import decode_text
from app.thumbnails.exceptions import ThumbnailError

PDF_MIME_TYPES = frozenset({"application/pdf", "application/x-pdf"})
TEXT_MIME_TYPES = frozenset({"text/plain"})

_TEXT_LINES = 40
_TEXT_WIDTH = 60
_PAGE_RATIO = 1.414


class ThumbnailGenerator:
    """Renders a PNG preview no larger than max_px on either side.

    Supported inputs: images (any format Pillow opens), the first page of a
    PDF, and the opening lines of a plain text file.
    """

    def __init__(self, max_px: int = 600) -> None:
        self._max_px = max_px

    def supports(self, mime_type: str) -> bool:
        return (
            mime_type.startswith("image/")
            or mime_type in PDF_MIME_TYPES
            or mime_type in TEXT_MIME_TYPES
        )

    def generate(self, data: bytes, mime_type: str) -> bytes:
        """Return PNG bytes for the given content.

        Raises:
            ThumbnailError: if the type is unsupported or rendering fails.
        """
        if mime_type in PDF_MIME_TYPES:
            image = self._render_pdf(data)
        elif mime_type in TEXT_MIME_TYPES:
            image = self._render_text(data)
        elif mime_type.startswith("image/"):
            image = self._open_image(data)
        else:
            raise ThumbnailError(f"No thumbnail renderer for '{mime_type}'")
        return self._to_png(image)

    def _open_image(self, data: bytes) -> Image.Image:
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                return image.copy()
        except (UnidentifiedImageError, OSError) as exc:
            raise ThumbnailError(f"Cannot decode image: {exc}") from exc

    def _render_pdf(self, data: bytes) -> Image.Image:
        try:
            with pymupdf.open(stream=data, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                if doc.page_count == 0:
                    raise ThumbnailError("PDF has no pages")
                page = doc.load_page(0)
                scale = self._max_px / max(page.rect.width, page.rect.height)
                pixmap = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale))
                return Image.open(io.BytesIO(pixmap.tobytes("png")))
        except ThumbnailError:
            raise
        except Exception as exc:
            raise ThumbnailError(f"Cannot render PDF page: {exc}") from exc

    def _render_text(self, data: bytes) -> Image.Image:
        try:
            text = decode_text(data)
        except Exception as exc:
            raise ThumbnailError(f"Cannot decode text: {exc}") from exc

        lines: list[str] = []
        for paragraph in text.splitlines():
            lines.extend(textwrap.wrap(paragraph, _TEXT_WIDTH) or [""])
            if len(lines) >= _TEXT_LINES:
                break

        width = self._max_px
        height = int(width * _PAGE_RATIO)
        image = Image.new("RGB", (width, height), "white")
        draw = ImageDraw.Draw(image)
        font = ImageFont.load_default()
        y = 10
        for line in lines[:_TEXT_LINES]:
            draw.text((10, y), line, fill="black", font=font)
            y += 14
        return image

    def _to_png(self, image: Image.Image) -> bytes:
        if image.mode not in ("RGB", "RGBA", "L"):
            image = image.convert("RGBA")
        image.thumbnail((self._max_px, self._max_px))
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
