import codecs

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import ExtractionError

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def decode_text(data: bytes) -> str:
    """Decode bytes honoring a BOM, then UTF-8, then Latin-1.

    Raises:
        ExtractionError: if the payload looks binary.
    """
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            try:
                return data.decode(encoding)
            except UnicodeDecodeError as exc:
                raise ExtractionError(f"Invalid {encoding} text: {exc}") from exc
    if b"\x00" in data:
        raise ExtractionError("Payload contains NUL bytes; not a text file")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of blank lines and trailing spaces."""
    lines = [line.strip() for line in text.splitlines()]
    collapsed: list[str] = []
    for line in lines:
        if not line and (not collapsed or not collapsed[-1]):
            continue
        collapsed.append(line)
    return "\n".join(collapsed).strip()


class PlainTextExtractor(BaseTextExtractor):
    """Extracts text/plain content."""

    name = "plain_text"

    def extract(self, data: bytes) -> str:
        return decode_text(data).replace("\r\n", "\n").strip()
