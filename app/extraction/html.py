from html.parser import HTMLParser

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import ExtractionError
from app.extraction.plain_text import decode_text, normalize_whitespace

_SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template", "svg"})
_BLOCK_TAGS = frozenset(
    {
        "p", "div", "br", "li", "ul", "ol", "tr", "table", "section", "article",
        "header", "footer", "h1", "h2", "h3", "h4", "h5", "h6", "title",
        "blockquote", "pre", "hr", "dd", "dt",
    }
)


class _TextCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIPPED_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_data(self, data: str) -> None:
        if self._skip_depth == 0:
            self._parts.append(data)

    def text(self) -> str:
        return "".join(self._parts)


def html_to_text(markup: str) -> str:
    """Strip markup, dropping script/style bodies and keeping block breaks."""
    collector = _TextCollector()
    collector.feed(markup)
    collector.close()
    lines = (" ".join(line.split()) for line in collector.text().splitlines())
    return normalize_whitespace("\n".join(lines))


class HtmlExtractor(BaseTextExtractor):
    """Extracts visible text from HTML and XHTML."""

    name = "html"

    def extract(self, data: bytes) -> str:
        markup = decode_text(data)
        try:
            return html_to_text(markup)
        except Exception as exc:
            raise ExtractionError(f"HTML parsing failed: {exc}") from exc
