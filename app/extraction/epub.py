import io
import posixpath
import zipfile
from xml.etree import ElementTree

from app.extraction.base import BaseTextExtractor
from app.extraction.exceptions import ExtractionError
from app.extraction.html import html_to_text
from app.extraction.plain_text import decode_text

_CONTAINER_PATH = "META-INF/container.xml"
_NS = {
    "container": "urn:oasis:names:tc:opendocument:xmlns:container",
    "opf": "http://www.idpf.org/2007/opf",
}
_XHTML_TYPES = frozenset({"application/xhtml+xml", "text/html"})


class EpubExtractor(BaseTextExtractor):
    """Extracts text from the XHTML documents of an EPUB, in spine order."""

    name = "epub"

    def extract(self, data: bytes) -> str:
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                chapters = self._spine_documents(archive)
                texts = [
                    html_to_text(decode_text(archive.read(name))) for name in chapters
                ]
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"EPUB extraction failed: {exc}") from exc
        return "\n\n".join(text for text in texts if text)

    def _spine_documents(self, archive: zipfile.ZipFile) -> list[str]:
        names = set(archive.namelist())
        if _CONTAINER_PATH not in names:
            raise ExtractionError("EPUB is missing META-INF/container.xml")

        container = ElementTree.fromstring(archive.read(_CONTAINER_PATH))
        rootfile = container.find(".//container:rootfile", _NS)
        if rootfile is None or not rootfile.get("full-path"):
            raise ExtractionError("EPUB container does not name a package document")
        opf_path = rootfile.get("full-path", "")
        base_dir = posixpath.dirname(opf_path)

        package = ElementTree.fromstring(archive.read(opf_path))
        manifest = {
            item.get("id"): item
            for item in package.iterfind("opf:manifest/opf:item", _NS)
        }
        documents: list[str] = []
        for itemref in package.iterfind("opf:spine/opf:itemref", _NS):
            item = manifest.get(itemref.get("idref"))
            if item is None or item.get("media-type") not in _XHTML_TYPES:
                continue
            path = posixpath.normpath(posixpath.join(base_dir, item.get("href", "")))
            if path in names:
                documents.append(path)
        return documents
