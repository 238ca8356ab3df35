from dataclasses import dataclass, field

PROVENANCE_NATIVE = "native"
PROVENANCE_OCR = "ocr"


@dataclass(frozen=True)
class ExtractionResult:
    """Text recovered from a document and which path produced it."""

    text: str
    provenance: str
    extractor: str
    errors: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()
