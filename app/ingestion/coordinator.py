import uuid
from collections.abc import Callable

from app.config.settings import Settings
from app.database.models import STATUS_PENDING, DocumentRecord
from app.database.repositories.document_repository import DocumentRepository
from app.events.base import BaseEventChannel
from app.events.publisher import publish_ingestion_event
from app.exceptions import ConflictError, PermanentError, TransientError, ValidationError
from app.extraction.pipeline import normalize_mime_type
from app.ingestion.dispatcher import BackgroundDispatcher
from app.ingestion.hasher import content_hash
from app.ingestion.models import UploadRequest
from app.ingestion.validator import UploadValidator, extension_for, file_type_for
from app.logging.logger import Log
from app.scanning.base import BaseVirusScanner
from app.scanning.exceptions import ScannerUnavailableError
from app.storage.base import BaseObjectStore
from app.thumbnails.generator import ThumbnailGenerator


def document_storage_path(collection_id: str, document_id: str, extension: str) -> str:
    return f"documents/{collection_id}/{document_id}{extension}"


def thumbnail_storage_path(collection_id: str, document_id: str) -> str:
    return f"thumbnails/{collection_id}/{document_id}.png"


class UploadCoordinator:
    """Validates, scans, deduplicates and stores one upload.

    Sequence: validate -> hash -> scan -> dedup check -> insert pending row
    -> store bytes -> hand thumbnail and event emission to the background
    dispatcher. Every error raised before the row is inserted leaves no
    trace; a storage failure after the insert purges the row again.
    """

    def __init__(
        self,
        validator: UploadValidator,
        scanner: BaseVirusScanner,
        doc_repo: DocumentRepository,
        object_store: BaseObjectStore,
        event_channel: BaseEventChannel,
        thumbnails: ThumbnailGenerator,
        dispatcher: BackgroundDispatcher,
        scanner_fail_open: bool = False,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._validator = validator
        self._scanner = scanner
        self._doc_repo = doc_repo
        self._object_store = object_store
        self._event_channel = event_channel
        self._thumbnails = thumbnails
        self._dispatcher = dispatcher
        self._scanner_fail_open = scanner_fail_open
        self._id_factory = id_factory

    def upload(self, request: UploadRequest) -> DocumentRecord:
        """Ingest one file and return its pending Document.

        Raises:
            ValidationError: bad input or infected content.
            ConflictError: a live document has identical bytes.
            TransientError: the scanner (when failing closed), the database
                or the object store is unavailable.
        """
        self._validator.validate(request)
        digest = content_hash(request.data)
        self._scan(request)

        existing = self._doc_repo.find_by_hash(digest)
        if existing is not None:
            raise ConflictError(
                f"A document with the same content already exists (ID: {existing.id})",
                existing_id=existing.id,
            )

        mime = normalize_mime_type(request.mime_type)
        document_id = self._id_factory()
        storage_path = document_storage_path(
            request.collection_id, document_id, extension_for(mime, request.filename)
        )
        document = self._doc_repo.create(
            DocumentRecord(
                id=document_id,
                title=request.title.strip(),
                description=request.description,
                collection_id=request.collection_id,
                uploader_id=request.uploader_id,
                original_filename=request.filename,
                file_type=file_type_for(mime, request.filename),
                mime_type=mime,
                file_size=len(request.data),
                storage_path=storage_path,
                hash=digest,
                status=STATUS_PENDING,
                metadata=dict(request.metadata),
            )
        )

        try:
            self._object_store.put(storage_path, request.data, mime)
        except PermanentError:
            self._rollback(document.id)
            raise
        except Exception as exc:
            self._rollback(document.id)
            raise TransientError(f"Failed to store document {document.id}: {exc}") from exc

        Log.info(
            f"Stored document {document.id} ({document.file_type}, {document.file_size} bytes) "
            f"in collection {document.collection_id}"
        )
        self._dispatcher.submit(
            f"thumbnail for {document.id}",
            lambda: self._store_thumbnail(document, request.data),
        )
        self._dispatcher.submit(
            f"ingestion event for {document.id}",
            lambda: publish_ingestion_event(self._event_channel, document),
        )
        return document

    def _scan(self, request: UploadRequest) -> None:
        try:
            result = self._scanner.scan(request.data, request.filename)
        except ScannerUnavailableError as exc:
            if not self._scanner_fail_open:
                raise
            Log.warning(f"Virus scanner unavailable, accepting '{request.filename}' unscanned: {exc}")
            return
        if not result.clean:
            raise ValidationError(f"File is infected: {result.signature}")

    def _rollback(self, document_id: str) -> None:
        try:
            self._doc_repo.purge(document_id)
        except Exception as exc:
            Log.error(f"Failed to roll back document {document_id} after storage failure: {exc}")

    def _store_thumbnail(self, document: DocumentRecord, data: bytes) -> None:
        if not self._thumbnails.supports(document.mime_type):
            return
        png = self._thumbnails.generate(data, document.mime_type)
        path = thumbnail_storage_path(document.collection_id, document.id)
        self._object_store.put(path, png, "image/png")
        self._doc_repo.set_thumbnail_path(document.id, path)
        Log.info(f"Stored thumbnail for document {document.id}")


def build_upload_coordinator(
    settings: Settings,
    doc_repo: DocumentRepository,
    scanner: BaseVirusScanner,
    object_store: BaseObjectStore,
    event_channel: BaseEventChannel,
    dispatcher: BackgroundDispatcher,
) -> UploadCoordinator:
    """Build an UploadCoordinator from settings and shared adapters."""
    return UploadCoordinator(
        validator=UploadValidator(
            max_bytes=settings.upload_max_bytes,
            allowed_mime_types=settings.upload_allowed_mime_types,
        ),
        scanner=scanner,
        doc_repo=doc_repo,
        object_store=object_store,
        event_channel=event_channel,
        thumbnails=ThumbnailGenerator(max_px=settings.thumbnail_max_px),
        dispatcher=dispatcher,
        scanner_fail_open=settings.scanner_fail_open,
    )
