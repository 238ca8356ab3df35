from dataclasses import dataclass
from pathlib import Path

from app.config.settings import Settings
from app.database.repositories.document_repository import DocumentRepository
from app.documents.service import DocumentService
from app.events.base import BaseEventChannel
from app.events.factory import EventChannelFactory
from app.extraction.factory import ExtractionPipelineFactory
from app.extraction.pipeline import ExtractionPipeline
from app.ingestion.coordinator import UploadCoordinator, build_upload_coordinator
from app.ingestion.dispatcher import BackgroundDispatcher
from app.ingestion.reconciler import Reconciler
from app.jobs.orchestrator import BatchOrchestrator, build_batch_orchestrator
from app.jobs.reaper import JobReaper
from app.jobs.registry import JobRegistry
from app.processor.processor import build_index_processor
from app.scanning.factory import ScannerFactory
from app.search.base import BaseSearchEngine
from app.search.factory import SearchEngineFactory
from app.storage.base import BaseObjectStore
from app.storage.local_adapter import build_object_store
from app.worker.deletion_handler import DeletionHandler
from app.worker.indexing_runner import IndexingRunner
from app.worker.worker import IndexerWorker


@dataclass
class Services:
    """Wired application objects sharing one set of adapters."""

    settings: Settings
    doc_repo: DocumentRepository
    object_store: BaseObjectStore
    event_channel: BaseEventChannel
    search_engine: BaseSearchEngine
    extraction_pipeline: ExtractionPipeline
    dispatcher: BackgroundDispatcher
    coordinator: UploadCoordinator
    document_service: DocumentService
    job_registry: JobRegistry
    orchestrator: BatchOrchestrator
    job_reaper: JobReaper
    reconciler: Reconciler
    worker: IndexerWorker

    def close(self) -> None:
        self.job_reaper.stop()
        self.orchestrator.shutdown()
        self.dispatcher.shutdown()
        self.extraction_pipeline.shutdown()
        self.event_channel.close()


def build_services(
    settings: Settings,
    doc_repo: DocumentRepository | None = None,
    object_store: BaseObjectStore | None = None,
    storage_root: Path | None = None,
) -> Services:
    """Build every service from settings. Adapters can be passed in to override.

    The job reaper thread is started here and stopped by ``Services.close``.
    """
    doc_repo = doc_repo or DocumentRepository()
    object_store = object_store or build_object_store(settings, root=storage_root)
    event_channel = EventChannelFactory.create(settings)
    search_engine = SearchEngineFactory.create(settings)
    extraction_pipeline = ExtractionPipelineFactory.create(settings)
    dispatcher = BackgroundDispatcher(max_workers=settings.background_workers)

    coordinator = build_upload_coordinator(
        settings,
        doc_repo=doc_repo,
        scanner=ScannerFactory.create(settings),
        object_store=object_store,
        event_channel=event_channel,
        dispatcher=dispatcher,
    )
    document_service = DocumentService(
        doc_repo=doc_repo,
        object_store=object_store,
        event_channel=event_channel,
        dispatcher=dispatcher,
        presign_ttl_seconds=settings.storage_presign_ttl_seconds,
    )
    job_registry = JobRegistry()
    orchestrator = build_batch_orchestrator(settings, job_registry, coordinator, document_service)
    job_reaper = JobReaper(
        job_registry,
        retention_seconds=settings.job_retention_seconds,
        interval_seconds=settings.job_reap_interval_seconds,
    )

    processor = build_index_processor(
        doc_repo=doc_repo,
        object_store=object_store,
        pipeline=extraction_pipeline,
        search_engine=search_engine,
        event_channel=event_channel,
    )
    worker = IndexerWorker(
        event_channel=event_channel,
        indexing_runner=IndexingRunner(processor, doc_repo, event_channel, settings),
        deletion_handler=DeletionHandler(search_engine),
        settings=settings,
    )
    job_reaper.start()
    return Services(
        settings=settings,
        doc_repo=doc_repo,
        object_store=object_store,
        event_channel=event_channel,
        search_engine=search_engine,
        extraction_pipeline=extraction_pipeline,
        dispatcher=dispatcher,
        coordinator=coordinator,
        document_service=document_service,
        job_registry=job_registry,
        orchestrator=orchestrator,
        job_reaper=job_reaper,
        reconciler=Reconciler(
            doc_repo,
            event_channel,
            pending_after_seconds=settings.reconcile_pending_after_seconds,
            batch_size=settings.reconcile_batch_size,
        ),
        worker=worker,
    )
