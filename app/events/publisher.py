from app.database.models import DocumentRecord
from app.events.base import BaseEventChannel
from app.events.models import TOPIC_DOCUMENT_UPLOADED, IngestionEvent
from app.logging.logger import Log


def publish_ingestion_event(
    channel: BaseEventChannel, document: DocumentRecord
) -> IngestionEvent:
    """Announce a stored document on the uploaded topic, keyed by its id."""
    event = IngestionEvent.from_document(document)
    channel.publish(TOPIC_DOCUMENT_UPLOADED, document.id, event.to_payload())
    Log.info(f"Published ingestion event for document {document.id}")
    return event
