from app.events.models import ChannelMessage
from app.logging.logger import Log
from app.search.base import BaseSearchEngine


class DeletionHandler:
    """Removes the index entry of a deleted document. Repeats are harmless."""

    def __init__(self, search_engine: BaseSearchEngine) -> None:
        self._search_engine = search_engine

    def handle(self, message: ChannelMessage) -> None:
        document_id = str(message.payload.get("id") or message.key)
        if not document_id:
            Log.warning(f"Deletion event at offset {message.offset} has no document id")
            return
        self._search_engine.delete(document_id)
        Log.info(f"Removed document {document_id} from the search index")
