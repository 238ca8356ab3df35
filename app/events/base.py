from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from app.events.models import ChannelMessage

MessageHandler = Callable[[ChannelMessage], None]


class BaseEventChannel(ABC):
    """Contract for partitioned, at-least-once topic backends."""

    @abstractmethod
    def publish(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        """Append payload to the partition chosen by key.

        Raises:
            EventChannelError: if the message could not be durably appended.
        """

    @abstractmethod
    def poll(self, topic: str, group: str, handler: MessageHandler) -> bool:
        """Deliver the next uncommitted message of one free partition to handler.

        The offset is committed only after handler returns. If handler
        raises, nothing is committed and the exception propagates, so the
        message is delivered again on a later poll.

        Returns:
            True if a message was handled, False if the topic had nothing
            available for this group.
        """

    def close(self) -> None:
        """Release backend resources."""
