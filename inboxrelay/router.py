"""
inboxrelay Inbound Router

Dispatches messages from the peer to handlers keyed by message type.
"""

import logging
import threading
from typing import Callable, Dict, Union

from .models import InboundMessage, MessageType

log = logging.getLogger(__name__)

MessageHandler = Callable[[InboundMessage], None]


class InboundRouter:
    """
    Maps message types to handlers.

    Unknown or missing types are logged and ignored. A handler that raises
    is logged and never takes the read loop down with it.

    Example:
        router = InboundRouter()
        router.register(MessageType.RESPONSE_TEXT, lambda m: sink.write(m.text))
        router.dispatch(reader.read_message())
    """

    def __init__(self):
        self._handlers: Dict[str, MessageHandler] = {}
        self._lock = threading.Lock()

    def register(self, message_type: Union[MessageType, str], handler: MessageHandler) -> None:
        """
        Register the handler for a message type, replacing any previous one.

        Args:
            message_type: MessageType or raw type string
            handler: Called with the InboundMessage
        """
        key = message_type.value if isinstance(message_type, MessageType) else message_type
        with self._lock:
            self._handlers[key] = handler

    def dispatch(self, message: InboundMessage) -> bool:
        """
        Route one message.

        Returns:
            True if a handler ran without raising
        """
        with self._lock:
            handler = self._handlers.get(message.type) if message.type else None

        if handler is None:
            log.info("Received non-response message type: %s", message.type or "null")
            return False

        try:
            handler(message)
        except Exception:
            log.exception("Error processing %s message", message.type)
            return False
        return True
