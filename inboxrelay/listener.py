"""
inboxrelay Inbound Listener

Daemon thread that reads messages from the peer and routes them.
"""

import logging
import threading
from typing import Optional

from .exceptions import (
    InvalidFrameLengthError,
    MalformedFrameError,
    PeerDisconnectedError,
)
from .framing import FrameReader
from .router import InboundRouter

log = logging.getLogger(__name__)


class InboundListener:
    """
    Background daemon thread that consumes the peer's input stream.

    This is the only reader of inbound data. A malformed message is
    skipped; a bad length prefix, a closed stream, or any unexpected error
    ends the loop and sets the shared stop event.

    The read itself blocks and cannot be interrupted, so stop() only waits
    a bounded time for the thread; an idle peer is left to process exit.

    Example:
        listener = InboundListener(FrameReader(sys.stdin.buffer), router, stop_event)
        listener.start()
    """

    def __init__(
        self,
        reader: FrameReader,
        router: InboundRouter,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the listener.

        Args:
            reader: Frame reader over the peer's output
            router: Router for decoded messages
            stop_event: Cancellation shared with the rest of the bridge
        """
        self._reader = reader
        self._router = router
        self._stop_event = stop_event or threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.messages_received = 0
        self.messages_skipped = 0

    def start(self) -> None:
        """Start the listener daemon thread."""
        if self.is_running():
            return

        self._thread = threading.Thread(
            target=self.run,
            name="InboxRelayListener",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """
        Signal the loop to stop and wait briefly for it.

        Args:
            timeout: Maximum time to wait for the thread
        """
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        """Check if the listener thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Read and dispatch until cancelled or the stream ends."""
        while not self._stop_event.is_set():
            if not self._step():
                self._stop_event.set()
                break

    def _step(self) -> bool:
        """Handle one message; False once the loop must stop."""
        try:
            message = self._reader.read_message()
        except MalformedFrameError as e:
            self.messages_skipped += 1
            log.error("Error: %s", e)
            return True
        except InvalidFrameLengthError as e:
            log.error("%s (raw bytes %s), stopping input", e, e.raw.hex("-").upper())
            return False
        except PeerDisconnectedError as e:
            log.info("%s, stopping input", e)
            return False
        except Exception:
            log.exception("Read error")
            return False

        self.messages_received += 1
        log.info("Received %s message", message.type or "untyped")
        self._router.dispatch(message)
        return True
