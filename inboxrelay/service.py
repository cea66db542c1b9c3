"""
inboxrelay Service

The supervisor that wires the watcher, framer, router and sink together and
owns the bridge's lifecycle.

Threads:
    - watchdog observer: queues file events
    - InboxRelayWatcher: debounces, reads, builds and sends commands
    - InboxRelayListener: reads and routes messages from the peer
    - main thread: waits for cancellation, then tears down

All of them share one threading.Event as the cancellation signal.
"""

import logging
import signal
import sys
import threading
from typing import BinaryIO, List, Optional

from .config import RelayConfig, get_config
from .exceptions import PeerDisconnectedError
from .framing import FrameReader, FrameWriter
from .listener import InboundListener
from .models import InboundMessage, MessageType
from .outbound import OutboundBuilder
from .router import InboundRouter
from .sink import ResponseSink
from .watcher import InboxWatcher

log = logging.getLogger(__name__)


class RelayService:
    """
    Bridge between the command file and the peer's stdio.

    Example:
        service = RelayService(get_config())
        service.run()  # blocks until the peer goes away or a signal arrives

    Example (embedded):
        with RelayService(config, stdin=peer_out, stdout=peer_in) as service:
            ...
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Bridge configuration (uses the global config if not provided)
            stdin: Stream the peer writes to (defaults to sys.stdin.buffer)
            stdout: Stream the peer reads from (defaults to sys.stdout.buffer)
        """
        self._config = config or get_config()
        self._stop_event = threading.Event()

        self._writer = FrameWriter(stdout if stdout is not None else sys.stdout.buffer)
        self._reader = FrameReader(stdin if stdin is not None else sys.stdin.buffer)
        self._builder = OutboundBuilder()
        self._sink = ResponseSink(self._config.output_path, self._config.fallback_output)
        self._router = InboundRouter()
        self._router.register(MessageType.RESPONSE_TEXT, self._on_response_text)
        self._router.register(MessageType.SHUTDOWN, self._on_shutdown)

        self._watcher = InboxWatcher(
            self._config.command_path,
            on_command=self.send_command,
            stop_event=self._stop_event,
            default_reference=self._config.default_attachment,
            debounce_seconds=self._config.debounce_seconds,
            read_attempts=self._config.read_attempts,
            read_retry_delay=self._config.read_retry_delay,
            queue_size=self._config.event_queue_size,
        )
        self._listener = InboundListener(self._reader, self._router, self._stop_event)

        self._running = False

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def router(self) -> InboundRouter:
        return self._router

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the watcher and the listener."""
        if self._running:
            return

        log.info("Starting...")
        self._config.inbox_dir.mkdir(parents=True, exist_ok=True)
        self._watcher.start()
        self._listener.start()
        self._running = True
        log.info("Ready")

    def stop(self) -> None:
        """Cancel every worker and wait for the ones that can be joined."""
        self._stop_event.set()
        if not self._running:
            return
        self._watcher.stop()
        self._listener.stop()
        self._running = False
        log.info("Stopped")

    def cancel(self) -> None:
        """Ask the service to stop; run() returns at its next check."""
        self._stop_event.set()

    def run(self) -> None:
        """
        Start, then block until cancelled.

        SIGINT and SIGTERM cancel the service when run from the main thread.
        """
        self._install_signal_handlers()
        try:
            self.start()
            while not self._stop_event.wait(timeout=self._config.poll_interval):
                pass
        finally:
            self.stop()

    def send_command(self, body: str, references: List[str]) -> bool:
        """
        Build an envelope for a command and send it to the peer.

        Returns:
            True if the frame was written
        """
        envelope = self._builder.build(body, references)
        try:
            sent = self._writer.send(envelope.to_dict())
        except PeerDisconnectedError as e:
            log.error("Write error: %s", e)
            self.cancel()
            return False

        if sent:
            log.info("Sent message with %d files", len(envelope.attachments))
        return sent

    def _on_response_text(self, message: InboundMessage) -> None:
        if message.text is None:
            log.error("response_text message has no text field")
            return
        log.info("Response text length: %d", len(message.text))
        self._sink.write(message.text)

    def _on_shutdown(self, message: InboundMessage) -> None:
        log.info("Peer announced shutdown")
        if self._config.stop_on_shutdown:
            self.cancel()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return

        def _handler(signum, frame):
            log.info("Received signal %d", signum)
            self.cancel()

        signal.signal(signal.SIGTERM, _handler)
        signal.signal(signal.SIGINT, _handler)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
