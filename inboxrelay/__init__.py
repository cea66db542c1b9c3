"""
inboxrelay - File Inbox to stdio Bridge

A small daemon that relays commands between a watched text file and a peer
process (typically a browser extension over native messaging) speaking
length-prefixed JSON on stdin/stdout.

Key Features:
    - Length-prefixed JSON framing with a 1 MiB limit
    - Fallback for peers that send bare JSON without a prefix
    - Debounced file watching with bounded read retries
    - File references in a command are sent as base64 attachments
    - Responses saved to disk with a per-user fallback location

Basic Usage:
    from inboxrelay import RelayService, get_config

    service = RelayService(get_config())
    service.run()

Environment Variables:
    INBOXRELAY_INBOX_DIR           - Directory holding command.txt
    INBOXRELAY_COMMAND_FILE        - Name of the watched file
    INBOXRELAY_OUTPUT_DIR          - Directory for output.txt
    INBOXRELAY_FALLBACK_OUTPUT     - Fallback response file
    INBOXRELAY_LOG_FILE            - Diagnostic log file
    INBOXRELAY_DEFAULT_ATTACHMENT  - File sent when a command names none
    INBOXRELAY_STOP_ON_SHUTDOWN    - Stop when the peer sends "shutdown"
"""

__version__ = "0.1.0"

# Core models
from .models import (
    Attachment,
    InboundMessage,
    MessageType,
    OutboundEnvelope,
    WatchEvent,
    WatchEventKind,
)

# Configuration
from .config import (
    RelayConfig,
    get_config,
    set_config,
    reset_config,
)

# Exceptions
from .exceptions import (
    RelayError,
    FrameError,
    FrameTooLargeError,
    InvalidFrameLengthError,
    MalformedFrameError,
    PeerDisconnectedError,
    ResponseWriteError,
)

# Wire framing
from .framing import FrameReader, FrameWriter, encode_frame, MAX_MESSAGE_SIZE

# Components
from .watcher import InboxWatcher, Debouncer, extract_references, read_with_retry
from .outbound import OutboundBuilder
from .router import InboundRouter
from .sink import ResponseSink
from .listener import InboundListener
from .logs import configure_logging

# Supervisor
from .service import RelayService

__all__ = [
    # Version
    "__version__",

    # Core models
    "Attachment",
    "InboundMessage",
    "MessageType",
    "OutboundEnvelope",
    "WatchEvent",
    "WatchEventKind",

    # Configuration
    "RelayConfig",
    "get_config",
    "set_config",
    "reset_config",

    # Exceptions
    "RelayError",
    "FrameError",
    "FrameTooLargeError",
    "InvalidFrameLengthError",
    "MalformedFrameError",
    "PeerDisconnectedError",
    "ResponseWriteError",

    # Wire framing
    "FrameReader",
    "FrameWriter",
    "encode_frame",
    "MAX_MESSAGE_SIZE",

    # Components
    "InboxWatcher",
    "Debouncer",
    "extract_references",
    "read_with_retry",
    "OutboundBuilder",
    "InboundRouter",
    "ResponseSink",
    "InboundListener",
    "configure_logging",

    # Supervisor
    "RelayService",
]
