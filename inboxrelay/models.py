"""
inboxrelay Data Models

Core data models exchanged between the watcher, the framer and the router.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Any, Dict, List


class MessageType(Enum):
    """Inbound message types the bridge knows about."""
    RESPONSE_TEXT = "response_text"   # Peer captured a reply to persist
    SHUTDOWN = "shutdown"             # Peer is about to disconnect


class WatchEventKind(Enum):
    """Filesystem notification that produced a watch event."""
    MODIFIED = "modified"
    CREATED = "created"
    MOVED = "moved"


@dataclass
class WatchEvent:
    """
    A change notification for the watched file.

    Attributes:
        path: File the notification refers to
        kind: What the filesystem reported
        timestamp: time.monotonic() when the notification arrived
    """
    path: Path
    kind: WatchEventKind
    timestamp: float


@dataclass
class Attachment:
    """A file sent along with an outbound message."""
    path: str
    name: str
    content: str  # base64


@dataclass
class OutboundEnvelope:
    """
    Message sent to the peer.

    Attachments are kept as records so the three wire lists
    (filePaths, fileNames, fileContents) stay index-aligned.

    Attributes:
        message: Text left after file lines were taken out
        timestamp: Build time, "%Y-%m-%d %H:%M:%S"
        attachments: Files to send, in order
    """
    message: str
    timestamp: str
    attachments: List[Attachment] = field(default_factory=list)

    @property
    def file_paths(self) -> List[str]:
        return [a.path for a in self.attachments]

    @property
    def file_names(self) -> List[str]:
        return [a.name for a in self.attachments]

    @property
    def file_contents(self) -> List[str]:
        return [a.content for a in self.attachments]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire representation."""
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "filePaths": self.file_paths,
            "fileNames": self.file_names,
            "fileContents": self.file_contents,
        }

    def __repr__(self) -> str:
        return (
            f"OutboundEnvelope(message={self.message[:30]!r}, "
            f"files={self.file_names})"
        )


@dataclass
class InboundMessage:
    """
    Message received from the peer.

    Attributes:
        type: Value of the "type" field, None when missing or not a string
        text: Value of the "text" field, None when missing or not a string
        raw: The whole decoded JSON object
    """
    type: Optional[str] = None
    text: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InboundMessage":
        msg_type = d.get("type")
        text = d.get("text")
        return cls(
            type=msg_type if isinstance(msg_type, str) else None,
            text=text if isinstance(text, str) else None,
            raw=d,
        )
