"""
inboxrelay Outbound Builder

Turns a command (body text plus file references) into an OutboundEnvelope.
"""

import base64
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .models import Attachment, OutboundEnvelope

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_LINE_SPLIT = re.compile(r"[\r\n]+")


def is_existing_file(candidate: str) -> bool:
    """
    Check whether a line of command text names an existing file.

    Text that cannot be a path at all (over-long names, embedded NULs) is
    just text, so those errors answer False instead of propagating.
    """
    try:
        return Path(candidate).is_file()
    except (OSError, ValueError):
        return False


def load_attachment(path: str) -> Optional[Attachment]:
    """
    Read a file into an Attachment.

    Returns:
        The attachment, or None if the file could not be read
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        log.error("Error reading file %s: %s", path, e)
        return None
    return Attachment(
        path=path,
        name=Path(path).name,
        content=base64.b64encode(data).decode("ascii"),
    )


class OutboundBuilder:
    """
    Builds envelopes for the peer.

    Any body line that names an existing file is sent as an attachment
    rather than as text.

    Example:
        builder = OutboundBuilder()
        envelope = builder.build("Summarize this\\n/tmp/report.txt", [])
        writer.send(envelope.to_dict())
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def build(self, body: str, references: Iterable[str] = ()) -> OutboundEnvelope:
        """
        Build an envelope.

        Args:
            body: Command text
            references: Files already identified by the watcher

        Returns:
            OutboundEnvelope stamped with the build time
        """
        attachments: List[Attachment] = []
        seen = set()

        def _attach(path: str) -> None:
            if path in seen:
                return
            seen.add(path)
            attachment = load_attachment(path)
            if attachment is not None:
                attachments.append(attachment)

        for reference in references:
            _attach(str(reference))

        message_lines: List[str] = []
        for line in _LINE_SPLIT.split(body.strip()):
            if not line:
                continue
            candidate = line.strip()
            if candidate and is_existing_file(candidate):
                _attach(candidate)
            else:
                message_lines.append(line)

        return OutboundEnvelope(
            message="\n".join(message_lines),
            timestamp=self._clock().strftime(TIMESTAMP_FORMAT),
            attachments=attachments,
        )
