"""
inboxrelay Response Sink

Saves response text from the peer to disk, with one fallback location.
"""

import logging
from pathlib import Path
from typing import Union

from .exceptions import ResponseWriteError

log = logging.getLogger(__name__)


def _write_text(path: Path, text: str) -> None:
    # newline="" keeps the text byte-for-byte as received
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


class ResponseSink:
    """
    Writes each response over the primary output file.

    If that fails for any reason, the text goes to the fallback file
    instead. There is no third location.
    """

    def __init__(self, output_path: Union[str, Path], fallback_path: Union[str, Path]):
        self._output_path = Path(output_path)
        self._fallback_path = Path(fallback_path)

    @property
    def output_path(self) -> Path:
        return self._output_path

    @property
    def fallback_path(self) -> Path:
        return self._fallback_path

    def write(self, text: str) -> Path:
        """
        Save response text.

        Args:
            text: Response to write verbatim

        Returns:
            The path that received the text

        Raises:
            ResponseWriteError: If both the primary and fallback writes fail
        """
        output_dir = self._output_path.parent
        try:
            if not output_dir.is_dir():
                log.info("Creating directory: %s", output_dir)
                output_dir.mkdir(parents=True, exist_ok=True)
            log.info("Writing to file: %s", self._output_path)
            _write_text(self._output_path, text)
        except OSError as e:
            log.error("Error writing to file %s: %s", self._output_path, e)
        else:
            log.info("Saved response text to %s (%d chars)", self._output_path, len(text))
            return self._output_path

        log.info("Trying alternative location: %s", self._fallback_path)
        try:
            self._fallback_path.parent.mkdir(parents=True, exist_ok=True)
            _write_text(self._fallback_path, text)
        except OSError as e:
            log.error("Failed to save to alternative location %s: %s", self._fallback_path, e)
            raise ResponseWriteError(self._output_path, self._fallback_path, str(e)) from e

        log.info("Saved to alternative location: %s", self._fallback_path)
        return self._fallback_path
