"""
inboxrelay Inbox Watcher

Watches a single command file and turns each write into a command for the
peer. The watchdog callback only queues a lightweight event. A worker thread
debounces, reads the file with retries, and pulls file references out of
the text.

Usage:
    from inboxrelay.watcher import InboxWatcher

    def on_command(body, references):
        ...

    watcher = InboxWatcher(Path("~/.inboxrelay/command.txt").expanduser(), on_command)
    watcher.start()
    # ... write to command.txt ...
    watcher.stop()
"""

import logging
import os
import queue
import re
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .models import WatchEvent, WatchEventKind
from .outbound import is_existing_file

log = logging.getLogger(__name__)

# One absolute path per line, optionally with a drive letter:
#   C:\Book\notes.txt   /home/user/report.pdf
REFERENCE_PATTERN = re.compile(
    r'^((?:[a-zA-Z]:)?(?:[\\/][^\\/:*?"<>|\r\n]+)+\.?\w*)',
    re.MULTILINE,
)

CommandCallback = Callable[[str, List[str]], None]


def _read_text(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8-sig", errors="replace")


def read_with_retry(
    path: Union[str, Path],
    attempts: int = 5,
    delay: float = 0.2,
    wait: Callable[[float], Optional[bool]] = time.sleep,
    reader: Callable[[Path], str] = _read_text,
) -> Optional[str]:
    """
    Read a file that another process may still hold open.

    Args:
        path: File to read
        attempts: Maximum number of reads
        delay: Seconds between reads
        wait: Sleep function; a truthy return (Event.wait) aborts the retries
        reader: Function that reads the file

    Returns:
        The file text, or None if every attempt failed
    """
    path = Path(path)
    for attempt in range(1, attempts + 1):
        try:
            return reader(path)
        except OSError as e:
            log.debug("Read attempt %d/%d of %s failed: %s", attempt, attempts, path, e)
            if attempt < attempts and wait(delay):
                log.info("Stopped retrying %s: shutting down", path)
                return None

    log.error("Failed to read file %s after %d attempts", path, attempts)
    return None


def extract_references(
    text: str,
    default_reference: Optional[Union[str, Path]] = None,
) -> Tuple[str, List[str]]:
    """
    Pull absolute file paths out of a command.

    Every line-anchored path that names an existing file is recorded and
    removed from the text. Paths that do not resolve are left in place.

    Args:
        text: Command file contents
        default_reference: Reference to use when nothing resolves

    Returns:
        (body, references)
    """
    references: List[str] = []

    def _take(match: re.Match) -> str:
        candidate = match.group(1)
        if is_existing_file(candidate):
            references.append(candidate)
            return ""
        return match.group(0)

    body = REFERENCE_PATTERN.sub(_take, text)

    if references:
        body = body.lstrip("\r\n")
    elif default_reference is not None:
        references.append(str(default_reference))

    return body, references


class Debouncer:
    """
    Drops events that arrive too soon after the last processed one.

    The window is fixed from the last accepted event; rejected events do
    not extend it.
    """

    def __init__(self, window: float = 0.5):
        self.window = window
        self._last: Optional[float] = None

    def accept(self, timestamp: float) -> bool:
        if self._last is not None and timestamp - self._last < self.window:
            return False
        self._last = timestamp
        return True


class InboxEventHandler(FileSystemEventHandler):
    """Queue a WatchEvent for every write to the watched file."""

    def __init__(
        self,
        target: Path,
        events: "queue.Queue[WatchEvent]",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._target = Path(target)
        self._target_key = os.path.normcase(os.path.abspath(self._target))
        self._events = events
        self._clock = clock

    def on_modified(self, event: FileSystemEvent) -> None:
        self._enqueue(event, event.src_path, WatchEventKind.MODIFIED)

    def on_created(self, event: FileSystemEvent) -> None:
        self._enqueue(event, event.src_path, WatchEventKind.CREATED)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors that save through a temp file end with a rename onto the target
        self._enqueue(event, event.dest_path, WatchEventKind.MOVED)

    def _enqueue(self, event: FileSystemEvent, path, kind: WatchEventKind) -> None:
        if event.is_directory:
            return
        if os.path.normcase(os.path.abspath(os.fsdecode(path))) != self._target_key:
            return

        item = WatchEvent(path=self._target, kind=kind, timestamp=self._clock())
        try:
            self._events.put_nowait(item)
        except queue.Full:
            log.warning("Event queue full, dropping %s event for %s", kind.value, self._target)


class InboxWatcher:
    """
    Background service that watches the command file.

    Runs a watchdog observer on the file's directory plus one worker thread.
    The worker hands (body, references) to on_command for each accepted
    change.
    """

    def __init__(
        self,
        path: Union[str, Path],
        on_command: CommandCallback,
        stop_event: Optional[threading.Event] = None,
        default_reference: Optional[Union[str, Path]] = None,
        debounce_seconds: float = 0.5,
        read_attempts: int = 5,
        read_retry_delay: float = 0.2,
        queue_size: int = 64,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the watcher.

        Args:
            path: File to watch
            on_command: Called with (body, references) for each accepted change
            stop_event: Cancellation shared with the rest of the bridge
            default_reference: Reference used when a command names no files
            debounce_seconds: Minimum gap between processed events
            read_attempts: Reads per event before giving up
            read_retry_delay: Seconds between reads
            queue_size: Maximum pending events
            clock: Monotonic clock for event timestamps
        """
        self._path = Path(path)
        self._on_command = on_command
        self._stop_event = stop_event or threading.Event()
        self._default_reference = default_reference
        self._read_attempts = read_attempts
        self._read_retry_delay = read_retry_delay

        self._events: "queue.Queue[WatchEvent]" = queue.Queue(maxsize=queue_size)
        self._handler = InboxEventHandler(self._path, self._events, clock)
        self._debouncer = Debouncer(debounce_seconds)

        self._observer: Optional[Observer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def handler(self) -> InboxEventHandler:
        return self._handler

    def start(self) -> None:
        """Start the observer and the worker thread."""
        if self.is_running():
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)

        self._observer = Observer()
        self._observer.schedule(self._handler, str(self._path.parent), recursive=False)
        self._observer.start()

        self._thread = threading.Thread(
            target=self._worker_loop,
            name="InboxRelayWatcher",
            daemon=True,
        )
        self._thread.start()
        log.info("Watching %s", self._path)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the observer and the worker thread.

        Args:
            timeout: Maximum time to wait for each thread
        """
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def process_event(self, event: WatchEvent) -> bool:
        """
        Debounce, read and forward one event.

        Returns:
            True if a command was handed to on_command
        """
        if not self._debouncer.accept(event.timestamp):
            log.info("Skipping duplicate file change event")
            return False

        content = read_with_retry(
            event.path,
            attempts=self._read_attempts,
            delay=self._read_retry_delay,
            wait=self._stop_event.wait,
        )
        if content is None:
            return False

        body, references = extract_references(content, self._default_reference)
        self._on_command(body, references)
        return True

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._events.get(timeout=0.25)
            except queue.Empty:
                continue

            try:
                self.process_event(event)
            except Exception:
                log.exception("File error while processing %s", event.path)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
