"""Tests for inboxrelay.watcher - debounce, read retries, references, events."""

import logging
import os
import queue
import threading
import time

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from inboxrelay.models import WatchEvent, WatchEventKind
from inboxrelay.watcher import (
    Debouncer,
    InboxEventHandler,
    InboxWatcher,
    extract_references,
    read_with_retry,
)


class FlakyReader:
    """Reader that raises PermissionError a fixed number of times first."""

    def __init__(self, failures: int, content: str = "payload"):
        self.failures = failures
        self.content = content
        self.calls = 0

    def __call__(self, path):
        self.calls += 1
        if self.calls <= self.failures:
            raise PermissionError(13, "file is locked by another process", str(path))
        return self.content


# ---------------------------------------------------------------------------
# Debouncer
# ---------------------------------------------------------------------------


class TestDebouncer:
    def test_events_100ms_apart_process_once(self):
        debouncer = Debouncer(0.5)
        assert debouncer.accept(10.0) is True
        assert debouncer.accept(10.1) is False

    def test_events_600ms_apart_process_twice(self):
        debouncer = Debouncer(0.5)
        assert debouncer.accept(10.0) is True
        assert debouncer.accept(10.6) is True

    def test_window_is_fixed_from_last_processed_event(self):
        debouncer = Debouncer(0.5)
        assert debouncer.accept(0.0) is True
        assert debouncer.accept(0.3) is False
        # 0.6 is within 0.5 of the rejected 0.3 event but not of 0.0
        assert debouncer.accept(0.6) is True


# ---------------------------------------------------------------------------
# read_with_retry
# ---------------------------------------------------------------------------


class TestReadWithRetry:
    def test_success_on_fifth_attempt(self, tmp_path):
        reader = FlakyReader(failures=4, content="hello")
        waits = []
        result = read_with_retry(tmp_path / "command.txt", reader=reader, wait=waits.append)
        assert result == "hello"
        assert reader.calls == 5
        assert waits == [0.2, 0.2, 0.2, 0.2]

    def test_five_failures_drop_the_event(self, tmp_path, caplog):
        reader = FlakyReader(failures=5)
        with caplog.at_level(logging.ERROR, logger="inboxrelay"):
            result = read_with_retry(tmp_path / "command.txt", reader=reader, wait=lambda s: None)
        assert result is None
        assert reader.calls == 5
        assert "Failed to read file" in caplog.text

    def test_cancellation_stops_retries(self, tmp_path):
        reader = FlakyReader(failures=5)
        result = read_with_retry(tmp_path / "command.txt", reader=reader, wait=lambda s: True)
        assert result is None
        assert reader.calls == 1

    def test_reads_real_file_and_strips_bom(self, tmp_path):
        path = tmp_path / "command.txt"
        path.write_bytes("\ufeffПривет".encode("utf-8"))
        assert read_with_retry(path) == "Привет"

    def test_missing_file_retries_then_fails(self, tmp_path):
        assert read_with_retry(tmp_path / "nope.txt", attempts=2, wait=lambda s: None) is None


# ---------------------------------------------------------------------------
# extract_references
# ---------------------------------------------------------------------------


class TestExtractReferences:
    def test_leading_paths_are_extracted(self, tmp_path):
        a = tmp_path / "a.txt"
        b = tmp_path / "notes.md"
        a.write_text("A")
        b.write_text("B")

        body, refs = extract_references(f"{a}\n{b}\n\nPlease review.")
        assert refs == [str(a), str(b)]
        assert body == "Please review."

    def test_unresolved_paths_stay_in_body(self, tmp_path):
        missing = tmp_path / "missing.txt"
        body, refs = extract_references(f"{missing}\nHello")
        assert refs == []
        assert body == f"{missing}\nHello"

    def test_default_reference_when_nothing_resolves(self, tmp_path):
        default = tmp_path / "attach.txt"
        body, refs = extract_references("Just text", default_reference=default)
        assert body == "Just text"
        assert refs == [str(default)]

    def test_default_not_used_when_a_path_resolves(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("A")
        _, refs = extract_references(f"{a}\nHi", default_reference=tmp_path / "attach.txt")
        assert refs == [str(a)]

    def test_text_lines_are_not_paths(self):
        body, refs = extract_references("hello\nworld")
        assert body == "hello\nworld"
        assert refs == []

    def test_long_slash_led_text_stays_in_body(self):
        text = "/" + "note " * 60 + "\nhello"
        body, refs = extract_references(text)
        assert body == text
        assert refs == []

    def test_reference_above_long_paragraph(self, tmp_path):
        report = tmp_path / "report.pdf"
        report.write_bytes(b"%PDF-1.4")
        paragraph = "Compare the figures in this report with last quarter. " * 6

        body, refs = extract_references(f"{report}\n{paragraph}\n/{paragraph}")

        assert refs == [str(report)]
        assert body == f"{paragraph}\n/{paragraph}"


# ---------------------------------------------------------------------------
# InboxEventHandler
# ---------------------------------------------------------------------------


class TestInboxEventHandler:
    def _handler(self, tmp_path, maxsize=10):
        events = queue.Queue(maxsize=maxsize)
        target = tmp_path / "command.txt"
        return InboxEventHandler(target, events, clock=lambda: 42.0), events, target

    def test_modification_of_target_is_queued(self, tmp_path):
        handler, events, target = self._handler(tmp_path)
        handler.on_modified(FileModifiedEvent(str(target)))
        event = events.get_nowait()
        assert event == WatchEvent(path=target, kind=WatchEventKind.MODIFIED, timestamp=42.0)

    def test_other_files_are_ignored(self, tmp_path):
        handler, events, _ = self._handler(tmp_path)
        handler.on_modified(FileModifiedEvent(str(tmp_path / "output.txt")))
        assert events.empty()

    def test_directories_are_ignored(self, tmp_path):
        handler, events, target = self._handler(tmp_path)
        handler.on_created(DirCreatedEvent(str(target)))
        assert events.empty()

    def test_rename_onto_target_is_queued(self, tmp_path):
        handler, events, target = self._handler(tmp_path)
        handler.on_moved(FileMovedEvent(str(tmp_path / "command.txt.tmp"), str(target)))
        assert events.get_nowait().kind == WatchEventKind.MOVED

    def test_full_queue_drops_event(self, tmp_path, caplog):
        handler, events, target = self._handler(tmp_path, maxsize=1)
        with caplog.at_level(logging.WARNING, logger="inboxrelay"):
            handler.on_modified(FileModifiedEvent(str(target)))
            handler.on_modified(FileModifiedEvent(str(target)))
        assert events.qsize() == 1
        assert "queue full" in caplog.text


# ---------------------------------------------------------------------------
# InboxWatcher
# ---------------------------------------------------------------------------


class TestInboxWatcher:
    def _watcher(self, tmp_path, **kwargs):
        calls = []
        target = tmp_path / "command.txt"
        target.write_text("do the thing", encoding="utf-8")
        watcher = InboxWatcher(
            target,
            on_command=lambda body, refs: calls.append((body, refs)),
            read_retry_delay=0.0,
            **kwargs,
        )
        return watcher, calls, target

    def test_events_100ms_apart_read_once(self, tmp_path):
        watcher, calls, target = self._watcher(tmp_path)
        watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 5.0))
        watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 5.1))
        assert calls == [("do the thing", [])]

    def test_events_600ms_apart_read_twice(self, tmp_path):
        watcher, calls, target = self._watcher(tmp_path)
        watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 5.0))
        target.write_text("second", encoding="utf-8")
        watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 5.6))
        assert [body for body, _ in calls] == ["do the thing", "second"]

    def test_references_and_default_are_forwarded(self, tmp_path):
        default = tmp_path / "attach.txt"
        watcher, calls, target = self._watcher(tmp_path, default_reference=default)
        watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 1.0))
        assert calls == [("do the thing", [str(default)])]

    def test_unreadable_file_forwards_nothing(self, tmp_path):
        watcher, calls, target = self._watcher(tmp_path, read_attempts=2)
        target.unlink()
        assert watcher.process_event(WatchEvent(target, WatchEventKind.MODIFIED, 1.0)) is False
        assert calls == []

    def test_observer_delivers_file_writes(self, tmp_path):
        received = threading.Event()
        bodies = []
        target = tmp_path / "inbox" / "command.txt"

        def on_command(body, refs):
            bodies.append(body)
            if body == "from the observer":
                received.set()

        # Write through a temp file so the watched file is never seen half-written
        staging = tmp_path / "inbox" / "command.txt.tmp"

        watcher = InboxWatcher(
            target, on_command=on_command, debounce_seconds=0.0, read_retry_delay=0.01
        )
        with watcher:
            assert watcher.is_running()
            time.sleep(0.2)
            staging.write_text("from the observer", encoding="utf-8")
            os.replace(staging, target)
            assert received.wait(timeout=5.0)

        assert not watcher.is_running()
        assert "from the observer" in bodies

    def test_in_place_overwrite_at_default_debounce(self, tmp_path):
        received = threading.Event()
        bodies = []
        target = tmp_path / "inbox" / "command.txt"
        target.parent.mkdir()
        target.write_text("", encoding="utf-8")
        text = "Draft a reply to the vendor.\n" + "Keep the tone friendly and brief. " * 10

        def on_command(body, refs):
            bodies.append(body)
            if body == text:
                received.set()

        watcher = InboxWatcher(target, on_command=on_command, read_retry_delay=0.05)
        with watcher:
            time.sleep(0.2)
            with open(target, "w", encoding="utf-8") as f:
                f.write(text)
            assert received.wait(timeout=5.0)

        assert text in bodies
